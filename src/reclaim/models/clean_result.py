"""Cleaning result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CleanError:
    """A single path the engine failed to remove."""

    path: str
    error_message: str
    error_code: str = ""


@dataclass(frozen=True, slots=True)
class CleanResult:
    """Result of a delete call, as reported by the engine."""

    total_files: int = 0
    cleaned_files: int = 0
    failed_files: int = 0
    skipped_files: int = 0
    total_size: int = 0
    cleaned_size: int = 0
    duration_ms: int = 0
    errors: tuple[CleanError, ...] = ()

    @property
    def failed_paths(self) -> frozenset[str]:
        return frozenset(e.path for e in self.errors)


@dataclass(frozen=True, slots=True)
class DeleteProgress:
    """Progress of an in-flight delete call."""

    current: int
    total: int
    percent: float = 0.0
    current_file: str = ""
