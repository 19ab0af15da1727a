"""Scan result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ScanMode(str, Enum):
    """How much of the disk the engine walks."""

    QUICK = "quick"
    DEEP = "full"


class EngineStatus(str, Enum):
    """Status reported by the engine on progress notifications."""

    IDLE = "idle"
    SCANNING = "scanning"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ScanOptions:
    """Payload of the engine's start command."""

    paths: tuple[str, ...] = ()
    mode: ScanMode = ScanMode.QUICK
    include_hidden: bool = False
    include_system: bool = False
    exclude_paths: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class FileEntry:
    """Single reclaimable file produced by the engine."""

    path: str
    name: str
    size: int
    modified_time: int = 0
    category: str = ""


@dataclass(frozen=True, slots=True)
class Category:
    """Named group of files with a possibly partial list of members.

    ``files`` is a prefix of the engine's full list; ``file_count`` and
    ``total_size`` always describe the full list.
    """

    key: str
    display_name: str
    description: str = ""
    files: tuple[FileEntry, ...] = ()
    file_count: int = 0
    total_size: int = 0
    has_more: bool = False

    @property
    def unloaded_count(self) -> int:
        """Files the engine holds that have not been paginated in yet."""
        return max(self.file_count - len(self.files), 0)


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Categorized result of a completed scan."""

    session_id: str
    total_files: int = 0
    total_folders: int = 0
    total_size: int = 0
    categories: tuple[Category, ...] = ()
    duration: int = 0

    def get_category(self, key: str) -> Category | None:
        for category in self.categories:
            if category.key == key:
                return category
        return None

    def loaded_files(self) -> list[FileEntry]:
        return [f for c in self.categories for f in c.files]


@dataclass(frozen=True, slots=True)
class ScanProgress:
    """Progress notification for a running scan.

    ``session_id`` is None when the engine has not yet told us which
    session the notification belongs to.
    """

    session_id: str | None
    status: EngineStatus = EngineStatus.SCANNING
    current_path: str = ""
    scanned_files: int = 0
    scanned_size: int = 0
    total_files: int = 0
    total_size: int = 0
    percent: float = 0.0
    speed: float = 0.0


@dataclass(frozen=True, slots=True)
class CategoryPage:
    """One page of category files returned by the engine."""

    files: tuple[FileEntry, ...] = field(default_factory=tuple)
    has_more: bool = False
    total: int | None = None
