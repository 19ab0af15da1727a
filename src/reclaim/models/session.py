"""Scan session and store snapshot dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from reclaim.models.clean_result import CleanResult, DeleteProgress
from reclaim.models.scan_result import ScanMode, ScanProgress, ScanResult


class SessionStatus(str, Enum):
    """Lifecycle status of a scan session."""

    IDLE = "idle"
    SCANNING = "scanning"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in (SessionStatus.SCANNING, SessionStatus.PAUSED)


TERMINAL_STATUSES = frozenset(
    {SessionStatus.IDLE, SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.FAILED}
)


@dataclass(frozen=True, slots=True)
class ScanSession:
    """Identity and parameters of one scan run."""

    session_id: str | None = None
    mode: ScanMode = ScanMode.QUICK
    status: SessionStatus = SessionStatus.IDLE
    target_paths: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ScanState:
    """Immutable snapshot of everything the UI reads about a scan."""

    session: ScanSession = ScanSession()
    progress: ScanProgress | None = None
    result: ScanResult | None = None
    clean_result: CleanResult | None = None
    error: str | None = None
    selection: frozenset[str] = frozenset()
    expanded: frozenset[str] = frozenset()
    delete_progress: DeleteProgress | None = None

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    @property
    def session_id(self) -> str | None:
        return self.session.session_id
