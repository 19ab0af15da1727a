"""Contract of the external scanning/cleaning engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Callable

from reclaim.models.clean_result import CleanResult
from reclaim.models.scan_result import CategoryPage, ScanOptions, ScanProgress, ScanResult

ProgressCallback = Callable[[ScanProgress], None]
CompleteCallback = Callable[[ScanResult], None]
Unsubscribe = Callable[[], None]


class ErrorCode(IntEnum):
    """Error codes reported by the engine."""

    SCAN_NOT_FOUND = 2001
    SCAN_ALREADY_RUNNING = 2002
    SCAN_PATH_INVALID = 2003
    SCAN_PERMISSION_DENIED = 2004
    CLEAN_FILE_NOT_FOUND = 3001
    CLEAN_PERMISSION_DENIED = 3002
    CLEAN_FILE_IN_USE = 3003
    CLEAN_PROTECTED_FILE = 3004
    IO_ERROR = 5001
    UNKNOWN = 9999


class EngineError(Exception):
    """Raised when an engine command is rejected or cannot be delivered."""

    def __init__(self, message: str, code: ErrorCode | int | None = None) -> None:
        super().__init__(message)
        self.code = code


class ScanEngine(ABC):
    """Asynchronous command/event boundary to the scanning engine.

    Commands are coroutines. Push notifications are delivered to the
    registered callbacks on the event loop; every subscriber receives every
    notification, so callers filter by session identifier themselves.
    """

    @abstractmethod
    async def start(self, options: ScanOptions) -> str:
        """Start a scan and return its session identifier."""

    @abstractmethod
    async def pause(self, session_id: str) -> None:
        """Pause a running scan."""

    @abstractmethod
    async def resume(self, session_id: str) -> None:
        """Resume a paused scan."""

    @abstractmethod
    async def cancel(self, session_id: str) -> None:
        """Request cancellation of a scan."""

    @abstractmethod
    async def get_progress(self, session_id: str) -> ScanProgress | None:
        """Return the latest progress of a scan, if the engine knows it."""

    @abstractmethod
    async def get_result(self, session_id: str) -> ScanResult | None:
        """Return the stored result of a finished scan."""

    @abstractmethod
    async def get_category_files(
        self,
        session_id: str,
        category_key: str,
        offset: int,
        limit: int,
    ) -> CategoryPage | None:
        """Return up to *limit* files of a category starting at *offset*."""

    @abstractmethod
    async def delete_all(self, session_id: str, move_to_trash: bool) -> CleanResult:
        """Delete every file found by the scan."""

    @abstractmethod
    async def delete_selected(
        self,
        session_id: str,
        paths: list[str],
        move_to_trash: bool,
    ) -> CleanResult:
        """Delete the given paths."""

    @abstractmethod
    async def clear_result(self, session_id: str) -> None:
        """Release the engine-side storage held for a session."""

    @abstractmethod
    def on_progress(self, callback: ProgressCallback) -> Unsubscribe:
        """Subscribe to progress notifications."""

    @abstractmethod
    def on_complete(self, callback: CompleteCallback) -> Unsubscribe:
        """Subscribe to scan completion notifications."""
