"""Reclaim data models."""

from reclaim.models.scan_result import (
    Category,
    CategoryPage,
    EngineStatus,
    FileEntry,
    ScanMode,
    ScanOptions,
    ScanProgress,
    ScanResult,
)
from reclaim.models.clean_result import CleanError, CleanResult, DeleteProgress
from reclaim.models.session import ScanSession, ScanState, SessionStatus

__all__ = [
    "Category",
    "CategoryPage",
    "CleanError",
    "CleanResult",
    "DeleteProgress",
    "EngineStatus",
    "FileEntry",
    "ScanMode",
    "ScanOptions",
    "ScanProgress",
    "ScanResult",
    "ScanSession",
    "ScanState",
    "SessionStatus",
]
