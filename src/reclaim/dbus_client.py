"""D-Bus client for the external scanning engine.

The engine service exposes PascalCase methods that take and return JSON
strings, and two signals carrying JSON payloads. Keys on the wire are
snake_case.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable

from dbus_next import BusType
from dbus_next.aio import MessageBus
from dbus_next.errors import DBusError

from reclaim.core.engine import (
    CompleteCallback,
    EngineError,
    ErrorCode,
    ProgressCallback,
    ScanEngine,
    Unsubscribe,
)
from reclaim.models.clean_result import CleanError, CleanResult
from reclaim.models.scan_result import (
    Category,
    CategoryPage,
    EngineStatus,
    FileEntry,
    ScanOptions,
    ScanProgress,
    ScanResult,
)

log = logging.getLogger(__name__)

_BUS_NAME = "io.github.reclaim.Engine"
_OBJECT_PATH = "/io/github/reclaim/Engine"
_INTERFACE = "io.github.reclaim.Engine1"


# noinspection PyUnresolvedReferences
class DBusScanEngine(ScanEngine):
    """``ScanEngine`` backed by the engine's D-Bus service on the session bus."""

    def __init__(self, bus: MessageBus, interface: Any) -> None:
        self._bus = bus
        self._iface = interface

    @classmethod
    async def connect(cls, bus_type: BusType = BusType.SESSION) -> DBusScanEngine:
        """Connect to the bus and bind the engine interface.

        Raises:
            EngineError: If the bus or the engine service is unreachable.
        """
        try:
            bus = await MessageBus(bus_type=bus_type).connect()
            introspection = await bus.introspect(_BUS_NAME, _OBJECT_PATH)
        except (DBusError, OSError) as e:
            raise EngineError(f"Scan engine is not available: {e}") from e
        proxy = bus.get_proxy_object(_BUS_NAME, _OBJECT_PATH, introspection)
        log.debug("Connected to %s", _BUS_NAME)
        return cls(bus, proxy.get_interface(_INTERFACE))

    def disconnect(self) -> None:
        self._bus.disconnect()

    # -- Commands --

    async def start(self, options: ScanOptions) -> str:
        return await self._call(self._iface.call_start_scan, json.dumps(options_to_dict(options)))

    async def pause(self, session_id: str) -> None:
        await self._call(self._iface.call_pause_scan, session_id)

    async def resume(self, session_id: str) -> None:
        await self._call(self._iface.call_resume_scan, session_id)

    async def cancel(self, session_id: str) -> None:
        await self._call(self._iface.call_cancel_scan, session_id)

    async def get_progress(self, session_id: str) -> ScanProgress | None:
        data = _loads(await self._call(self._iface.call_get_progress, session_id))
        return progress_from_dict(data) if data else None

    async def get_result(self, session_id: str) -> ScanResult | None:
        data = _loads(await self._call(self._iface.call_get_result, session_id))
        return result_from_dict(data) if data else None

    async def get_category_files(
        self,
        session_id: str,
        category_key: str,
        offset: int,
        limit: int,
    ) -> CategoryPage | None:
        raw = await self._call(self._iface.call_get_category_files, session_id, category_key, offset, limit)
        data = _loads(raw)
        return page_from_dict(data) if data else None

    async def delete_all(self, session_id: str, move_to_trash: bool) -> CleanResult:
        raw = await self._call(self._iface.call_delete_all, session_id, move_to_trash)
        return clean_result_from_dict(_loads(raw) or {})

    async def delete_selected(
        self,
        session_id: str,
        paths: list[str],
        move_to_trash: bool,
    ) -> CleanResult:
        raw = await self._call(self._iface.call_delete_selected, session_id, paths, move_to_trash)
        return clean_result_from_dict(_loads(raw) or {})

    async def clear_result(self, session_id: str) -> None:
        await self._call(self._iface.call_clear_result, session_id)

    # -- Signals --

    def on_progress(self, callback: ProgressCallback) -> Unsubscribe:
        def _handler(payload: str) -> None:
            try:
                progress = progress_from_dict(json.loads(payload))
            except (ValueError, KeyError, TypeError) as e:
                log.warning("Dropping malformed progress signal: %s", e)
                return
            callback(progress)

        self._iface.on_scan_progress(_handler)
        return lambda: self._iface.off_scan_progress(_handler)

    def on_complete(self, callback: CompleteCallback) -> Unsubscribe:
        def _handler(payload: str) -> None:
            try:
                result = result_from_dict(json.loads(payload))
            except (ValueError, KeyError, TypeError) as e:
                log.warning("Dropping malformed completion signal: %s", e)
                return
            callback(result)

        self._iface.on_scan_complete(_handler)
        return lambda: self._iface.off_scan_complete(_handler)

    @staticmethod
    async def _call(method: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        try:
            return await method(*args)
        except DBusError as e:
            raise EngineError(e.text or str(e), _error_code(e.type)) from e


# -- Wire format --


def options_to_dict(options: ScanOptions) -> dict[str, Any]:
    return {
        "paths": list(options.paths),
        "mode": options.mode.value,
        "include_hidden": options.include_hidden,
        "include_system": options.include_system,
        "exclude_paths": list(options.exclude_paths),
    }


def file_from_dict(data: dict[str, Any]) -> FileEntry:
    return FileEntry(
        path=data["path"],
        name=data.get("name", ""),
        size=int(data.get("size", 0)),
        modified_time=int(data.get("modified_time", 0)),
        category=data.get("category", ""),
    )


def category_from_dict(data: dict[str, Any]) -> Category:
    files = tuple(file_from_dict(f) for f in data.get("files", []))
    file_count = int(data.get("file_count", len(files)))
    return Category(
        key=data["name"],
        display_name=data.get("display_name") or data["name"],
        description=data.get("description", ""),
        files=files,
        file_count=file_count,
        total_size=int(data.get("total_size", 0)),
        has_more=bool(data.get("has_more", len(files) < file_count)),
    )


def result_from_dict(data: dict[str, Any]) -> ScanResult:
    return ScanResult(
        session_id=data["scan_id"],
        total_files=int(data.get("total_files", 0)),
        total_folders=int(data.get("total_folders", 0)),
        total_size=int(data.get("total_size", 0)),
        categories=tuple(category_from_dict(c) for c in data.get("categories", [])),
        duration=int(data.get("duration", 0)),
    )


def progress_from_dict(data: dict[str, Any]) -> ScanProgress:
    """Decode a progress payload; an empty ``scan_id`` means "not known yet"."""
    return ScanProgress(
        session_id=data.get("scan_id") or None,
        status=_engine_status(data.get("status")),
        current_path=data.get("current_path", ""),
        scanned_files=int(data.get("scanned_files", 0)),
        scanned_size=int(data.get("scanned_size", 0)),
        total_files=int(data.get("total_files", 0)),
        total_size=int(data.get("total_size", 0)),
        percent=float(data.get("percent", 0.0)),
        speed=float(data.get("speed", 0.0)),
    )


def page_from_dict(data: dict[str, Any]) -> CategoryPage:
    total = data.get("total")
    return CategoryPage(
        files=tuple(file_from_dict(f) for f in data.get("files", [])),
        has_more=bool(data.get("has_more", False)),
        total=int(total) if total is not None else None,
    )


def clean_result_from_dict(data: dict[str, Any]) -> CleanResult:
    return CleanResult(
        total_files=int(data.get("total_files", 0)),
        cleaned_files=int(data.get("cleaned_files", 0)),
        failed_files=int(data.get("failed_files", 0)),
        skipped_files=int(data.get("skipped_files", 0)),
        total_size=int(data.get("total_size", 0)),
        cleaned_size=int(data.get("cleaned_size", 0)),
        duration_ms=int(data.get("duration_ms", 0)),
        errors=tuple(
            CleanError(
                path=e["path"],
                error_message=e.get("error_message", ""),
                error_code=e.get("error_code", ""),
            )
            for e in data.get("errors", [])
        ),
    )


def _loads(raw: str) -> Any:
    try:
        return json.loads(raw) if raw else None
    except json.JSONDecodeError as e:
        raise EngineError(f"Malformed engine reply: {e}") from e


def _engine_status(value: str | None) -> EngineStatus:
    try:
        return EngineStatus(value)
    except ValueError:
        log.debug("Unknown engine status %r, assuming scanning", value)
        return EngineStatus.SCANNING


def _error_code(error_name: str) -> ErrorCode:
    """Map an error name like ``io.github.reclaim.Engine1.Error.ScanNotFound`` to a code."""
    suffix = error_name.rsplit(".", 1)[-1]
    by_name = {code.name.replace("_", "").lower(): code for code in ErrorCode}
    return by_name.get(suffix.lower(), ErrorCode.UNKNOWN)
