"""Shared test fixtures."""

from __future__ import annotations

import asyncio

import pytest

from reclaim.core.engine import EngineError, ScanEngine
from reclaim.core.workspace import ScanWorkspace
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
from reclaim.settings import Settings


def make_file(path: str, size: int, category: str = "") -> FileEntry:
    return FileEntry(path=path, name=path.rsplit("/", 1)[-1], size=size, category=category)


def make_category(key: str, files: list[FileEntry], file_count: int | None = None, total_size: int | None = None) -> Category:
    file_count = len(files) if file_count is None else file_count
    return Category(
        key=key,
        display_name=key.replace("_", " ").title(),
        files=tuple(files),
        file_count=file_count,
        total_size=sum(f.size for f in files) if total_size is None else total_size,
        has_more=len(files) < file_count,
    )


def make_result(session_id: str, categories: list[Category]) -> ScanResult:
    return ScanResult(
        session_id=session_id,
        total_files=sum(c.file_count for c in categories),
        total_size=sum(c.total_size for c in categories),
        categories=tuple(categories),
    )


class FakeEngine(ScanEngine):
    """In-memory engine that records calls and never touches the filesystem.

    Commands listed in ``failing`` raise ``EngineError``. ``category_files``
    holds the engine-side file list per category for pagination.
    """

    def __init__(self, session_id: str = "scan-1") -> None:
        self.session_id = session_id
        self.calls: list[tuple] = []
        self.failing: set[str] = set()
        self.category_files: dict[str, list[FileEntry]] = {}
        self.failed_deletes: dict[str, str] = {}
        self.start_gate: asyncio.Event | None = None
        self.page_gate: asyncio.Event | None = None
        self._progress_listeners: list = []
        self._complete_listeners: list = []

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.failing:
            raise EngineError(f"{name} failed")

    def called(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    async def start(self, options: ScanOptions) -> str:
        self._record("start", options)
        if self.start_gate is not None:
            await self.start_gate.wait()
        return self.session_id

    async def pause(self, session_id: str) -> None:
        self._record("pause", session_id)

    async def resume(self, session_id: str) -> None:
        self._record("resume", session_id)

    async def cancel(self, session_id: str) -> None:
        self._record("cancel", session_id)

    async def get_progress(self, session_id: str) -> ScanProgress | None:
        self._record("get_progress", session_id)
        return ScanProgress(session_id=session_id, percent=42.0)

    async def get_result(self, session_id: str) -> ScanResult | None:
        self._record("get_result", session_id)
        return None

    async def get_category_files(self, session_id, category_key, offset, limit) -> CategoryPage | None:
        self._record("get_category_files", session_id, category_key, offset, limit)
        if self.page_gate is not None:
            await self.page_gate.wait()
        files = self.category_files.get(category_key)
        if files is None:
            return None
        page = files[offset:offset + limit]
        return CategoryPage(files=tuple(page), has_more=offset + limit < len(files), total=len(files))

    async def delete_all(self, session_id: str, move_to_trash: bool) -> CleanResult:
        self._record("delete_all", session_id, move_to_trash)
        total = sum(len(files) for files in self.category_files.values())
        return CleanResult(total_files=total, cleaned_files=total)

    async def delete_selected(self, session_id: str, paths: list[str], move_to_trash: bool) -> CleanResult:
        self._record("delete_selected", session_id, list(paths), move_to_trash)
        errors = tuple(CleanError(path=p, error_message=msg) for p, msg in self.failed_deletes.items() if p in paths)
        for files in self.category_files.values():
            files[:] = [f for f in files if f.path not in paths or f.path in self.failed_deletes]
        return CleanResult(
            total_files=len(paths),
            cleaned_files=len(paths) - len(errors),
            failed_files=len(errors),
            errors=errors,
        )

    async def clear_result(self, session_id: str) -> None:
        self._record("clear_result", session_id)

    def on_progress(self, callback):
        self._progress_listeners.append(callback)
        return lambda: self._progress_listeners.remove(callback)

    def on_complete(self, callback):
        self._complete_listeners.append(callback)
        return lambda: self._complete_listeners.remove(callback)

    # -- Test helpers --

    def hold(self, name: str) -> asyncio.Event:
        """Make command *name* wait until the returned event is set."""
        gate = asyncio.Event()
        command = getattr(self, name)

        async def _held(*args):
            await gate.wait()
            return await command(*args)

        setattr(self, name, _held)
        return gate

    @property
    def listener_count(self) -> int:
        return len(self._progress_listeners) + len(self._complete_listeners)

    def emit_progress(self, session_id: str | None = None, status: EngineStatus = EngineStatus.SCANNING, **kwargs) -> None:
        progress = ScanProgress(session_id=session_id, status=status, **kwargs)
        for callback in list(self._progress_listeners):
            callback(progress)

    def emit_complete(self, result: ScanResult) -> None:
        for callback in list(self._complete_listeners):
            callback(result)


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def workspace(engine) -> ScanWorkspace:
    ws = ScanWorkspace(engine)
    ws.controller.subscribe()
    return ws


@pytest.fixture
def sample_result() -> ScanResult:
    """Two fully loaded categories: A, B in logs and C in cache."""
    return make_result(
        "scan-1",
        [
            make_category("log_files", [make_file("/var/log/a.log", 10), make_file("/var/log/b.log", 20)]),
            make_category("browser_cache", [make_file("/home/u/.cache/c", 30)]),
        ],
    )


@pytest.fixture
async def completed(workspace, engine, sample_result) -> ScanWorkspace:
    """A workspace whose scan finished with ``sample_result``."""
    await workspace.controller.start_scan()
    engine.emit_complete(sample_result)
    return workspace


@pytest.fixture
def isolate_settings(tmp_path, monkeypatch):
    """Point the settings singleton at a temp file."""
    path = tmp_path / "reclaim" / "settings.json"
    monkeypatch.setattr(Settings, "_instance", None)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    return path
