"""Scan session lifecycle controller."""

from __future__ import annotations

import asyncio
import dataclasses
import logging

from reclaim.core.engine import EngineError, ScanEngine, Unsubscribe
from reclaim.core.result_model import with_totals
from reclaim.core.store import ScanStore
from reclaim.models.scan_result import EngineStatus, ScanMode, ScanOptions, ScanProgress, ScanResult
from reclaim.models.session import ScanSession, ScanState, SessionStatus

log = logging.getLogger(__name__)

_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.IDLE: frozenset({SessionStatus.SCANNING}),
    SessionStatus.SCANNING: frozenset(
        {SessionStatus.PAUSED, SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.FAILED}
    ),
    SessionStatus.PAUSED: frozenset({SessionStatus.SCANNING, SessionStatus.CANCELLED}),
    SessionStatus.COMPLETED: frozenset({SessionStatus.IDLE, SessionStatus.SCANNING}),
    SessionStatus.CANCELLED: frozenset({SessionStatus.IDLE, SessionStatus.SCANNING}),
    SessionStatus.FAILED: frozenset({SessionStatus.IDLE, SessionStatus.SCANNING}),
}


def can_transition(current: SessionStatus, new: SessionStatus) -> bool:
    """Whether the session may move from *current* to *new*."""
    return new in _TRANSITIONS[current]


class SessionController:
    """Drives one scan session at a time against the engine.

    This is the only component that issues lifecycle commands and the
    only writer of the session, progress and error fields of the store.
    Misuse (pausing without a session, starting while a scan runs) is
    reported on the store's ``error`` field instead of raising.
    """

    def __init__(self, store: ScanStore, engine: ScanEngine) -> None:
        self._store = store
        self._engine = engine
        self._unsubscribers: list[Unsubscribe] = []
        # Bumped whenever a session attempt is started, cancelled or reset.
        self._generation = 0
        self._awaiting_session_id = False
        # Sessions that were cancelled, reset or replaced; their events are dropped.
        self._retired_ids: set[str] = set()

    @property
    def state(self) -> ScanState:
        return self._store.state

    @property
    def is_subscribed(self) -> bool:
        return bool(self._unsubscribers)

    # -- Subscriptions --

    def subscribe(self) -> None:
        """Listen for engine progress and completion notifications (once)."""
        if self._unsubscribers:
            return
        self._unsubscribers = [
            self._engine.on_progress(self._on_progress),
            self._engine.on_complete(self._on_complete),
        ]

    def unsubscribe(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    # -- Lifecycle commands --

    def set_mode(self, mode: ScanMode) -> None:
        """Change the scan mode of the next session; ignored during a scan."""
        session = self.state.session
        if session.status.is_active or session.mode == mode:
            return
        self._store.update(session=dataclasses.replace(session, mode=mode))

    async def start_scan(
        self,
        mode: ScanMode | None = None,
        target_paths: list[str] | tuple[str, ...] = (),
        options: ScanOptions | None = None,
    ) -> bool:
        """Start a new scan, discarding the previous result and selection.

        Args:
            mode: Scan mode. Defaults to the current session mode.
            target_paths: Paths to walk in deep mode. Quick scans let the
                engine pick its own targets.
            options: Filtering flags. ``paths`` and ``mode`` are overridden.

        Returns:
            True if the engine accepted the scan.
        """
        session = self.state.session
        if session.status.is_active:
            self._report("A scan is already running")
            return False

        if session.session_id is not None:
            self._retired_ids.add(session.session_id)
        mode = mode or session.mode
        targets = tuple(target_paths) if mode == ScanMode.DEEP else ()
        options = dataclasses.replace(options or ScanOptions(), paths=targets, mode=mode)

        self._generation += 1
        generation = self._generation
        self._awaiting_session_id = True
        self._store.update(
            session=ScanSession(mode=mode, status=SessionStatus.SCANNING, target_paths=targets),
            progress=ScanProgress(session_id=None),
            result=None,
            clean_result=None,
            error=None,
            selection=frozenset(),
            expanded=frozenset(),
            delete_progress=None,
        )
        log.info("Starting %s scan of %s", mode.value, list(targets) or "default locations")

        try:
            session_id = await self._engine.start(options)
        except EngineError as e:
            if generation == self._generation:
                self._awaiting_session_id = False
                log.warning("Scan failed to start: %s", e)
                self._store.update(
                    session=dataclasses.replace(self.state.session, status=SessionStatus.FAILED),
                    progress=None,
                    error=str(e),
                )
            return False

        if generation != self._generation:
            await self._abandon(session_id)
            return False

        self._awaiting_session_id = False
        self._retired_ids.discard(session_id)
        self._store.update(session=dataclasses.replace(self.state.session, session_id=session_id))
        log.info("Scan session %s started", session_id)
        return True

    async def pause(self) -> bool:
        return await self._toggle_pause(SessionStatus.SCANNING, SessionStatus.PAUSED)

    async def resume(self) -> bool:
        return await self._toggle_pause(SessionStatus.PAUSED, SessionStatus.SCANNING)

    async def cancel(self) -> None:
        """Cancel the running scan.

        The local session always ends up ``cancelled`` with no identifier,
        whatever the engine answers.
        """
        session = self.state.session
        if not session.status.is_active:
            self._report("No scan to cancel")
            return

        self._generation += 1
        generation = self._generation
        self._awaiting_session_id = False
        session_id = session.session_id
        if session_id is not None:
            self._retired_ids.add(session_id)

        self._store.update(
            session=dataclasses.replace(session, session_id=None, status=SessionStatus.CANCELLED),
            progress=None,
            error=None,
        )
        log.info("Scan cancelled")
        if session_id is None:
            return

        try:
            await self._engine.cancel(session_id)
        except EngineError as e:
            log.warning("Engine did not confirm cancellation of %s: %s", session_id, e)
            if generation == self._generation:
                self._store.update(error=str(e))

    async def reset(self) -> None:
        """Return to ``idle`` and drop everything the last session produced."""
        session = self.state.session
        if session.status.is_active:
            self._report("Cannot reset while a scan is running")
            return

        self._generation += 1
        self._awaiting_session_id = False
        self._store.update(
            session=ScanSession(mode=session.mode),
            progress=None,
            result=None,
            clean_result=None,
            error=None,
            selection=frozenset(),
            expanded=frozenset(),
            delete_progress=None,
        )
        if session.session_id is not None:
            self._retired_ids.add(session.session_id)
            await self._release(session.session_id)

    def clear_error(self) -> None:
        self._store.update(error=None)

    async def wait(self) -> SessionStatus:
        """Wait until the session reaches a terminal status and return it."""
        if self.state.status.is_terminal:
            return self.state.status

        finished = asyncio.Event()

        def _check(state) -> None:
            if state.status.is_terminal:
                finished.set()

        unsubscribe = self._store.subscribe(_check)
        try:
            await finished.wait()
        finally:
            unsubscribe()
        return self.state.status

    # -- Polling --

    async def refresh_progress(self) -> ScanProgress | None:
        """Ask the engine for the current progress and apply it."""
        session_id = self.state.session_id
        if session_id is None:
            return None
        try:
            progress = await self._engine.get_progress(session_id)
        except EngineError as e:
            self._report(str(e))
            return None
        if progress is not None:
            self._on_progress(progress)
        return progress

    async def fetch_result(self) -> ScanResult | None:
        """Ask the engine for the stored result and apply it as a completion."""
        session_id = self.state.session_id
        if session_id is None:
            return None
        try:
            result = await self._engine.get_result(session_id)
        except EngineError as e:
            self._report(str(e))
            return None
        if result is not None:
            self._on_complete(result)
        return result

    # -- Engine notifications --

    def _on_progress(self, progress: ScanProgress) -> None:
        state = self.state
        if not self._belongs_to_session(progress.session_id):
            log.debug("Ignoring progress for session %s", progress.session_id)
            return
        if not state.status.is_active or progress.status == EngineStatus.IDLE:
            return

        session = state.session
        match progress.status:
            case EngineStatus.PAUSED if can_transition(session.status, SessionStatus.PAUSED):
                session = dataclasses.replace(session, status=SessionStatus.PAUSED)
            case EngineStatus.SCANNING if can_transition(session.status, SessionStatus.SCANNING):
                session = dataclasses.replace(session, status=SessionStatus.SCANNING)
            case EngineStatus.ERROR if can_transition(session.status, SessionStatus.FAILED):
                self._fail("Engine reported a scan error")
                return

        self._store.update(session=session, progress=progress)

    def _on_complete(self, result: ScanResult) -> None:
        state = self.state
        if not self._belongs_to_session(result.session_id):
            log.debug("Ignoring completion for session %s", result.session_id)
            return

        session = state.session
        if session.status == SessionStatus.PAUSED:
            # The engine finished the last of its work while pausing.
            session = dataclasses.replace(session, status=SessionStatus.SCANNING)
            self._store.update(session=session)
        if session.status != SessionStatus.COMPLETED and not can_transition(
            session.status, SessionStatus.COMPLETED
        ):
            log.debug("Ignoring completion while %s", session.status.value)
            return

        self._store.update(
            session=dataclasses.replace(session, status=SessionStatus.COMPLETED),
            result=with_totals(result, result.categories),
        )
        log.info(
            "Scan %s completed: %d files in %d categories",
            result.session_id,
            result.total_files,
            len(result.categories),
        )

    # -- Helpers --

    def _belongs_to_session(self, session_id: str | None) -> bool:
        if session_id is not None and session_id in self._retired_ids:
            return False
        current = self.state.session_id
        if current is None:
            return self._awaiting_session_id
        return session_id is None or session_id == current

    async def _toggle_pause(self, expected: SessionStatus, target: SessionStatus) -> bool:
        session = self.state.session
        if session.session_id is None:
            self._report("No active scan session")
            return False
        if session.status != expected:
            self._report(f"Cannot move from {session.status.value} to {target.value}")
            return False

        command = self._engine.pause if target == SessionStatus.PAUSED else self._engine.resume
        try:
            await command(session.session_id)
        except EngineError as e:
            self._report(str(e))
            return False

        current = self.state.session
        if current.session_id != session.session_id:
            return False
        if current.status == target:
            return True
        if not can_transition(current.status, target):
            return False
        self._store.update(session=dataclasses.replace(current, status=target))
        return True

    def _fail(self, message: str) -> None:
        log.warning("Scan %s failed: %s", self.state.session_id, message)
        self._store.update(
            session=dataclasses.replace(self.state.session, status=SessionStatus.FAILED),
            progress=None,
            error=message,
        )

    def _report(self, message: str) -> None:
        log.debug("Session error: %s", message)
        self._store.update(error=message)

    async def _abandon(self, session_id: str) -> None:
        """Cancel and release a session the user gave up on before it started."""
        log.info("Abandoning orphaned scan session %s", session_id)
        self._retired_ids.add(session_id)
        try:
            await self._engine.cancel(session_id)
        except EngineError as e:
            log.warning("Could not cancel orphaned session %s: %s", session_id, e)
        await self._release(session_id)

    async def _release(self, session_id: str) -> None:
        try:
            await self._engine.clear_result(session_id)
        except EngineError as e:
            log.warning("Could not clear engine result for %s: %s", session_id, e)
