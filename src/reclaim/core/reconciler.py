"""Deletes selected files and patches local state to match."""

from __future__ import annotations

import logging
from enum import Enum

from reclaim.core.engine import EngineError, ScanEngine
from reclaim.core.result_model import clear_categories, remove_paths
from reclaim.core.store import ScanStore
from reclaim.models.clean_result import CleanResult, DeleteProgress

log = logging.getLogger(__name__)


class ReconcilePolicy(str, Enum):
    """Which paths are removed from local state after a delete call."""

    REQUESTED = "requested"
    """Every path that was sent to the engine."""

    CONFIRMED = "confirmed"
    """Only paths the engine did not report as failed."""


class DeletionReconciler:
    """Runs delete calls and reconciles the result and selection afterwards.

    A partial failure is not an error: the engine's ``CleanResult`` lists
    the failed paths and is stored for display. Only a failing call (the
    engine could not be reached or rejected the request) leaves the local
    result and selection untouched.
    """

    def __init__(
        self,
        store: ScanStore,
        engine: ScanEngine,
        policy: ReconcilePolicy = ReconcilePolicy.REQUESTED,
        move_to_trash: bool = True,
    ) -> None:
        self._store = store
        self._engine = engine
        self.policy = policy
        self.move_to_trash = move_to_trash

    @property
    def is_deleting(self) -> bool:
        return self._store.state.delete_progress is not None

    async def delete_selected(self) -> CleanResult | None:
        """Delete the selected files.

        Returns:
            The engine's clean result, or None if nothing was deleted.
        """
        state = self._store.state
        session_id = state.session_id
        if session_id is None or not state.selection:
            log.debug("Nothing selected to delete")
            return None
        if self.is_deleting:
            log.debug("A delete call is already in flight")
            return None

        paths = sorted(state.selection)
        self._store.update(delete_progress=DeleteProgress(current=0, total=len(paths)))
        log.info("Deleting %d selected files", len(paths))

        try:
            clean_result = await self._engine.delete_selected(session_id, paths, self.move_to_trash)
        except EngineError as e:
            log.warning("Delete call failed: %s", e)
            if self._store.state.session_id == session_id:
                self._store.update(delete_progress=None, error=str(e))
            return None

        state = self._store.state
        if state.session_id != session_id:
            log.debug("Session %s was replaced during deletion, discarding patch", session_id)
            return clean_result

        changes = {
            "selection": frozenset(),
            "delete_progress": None,
            "clean_result": clean_result,
        }
        if state.result is not None:
            result = remove_paths(state.result, self._paths_to_remove(paths, clean_result))
            changes["result"] = result
            changes["expanded"] = state.expanded & {c.key for c in result.categories}
        self._store.update(**changes)

        log.info(
            "Cleaned %d of %d files, %d failed",
            clean_result.cleaned_files,
            clean_result.total_files,
            clean_result.failed_files,
        )
        return clean_result

    async def delete_all(self) -> CleanResult | None:
        """Delete every file the scan found, loaded or not."""
        state = self._store.state
        session_id = state.session_id
        if session_id is None or self.is_deleting:
            return None

        total = state.result.total_files if state.result else 0
        self._store.update(delete_progress=DeleteProgress(current=0, total=total))
        log.info("Deleting all %d scanned files", total)

        try:
            clean_result = await self._engine.delete_all(session_id, self.move_to_trash)
        except EngineError as e:
            log.warning("Delete call failed: %s", e)
            if self._store.state.session_id == session_id:
                self._store.update(delete_progress=None, error=str(e))
            return None

        # The engine drops its stored result after deleting everything.
        state = self._store.state
        if state.session_id != session_id:
            log.debug("Session %s was replaced during deletion, discarding patch", session_id)
            return clean_result

        changes = {
            "selection": frozenset(),
            "expanded": frozenset(),
            "delete_progress": None,
            "clean_result": clean_result,
        }
        if state.result is not None:
            changes["result"] = clear_categories(state.result)
        self._store.update(**changes)
        return clean_result

    def _paths_to_remove(self, requested: list[str], clean_result: CleanResult) -> list[str]:
        if self.policy == ReconcilePolicy.CONFIRMED:
            failed = clean_result.failed_paths
            return [p for p in requested if p not in failed]
        return requested
