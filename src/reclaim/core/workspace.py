"""Wires the scan components around one store and one engine."""

from __future__ import annotations

from reclaim.core.engine import ScanEngine
from reclaim.core.expansion import ExpansionTracker
from reclaim.core.pagination import DEFAULT_PAGE_SIZE, ErrorCallback, PaginationLoader
from reclaim.core.reconciler import DeletionReconciler, ReconcilePolicy
from reclaim.core.selection import SelectionTracker
from reclaim.core.session import SessionController
from reclaim.core.store import ScanStore
from reclaim.models.session import ScanState


class ScanWorkspace:
    """Everything a front end needs to drive a scan and clean its results."""

    def __init__(
        self,
        engine: ScanEngine,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        move_to_trash: bool = True,
        policy: ReconcilePolicy = ReconcilePolicy.REQUESTED,
        on_page_error: ErrorCallback | None = None,
    ) -> None:
        self.engine = engine
        self.store = ScanStore()
        self.controller = SessionController(self.store, engine)
        self.selection = SelectionTracker(self.store)
        self.expansion = ExpansionTracker(self.store)
        self.loader = PaginationLoader(self.store, engine, page_size=page_size, on_error=on_page_error)
        self.reconciler = DeletionReconciler(self.store, engine, policy=policy, move_to_trash=move_to_trash)

    @property
    def state(self) -> ScanState:
        return self.store.state

    def close(self) -> None:
        self.controller.unsubscribe()
