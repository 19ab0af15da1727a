"""Snapshot store shared by the scan components."""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable

from reclaim.models.session import ScanState

log = logging.getLogger(__name__)

StateListener = Callable[[ScanState], None]


class ScanStore:
    """Holds the current ``ScanState`` and replaces it on every change.

    Snapshots are frozen, so a reader holding a reference never sees a
    partially applied update. Listeners are called after each replacement.
    """

    def __init__(self, state: ScanState | None = None) -> None:
        self._state = state or ScanState()
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> ScanState:
        return self._state

    def update(self, **changes) -> ScanState:
        """Replace the snapshot with a copy carrying *changes*."""
        self._state = dataclasses.replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                log.exception("State listener failed")
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener* and return a function that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe
