"""Tracks which categories are shown expanded."""

from __future__ import annotations

from reclaim.core.store import ScanStore


class ExpansionTracker:
    """Owns the ``expanded`` field of the store."""

    def __init__(self, store: ScanStore) -> None:
        self._store = store

    def toggle(self, category_key: str) -> None:
        state = self._store.state
        if category_key in state.expanded:
            self._store.update(expanded=state.expanded - {category_key})
        elif state.result and state.result.get_category(category_key):
            self._store.update(expanded=state.expanded | {category_key})

    def expand_all(self) -> None:
        result = self._store.state.result
        if result is None:
            return
        self._store.update(expanded=frozenset(c.key for c in result.categories))

    def collapse_all(self) -> None:
        self._store.update(expanded=frozenset())

    def is_expanded(self, category_key: str) -> bool:
        return category_key in self._store.state.expanded
