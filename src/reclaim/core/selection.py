"""Tracks which scanned files the user selected for deletion."""

from __future__ import annotations

import logging

from reclaim.core.store import ScanStore

log = logging.getLogger(__name__)

ALL = "all"
SOME = "some"
NONE = "none"


class SelectionTracker:
    """Owns the ``selection`` field of the store.

    Only files currently loaded into a category can be selected; every
    operation works on the loaded prefix, never on the engine's full
    count. Each change writes a new frozenset.
    """

    def __init__(self, store: ScanStore) -> None:
        self._store = store

    # -- Mutators --

    def toggle_file(self, path: str) -> None:
        """Flip the selection of a single file."""
        state = self._store.state
        selection = state.selection
        if path in selection:
            self._store.update(selection=selection - {path})
            return
        if path not in self._loaded_paths():
            log.debug("Ignoring selection of unloaded path: %s", path)
            return
        self._store.update(selection=selection | {path})

    def toggle_category(self, category_key: str) -> None:
        """Select every loaded file of a category, or deselect them if all are selected."""
        result = self._store.state.result
        category = result.get_category(category_key) if result else None
        if category is None or not category.files:
            return

        paths = frozenset(f.path for f in category.files)
        selection = self._store.state.selection
        if paths <= selection:
            self._store.update(selection=selection - paths)
        else:
            self._store.update(selection=selection | paths)

    def select_all(self) -> None:
        """Select every loaded file across all categories."""
        if self._store.state.result is None:
            return
        self._store.update(selection=self._loaded_paths())

    def deselect_all(self) -> None:
        self._store.update(selection=frozenset())

    # -- Queries --

    def is_selected(self, path: str) -> bool:
        return path in self._store.state.selection

    def selected_paths(self) -> list[str]:
        return sorted(self._store.state.selection)

    def selected_count(self) -> int:
        return len(self._store.state.selection)

    def selected_size(self) -> int:
        """Sum the sizes of loaded files that are selected."""
        state = self._store.state
        if state.result is None:
            return 0
        return sum(f.size for f in state.result.loaded_files() if f.path in state.selection)

    def category_state(self, category_key: str) -> str:
        """Return ``"all"``, ``"some"`` or ``"none"`` for a category's loaded files."""
        state = self._store.state
        category = state.result.get_category(category_key) if state.result else None
        if category is None or not category.files:
            return NONE
        selected = sum(1 for f in category.files if f.path in state.selection)
        if selected == 0:
            return NONE
        if selected == len(category.files):
            return ALL
        return SOME

    def _loaded_paths(self) -> frozenset[str]:
        result = self._store.state.result
        if result is None:
            return frozenset()
        return frozenset(f.path for f in result.loaded_files())
