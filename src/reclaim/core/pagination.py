"""Incremental loading of category files beyond the inline prefix."""

from __future__ import annotations

import logging
from typing import Callable

from reclaim.core.engine import EngineError, ScanEngine
from reclaim.core.result_model import append_page
from reclaim.core.store import ScanStore
from reclaim.models.scan_result import CategoryPage

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50

ErrorCallback = Callable[[str, str], None]  # (category_key, message)


class PaginationLoader:
    """Appends engine pages to categories, one fetch per category at a time.

    Fetch failures leave the result untouched. They are reported through
    *on_error* and ``last_errors`` for callers that want to show them.
    """

    def __init__(
        self,
        store: ScanStore,
        engine: ScanEngine,
        page_size: int = DEFAULT_PAGE_SIZE,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._page_size = page_size
        self._on_error = on_error
        self._in_flight: set[str] = set()
        self.last_errors: dict[str, str] = {}

    def is_loading(self, category_key: str) -> bool:
        return category_key in self._in_flight

    async def load_more(
        self,
        category_key: str,
        offset: int | None = None,
        limit: int | None = None,
    ) -> CategoryPage | None:
        """Fetch the next page of a category and append it.

        Args:
            category_key: Category to extend.
            offset: Pagination cursor. Defaults to the number of files
                already loaded; any other value is a caller error.
            limit: Page size. Defaults to the loader's page size.

        Returns:
            The appended page, or None when nothing was appended.

        Raises:
            ValueError: If *offset* differs from the loaded file count.
        """
        state = self._store.state
        session_id = state.session_id
        category = state.result.get_category(category_key) if state.result else None
        if session_id is None or category is None:
            log.debug("No loaded category '%s' to paginate", category_key)
            return None

        cursor = len(category.files)
        if offset is None:
            offset = cursor
        elif offset != cursor:
            raise ValueError(f"Offset {offset} does not match {cursor} loaded files in '{category_key}'")

        if not category.has_more or category_key in self._in_flight:
            return None

        self._in_flight.add(category_key)
        try:
            page = await self._engine.get_category_files(
                session_id, category_key, offset, limit or self._page_size
            )
        except EngineError as e:
            log.warning("Loading more files for '%s' failed: %s", category_key, e)
            self.last_errors[category_key] = str(e)
            if self._on_error:
                self._on_error(category_key, str(e))
            return None
        finally:
            self._in_flight.discard(category_key)

        if page is None:
            log.debug("Engine has no files for category '%s'", category_key)
            return None
        return self._apply(session_id, category_key, offset, page)

    async def load_all(self, category_key: str) -> int:
        """Load pages until the category is complete or a fetch fails.

        Returns the number of files appended.
        """
        appended = 0
        while True:
            page = await self.load_more(category_key)
            if page is None:
                return appended
            appended += len(page.files)
            if not page.has_more or not page.files:
                return appended

    def _apply(self, session_id: str, category_key: str, offset: int, page: CategoryPage) -> CategoryPage | None:
        state = self._store.state
        category = state.result.get_category(category_key) if state.result else None
        if state.session_id != session_id or category is None or len(category.files) != offset:
            log.debug("Discarding stale page for '%s' at offset %d", category_key, offset)
            return None

        self.last_errors.pop(category_key, None)
        self._store.update(
            result=append_page(state.result, category_key, page.files, page.has_more, page.total)
        )
        return page
