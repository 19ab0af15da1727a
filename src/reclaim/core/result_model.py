"""Mutations of the categorized scan result.

Both mutations return a new ``ScanResult``; the input is never modified.
Category counters and the top-level totals are re-derived from the
post-mutation file lists rather than adjusted by deltas, so they cannot
drift from what is actually held.
"""

from __future__ import annotations

import dataclasses
from typing import Iterable

from reclaim.models.scan_result import Category, FileEntry, ScanResult


def with_totals(result: ScanResult, categories: Iterable[Category]) -> ScanResult:
    """Return *result* holding *categories*, with totals summed from them."""
    categories = tuple(categories)
    return dataclasses.replace(
        result,
        categories=categories,
        total_files=sum(c.file_count for c in categories),
        total_size=sum(c.total_size for c in categories),
    )


def append_page(
    result: ScanResult,
    category_key: str,
    files: Iterable[FileEntry],
    has_more: bool,
    total: int | None = None,
) -> ScanResult:
    """Append a page of files to a category.

    Args:
        result: Current result snapshot.
        category_key: Category the page belongs to.
        files: Files of the page, in engine order.
        has_more: Whether the engine holds further files after this page.
        total: The engine's current file count for the category, if known.

    Raises:
        ValueError: If the category does not exist.
    """
    category = result.get_category(category_key)
    if category is None:
        raise ValueError(f"Unknown category '{category_key}'")

    merged = category.files + tuple(files)
    if has_more:
        reported = total if total is not None else category.file_count
        file_count = max(reported, len(merged))
        loaded_size = sum(f.size for f in merged)
        total_size = max(category.total_size, loaded_size)
    else:
        file_count = len(merged)
        total_size = sum(f.size for f in merged)

    updated = dataclasses.replace(
        category,
        files=merged,
        file_count=file_count,
        total_size=total_size,
        has_more=len(merged) < file_count,
    )
    return with_totals(result, (updated if c.key == category_key else c for c in result.categories))


def remove_paths(result: ScanResult, paths: Iterable[str]) -> ScanResult:
    """Drop files whose path is in *paths* and prune emptied categories.

    A touched category's count and size become those of its remaining
    files. Categories left with no files are removed.
    """
    removed = frozenset(paths)
    categories: list[Category] = []

    for category in result.categories:
        remaining = tuple(f for f in category.files if f.path not in removed)
        if len(remaining) == len(category.files):
            categories.append(category)
            continue

        if not remaining:
            continue
        categories.append(
            dataclasses.replace(
                category,
                files=remaining,
                file_count=len(remaining),
                total_size=sum(f.size for f in remaining),
                has_more=False,
            )
        )

    return with_totals(result, categories)


def clear_categories(result: ScanResult) -> ScanResult:
    """Return *result* with every category removed."""
    return with_totals(result, ())
