"""CLI interface for Reclaim."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import sys
from typing import Any

import click

from reclaim.core.engine import EngineError, ScanEngine
from reclaim.core.reconciler import ReconcilePolicy
from reclaim.core.workspace import ScanWorkspace
from reclaim.models.clean_result import CleanResult
from reclaim.models.scan_result import ScanMode, ScanResult
from reclaim.models.session import ScanState, SessionStatus
from reclaim.settings import Settings, scan_options_from_settings
from reclaim.utils import bytes_to_human, format_duration, plural, shorten_path

log = logging.getLogger(__name__)


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


async def _connect_engine() -> ScanEngine:
    from reclaim.dbus_client import DBusScanEngine

    return await DBusScanEngine.connect()


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
def main(verbose: int) -> None:
    """Reclaim: find and remove reclaimable files."""
    _setup_logging(verbose)


_scan_options = [
    click.argument("paths", nargs=-1),
    click.option("--deep", is_flag=True, help="Walk the given paths instead of the quick-scan locations"),
    click.option("--include-hidden/--skip-hidden", default=None, help="Override the hidden files setting"),
    click.option("--include-system/--skip-system", default=None, help="Override the system files setting"),
    click.option("--exclude", "excludes", multiple=True, help="Path to leave out (repeatable)"),
]


def scan_options(func):
    for decorator in reversed(_scan_options):
        func = decorator(func)
    return func


# ── scan ─────────────────────────────────────────────────────────────────

@main.command()
@scan_options
@click.option("--load-all", is_flag=True, help="Fetch every file of every category")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan(
    paths: tuple[str, ...],
    deep: bool,
    include_hidden: bool | None,
    include_system: bool | None,
    excludes: tuple[str, ...],
    load_all: bool,
    as_json: bool,
) -> None:
    """Scan for reclaimable files (preview only, never deletes)."""
    settings = Settings.instance()
    mode = ScanMode.DEEP if deep else ScanMode.QUICK

    async def run() -> ScanState:
        workspace = await _open_workspace(settings)
        try:
            await _run_scan(workspace, mode, paths, settings, include_hidden, include_system, excludes, as_json)
            if load_all and workspace.state.result:
                for category in workspace.state.result.categories:
                    await workspace.loader.load_all(category.key)
            return workspace.state
        finally:
            workspace.close()

    state = _run(run())
    _exit_on_failure(state)

    if as_json:
        click.echo(json.dumps(_result_to_json(state.result), indent=2))
        return
    _print_result(state.result)


# ── clean ────────────────────────────────────────────────────────────────

@main.command()
@scan_options
@click.option("--category", "-c", "categories", multiple=True, help="Category to clean (repeatable, default all)")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--permanent", is_flag=True, help="Delete instead of moving to the trash")
@click.option("--confirmed-only", is_flag=True, help="Only drop files the engine confirms as removed")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def clean(
    paths: tuple[str, ...],
    deep: bool,
    include_hidden: bool | None,
    include_system: bool | None,
    excludes: tuple[str, ...],
    categories: tuple[str, ...],
    yes: bool,
    permanent: bool,
    confirmed_only: bool,
    as_json: bool,
) -> None:
    """Scan, then delete the files of the chosen categories."""
    settings = Settings.instance()
    mode = ScanMode.DEEP if deep else ScanMode.QUICK

    async def run() -> tuple[ScanState, CleanResult | None]:
        workspace = await _open_workspace(settings)
        workspace.reconciler.move_to_trash = not permanent and bool(settings.get("clean.move_to_trash"))
        if confirmed_only:
            workspace.reconciler.policy = ReconcilePolicy.CONFIRMED
        try:
            await _run_scan(workspace, mode, paths, settings, include_hidden, include_system, excludes, as_json)
            result = workspace.state.result
            if workspace.state.status != SessionStatus.COMPLETED or result is None or not result.categories:
                return workspace.state, None

            if not categories:
                question = f"Delete all {plural(result.total_files, 'file')} ({bytes_to_human(result.total_size)})?"
                if not _confirm(question, yes or as_json):
                    return workspace.state, None
                return workspace.state, await workspace.reconciler.delete_all()

            for key in categories:
                if result.get_category(key) is None:
                    click.echo(click.style(f"Unknown category '{key}', skipping", fg="yellow"), err=True)
                    continue
                await workspace.loader.load_all(key)
                if workspace.selection.category_state(key) != "all":
                    workspace.selection.toggle_category(key)

            count = workspace.selection.selected_count()
            if count == 0:
                return workspace.state, None
            size = workspace.selection.selected_size()
            if not _confirm(f"Delete {plural(count, 'file')} ({bytes_to_human(size)})?", yes or as_json):
                return workspace.state, None
            return workspace.state, await workspace.reconciler.delete_selected()
        finally:
            workspace.close()

    state, clean_result = _run(run())
    _exit_on_failure(state)

    if clean_result is None and state.error:
        if as_json:
            click.echo(json.dumps({"status": "error", "error": state.error}))
        else:
            click.echo(click.style(f"Error: {state.error}", fg="red"), err=True)
        sys.exit(1)

    if clean_result is None:
        if as_json:
            click.echo(json.dumps({"status": "nothing_cleaned"}))
        else:
            click.echo("Nothing cleaned.")
        return

    if as_json:
        click.echo(json.dumps({"status": "cleaned", "result": _clean_result_to_json(clean_result)}, indent=2))
        return
    _print_clean_result(clean_result)


# ── helpers ──────────────────────────────────────────────────────────────

def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except EngineError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


async def _open_workspace(settings: Settings) -> ScanWorkspace:
    engine = await _connect_engine()
    workspace = ScanWorkspace(engine, page_size=int(settings.get("scan.page_size")))
    workspace.controller.subscribe()
    return workspace


async def _run_scan(
    workspace: ScanWorkspace,
    mode: ScanMode,
    paths: tuple[str, ...],
    settings: Settings,
    include_hidden: bool | None,
    include_system: bool | None,
    excludes: tuple[str, ...],
    quiet: bool,
) -> SessionStatus:
    options = scan_options_from_settings(mode, paths, settings)
    overrides: dict[str, Any] = {"exclude_paths": options.exclude_paths + excludes}
    if include_hidden is not None:
        overrides["include_hidden"] = include_hidden
    if include_system is not None:
        overrides["include_system"] = include_system
    options = dataclasses.replace(options, **overrides)

    unsubscribe = None
    if not quiet:
        click.echo(f"\n{click.style('🔍', bold=True)} Scanning {'/'.join(paths) or 'quick-scan locations'}...\n")
        unsubscribe = workspace.store.subscribe(_print_progress)

    try:
        if not await workspace.controller.start_scan(mode, paths, options):
            return workspace.state.status
        return await workspace.controller.wait()
    finally:
        if unsubscribe:
            unsubscribe()
            click.echo(err=True)


def _print_progress(state: ScanState) -> None:
    progress = state.progress
    if progress is None or state.status != SessionStatus.SCANNING:
        return
    current = shorten_path(progress.current_path, 50)
    click.echo(
        f"\r  {progress.percent:5.1f}%  {progress.scanned_files:>10,} files  "
        f"{bytes_to_human(progress.scanned_size):>10s}  {current:50s}",
        nl=False,
        err=True,
    )


def _exit_on_failure(state: ScanState) -> None:
    if state.status == SessionStatus.FAILED:
        click.echo(click.style(f"Scan failed: {state.error or 'unknown error'}", fg="red"), err=True)
        sys.exit(1)
    if state.status == SessionStatus.CANCELLED:
        click.echo("Scan cancelled.", err=True)
        sys.exit(1)


def _confirm(question: str, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    return click.confirm(question, default=False)


def _print_result(result: ScanResult | None) -> None:
    if result is None or not result.categories:
        click.echo("Nothing to clean.")
        return

    for category in sorted(result.categories, key=lambda c: c.total_size, reverse=True):
        more = click.style(f" ({len(category.files):,} loaded)", fg="bright_black") if category.has_more else ""
        click.echo(
            f"  {click.style('✓', fg='green')} {category.display_name:35s} — "
            f"{click.style(bytes_to_human(category.total_size), fg='green', bold=True)} "
            f"({plural(category.file_count, 'file')}){more}"
        )
        click.echo(f"      {click.style(category.key, fg='cyan')}  {category.description}")

    click.echo(
        f"\nTotal reclaimable: {click.style(bytes_to_human(result.total_size), fg='green', bold=True)} "
        f"in {plural(result.total_files, 'file')}\n"
    )


def _print_clean_result(result: CleanResult) -> None:
    click.echo(
        f"\n  {click.style('✓', fg='green')} Removed {plural(result.cleaned_files, 'file')}, "
        f"freed {click.style(bytes_to_human(result.cleaned_size), fg='green', bold=True)} "
        f"in {format_duration(result.duration_ms)}"
    )
    if result.failed_files:
        click.echo(f"  {click.style('!', fg='yellow')} {plural(result.failed_files, 'file')} could not be removed:")
        for error in result.errors:
            click.echo(f"      {error.path}: {error.error_message}")
    click.echo()


def _result_to_json(result: ScanResult | None) -> dict[str, Any] | None:
    if result is None:
        return None
    return {
        "scan_id": result.session_id,
        "total_files": result.total_files,
        "total_folders": result.total_folders,
        "total_size": result.total_size,
        "categories": [
            {
                "name": c.key,
                "display_name": c.display_name,
                "description": c.description,
                "file_count": c.file_count,
                "total_size": c.total_size,
                "has_more": c.has_more,
                "files": [{"path": f.path, "size": f.size, "modified_time": f.modified_time} for f in c.files],
            }
            for c in result.categories
        ],
    }


def _clean_result_to_json(result: CleanResult) -> dict[str, Any]:
    return {
        "total_files": result.total_files,
        "cleaned_files": result.cleaned_files,
        "failed_files": result.failed_files,
        "cleaned_size": result.cleaned_size,
        "duration_ms": result.duration_ms,
        "errors": [{"path": e.path, "error_message": e.error_message} for e in result.errors],
    }
