"""Formatting and path helpers shared by the CLI and settings."""

from __future__ import annotations

import os
from pathlib import Path

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB", "PB")


def xdg_config_home() -> Path:
    """Return XDG_CONFIG_HOME, defaulting to ~/.config."""
    return Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")


def bytes_to_human(size_bytes: int) -> str:
    """Render a byte count with a binary unit, e.g. ``1.5 MB``."""
    if size_bytes < 0:
        return "-" + bytes_to_human(-size_bytes)

    value = float(size_bytes)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    if unit == 0:
        return f"{size_bytes} B"
    return f"{value:.1f} {_SIZE_UNITS[unit]}"


def format_duration(milliseconds: int) -> str:
    """Render an engine-reported duration (in ms)."""
    if milliseconds < 1000:
        return f"{milliseconds} ms"
    seconds = milliseconds / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(round(seconds), 60)
    return f"{minutes}m {secs}s"


def plural(count: int, noun: str) -> str:
    """Return '1 file' / '3 files' style counts."""
    return f"{count:,} {noun}{'s' if count != 1 else ''}"


def shorten_path(path: str, width: int) -> str:
    """Keep the tail of *path* so it fits in *width* characters."""
    if len(path) <= width:
        return path
    return "…" + path[-(width - 1):]
