"""JSON-backed configuration for scan defaults."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from reclaim.models.scan_result import ScanMode, ScanOptions
from reclaim.utils import xdg_config_home

log = logging.getLogger(__name__)

_SETTINGS_DIR = "reclaim"
_SETTINGS_FILE = "settings.json"

DEFAULTS: dict[str, Any] = {
    "scan": {
        "include_hidden": False,
        "include_system": False,
        "exclude_paths": [],
        "page_size": 50,
    },
    "clean": {
        "move_to_trash": True,
    },
}


class Settings:
    """Read-only settings backed by a JSON file.

    Uses dot-notation keys for nested access:
        settings.get("scan.include_hidden")  # reads data["scan"]["include_hidden"]

    Missing keys fall back to ``DEFAULTS``. The file itself is written by
    the settings UI, not by this package.
    """

    _instance: Settings | None = None

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or (xdg_config_home() / _SETTINGS_DIR / _SETTINGS_FILE)
        self._data: dict[str, Any] = {}
        self._load()

    @classmethod
    def instance(cls) -> Settings:
        """Return the singleton settings instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dot-notation key."""
        for source in (self._data, DEFAULTS):
            found, value = _lookup(source, key)
            if found:
                return value
        return default

    def _load(self) -> None:
        """Load settings from disk, gracefully handling errors."""
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load settings from %s: %s", self._path, e)
            return
        if not isinstance(data, dict):
            log.warning("Ignoring settings in %s: top level is not an object", self._path)
            return
        self._data = data


def scan_options_from_settings(
    mode: ScanMode,
    paths: list[str] | tuple[str, ...] = (),
    settings: Settings | None = None,
) -> ScanOptions:
    """Build the engine's scan options from the user's settings."""
    settings = settings or Settings.instance()
    return ScanOptions(
        paths=tuple(paths) if mode == ScanMode.DEEP else (),
        mode=mode,
        include_hidden=bool(settings.get("scan.include_hidden")),
        include_system=bool(settings.get("scan.include_system")),
        exclude_paths=tuple(settings.get("scan.exclude_paths") or ()),
    )


def _lookup(data: dict[str, Any], key: str) -> tuple[bool, Any]:
    node: Any = data
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return False, None
        node = node[part]
    return True, node
