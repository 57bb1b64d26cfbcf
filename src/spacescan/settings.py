"""Generic JSON-backed settings store."""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any

from spacescan.core.drives import platform_root
from spacescan.utils import xdg_config_home

log = logging.getLogger(__name__)

_SETTINGS_DIR = "spacescan"
_SETTINGS_FILE = "settings.json"

DEFAULTS: dict[str, Any] = {
    "server": {
        "host": "127.0.0.1",
        "port": 3001,
        "cors_origins": ["http://localhost:3000"],
    },
    "stream": {
        "keepalive_seconds": 30,
    },
    "scan": {
        "default_depth": 1,
        "default_root": platform_root(),
    },
}

# Environment variables that win over both the file and the defaults.
_ENV_OVERRIDES = {
    "server.host": ("SPACESCAN_HOST", str),
    "server.port": ("SPACESCAN_PORT", int),
}


class Settings:
    """Persistent settings backed by a JSON file.

    Uses dot-notation keys for nested access:
        settings.get("server.port")  # reads data["server"]["port"]
        settings.set("stream.keepalive_seconds", 15)  # writes + saves

    Keys missing from the file fall back to :data:`DEFAULTS`.
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
        env = _ENV_OVERRIDES.get(key)
        if env is not None and os.environ.get(env[0]):
            try:
                return env[1](os.environ[env[0]])
            except ValueError:
                log.warning("Ignoring invalid %s=%r", env[0], os.environ[env[0]])

        missing = object()
        value = _lookup(self._data, key, missing)
        if value is missing:
            value = _lookup(DEFAULTS, key, missing)
        if value is missing:
            return default
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        """Set a value by dot-notation key and persist to disk."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    def _load(self) -> None:
        """Load settings from disk, gracefully handling errors."""
        if not self._path.exists():
            return
        try:
            self._data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load settings from %s: %s", self._path, e)
            self._data = {}

    def _save(self) -> None:
        """Persist settings to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(self._data, indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self._path, e)


def _lookup(data: dict[str, Any], key: str, missing: Any) -> Any:
    node: Any = data
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return missing
        node = node[part]
    return node
