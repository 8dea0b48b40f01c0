"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any

SETTINGS_ENV_VAR = "GEOCATALOG_SETTINGS"

DEFAULTS: dict[str, Any] = {
    "database": {"path": "data/catalog.db"},
    "logging": {"dir": None, "level": "INFO"},
    "remote": {
        "user_id": None,
        "mirror_private": True,
        "batch_size": 400,
        "page_size": 400,
        "private_path": "data/private_mirror.json",
        "public_path": "data/public_store.json",
        "private_record_type": "PhotoRecord",
        "public_record_type": "PublicPhotoPoint",
    },
    "sample": {"size": 10},
    "import": {"extensions": [".jpg", ".jpeg", ".png", ".heic", ".heif", ".tif", ".tiff"]},
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay `override` onto a copy of `base`."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class JsonSettings:
    """JSON settings reader with dotted-key access and built-in defaults."""

    def __init__(self, settings_path: str | Path) -> None:
        self._path = Path(settings_path)
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            loaded = json.load(f)
        if not isinstance(loaded, dict):
            raise ValueError(f"settings root must be an object: {self._path}")
        self._data = _merge(DEFAULTS, loaded)

    @classmethod
    def resolve_path(cls, default: str | Path) -> Path:
        """Settings path from `GEOCATALOG_SETTINGS`, else `default`."""
        return Path(os.environ.get(SETTINGS_ENV_VAR) or default)

    @property
    def base_dir(self) -> Path:
        """Directory holding the settings file; relative paths resolve here."""
        return self._path.parent

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return default if node is None else node

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(self.get(key, default))
        except (TypeError, ValueError):
            return default

    def get_path(self, key: str, default: str | None = None) -> Path | None:
        """Return `key` as a path, expanding variables and anchoring relatives."""
        raw = self.get(key, default)
        if not raw:
            return None
        path = Path(os.path.expandvars(os.path.expanduser(str(raw))))
        return path if path.is_absolute() else self.base_dir / path
