"""photag configuration read from `settings.json`.

The packaged file carries the schedule intervals, the derivative quality/size
pairs and the thumbnail cache size; `--settings` points at a replacement.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parent.parent / "settings.json"


class JsonSettings:
    """Read-only view over a settings document, addressed by dotted keys."""

    def __init__(self, settings_path: str | Path = DEFAULT_SETTINGS_PATH) -> None:
        self._path = Path(settings_path)
        if not self._path.is_file():
            raise FileNotFoundError(f"settings file not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            self._data: dict[str, Any] = json.load(f)
        logger.debug("Loaded settings from {}", self._path)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JsonSettings:
        inst = cls.__new__(cls)
        inst._path = Path("<memory>")
        inst._data = data
        return inst

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any | None = None) -> Any:
        """Value at `key` such as `"schedule.tick_interval_ms"`, else `default`."""
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def get_int(self, key: str, default: int) -> int:
        """Integer value at `key`; a non-numeric value logs a warning and yields `default`."""
        raw = self.get(key, default)
        try:
            return int(raw)
        except (ValueError, TypeError):
            logger.warning("Invalid integer setting {}={!r}, using {}", key, raw, default)
            return default
