"""Persisted record of when each photo's derivatives were last produced.

The backing file is `time.json` in the work directory: a JSON array of
`{"id": ..., "time": ...}` objects with offset-aware ISO-8601 timestamps.
"""

from __future__ import annotations

from datetime import datetime
import json
from pathlib import Path

from loguru import logger

from photag.infrastructure.json_repository import write_json_atomic
from photag.infrastructure.utils import format_timestamp, get_file_timestamp, parse_timestamp

TIME_FILE_NAME = "time.json"


class StalenessStore:
    """Map of photo id to last successful derivation instant."""

    def __init__(self, entries: dict[str, datetime] | None = None) -> None:
        self._entries: dict[str, datetime] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, photo_id: object) -> bool:
        return photo_id in self._entries

    def last_derived(self, photo_id: str) -> datetime | None:
        """Return the stored instant for `photo_id`, if any."""
        return self._entries.get(photo_id)

    def is_stale(self, photo_id: str, source_path: str) -> bool:
        """True when `photo_id` has never been derived or its source is newer.

        An unreadable source timestamp also counts as stale so derivation is
        never skipped silently.
        """
        last = self._entries.get(photo_id)
        if last is None:
            return True
        source_time = get_file_timestamp(source_path)
        if source_time is None:
            logger.debug("No timestamp for {}, treating {} as stale", source_path, photo_id)
            return True
        return last < source_time

    def mark_fresh(self, photo_id: str, now: datetime) -> None:
        """Record `now` as the latest derivation instant of `photo_id`."""
        if now.tzinfo is None:
            now = now.astimezone()
        self._entries[photo_id] = now

    def to_json(self) -> list[dict[str, str]]:
        return [{"id": pid, "time": format_timestamp(t)} for pid, t in self._entries.items()]

    @classmethod
    def load(cls, work_dir: str) -> StalenessStore:
        """Load `time.json`; an absent or unreadable file yields an empty store."""
        path = Path(work_dir) / TIME_FILE_NAME
        if not path.exists():
            return cls()
        try:
            with path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as ex:
            logger.warning("Ignoring unreadable {}: {}", path, ex)
            return cls()
        entries: dict[str, datetime] = {}
        if not isinstance(raw, list):
            logger.warning("Ignoring {}: expected a list", path)
            return cls()
        for row in raw:
            if not isinstance(row, dict):
                continue
            pid = row.get("id")
            when = parse_timestamp(row.get("time"))
            if isinstance(pid, str) and pid and when is not None:
                entries[pid] = when
        return cls(entries)

    def save(self, work_dir: str) -> None:
        """Write the whole map to `time.json`; raises `StoreError` on failure."""
        path = Path(work_dir) / TIME_FILE_NAME
        write_json_atomic(path, self.to_json())
        logger.debug("Saved {} staleness entries to {}", len(self._entries), path)
