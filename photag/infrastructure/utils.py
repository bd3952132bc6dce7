"""Utilities for timezone-aware timestamps and file time lookup.

Staleness decisions compare aware instants only, so everything here converts
to the local offset and never returns naive datetimes. Lookups are best-effort
and return `None` instead of raising; callers treat `None` as "unknown".
"""

from __future__ import annotations

from datetime import datetime, timezone
import os

from loguru import logger


def now_local() -> datetime:
    """Current instant with the local UTC offset attached."""
    return datetime.now(timezone.utc).astimezone()


def format_timestamp(dt: datetime) -> str:
    """ISO-8601 with offset, e.g. `2024-05-01T10:20:30.123456+09:00`."""
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt.isoformat()


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are read as local time."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except (ValueError, TypeError):
        logger.warning("Invalid timestamp: {}", value)
        return None
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt


def get_file_timestamp(path: str) -> datetime | None:
    """Best available change timestamp for `path`.

    Uses the later of modification time and, where the platform records it,
    birth time. Returns None when the file cannot be stat'ed.
    """
    try:
        st = os.stat(path)
    except (OSError, ValueError) as ex:
        logger.debug("stat failed for {}: {}", path, ex)
        return None
    ts = st.st_mtime
    birth = getattr(st, "st_birthtime", None)
    if birth is not None and birth > ts:
        ts = birth
    return datetime.fromtimestamp(ts, tz=timezone.utc).astimezone()
