"""Time utilities for timezone-aware UTC datetimes."""

import math
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime for defaults and onupdate hooks."""
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (SQLite drops tzinfo) as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def whole_minutes_between(start: datetime, end: datetime) -> int:
    """Floor of (end - start) in minutes; negative when end precedes start."""
    delta = ensure_utc(end) - ensure_utc(start)
    return math.floor(delta.total_seconds() / 60)
