"""Wall-clock helpers."""

from datetime import datetime, timezone
from typing import Optional


def to_millis(value: datetime) -> datetime:
    """UTC instant truncated to the millisecond precision MongoDB keeps."""
    value = as_utc(value)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def utcnow() -> datetime:
    return to_millis(datetime.now(timezone.utc))


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Motor returns naive datetimes unless the client is tz_aware
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def elapsed_seconds(start: datetime, now: datetime) -> int:
    """Whole seconds between two instants, never negative."""
    seconds = int((as_utc(now) - as_utc(start)).total_seconds())
    return max(0, seconds)
