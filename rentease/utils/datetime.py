"""UTC datetime utilities."""

from datetime import date, datetime, timedelta, timezone
from typing import Iterator


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC. Tests patch
    it at the import site to move the clock.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Attach UTC to naive datetimes and convert aware ones to UTC.

    SQLite hands back naive datetimes even for timezone-aware columns, so every
    comparison against utc_now() goes through here first.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def iter_nights(start: date, end: date) -> Iterator[date]:
    """Yield every night in the half-open range [start, end)."""
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)
