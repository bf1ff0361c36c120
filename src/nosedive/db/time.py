# src/nosedive/db/time.py
"""Time utilities for database models and reputation windows."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; every timestamp this service writes is UTC, so naive values are
    tagged rather than converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def start_of_utc_day(now: datetime | None = None) -> datetime:
    """Return midnight UTC of the day containing ``now``."""
    current = as_utc(now) if now is not None else utcnow()
    return current.replace(hour=0, minute=0, second=0, microsecond=0)
