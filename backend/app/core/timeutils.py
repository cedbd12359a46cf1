"""
UTC time helpers.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

import iso8601


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes read back from the database as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def isoformat(value) -> Optional[str]:
    """Serialise dates, times and datetimes for JSON responses."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_aware(value).isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


def parse_datetime(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp, defaulting to UTC when no offset is given.

    Raises:
        ValueError: If the string is not a valid timestamp
    """
    try:
        return iso8601.parse_date(value, default_timezone=timezone.utc)
    except iso8601.ParseError as e:
        raise ValueError(f"Invalid timestamp: {value}") from e


def combine_local(day: date, at: Optional[time]) -> str:
    """
    Format a calendar slot as a naive local ISO timestamp.

    Posts without a time are placed at noon.
    """
    slot = at or time(12, 0)
    return datetime.combine(day, slot).replace(microsecond=0).isoformat()


def from_unix(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def week_start(day: date) -> date:
    """The Sunday on or before ``day``."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_label(start: date) -> str:
    return f"W/C {start.day} {start.strftime('%b')}"
