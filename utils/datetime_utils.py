"""
Datetime utilities for consistent timezone handling across the engine.
All datetime operations should use timezone-aware datetimes.
"""

from datetime import date, datetime, time, timezone, tzinfo
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def parse_iso_datetime(iso_string: str) -> datetime:
    """
    Parse ISO format datetime string to timezone-aware datetime.
    Handles both 'Z' suffix and '+00:00' timezone formats.

    Args:
        iso_string: ISO format datetime string

    Returns:
        Timezone-aware datetime object

    Raises:
        ValueError: If datetime string cannot be parsed
    """
    # Normalize 'Z' suffix to '+00:00'
    normalized = iso_string.replace("Z", "+00:00")

    try:
        dt = datetime.fromisoformat(normalized)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError as e:
        raise ValueError(f"Invalid datetime string: {iso_string}") from e


def to_iso_string(dt: datetime) -> str:
    """
    Convert datetime to ISO format string.
    Naive datetimes are treated as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.isoformat()


def get_zone(name: str) -> tzinfo:
    """Resolve a configured zone name, accepting plain 'UTC'."""
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def combine_local(day: date, at: time, tz: tzinfo) -> datetime:
    """
    Interpret a calendar date and wall-clock time in ``tz``.

    Returns:
        The same instant as a UTC datetime
    """
    return datetime.combine(day, at.replace(tzinfo=None), tzinfo=tz).astimezone(
        timezone.utc
    )
