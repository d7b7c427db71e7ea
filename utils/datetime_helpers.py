import math
from datetime import datetime, timezone
from typing import Optional

from utils.timezone_helpers import ensure_timezone_aware


def format_utc_datetime(dt: Optional[datetime]) -> Optional[str]:
    """
    Format a datetime object to an ISO 8601 string with 'Z' suffix.

    If the datetime is naive, it is assumed to be in UTC and is made aware.
    If it is timezone-aware, it is converted to UTC.

    Args:
        dt: A datetime object or None

    Returns:
        An ISO 8601 formatted string with 'Z' suffix, or None if the input is None.
    """
    if dt is None:
        return None

    dt = ensure_timezone_aware(dt).astimezone(timezone.utc)

    # Format to ISO string and replace the +00:00 suffix with 'Z'.
    iso_string = dt.isoformat()

    if iso_string.endswith("+00:00"):
        return iso_string.replace("+00:00", "Z")

    return iso_string


def normalize_instant(dt: datetime, default_tz: Optional[str] = None) -> str:
    """
    Canonical UTC string for an instant, used to compare reported times.

    Naive values are read as wall-clock time in default_tz (UTC if None).
    Sub-second precision is dropped to millisecond resolution so the same
    instant always formats the same way.
    """
    aware = ensure_timezone_aware(dt, default_tz).astimezone(timezone.utc)
    aware = aware.replace(microsecond=(aware.microsecond // 1000) * 1000)
    return aware.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_utc_datetime(value: str) -> datetime:
    """Inverse of the formatters above; accepts a trailing 'Z'."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_timezone_aware(datetime.fromisoformat(value))


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like Math.round does: halves always go up."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def minutes_between(start: datetime, end: datetime) -> int:
    seconds = (ensure_timezone_aware(end) - ensure_timezone_aware(start)).total_seconds()
    return int(round_half_up(seconds / 60))


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed hours between two instants to one decimal place."""
    seconds = (ensure_timezone_aware(end) - ensure_timezone_aware(start)).total_seconds()
    return round_half_up(seconds / 3600, 1)
