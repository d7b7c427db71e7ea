"""
Timezone utilities. The database stores UTC; work dates and user-entered
wall-clock times are interpreted in the school's timezone.
"""

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def from_utc_to_local(utc_dt: datetime, tz: str) -> datetime:
    """
    Convert UTC datetime to local datetime in the specified timezone.

    Args:
        utc_dt: UTC datetime (naive values are assumed to be UTC)
        tz: IANA timezone string (e.g., 'Asia/Ho_Chi_Minh')

    Returns:
        datetime: Local datetime in the specified timezone
    """
    if utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=timezone.utc)

    return utc_dt.astimezone(ZoneInfo(tz))


def local_work_date(utc_dt: datetime, tz: str) -> date:
    """Calendar date of a UTC instant as seen in the given timezone."""
    return from_utc_to_local(utc_dt, tz).date()


def validate_timezone(tz: str) -> bool:
    try:
        ZoneInfo(tz)
        return True
    except Exception:
        return False


def ensure_timezone_aware(dt: datetime, default_tz: Optional[str] = None) -> datetime:
    """
    Ensure a datetime is timezone-aware, defaulting to UTC if naive.

    Args:
        dt: datetime object
        default_tz: Optional default timezone if dt is naive

    Returns:
        datetime: timezone-aware datetime
    """
    if dt.tzinfo is None:
        if default_tz:
            return dt.replace(tzinfo=ZoneInfo(default_tz))
        else:
            return dt.replace(tzinfo=timezone.utc)
    return dt
