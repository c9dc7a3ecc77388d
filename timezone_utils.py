"""
Timezone utilities for calendar-day computations.
Streaks and report periods are measured in the user's local calendar; this
module turns aware or naive datetimes into local dates consistently.
"""

import datetime
import pytz
from typing import Optional, Union

from dependencies import ECOHERO_TIMEZONE

DEFAULT_TZ = pytz.timezone(ECOHERO_TIMEZONE)

def resolve_timezone(tz_name: Optional[str] = None):
    """
    Resolve an IANA timezone name, falling back to the configured default.

    Args:
        tz_name: timezone name such as 'Asia/Jakarta', or None

    Returns:
        pytz timezone object
    """
    if not tz_name:
        return DEFAULT_TZ
    return pytz.timezone(tz_name)

def get_current_datetime() -> datetime.datetime:
    """Current time as an aware UTC datetime."""
    return datetime.datetime.now(pytz.utc)

def convert_to_timezone(dt: Union[datetime.datetime, datetime.date], tz=None) -> datetime.datetime:
    """
    Convert a datetime or date to the given timezone.
    Naive values are interpreted as already being local to that timezone.

    Args:
        dt: datetime or date object to convert
        tz: pytz timezone (defaults to the configured one)

    Returns:
        datetime.datetime: aware datetime in the target timezone
    """
    tz = tz or DEFAULT_TZ
    if isinstance(dt, datetime.date) and not isinstance(dt, datetime.datetime):
        dt = datetime.datetime.combine(dt, datetime.time.min)

    if dt.tzinfo is None:
        dt = tz.localize(dt)
    else:
        dt = dt.astimezone(tz)

    return dt

def local_date(dt: datetime.datetime, tz=None) -> datetime.date:
    """Calendar date of a datetime in the given timezone."""
    return convert_to_timezone(dt, tz).date()

def calendar_days_between(earlier: datetime.datetime, later: datetime.datetime, tz=None) -> int:
    """
    Number of midnight boundaries between two datetimes in the given timezone.
    Negative when `later` falls on an earlier calendar day than `earlier`.
    """
    return (local_date(later, tz) - local_date(earlier, tz)).days

def start_of_day(dt: Optional[datetime.datetime] = None, tz=None) -> datetime.datetime:
    """Start of day (00:00:00) in the given timezone."""
    tz = tz or DEFAULT_TZ
    if dt is None:
        dt = get_current_datetime()
    local = convert_to_timezone(dt, tz)
    return tz.localize(datetime.datetime.combine(local.date(), datetime.time.min))

def ensure_aware(dt: datetime.datetime, tz=None) -> datetime.datetime:
    """Attach the timezone to naive datetimes; aware values are returned unchanged."""
    if dt.tzinfo is None:
        return (tz or DEFAULT_TZ).localize(dt)
    return dt

__all__ = [
    'DEFAULT_TZ',
    'resolve_timezone',
    'get_current_datetime',
    'convert_to_timezone',
    'local_date',
    'calendar_days_between',
    'start_of_day',
    'ensure_aware',
]
