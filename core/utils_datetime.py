"""
DateTime utilities for the booking engine.
Wall-clock times are interpreted in the restaurant timezone.
"""
from datetime import datetime, date, time
from typing import Union
import re
import pytz

from core.settings import settings


# Timezone configuration
TIMEZONE = pytz.timezone(settings.restaurant_timezone)

MINUTES_PER_DAY = 24 * 60

HHMM_PATTERN = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')


def get_current_datetime() -> datetime:
    """Get current datetime in the restaurant timezone."""
    return datetime.now(TIMEZONE)


def time_to_minutes(value: time) -> int:
    """Minutes since midnight for a time of day."""
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    """
    Convert minutes since midnight back to a time of day.

    Raises:
        ValueError: If minutes fall outside a single day
    """
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def parse_hhmm(value: Union[str, time]) -> time:
    """
    Parse an "HH:MM" string (24-hour clock) into a time.

    Args:
        value: "HH:MM" text or an existing time

    Returns:
        time object

    Raises:
        ValueError: If the text is not a valid 24-hour time
    """
    if isinstance(value, time):
        return value
    match = HHMM_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def format_hhmm(value: time) -> str:
    """Format a time as HH:MM."""
    return value.strftime('%H:%M')


def localize(day: date, at: time, tz: pytz.BaseTzInfo = TIMEZONE) -> datetime:
    """Combine a date and wall-clock time into an aware datetime in `tz`."""
    return tz.localize(datetime.combine(day, at))


def to_timezone(dt: datetime, tz: pytz.BaseTzInfo = TIMEZONE) -> datetime:
    """Ensure a datetime is aware and expressed in `tz`."""
    if dt.tzinfo is None:
        return tz.localize(dt)
    return dt.astimezone(tz)
