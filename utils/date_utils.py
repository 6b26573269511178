"""
Date/time parsing and formatting helpers.

All timestamps exchanged with the calendar stores are local and timezone-less
(``YYYY-MM-DDTHH:MM:SS``). Nothing here converts between timezones except when
an aware timestamp is handed in, which is converted to local time once.
"""
import math
from datetime import datetime
from typing import Tuple

from utils.errors import FormatError, RangeError

LOCAL_ISO_FORMAT = '%Y-%m-%dT%H:%M:%S'


def parse_date(date_str: str) -> datetime:
    """Parse ``YYYY-MM-DD`` (local midnight) or a full local timestamp"""
    if not isinstance(date_str, str):
        raise FormatError(f"Invalid date format: '{date_str}'. Use YYYY-MM-DD or ISO 8601.")

    if 'T' in date_str:
        try:
            parsed = datetime.fromisoformat(date_str)
        except ValueError:
            raise FormatError(f"Invalid date format: '{date_str}'. Use YYYY-MM-DD or ISO 8601.")
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone().replace(tzinfo=None)
        return parsed

    parts = date_str.split('-')
    if len(parts) != 3:
        raise FormatError(f"Invalid date format: '{date_str}'. Use YYYY-MM-DD or ISO 8601.")

    try:
        year, month, day = (int(part) for part in parts)
        return datetime(year, month, day)
    except ValueError:
        raise FormatError(f"Invalid date format: '{date_str}'. Use YYYY-MM-DD or ISO 8601.")


def parse_time(time_str: str) -> Tuple[int, int]:
    """Parse ``HH:MM`` into (hour, minute)"""
    parts = str(time_str).split(':')
    if len(parts) < 2:
        raise FormatError(f"Invalid time format: '{time_str}'. Use HH:MM.")

    try:
        hour = int(parts[0])
        minute = int(parts[1])
    except ValueError:
        raise FormatError(f"Invalid time format: '{time_str}'. Use HH:MM.")

    if hour < 0 or hour > 23 or minute < 0 or minute > 59:
        raise RangeError(f"Time out of range: '{time_str}'. Must be between 00:00 and 23:59.")

    return hour, minute


def to_local_iso(dt: datetime) -> str:
    """Format as local timestamp without timezone suffix"""
    return dt.strftime(LOCAL_ISO_FORMAT)


def end_of_day_if_date_only(date_str: str) -> str:
    """A date-only upper bound covers the whole day"""
    if date_str and 'T' not in date_str:
        return f"{date_str}T23:59:59"
    return date_str


def at_time(day: datetime, hour: int, minute: int) -> datetime:
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def minute_of_day(dt: datetime) -> int:
    return dt.hour * 60 + dt.minute


def to_hhmm(dt: datetime) -> str:
    return f"{dt.hour:02d}:{dt.minute:02d}"


def hhmm_to_minutes(hhmm: str) -> int:
    hour, minute = hhmm.split(':')[:2]
    return int(hour) * 60 + int(minute)


def minutes_to_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves away from zero for positives (0.5 -> 1, 2.5 -> 3)"""
    factor = 10 ** ndigits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if ndigits == 0 else rounded
