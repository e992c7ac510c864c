"""Shared utilities used across the booking engine."""

import re
from datetime import date, datetime

_WALL_CLOCK_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])?\s*$")


def parse_wall_clock(value: str) -> tuple[int, int]:
    """Parse a wall-clock time into (hour, minute).

    Accepts 24-hour ``HH:MM`` and 12-hour ``H:MM AM/PM`` forms.

    Examples:
        >>> parse_wall_clock("09:30")
        (9, 30)
        >>> parse_wall_clock("3:15 PM")
        (15, 15)
        >>> parse_wall_clock("12:00 AM")
        (0, 0)

    Raises:
        ValueError: If the value is not a recognizable time.
    """
    match = _WALL_CLOCK_RE.match(value or "")
    if not match:
        raise ValueError(f"Unrecognized time: {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    period = (match.group(3) or "").upper()
    if period:
        if not 1 <= hour <= 12:
            raise ValueError(f"Hour out of range for 12-hour time: {value!r}")
        if period == "PM" and hour < 12:
            hour += 12
        elif period == "AM" and hour == 12:
            hour = 0
    if hour > 23 or minute > 59:
        raise ValueError(f"Time out of range: {value!r}")
    return hour, minute


def format_display_time(moment: datetime) -> str:
    """Format a datetime the way booking records display it, e.g. ``9:05 AM``."""
    period = "PM" if moment.hour >= 12 else "AM"
    display_hour = moment.hour % 12 or 12
    return f"{display_hour}:{moment.minute:02d} {period}"


def sunday_based_weekday(day: date) -> int:
    """Weekday index with 0 = Sunday … 6 = Saturday, as stored on records."""
    return (day.weekday() + 1) % 7
