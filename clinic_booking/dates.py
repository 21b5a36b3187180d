"""Calendar-date helpers.

Appointment dates are plain ``datetime.date`` values everywhere: no time
component and no timezone, so the weekday of a date never shifts with the
server's UTC offset.
"""
import re
from datetime import date, datetime, timedelta
from typing import Iterator, Union

from clinic_booking.errors import ValidationError

WEEKDAYS = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_calendar_date(value: Union[str, date, datetime]) -> date:
    """
    Parse a YYYY-MM-DD string into a calendar date.

    datetime values are truncated to their own local date.

    Raises:
        ValidationError: If the value is not a valid calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not DATE_PATTERN.match(text):
        raise ValidationError(f"Invalid date '{value}'. Use YYYY-MM-DD")

    try:
        return date.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid date '{value}'. Use YYYY-MM-DD")


def weekday_name(day: date) -> str:
    """Lowercase weekday name ("monday") of a calendar date."""
    return WEEKDAYS[day.weekday()]


def normalize_weekday(value: Union[str, int]) -> str:
    """
    Normalize a weekday given as a name ("Monday", "mon") or a 0-6 index
    (Monday = 0) to its lowercase full name.
    """
    if isinstance(value, int) or str(value).strip().isdigit():
        index = int(value)
        if not 0 <= index <= 6:
            raise ValueError(f"Invalid weekday index: {value}")
        return WEEKDAYS[index]

    text = str(value).strip().lower()
    for name in WEEKDAYS:
        if text == name or (len(text) >= 3 and name.startswith(text)):
            return name
    raise ValueError(f"Invalid weekday: '{value}'")


def format_time_12h(time_24h: str) -> str:
    """Convert 24h "17:00" to zero-padded 12h "05:00 PM"."""
    match = TIME_PATTERN.match(time_24h)
    if not match:
        raise ValueError(f"Invalid time '{time_24h}'. Use HH:MM")

    hour, minute = int(match.group(1)), int(match.group(2))
    period = "AM" if hour < 12 else "PM"
    hour_12 = hour % 12 or 12
    return f"{hour_12:02d}:{minute:02d} {period}"


def date_range(start: date, num_days: int) -> Iterator[date]:
    """Yield ``num_days`` consecutive dates starting at ``start``."""
    for offset in range(num_days):
        yield start + timedelta(days=offset)
