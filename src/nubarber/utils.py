from collections import defaultdict
from datetime import date, datetime, time
from typing import Dict, Iterable, List, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import BookingRecord

# Python's date.weekday(): 0 = Monday ... 6 = Sunday
WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def parse_hhmm(value: str) -> time:
    """
    Parses a 24h "HH:MM" wall-clock string.

    Args:
        value (str): The time string, e.g. "09:30".

    Returns:
        time: The parsed time of day.

    Raises:
        ValueError: If the string is not a valid "HH:MM" time.
    """
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except (AttributeError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid HH:MM time: {value!r}") from exc


def format_hhmm(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def weekday_name(target: date) -> str:
    """Returns the English weekday name ("Monday" ... "Sunday") for a date."""
    return WEEKDAY_NAMES[target.weekday()]


def day_key(moment: datetime) -> str:
    """
    ISO calendar-day key ("YYYY-MM-DD") of a timestamp.

    Uses the date portion in whatever zone the timestamp carries;
    no timezone conversion is performed.
    """
    return moment.date().isoformat()


def is_same_day(a, b) -> bool:
    """True if two dates/datetimes fall on the same calendar day (time-of-day ignored)."""
    if isinstance(a, datetime):
        a = a.date()
    if isinstance(b, datetime):
        b = b.date()
    return a == b


def minutes_between(start: time, end: time) -> int:
    """Whole minutes from start to end on the same day. Negative if end precedes start."""
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)


def group_bookings_by_day(bookings: Iterable["BookingRecord"]) -> Dict[str, List["BookingRecord"]]:
    """
    Groups bookings by the calendar day of their booking time.

    Args:
        bookings: Booking records in any order.

    Returns:
        Dict[str, List[BookingRecord]]: ISO day key -> bookings on that day.
    """
    grouped = defaultdict(list)
    for booking in bookings:
        grouped[day_key(booking.booking_time)].append(booking)
    return dict(grouped)
