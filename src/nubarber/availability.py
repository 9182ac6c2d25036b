"""
Staff availability and slot generation.

A staff member's weekly schedule holds one entry per weekday
(is_working, start "HH:MM", end "HH:MM"). Time off blocks whole days.
Slots are candidate start times that let an appointment of the requested
duration finish inside the working window.

Slots always start on a fixed 30-minute grid from the window start,
independent of the service duration: a 45-minute service still only starts
on :00/:30 boundaries, so the tail of a window may go unused.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from .errors import InputValidationError
from .models import TimeOffEntry, Weekday, WeeklyAvailability
from .utils import format_hhmm, is_same_day, parse_hhmm, weekday_name


SLOT_STEP = timedelta(minutes=30)

# Default schedule configuration for newly created staff
DEFAULT_START_TIME = "09:00"
DEFAULT_END_TIME = "17:00"
DEFAULT_DAYS_OFF = (Weekday.SATURDAY, Weekday.SUNDAY)


def default_weekly_availability() -> List[WeeklyAvailability]:
    """
    Builds the schedule every new staff member starts with:
    Monday to Friday 09:00-17:00, weekends off.
    """
    return [
        WeeklyAvailability(
            day=day,
            is_working=day not in DEFAULT_DAYS_OFF,
            start_time=DEFAULT_START_TIME,
            end_time=DEFAULT_END_TIME,
        )
        for day in Weekday
    ]


def validate_weekly_availability(entries: Iterable[WeeklyAvailability]) -> List[WeeklyAvailability]:
    """
    Checks a schedule before it replaces the stored one.

    Raises:
        InputValidationError: If a weekday appears more than once.
    """
    entries = list(entries)
    seen = set()
    for entry in entries:
        if entry.day in seen:
            raise InputValidationError(f"Duplicate availability entry for {entry.day.value}")
        seen.add(entry.day)
    return entries


def is_day_off(time_off: Iterable[TimeOffEntry], target_date: date, staff_id: Optional[int] = None) -> bool:
    """
    True if any time-off entry falls on target_date.

    Args:
        time_off: Time-off entries; may cover several staff members when staff_id is given.
        target_date: The day being checked.
        staff_id: If given, only entries for this staff member count. If omitted,
            every entry counts, so the caller must pass only that staff
            member's entries.
    """
    for entry in time_off:
        if staff_id is not None and entry.staff_id != staff_id:
            continue
        if is_same_day(entry.date, target_date):
            return True
    return False


def get_day_availability(availability: Iterable[WeeklyAvailability], target_date: date) -> Optional[WeeklyAvailability]:
    """
    Gets the working window for the weekday of target_date.

    Returns:
        Optional[WeeklyAvailability]: The entry, or None if there is no entry
            for that weekday or the staff member is not working.
    """
    day = weekday_name(target_date)
    for entry in availability:
        if entry.day.value == day:
            return entry if entry.is_working else None
    return None


def generate_time_slots(
    availability: Iterable[WeeklyAvailability],
    time_off: Iterable[TimeOffEntry],
    target_date: date,
    duration_minutes: int,
    staff_id: Optional[int] = None,
) -> List[str]:
    """
    Generates bookable start times for one staff member on one day.

    Args:
        availability: The staff member's weekly schedule.
        time_off: Time-off entries. Without staff_id these must already be
            limited to this staff member, since any entry blocks the day.
        target_date: The day to generate slots for.
        duration_minutes: Length of the requested service.
        staff_id: Staff member the time-off entries are matched against.

    Returns:
        List[str]: Ascending "HH:MM" start times; empty when the day is off,
            not a working day, or too short for the service.
    """
    if isinstance(target_date, datetime):
        target_date = target_date.date()

    if is_day_off(time_off, target_date, staff_id):
        return []

    day_availability = get_day_availability(availability, target_date)
    if day_availability is None:
        return []

    if duration_minutes <= 0:
        return []

    start = datetime.combine(target_date, parse_hhmm(day_availability.start_time))
    end = datetime.combine(target_date, parse_hhmm(day_availability.end_time))
    duration = timedelta(minutes=duration_minutes)

    slots: List[str] = []
    current = start
    while current + duration <= end:
        slots.append(format_hhmm(current))
        current += SLOT_STEP

    return slots


def reconcile_selected_time(selected_time: Optional[str], slots: List[str]) -> Optional[str]:
    """
    Keeps a previously chosen time only if it survives regeneration.

    Called whenever staff, service or date changes: a selection that is no
    longer in the new slot list is cleared.
    """
    if selected_time and selected_time in slots:
        return selected_time
    return None
