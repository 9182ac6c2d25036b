"""
Booking density for the calendar heatmap.

Density is presentation-only: it never affects which slots can be booked.
It is recomputed in full from the booking history on every data load.
"""

from datetime import date
from typing import Dict, Iterable, List, Optional

from .models import BookingRecord, DensityLevel, StaffMember
from .utils import group_bookings_by_day, minutes_between, parse_hhmm, weekday_name

# Nominal appointment length used to turn a working window into a slot count
DENSITY_SLOT_MINUTES = 30

HIGH_DENSITY_THRESHOLD = 75
MEDIUM_DENSITY_THRESHOLD = 40


def count_daily_slots(staff: Iterable[StaffMember], day: str) -> int:
    """
    Sums the theoretical 30-minute slots of every staff member working on a weekday.

    Args:
        staff: The shop's staff roster.
        day: Weekday name, e.g. "Monday".

    Returns:
        int: floor(window minutes / 30) summed over working staff.
    """
    total_slots = 0
    for member in staff:
        entry = member.availability_for(day)
        if entry is None or not entry.is_working:
            continue
        total_minutes = minutes_between(parse_hhmm(entry.start_time), parse_hhmm(entry.end_time))
        total_slots += max(total_minutes, 0) // DENSITY_SLOT_MINUTES
    return total_slots


def calculate_booking_density(bookings: Iterable[BookingRecord], staff: List[StaffMember]) -> Dict[str, float]:
    """
    Computes a load percentage for every day that has at least one booking.

    Days without bookings are absent from the result. Values are not clamped,
    so an overbooked day can exceed 100.

    Args:
        bookings: Full booking history for the shop.
        staff: The shop's staff roster with weekly schedules.

    Returns:
        Dict[str, float]: ISO day key -> bookings / total slots * 100
            (0 when nobody works that weekday).
    """
    density: Dict[str, float] = {}
    for key, day_bookings in group_bookings_by_day(bookings).items():
        total_slots = count_daily_slots(staff, weekday_name(date.fromisoformat(key)))
        if total_slots > 0:
            density[key] = len(day_bookings) / total_slots * 100
        else:
            density[key] = 0
    return density


def density_level(density: Optional[float]) -> Optional[DensityLevel]:
    """
    Maps a density value to its heatmap marker.

    Absent (None) and 0 both mean "no marker".
    """
    if density is None or density <= 0:
        return None
    if density >= HIGH_DENSITY_THRESHOLD:
        return DensityLevel.HIGH
    if density >= MEDIUM_DENSITY_THRESHOLD:
        return DensityLevel.MEDIUM
    return DensityLevel.LOW


def density_levels(density_map: Dict[str, float]) -> Dict[str, Optional[DensityLevel]]:
    return {key: density_level(value) for key, value in density_map.items()}
