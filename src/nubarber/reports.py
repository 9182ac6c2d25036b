from collections import Counter
from datetime import date, datetime
from typing import Dict, List, Optional

from .models import BookingRecord, BookingStatus, ClientSummary, OverviewStats, TimeOffEntry
from .utils import is_same_day


def _in_month(moment: datetime, today: date) -> bool:
    return (moment.year, moment.month) == (today.year, today.month)


def sort_by_time(bookings: List[BookingRecord]) -> List[BookingRecord]:
    return sorted(bookings, key=lambda b: b.booking_time)


def bookings_on(bookings: List[BookingRecord], target_date: date) -> List[BookingRecord]:
    """Bookings on a calendar day, earliest first."""
    return sort_by_time([b for b in bookings if is_same_day(b.booking_time, target_date)])


def time_off_on(time_off: List[TimeOffEntry], target_date: date) -> List[TimeOffEntry]:
    return [entry for entry in time_off if is_same_day(entry.date, target_date)]


def calculate_overview_stats(bookings: List[BookingRecord], today: Optional[date] = None) -> OverviewStats:
    """
    Dashboard headline numbers.

    - total_revenue only counts bookings that reached Paid.
    - monthly_bookings / most_booked_service cover the current calendar month.
    - new_clients counts customers (by email) whose first-ever booking is this month.

    Args:
        bookings: Full booking history for the shop.
        today: Reference day; defaults to date.today().
    """
    today = today or date.today()
    ordered = sort_by_time(bookings)

    total_revenue = sum(b.price for b in ordered if b.status == BookingStatus.PAID)
    monthly = [b for b in ordered if _in_month(b.booking_time, today)]

    service_counts = Counter(b.service_name for b in monthly)
    # most_common keeps first-seen order on ties
    most_booked = service_counts.most_common(1)[0][0] if service_counts else "N/A"

    first_booking: Dict[str, datetime] = {}
    for booking in ordered:
        first_booking.setdefault(booking.customer_email, booking.booking_time)
    new_clients = sum(1 for first in first_booking.values() if _in_month(first, today))

    return OverviewStats(
        total_revenue=total_revenue,
        monthly_bookings=len(monthly),
        new_clients=new_clients,
        most_booked_service=most_booked,
        todays_appointments=bookings_on(ordered, today),
    )


def summarize_clients(bookings: List[BookingRecord]) -> List[ClientSummary]:
    """
    One row per customer email, most recently seen first.

    The displayed name is the one on the customer's first booking in the input order.
    """
    clients: Dict[str, Dict] = {}
    for booking in bookings:
        entry = clients.setdefault(booking.customer_email, {"name": booking.customer_name, "appointments": []})
        entry["appointments"].append(booking.booking_time)

    summaries = [
        ClientSummary(
            email=email,
            name=data["name"],
            appointment_count=len(data["appointments"]),
            last_appointment=max(data["appointments"]),
        )
        for email, data in clients.items()
    ]
    return sorted(summaries, key=lambda c: c.last_appointment, reverse=True)
