# tests/conftest.py
import os

# Set the TESTING environment variable before any tests are collected/run,
# so every database region resolves to in-memory SQLite.
os.environ["TESTING"] = "True"

from datetime import datetime

import pytest

from nubarber.models import BookingRecord, BookingStatus, StaffMember, WeeklyAvailability, Weekday


@pytest.fixture
def weekday_schedule():
    """Monday-Friday 09:00-17:00, weekends off."""
    return [
        WeeklyAvailability(
            day=day,
            is_working=day not in (Weekday.SATURDAY, Weekday.SUNDAY),
            start_time="09:00",
            end_time="17:00",
        )
        for day in Weekday
    ]


@pytest.fixture
def staff_member(weekday_schedule):
    return StaffMember(id=1, shop_owner_id="owner-1", name="Marco", availability=weekday_schedule)


@pytest.fixture
def make_booking():
    """Factory for booking records with sensible defaults."""
    def _make(booking_time: datetime, **overrides) -> BookingRecord:
        data = {
            "id": 1,
            "shop_owner_id": "owner-1",
            "service_id": 1,
            "service_name": "Skin Fade",
            "staff_id": 1,
            "staff_name": "Marco",
            "booking_time": booking_time,
            "customer_name": "Dana Reyes",
            "customer_email": "dana@example.com",
            "price": 35.0,
            "status": BookingStatus.PENDING,
        }
        data.update(overrides)
        return BookingRecord(**data)
    return _make
