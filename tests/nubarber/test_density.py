import pytest
from datetime import datetime

from nubarber.density import (
    calculate_booking_density, count_daily_slots, density_level, density_levels,
)
from nubarber.models import DensityLevel, StaffMember, WeeklyAvailability, Weekday


def test_count_daily_slots_sums_working_staff(staff_member, weekday_schedule):
    second = StaffMember(id=2, shop_owner_id="owner-1", name="Lena", availability=[
        WeeklyAvailability(day=Weekday.MONDAY, is_working=True, start_time="10:00", end_time="12:15"),
    ])

    # 16 slots for 09:00-17:00 plus floor(135 / 30) = 4
    assert count_daily_slots([staff_member, second], "Monday") == 20
    assert count_daily_slots([staff_member, second], "Tuesday") == 16
    assert count_daily_slots([staff_member, second], "Sunday") == 0


def test_single_booking_on_full_day(staff_member, make_booking):
    density = calculate_booking_density([make_booking(datetime(2025, 6, 2, 10, 0))], [staff_member])
    assert density == {"2025-06-02": 6.25}


def test_two_staff_full_day(staff_member, make_booking):
    lena = staff_member.copy(update={"id": 2, "name": "Lena"})
    bookings = [
        make_booking(datetime(2025, 6, 2, 10, 0), id=1),
        make_booking(datetime(2025, 6, 2, 11, 0), id=2, staff_id=2),
    ]

    # 2 bookings over 32 slots
    assert calculate_booking_density(bookings, [staff_member, lena]) == {"2025-06-02": 6.25}


def test_days_without_bookings_are_absent(staff_member, make_booking):
    bookings = [
        make_booking(datetime(2025, 6, 2, 9, 0), id=1),
        make_booking(datetime(2025, 6, 2, 9, 30), id=2),
        make_booking(datetime(2025, 6, 4, 11, 0), id=3),
    ]

    density = calculate_booking_density(bookings, [staff_member])

    assert density == {"2025-06-02": 12.5, "2025-06-04": 6.25}
    assert "2025-06-03" not in density


def test_day_nobody_works_is_zero(staff_member, make_booking):
    density = calculate_booking_density([make_booking(datetime(2025, 6, 7, 10, 0))], [staff_member])
    assert density == {"2025-06-07": 0}


def test_overbooked_day_is_not_clamped(make_booking):
    short_day = StaffMember(id=1, shop_owner_id="owner-1", name="Marco", availability=[
        WeeklyAvailability(day=Weekday.MONDAY, is_working=True, start_time="09:00", end_time="10:00"),
    ])
    bookings = [make_booking(datetime(2025, 6, 2, 9, 0), id=i) for i in range(3)]

    assert calculate_booking_density(bookings, [short_day]) == {"2025-06-02": 150.0}


@pytest.mark.parametrize("value, expected", [
    (100, DensityLevel.HIGH),
    (75, DensityLevel.HIGH),
    (74.9, DensityLevel.MEDIUM),
    (40, DensityLevel.MEDIUM),
    (39.99, DensityLevel.LOW),
    (6.25, DensityLevel.LOW),
    (0, None),
    (None, None),
])
def test_density_level_thresholds(value, expected):
    assert density_level(value) == expected


def test_density_levels_maps_every_day():
    assert density_levels({"2025-06-02": 80.0, "2025-06-03": 0}) == {
        "2025-06-02": DensityLevel.HIGH,
        "2025-06-03": None,
    }
