from datetime import date as date_type, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, validator

from .utils import parse_hhmm


# --- Enums ---

class Weekday(str, Enum):
    MONDAY = 'Monday'
    TUESDAY = 'Tuesday'
    WEDNESDAY = 'Wednesday'
    THURSDAY = 'Thursday'
    FRIDAY = 'Friday'
    SATURDAY = 'Saturday'
    SUNDAY = 'Sunday'

class BookingStatus(str, Enum):
    PENDING = 'pending'
    PAID = 'Paid' # Stored capitalised, matches existing booking documents

class Region(str, Enum):
    US = 'us'
    EU = 'eu'
    UK = 'uk'

class LocationType(str, Enum):
    PHYSICAL = 'physical'
    MOBILE = 'mobile'

class DensityLevel(str, Enum):
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


DEFAULT_TIME_OFF_REASON = "Personal Time Off"
DEFAULT_STAFF_TITLE = "Barber"
DEFAULT_HEADLINE = "Book your next appointment with us"
DEFAULT_DESCRIPTION = "Easy and fast booking, available 24/7."


# --- Core Models ---

class WeeklyAvailability(BaseModel):
    """Working hours for one weekday. Start/end are ignored when is_working is False."""
    day: Weekday
    is_working: bool = False
    start_time: str = "09:00" # "HH:MM"
    end_time: str = "17:00"   # "HH:MM"

    @validator('start_time', 'end_time')
    def validate_hhmm(cls, v):
        parse_hhmm(v) # Raises ValueError on malformed input
        return v

class StaffMember(BaseModel):
    """A staff member and their recurring weekly schedule."""
    id: int
    shop_owner_id: str
    name: str
    title: str = DEFAULT_STAFF_TITLE
    avatar_url: Optional[str] = None
    availability: List[WeeklyAvailability] = Field(default_factory=list)

    def availability_for(self, day: str) -> Optional[WeeklyAvailability]:
        """Returns the schedule entry for a weekday name, if the staff member has one."""
        for entry in self.availability:
            if entry.day.value == day:
                return entry
        return None

class TimeOffEntry(BaseModel):
    """A full-day unavailability block for one staff member."""
    id: Optional[int] = None
    shop_owner_id: str
    staff_id: int
    staff_name: Optional[str] = None
    date: date_type
    reason: str = DEFAULT_TIME_OFF_REASON

    @validator('date', pre=True)
    def drop_time_of_day(cls, v):
        # Time-of-day is irrelevant for a full-day block
        if isinstance(v, datetime):
            return v.date()
        return v

class Service(BaseModel):
    """A bookable service. Duration drives slot fitting."""
    id: int
    shop_owner_id: str
    name: str
    duration_minutes: int = Field(gt=0)
    price: float = Field(ge=0)

class BookingRecord(BaseModel):
    """A customer booking. Only transition is pending -> Paid."""
    id: Optional[int] = None
    shop_owner_id: str
    service_id: int
    service_name: str
    staff_id: int
    staff_name: str
    booking_time: datetime
    customer_name: str
    customer_email: str
    price: float = Field(ge=0)
    status: BookingStatus = BookingStatus.PENDING

class Shop(BaseModel):
    """A tenant shop. Always stored in the default database."""
    owner_id: str
    name: str
    region: Region = Region.US
    currency: str = "usd"
    location_type: LocationType = LocationType.PHYSICAL
    address: str = ""
    staff_count: int = Field(ge=0, default=0)
    headline: Optional[str] = None
    description: Optional[str] = None
    stripe_account_id: Optional[str] = None
    stripe_connected: bool = False

    @property
    def requires_payment(self) -> bool:
        return self.stripe_connected


# --- Workflow Models ---

class BookingRequest(BaseModel):
    """
    Raw booking form input. Every field is optional here so that missing
    fields are reported by the workflow's own validation instead of a parse error.
    """
    service_id: Optional[int] = None
    staff_id: Optional[int] = None
    date: Optional[date_type] = None
    time: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None

class BookingOutcome(BaseModel):
    """Result of a booking submission."""
    booking_id: int
    redirect_url: str
    requires_payment: bool

class ClientSummary(BaseModel):
    email: str
    name: str
    appointment_count: int
    last_appointment: datetime

class OverviewStats(BaseModel):
    total_revenue: float = 0.0
    monthly_bookings: int = 0
    new_clients: int = 0
    most_booked_service: str = "N/A"
    todays_appointments: List[BookingRecord] = Field(default_factory=list)
