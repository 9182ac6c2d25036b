from datetime import date as date_type, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field

from ..models import (
    BookingStatus, DensityLevel, LocationType, Region, Weekday, WeeklyAvailability,
)


# --- API Response Models ---

class ServiceResponse(BaseModel):
    """API response model for Service data."""
    id: int
    name: str
    duration_minutes: int
    price: float

    class Config:
        json_schema_extra = {
            "example": {
                "id": 1,
                "name": "Skin Fade",
                "duration_minutes": 45,
                "price": 35.0
            }
        }

class StaffResponse(BaseModel):
    """API response model for a staff member and their weekly schedule."""
    id: int
    name: str
    title: str
    avatar_url: Optional[str] = None
    availability: List[WeeklyAvailability] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "id": 1,
                "name": "Marco",
                "title": "Barber",
                "avatar_url": None,
                "availability": [
                    {"day": "Monday", "is_working": True, "start_time": "09:00", "end_time": "17:00"},
                    {"day": "Sunday", "is_working": False, "start_time": "09:00", "end_time": "17:00"}
                ]
            }
        }

class TimeOffResponse(BaseModel):
    """API response model for a time-off entry."""
    id: int
    staff_id: int
    staff_name: Optional[str] = None
    date: date_type
    reason: str

class BookingResponse(BaseModel):
    """API response model for Booking data."""
    id: int
    service_id: int
    service_name: str
    staff_id: int
    staff_name: str
    booking_time: datetime
    customer_name: str
    customer_email: str
    price: float
    status: BookingStatus

    class Config:
        json_schema_extra = {
            "example": {
                "id": 7,
                "service_id": 1,
                "service_name": "Skin Fade",
                "staff_id": 1,
                "staff_name": "Marco",
                "booking_time": "2025-06-02T09:30:00",
                "customer_name": "Dana Reyes",
                "customer_email": "dana@example.com",
                "price": 35.0,
                "status": "pending"
            }
        }

class ShopResponse(BaseModel):
    """API response model for Shop data. Stripe account ids are never exposed."""
    owner_id: str
    name: str
    region: Region
    currency: str
    location_type: LocationType
    address: str
    staff_count: int
    headline: str
    description: str
    stripe_connected: bool

class DensityResponse(BaseModel):
    """Heatmap data: raw percentages plus the marker each day renders with."""
    density: Dict[str, float] = Field(default_factory=dict)
    levels: Dict[str, Optional[DensityLevel]] = Field(default_factory=dict)

class BookingPageResponse(BaseModel):
    """Everything the public booking page needs on load."""
    shop: ShopResponse
    services: List[ServiceResponse]
    staff: List[StaffResponse]
    heatmap: DensityResponse

class SlotsResponse(BaseModel):
    staff_id: int
    service_id: int
    date: date_type
    slots: List[str]
    selected_time: Optional[str] = None # Cleared when no longer available

    class Config:
        json_schema_extra = {
            "example": {
                "staff_id": 1,
                "service_id": 1,
                "date": "2025-06-02",
                "slots": ["09:00", "09:30", "10:00"],
                "selected_time": "09:30"
            }
        }

class BookingSubmissionResponse(BaseModel):
    booking_id: int
    redirect_url: str
    requires_payment: bool

class BookingConfirmationResponse(BaseModel):
    booking_id: int
    confirmed: bool # False when the booking was already Paid
    status: BookingStatus

class ScheduleResponse(BaseModel):
    """Owner's day view."""
    date: date_type
    bookings: List[BookingResponse]
    time_off: List[TimeOffResponse]
    heatmap: DensityResponse

class ClientResponse(BaseModel):
    email: str
    name: str
    appointment_count: int
    last_appointment: datetime

class OverviewResponse(BaseModel):
    total_revenue: float
    monthly_bookings: int
    new_clients: int
    most_booked_service: str
    todays_appointments: List[BookingResponse]

class StripeConnectResponse(BaseModel):
    onboarding_url: str


# --- API Request Models ---

class ShopCreateRequest(BaseModel):
    """Sign-up request: creates the shop and seeds its staff."""
    name: str = Field(min_length=1)
    region: Region
    currency: Optional[str] = Field(None, min_length=3, max_length=3) # DEFAULT_CURRENCY when omitted
    location_type: LocationType
    address: str = ""
    staff_names: List[str] = Field(min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Sharp Cuts",
                "region": "eu",
                "currency": "eur",
                "location_type": "physical",
                "address": "12 High Street",
                "staff_names": ["Marco", "Lena"]
            }
        }

class ShopUpdateRequest(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None

class PublicSiteRequest(BaseModel):
    headline: Optional[str] = None
    description: Optional[str] = None

class ServiceRequest(BaseModel):
    name: str
    duration_minutes: int
    price: float

class StaffCreateRequest(BaseModel):
    name: str
    title: str = "Barber"
    avatar_url: Optional[str] = None
    availability: Optional[List[WeeklyAvailability]] = None # Default schedule when omitted

class StaffUpdateRequest(BaseModel):
    name: str
    title: str

class AvailabilityRequest(BaseModel):
    """Replaces the whole weekly schedule."""
    availability: List[WeeklyAvailability]

    class Config:
        json_schema_extra = {
            "example": {
                "availability": [
                    {"day": day.value, "is_working": day not in (Weekday.SATURDAY, Weekday.SUNDAY),
                     "start_time": "09:00", "end_time": "17:00"}
                    for day in Weekday
                ]
            }
        }

class TimeOffRequest(BaseModel):
    staff_id: int
    date: date_type
    reason: Optional[str] = None

class BookingSubmitRequest(BaseModel):
    """Public booking form. Completeness is checked by the booking workflow."""
    service_id: Optional[int] = None
    staff_id: Optional[int] = None
    date: Optional[date_type] = None
    time: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[EmailStr] = None
