from sqlalchemy import Column, Integer, String, Float, ForeignKey, Boolean, Date, DateTime, Enum, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

from nubarber.models import BookingStatus, LocationType, Region, Weekday


def _enum_values(enum_cls):
    # Persist enum values ("pending", "Paid") rather than member names
    return [member.value for member in enum_cls]


# Define the base class for all models
Base = declarative_base()


class Shop(Base):
    """SQLAlchemy model for a tenant shop. Lives in the default database."""
    __tablename__ = "shops"

    owner_id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    region = Column(Enum(Region, values_callable=_enum_values), nullable=False, default=Region.US)
    currency = Column(String(3), nullable=False, default="usd")
    location_type = Column(Enum(LocationType, values_callable=_enum_values), nullable=False, default=LocationType.PHYSICAL)
    address = Column(String, nullable=False, default="")
    staff_count = Column(Integer, nullable=False, default=0)
    headline = Column(String, nullable=True)
    description = Column(String, nullable=True)
    stripe_account_id = Column(String, nullable=True)
    stripe_connected = Column(Boolean, nullable=False, default=False)


class Service(Base):
    """SQLAlchemy model for a bookable service."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    shop_owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)


class StaffMember(Base):
    """SQLAlchemy model for a staff member."""
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    shop_owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    title = Column(String, nullable=False, default="Barber")
    avatar_url = Column(String, nullable=True)

    # Relationships
    availability = relationship(
        "StaffAvailability",
        back_populates="staff_member",
        cascade="all, delete-orphan",
        order_by="StaffAvailability.id",
    )


class StaffAvailability(Base):
    """SQLAlchemy model for one weekday of a staff member's recurring schedule."""
    __tablename__ = "staff_availability"

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)
    day = Column(Enum(Weekday, values_callable=_enum_values), nullable=False)
    is_working = Column(Boolean, nullable=False, default=False)
    start_time = Column(String(5), nullable=False, default="09:00")
    end_time = Column(String(5), nullable=False, default="17:00")

    # Relationships
    staff_member = relationship("StaffMember", back_populates="availability")

    __table_args__ = (UniqueConstraint('staff_id', 'day', name='uq_staff_day'),)


class TimeOff(Base):
    """SQLAlchemy model for a full-day time-off block."""
    __tablename__ = "time_off"

    id = Column(Integer, primary_key=True, index=True)
    shop_owner_id = Column(String, nullable=False, index=True)
    staff_id = Column(Integer, nullable=False, index=True)
    staff_name = Column(String, nullable=True)
    date = Column(Date, nullable=False)
    reason = Column(String, nullable=False, default="Personal Time Off")


class Booking(Base):
    """SQLAlchemy model for a customer booking."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    shop_owner_id = Column(String, nullable=False, index=True)
    service_id = Column(Integer, nullable=False)
    service_name = Column(String, nullable=False)
    staff_id = Column(Integer, nullable=False, index=True)
    staff_name = Column(String, nullable=False)
    booking_time = Column(DateTime, nullable=False)
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    status = Column(Enum(BookingStatus, values_callable=_enum_values), nullable=False, default=BookingStatus.PENDING)
