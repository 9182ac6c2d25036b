"""
Data access for shops and their tenant data.

`ShopRegistry` reads/writes the `shops` table in the default database.
`ShopStore` is bound to one shop owner and one (regional) session; every
query it issues is filtered by that owner id. Each write commits on its own:
there are no transactions spanning several operations.
"""

import logging
from contextlib import contextmanager
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .availability import default_weekly_availability, validate_weekly_availability
from .db import models as db_models
from .errors import ExternalServiceError, InputValidationError, NotFoundError, ShopNotFoundError
from .models import (
    BookingRecord, BookingStatus, LocationType, Service, Shop, StaffMember,
    TimeOffEntry, WeeklyAvailability, DEFAULT_STAFF_TITLE, DEFAULT_TIME_OFF_REASON,
)

logger = logging.getLogger(__name__)


@contextmanager
def _storage(session: Session, action: str):
    """Rolls back and wraps database failures as external-service errors."""
    try:
        yield
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Storage error while %s: %s", action, exc)
        raise ExternalServiceError(f"Storage error while {action}") from exc


# --- Conversion Functions (DB Row -> Internal Model) ---

def _db_shop_to_internal(row: db_models.Shop) -> Shop:
    return Shop(
        owner_id=row.owner_id,
        name=row.name,
        region=row.region,
        currency=row.currency,
        location_type=row.location_type,
        address=row.address,
        staff_count=row.staff_count,
        headline=row.headline,
        description=row.description,
        stripe_account_id=row.stripe_account_id,
        stripe_connected=bool(row.stripe_connected),
    )

def _db_service_to_internal(row: db_models.Service) -> Service:
    return Service(
        id=row.id,
        shop_owner_id=row.shop_owner_id,
        name=row.name,
        duration_minutes=row.duration_minutes,
        price=row.price,
    )

def _db_staff_to_internal(row: db_models.StaffMember) -> StaffMember:
    return StaffMember(
        id=row.id,
        shop_owner_id=row.shop_owner_id,
        name=row.name,
        title=row.title,
        avatar_url=row.avatar_url,
        availability=[
            WeeklyAvailability(
                day=entry.day,
                is_working=entry.is_working,
                start_time=entry.start_time,
                end_time=entry.end_time,
            )
            for entry in row.availability
        ],
    )

def _db_time_off_to_internal(row: db_models.TimeOff) -> TimeOffEntry:
    return TimeOffEntry(
        id=row.id,
        shop_owner_id=row.shop_owner_id,
        staff_id=row.staff_id,
        staff_name=row.staff_name,
        date=row.date,
        reason=row.reason,
    )

def _db_booking_to_internal(row: db_models.Booking) -> BookingRecord:
    return BookingRecord(
        id=row.id,
        shop_owner_id=row.shop_owner_id,
        service_id=row.service_id,
        service_name=row.service_name,
        staff_id=row.staff_id,
        staff_name=row.staff_name,
        booking_time=row.booking_time,
        customer_name=row.customer_name,
        customer_email=row.customer_email,
        price=row.price,
        status=row.status,
    )

def _availability_rows(entries: Iterable[WeeklyAvailability]) -> List[db_models.StaffAvailability]:
    return [
        db_models.StaffAvailability(
            day=entry.day,
            is_working=entry.is_working,
            start_time=entry.start_time,
            end_time=entry.end_time,
        )
        for entry in entries
    ]


class ShopRegistry:
    """Shop documents, always stored in the default database."""

    def __init__(self, session: Session):
        self.session = session

    def _get_row(self, owner_id: str) -> Optional[db_models.Shop]:
        with _storage(self.session, "fetching shop"):
            return self.session.get(db_models.Shop, owner_id)

    def _require_row(self, owner_id: str) -> db_models.Shop:
        row = self._get_row(owner_id)
        if row is None:
            raise ShopNotFoundError(f"Shop {owner_id} not found")
        return row

    def get_shop(self, owner_id: str) -> Optional[Shop]:
        row = self._get_row(owner_id)
        return _db_shop_to_internal(row) if row else None

    def require_shop(self, owner_id: str) -> Shop:
        return _db_shop_to_internal(self._require_row(owner_id))

    def create_shop(self, shop: Shop) -> Shop:
        """
        Registers a new shop.

        Physical shops need an address; mobile shops are stored with the
        address "Mobile".
        """
        if self._get_row(shop.owner_id) is not None:
            raise InputValidationError(f"Shop {shop.owner_id} already exists")
        if shop.location_type == LocationType.PHYSICAL and not shop.address.strip():
            raise InputValidationError("A physical shop needs a business address")

        address = shop.address if shop.location_type == LocationType.PHYSICAL else "Mobile"
        row = db_models.Shop(**shop.copy(update={"address": address}).dict())
        with _storage(self.session, "creating shop"):
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        return _db_shop_to_internal(row)

    def update_shop(self, owner_id: str, **fields) -> Shop:
        """Merges the given (non-None) fields into the shop document."""
        row = self._require_row(owner_id)
        for field, value in fields.items():
            if value is not None:
                setattr(row, field, value)
        with _storage(self.session, "updating shop"):
            self.session.commit()
            self.session.refresh(row)
        return _db_shop_to_internal(row)

    def set_stripe_account(self, owner_id: str, account_id: str) -> Shop:
        return self.update_shop(owner_id, stripe_account_id=account_id)

    def mark_stripe_connected(self, owner_id: str) -> Shop:
        return self.update_shop(owner_id, stripe_connected=True)


class ShopStore:
    """Services, staff, time off and bookings of one shop owner."""

    def __init__(self, session: Session, owner_id: str):
        self.session = session
        self.owner_id = owner_id

    # --- helpers ---

    def _get_owned(self, model, record_id: int):
        with _storage(self.session, f"fetching {model.__tablename__}"):
            row = self.session.get(model, record_id)
        if row is None or row.shop_owner_id != self.owner_id:
            return None
        return row

    def _require_owned(self, model, record_id: int):
        row = self._get_owned(model, record_id)
        if row is None:
            raise NotFoundError(f"{model.__tablename__} record {record_id} not found")
        return row

    def _list(self, stmt) -> list:
        with _storage(self.session, "listing records"):
            return list(self.session.execute(stmt).scalars().all())

    def _save(self, row, action: str):
        with _storage(self.session, action):
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        return row

    def _delete(self, model, record_id: int) -> None:
        row = self._require_owned(model, record_id)
        with _storage(self.session, f"deleting {model.__tablename__}"):
            self.session.delete(row)
            self.session.commit()

    # --- services ---

    def list_services(self) -> List[Service]:
        stmt = select(db_models.Service).where(db_models.Service.shop_owner_id == self.owner_id).order_by(db_models.Service.id)
        return [_db_service_to_internal(row) for row in self._list(stmt)]

    def get_service(self, service_id: int) -> Optional[Service]:
        row = self._get_owned(db_models.Service, service_id)
        return _db_service_to_internal(row) if row else None

    def create_service(self, name: str, duration_minutes: int, price: float) -> Service:
        _validate_service(name, duration_minutes, price)
        row = db_models.Service(shop_owner_id=self.owner_id, name=name, duration_minutes=duration_minutes, price=price)
        return _db_service_to_internal(self._save(row, "creating service"))

    def update_service(self, service_id: int, name: str, duration_minutes: int, price: float) -> Service:
        _validate_service(name, duration_minutes, price)
        row = self._require_owned(db_models.Service, service_id)
        row.name = name
        row.duration_minutes = duration_minutes
        row.price = price
        return _db_service_to_internal(self._save(row, "updating service"))

    def delete_service(self, service_id: int) -> None:
        self._delete(db_models.Service, service_id)

    # --- staff ---

    def list_staff(self) -> List[StaffMember]:
        stmt = (
            select(db_models.StaffMember)
            .where(db_models.StaffMember.shop_owner_id == self.owner_id)
            .options(selectinload(db_models.StaffMember.availability))
            .order_by(db_models.StaffMember.id)
        )
        return [_db_staff_to_internal(row) for row in self._list(stmt)]

    def get_staff(self, staff_id: int) -> Optional[StaffMember]:
        row = self._get_owned(db_models.StaffMember, staff_id)
        return _db_staff_to_internal(row) if row else None

    def create_staff(
        self,
        name: str,
        title: str = DEFAULT_STAFF_TITLE,
        avatar_url: Optional[str] = None,
        availability: Optional[List[WeeklyAvailability]] = None,
    ) -> StaffMember:
        """Adds a staff member; the default weekly schedule applies unless one is given."""
        if not name or not name.strip():
            raise InputValidationError("Staff name is required")
        entries = validate_weekly_availability(availability) if availability else default_weekly_availability()
        row = db_models.StaffMember(
            shop_owner_id=self.owner_id,
            name=name.strip(),
            title=title or DEFAULT_STAFF_TITLE,
            avatar_url=avatar_url,
            availability=_availability_rows(entries),
        )
        return _db_staff_to_internal(self._save(row, "creating staff member"))

    def update_staff(self, staff_id: int, name: str, title: str) -> StaffMember:
        if not name or not name.strip() or not title:
            raise InputValidationError("Staff name and title are required")
        row = self._require_owned(db_models.StaffMember, staff_id)
        row.name = name.strip()
        row.title = title
        return _db_staff_to_internal(self._save(row, "updating staff member"))

    def replace_availability(self, staff_id: int, entries: List[WeeklyAvailability]) -> StaffMember:
        """Overwrites the staff member's weekly schedule wholesale."""
        entries = validate_weekly_availability(entries)
        row = self._require_owned(db_models.StaffMember, staff_id)
        row.availability = []
        # Flush the removals first so the (staff_id, day) unique constraint holds
        with _storage(self.session, "clearing availability"):
            self.session.flush()
        row.availability = _availability_rows(entries)
        return _db_staff_to_internal(self._save(row, "saving availability"))

    def delete_staff(self, staff_id: int) -> None:
        """Removes the staff member together with their time-off entries."""
        row = self._require_owned(db_models.StaffMember, staff_id)
        with _storage(self.session, "deleting staff"):
            self.session.execute(
                delete(db_models.TimeOff)
                .where(db_models.TimeOff.shop_owner_id == self.owner_id)
                .where(db_models.TimeOff.staff_id == staff_id)
            )
            self.session.delete(row)
            self.session.commit()

    # --- time off ---

    def list_time_off(self) -> List[TimeOffEntry]:
        stmt = (
            select(db_models.TimeOff)
            .where(db_models.TimeOff.shop_owner_id == self.owner_id)
            .order_by(db_models.TimeOff.date, db_models.TimeOff.id)
        )
        return [_db_time_off_to_internal(row) for row in self._list(stmt)]

    def create_time_off(self, staff_id: int, day: date, reason: Optional[str] = None) -> TimeOffEntry:
        staff = self.get_staff(staff_id)
        if staff is None:
            raise NotFoundError(f"staff record {staff_id} not found")
        row = db_models.TimeOff(
            shop_owner_id=self.owner_id,
            staff_id=staff_id,
            staff_name=staff.name,
            date=day,
            reason=reason or DEFAULT_TIME_OFF_REASON,
        )
        return _db_time_off_to_internal(self._save(row, "creating time off"))

    def delete_time_off(self, time_off_id: int) -> None:
        self._delete(db_models.TimeOff, time_off_id)

    # --- bookings ---

    def list_bookings(self) -> List[BookingRecord]:
        stmt = (
            select(db_models.Booking)
            .where(db_models.Booking.shop_owner_id == self.owner_id)
            .order_by(db_models.Booking.booking_time, db_models.Booking.id)
        )
        return [_db_booking_to_internal(row) for row in self._list(stmt)]

    def get_booking(self, booking_id: int) -> Optional[BookingRecord]:
        row = self._get_owned(db_models.Booking, booking_id)
        return _db_booking_to_internal(row) if row else None

    def add_booking(self, record: BookingRecord) -> BookingRecord:
        row = db_models.Booking(**record.dict(exclude={"id"}))
        row.shop_owner_id = self.owner_id
        return _db_booking_to_internal(self._save(row, "creating booking"))

    def delete_booking(self, booking_id: int) -> None:
        self._delete(db_models.Booking, booking_id)

    def mark_booking_paid(self, booking_id: int) -> bool:
        """
        Moves a booking from pending to Paid.

        The update is conditional on the stored status, so only one caller
        can win; returns False when the booking was not pending.
        """
        stmt = (
            update(db_models.Booking)
            .where(
                db_models.Booking.id == booking_id,
                db_models.Booking.shop_owner_id == self.owner_id,
                db_models.Booking.status == BookingStatus.PENDING,
            )
            .values(status=BookingStatus.PAID)
        )
        with _storage(self.session, "confirming booking"):
            result = self.session.execute(stmt)
            self.session.commit()
        return result.rowcount == 1


def _validate_service(name: str, duration_minutes: int, price: float) -> None:
    if not name or not name.strip():
        raise InputValidationError("Service name is required")
    if duration_minutes is None or duration_minutes <= 0:
        raise InputValidationError("Service duration must be a positive number of minutes")
    if price is None or price < 0:
        raise InputValidationError("Service price cannot be negative")
