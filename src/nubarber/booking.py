"""
Booking submission and payment confirmation.

Lifecycle of a booking record:

    (submit) -> pending --(payment confirmed)--> Paid

A pending record is written before the checkout session exists. If creating
the session (or sending the direct-booking email) fails, the record is
deleted again. A failure of that delete is logged and the orphaned pending
record stays behind; nothing is retried.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List

from .availability import generate_time_slots
from .data_interface import ShopStore
from .errors import BookingNotFoundError, BookingValidationError
from .models import BookingOutcome, BookingRecord, BookingRequest, BookingStatus, Shop
from .notifications import ConfirmationMailer
from .payments import StripeGateway
from .utils import parse_hhmm

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("service_id", "staff_id", "date", "time", "customer_name", "customer_email")


def missing_fields(request: BookingRequest) -> List[str]:
    """Names of required booking form fields that are empty."""
    missing = []
    for field in REQUIRED_FIELDS:
        value = getattr(request, field)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)
    return missing


def session_pays_for(session: Dict[str, Any], booking_id: int) -> bool:
    """True if a Stripe checkout session was paid and was created for this booking."""
    metadata = session.get("metadata") or {}
    return session.get("payment_status") == "paid" and metadata.get("bookingId") == str(booking_id)


class BookingWorkflow:
    """
    Orchestrates a customer booking for one shop.

    Collaborators are injected: the shop's data store, the payment gateway
    and the confirmation mailer.
    """

    def __init__(
        self,
        store: ShopStore,
        shop: Shop,
        payments: StripeGateway,
        mailer: ConfirmationMailer,
        public_base_url: str,
    ):
        self.store = store
        self.shop = shop
        self.payments = payments
        self.mailer = mailer
        self.public_base_url = public_base_url.rstrip("/")

    def thank_you_url(self, booking_id: int) -> str:
        return f"{self.public_base_url}/barbers/{self.shop.owner_id}/thank-you?booking_id={booking_id}&status=confirmed"

    def _build_record(self, request: BookingRequest) -> BookingRecord:
        """Validates the form against the shop's data and builds the pending record."""
        missing = missing_fields(request)
        if missing:
            raise BookingValidationError(f"Please fill all fields to book. Missing: {', '.join(missing)}")

        try:
            start = parse_hhmm(request.time)
        except ValueError as exc:
            raise BookingValidationError(str(exc)) from exc

        service = self.store.get_service(request.service_id)
        if service is None:
            raise BookingValidationError(f"Unknown service {request.service_id}")
        staff = self.store.get_staff(request.staff_id)
        if staff is None:
            raise BookingValidationError(f"Unknown staff member {request.staff_id}")

        slots = generate_time_slots(
            staff.availability,
            self.store.list_time_off(),
            request.date,
            service.duration_minutes,
            staff_id=staff.id,
        )
        if request.time not in slots:
            raise BookingValidationError(f"{request.time} is not available with {staff.name} on {request.date.isoformat()}")

        return BookingRecord(
            shop_owner_id=self.shop.owner_id,
            service_id=service.id,
            service_name=service.name,
            staff_id=staff.id,
            staff_name=staff.name,
            booking_time=datetime.combine(request.date, start),
            customer_name=request.customer_name.strip(),
            customer_email=request.customer_email.strip(),
            price=service.price,
            status=BookingStatus.PENDING,
        )

    def _discard(self, booking_id: int) -> None:
        """Compensating delete for a booking whose follow-up step failed."""
        try:
            self.store.delete_booking(booking_id)
            logger.info("Removed pending booking %s after a failed submission", booking_id)
        except Exception as exc:
            logger.error("Could not remove pending booking %s; it remains orphaned: %s", booking_id, exc)

    def submit(self, request: BookingRequest) -> BookingOutcome:
        """
        Creates a booking and decides where to send the customer next.

        Shops with Stripe connected get a hosted checkout URL; other shops
        confirm immediately and get the thank-you page.

        Raises:
            BookingValidationError: Incomplete form or unavailable slot; nothing is written.
            ExternalServiceError: Storage or payment failure; the pending record is removed.
        """
        record = self._build_record(request)
        booking = self.store.add_booking(record)
        logger.info("Created pending booking %s for shop %s", booking.id, self.shop.owner_id)

        try:
            if self.shop.requires_payment:
                url = self.payments.create_checkout_session(booking, self.shop, self.public_base_url)
                return BookingOutcome(booking_id=booking.id, redirect_url=url, requires_payment=True)

            self.mailer.send_booking_confirmation(booking)
            return BookingOutcome(booking_id=booking.id, redirect_url=self.thank_you_url(booking.id), requires_payment=False)
        except Exception:
            logger.exception("Booking %s failed after the record was created", booking.id)
            self._discard(booking.id)
            raise

    def confirm_payment(self, booking_id: int, session_id: str) -> bool:
        """
        Marks a booking Paid after the customer returns from checkout.

        The checkout session is fetched from Stripe and must be paid and
        created for this booking. Shops without Stripe connected have no
        online payment to confirm, so their bookings are never moved to Paid here.

        Only the first confirmation has any effect: later calls (or a booking
        that is already Paid) change nothing and send no email.

        Returns:
            bool: True if this call moved the booking to Paid.

        Raises:
            BookingValidationError: Missing, unpaid or foreign session, or a shop without Stripe.
            BookingNotFoundError: No such booking in this shop.
            PaymentError: Stripe could not be reached.
        """
        if not session_id:
            raise BookingValidationError("Missing checkout session id")

        booking = self.store.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")

        if not self.shop.requires_payment:
            raise BookingValidationError(f"Shop {self.shop.owner_id} does not take online payments")

        session = self.payments.retrieve_checkout_session(session_id)
        if not session_pays_for(session, booking_id):
            logger.warning("Checkout session %s does not cover booking %s; not confirming", session_id, booking_id)
            raise BookingValidationError(f"Checkout session {session_id} is not a completed payment for booking {booking_id}")

        if not self.store.mark_booking_paid(booking_id):
            logger.info("Booking %s already confirmed; ignoring duplicate confirmation", booking_id)
            return False

        logger.info("Booking %s confirmed via checkout session %s", booking_id, session_id)
        self.mailer.send_booking_confirmation(booking)
        return True
