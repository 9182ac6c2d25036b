import html
import logging
from datetime import datetime
from typing import Optional

import resend

from .models import BookingRecord

logger = logging.getLogger(__name__)

DEFAULT_SENDER = "NuBarber <noreply@nubarber.com>"
CONFIRMATION_SUBJECT = "Your Booking is Confirmed!"


def format_booking_time(moment: datetime) -> str:
    # e.g. "Monday, June 2, 2025 at 09:30 AM"
    return f"{moment:%A}, {moment:%B} {moment.day}, {moment.year} at {moment:%I:%M %p}"


def render_booking_confirmation(customer_name: str, booking_time: datetime, service_name: str, staff_name: str) -> str:
    """Renders the confirmation email body as inline-styled HTML."""
    return f"""\
<div style="font-family: sans-serif; padding: 20px; color: #333;">
  <h1 style="color: #2E5266;">{CONFIRMATION_SUBJECT}</h1>
  <p>Hi {html.escape(customer_name)},</p>
  <p>Thank you for booking with us. Here are your appointment details:</p>
  <div style="border: 1px solid #D4DADE; padding: 15px; border-radius: 5px; background-color: #f9fafa;">
    <p><strong>Service:</strong> {html.escape(service_name)}</p>
    <p><strong>With:</strong> {html.escape(staff_name)}</p>
    <p><strong>Date &amp; Time:</strong> {format_booking_time(booking_time)}</p>
  </div>
  <p>We look forward to seeing you!</p>
  <p style="margin-top: 30px; font-size: 12px; color: #999;">- The NuBarber Team</p>
</div>
"""


class ConfirmationMailer:
    """
    Sends booking confirmations through Resend.

    Delivery failures are logged and swallowed: a booking never fails
    because its confirmation email could not be sent.
    """

    def __init__(self, api_key: Optional[str], sender: str = DEFAULT_SENDER):
        self.api_key = api_key
        self.sender = sender
        if api_key:
            resend.api_key = api_key

    def send_booking_confirmation(self, booking: BookingRecord) -> bool:
        """
        Emails the customer their appointment details.

        Returns:
            bool: True if Resend accepted the message.
        """
        if not self.api_key:
            logger.warning("RESEND_API_KEY not set; skipping confirmation email for booking %s", booking.id)
            return False

        try:
            response = resend.Emails.send({
                "from": self.sender,
                "to": [booking.customer_email],
                "subject": CONFIRMATION_SUBJECT,
                "html": render_booking_confirmation(
                    customer_name=booking.customer_name,
                    booking_time=booking.booking_time,
                    service_name=booking.service_name,
                    staff_name=booking.staff_name,
                ),
            })
            logger.info("Confirmation email sent for booking %s: %s", booking.id, response)
            return True
        except Exception as exc:
            logger.error("Failed to send confirmation email for booking %s: %s", booking.id, exc)
            return False
