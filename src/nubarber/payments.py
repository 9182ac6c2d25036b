import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from .errors import PaymentError
from .models import BookingRecord, Shop

logger = logging.getLogger(__name__)

STRIPE_API_BASE = "https://api.stripe.com/v1"
DEFAULT_PLATFORM_FEE_RATE = 0.10 # 10% of the booking price goes to the platform
# A single attempt per call, never retried
TIMEOUT = httpx.Timeout(20.0, connect=5.0)


def _to_cents(amount: float) -> int:
    return int(round(amount * 100))


def _encode_params(params: Dict[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """
    Flattens nested dicts/lists into Stripe's bracketed form encoding,
    e.g. {"line_items": [{"quantity": 1}]} -> [("line_items[0][quantity]", "1")].
    """
    encoded: List[Tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            encoded.extend(_encode_params(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, dict):
                    encoded.extend(_encode_params(item, item_name))
                else:
                    encoded.append((item_name, str(item)))
        elif isinstance(value, bool):
            encoded.append((name, "true" if value else "false"))
        else:
            encoded.append((name, str(value)))
    return encoded


class StripeGateway:
    """
    Thin client over the Stripe REST API for hosted checkout and Connect onboarding.

    Construct once and pass it to consumers; it holds its own HTTP client.
    """

    def __init__(
        self,
        secret_key: Optional[str],
        api_base: str = STRIPE_API_BASE,
        platform_fee_rate: float = DEFAULT_PLATFORM_FEE_RATE,
        timeout: httpx.Timeout = TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.platform_fee_rate = platform_fee_rate
        self._http = client or httpx.Client(timeout=timeout)

    def _request(self, method: str, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Helper to call Stripe with error handling. POST params are form-encoded."""
        if not self.secret_key:
            raise PaymentError("Stripe is not configured (STRIPE_SECRET_KEY missing)")
        try:
            url = f"{self.api_base}{endpoint}"
            auth = (self.secret_key, "")
            if method == "GET":
                response = self._http.get(url, auth=auth)
            else:
                response = self._http.post(url, data=dict(_encode_params(params or {})), auth=auth)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Stripe returned %s for %s: %s", exc.response.status_code, endpoint, exc.response.text)
            raise PaymentError(f"Stripe returned an error: {exc.response.status_code}") from exc
        except httpx.RequestError as exc:
            logger.error("Stripe request to %s failed: %s", endpoint, exc)
            raise PaymentError(f"Stripe request failed: {exc}") from exc

    def create_checkout_session(self, booking: BookingRecord, shop: Shop, origin: str) -> str:
        """
        Creates a hosted checkout page for a pending booking.

        The payment is a destination charge to the shop's connected account,
        minus the platform fee.

        Args:
            booking: The persisted pending booking (must have an id).
            shop: The shop being paid; must have a connected Stripe account.
            origin: Public base URL used for the success/cancel redirects.

        Returns:
            str: The checkout URL to redirect the customer to.

        Raises:
            PaymentError: If the shop is not connected or Stripe rejects the request.
        """
        if not shop.stripe_account_id or not shop.stripe_connected:
            raise PaymentError("The shop has not connected their Stripe account or the connection is not active.")

        origin = origin.rstrip("/")
        amount = _to_cents(booking.price)
        params = {
            "payment_method_types": ["card"],
            "line_items": [{
                "price_data": {
                    "currency": shop.currency,
                    "product_data": {
                        "name": booking.service_name,
                        "description": f"Appointment with {booking.staff_name}",
                    },
                    "unit_amount": amount,
                },
                "quantity": 1,
            }],
            "customer_email": booking.customer_email,
            "mode": "payment",
            "success_url": (
                f"{origin}/barbers/{shop.owner_id}/thank-you"
                f"?session_id={{CHECKOUT_SESSION_ID}}&booking_id={booking.id}"
            ),
            "cancel_url": f"{origin}/barbers/{shop.owner_id}",
            "metadata": {
                "bookingId": booking.id,
                "shopOwnerId": shop.owner_id,
            },
            "payment_intent_data": {
                "application_fee_amount": int(round(amount * self.platform_fee_rate)),
                "transfer_data": {"destination": shop.stripe_account_id},
            },
        }
        session = self._request("POST", "/checkout/sessions", params)
        url = session.get("url")
        if not url:
            raise PaymentError("Stripe did not return a checkout URL")
        logger.info("Created checkout session %s for booking %s", session.get("id"), booking.id)
        return url

    def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]:
        """Fetches a checkout session so its payment status can be verified."""
        return self._request("GET", f"/checkout/sessions/{quote(session_id, safe='')}")

    def create_connect_account(self, owner_id: str, origin: str, country: str = "US") -> Tuple[str, str]:
        """
        Creates an Express connected account and its onboarding link.

        Returns:
            Tuple[str, str]: (account id, onboarding URL).
        """
        origin = origin.rstrip("/")
        account = self._request("POST", "/accounts", {
            "type": "express",
            "country": country,
            "capabilities": {
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            "metadata": {"shopOwnerId": owner_id},
        })
        account_id = account["id"]
        link = self._request("POST", "/account_links", {
            "account": account_id,
            "refresh_url": f"{origin}/dashboard/settings",
            "return_url": f"{origin}/dashboard/settings?stripe_connected=true",
            "type": "account_onboarding",
        })
        return account_id, link["url"]
