import pytest
import httpx
from datetime import datetime
from unittest.mock import MagicMock

from nubarber.errors import PaymentError
from nubarber.models import BookingRecord, Shop
from nubarber.payments import StripeGateway, _encode_params


@pytest.fixture
def mock_http():
    """An httpx.Client double returning a canned Stripe response."""
    http = MagicMock(spec=httpx.Client)
    response = MagicMock()
    response.json.return_value = {"id": "cs_test_123", "url": "https://checkout.stripe.com/c/pay/cs_test_123"}
    response.raise_for_status.return_value = None
    http.post.return_value = response
    return http


@pytest.fixture
def booking():
    return BookingRecord(
        id=42, shop_owner_id="owner-1", service_id=1, service_name="Skin Fade", staff_id=1,
        staff_name="Marco", booking_time=datetime(2025, 6, 2, 10, 0), customer_name="Dana Reyes",
        customer_email="dana@example.com", price=35.0,
    )


@pytest.fixture
def shop():
    return Shop(owner_id="owner-1", name="Sharp Cuts", currency="eur", address="12 High St",
                stripe_account_id="acct_123", stripe_connected=True)


def test_encode_params_nested():
    encoded = _encode_params({
        "mode": "payment",
        "line_items": [{"quantity": 1, "price_data": {"unit_amount": 3500}}],
        "payment_method_types": ["card"],
        "capabilities": {"transfers": {"requested": True}},
        "skipped": None,
    })

    assert encoded == [
        ("mode", "payment"),
        ("line_items[0][quantity]", "1"),
        ("line_items[0][price_data][unit_amount]", "3500"),
        ("payment_method_types[0]", "card"),
        ("capabilities[transfers][requested]", "true"),
    ]


def test_create_checkout_session(mock_http, booking, shop):
    gateway = StripeGateway("sk_test_123", client=mock_http)

    url = gateway.create_checkout_session(booking, shop, "https://nubarber.test/")

    assert url == "https://checkout.stripe.com/c/pay/cs_test_123"
    args, kwargs = mock_http.post.call_args
    assert args[0] == "https://api.stripe.com/v1/checkout/sessions"
    assert kwargs["auth"] == ("sk_test_123", "")
    params = dict(kwargs["data"])
    assert params["line_items[0][price_data][unit_amount]"] == "3500"
    assert params["line_items[0][price_data][currency]"] == "eur"
    assert params["payment_intent_data[application_fee_amount]"] == "350"
    assert params["payment_intent_data[transfer_data][destination]"] == "acct_123"
    assert params["success_url"] == (
        "https://nubarber.test/barbers/owner-1/thank-you?session_id={CHECKOUT_SESSION_ID}&booking_id=42"
    )
    assert params["cancel_url"] == "https://nubarber.test/barbers/owner-1"


def test_checkout_requires_connected_account(mock_http, booking, shop):
    gateway = StripeGateway("sk_test_123", client=mock_http)

    with pytest.raises(PaymentError):
        gateway.create_checkout_session(booking, shop.copy(update={"stripe_connected": False}), "https://nubarber.test")
    mock_http.post.assert_not_called()


def test_missing_secret_key(mock_http, booking, shop):
    with pytest.raises(PaymentError):
        StripeGateway(None, client=mock_http).create_checkout_session(booking, shop, "https://nubarber.test")


def test_stripe_http_error_is_wrapped(mock_http, booking, shop):
    error_response = MagicMock(status_code=400, text='{"error": {"message": "Invalid currency"}}')
    mock_http.post.return_value.raise_for_status.side_effect = httpx.HTTPStatusError(
        "400 Bad Request", request=MagicMock(), response=error_response
    )

    with pytest.raises(PaymentError, match="400"):
        StripeGateway("sk_test_123", client=mock_http).create_checkout_session(booking, shop, "https://nubarber.test")


def test_network_error_is_wrapped(mock_http, booking, shop):
    mock_http.post.side_effect = httpx.ConnectError("connection refused")

    with pytest.raises(PaymentError):
        StripeGateway("sk_test_123", client=mock_http).create_checkout_session(booking, shop, "https://nubarber.test")
    # Attempted once, never retried
    assert mock_http.post.call_count == 1


def test_retrieve_checkout_session(mock_http):
    mock_http.get.return_value.json.return_value = {
        "id": "cs_test_123", "payment_status": "paid", "metadata": {"bookingId": "42"},
    }

    session = StripeGateway("sk_test_123", client=mock_http).retrieve_checkout_session("cs_test_123")

    assert session["payment_status"] == "paid"
    args, kwargs = mock_http.get.call_args
    assert args[0] == "https://api.stripe.com/v1/checkout/sessions/cs_test_123"
    assert kwargs["auth"] == ("sk_test_123", "")
    mock_http.post.assert_not_called()


def test_retrieve_unknown_session_is_wrapped(mock_http):
    error_response = MagicMock(status_code=404, text='{"error": {"message": "No such checkout.session"}}')
    mock_http.get.return_value.raise_for_status.side_effect = httpx.HTTPStatusError(
        "404 Not Found", request=MagicMock(), response=error_response
    )

    with pytest.raises(PaymentError, match="404"):
        StripeGateway("sk_test_123", client=mock_http).retrieve_checkout_session("cs_forged")


def test_retrieve_escapes_session_id(mock_http):
    mock_http.get.return_value.json.return_value = {}

    StripeGateway("sk_test_123", client=mock_http).retrieve_checkout_session("../accounts")

    assert mock_http.get.call_args.args[0] == "https://api.stripe.com/v1/checkout/sessions/..%2Faccounts"


def test_create_connect_account(mock_http):
    account = MagicMock()
    account.json.return_value = {"id": "acct_456"}
    link = MagicMock()
    link.json.return_value = {"url": "https://connect.stripe.com/setup/e/acct_456"}
    mock_http.post.side_effect = [account, link]

    account_id, url = StripeGateway("sk_test_123", client=mock_http).create_connect_account("owner-1", "https://nubarber.test")

    assert account_id == "acct_456"
    assert url == "https://connect.stripe.com/setup/e/acct_456"
    link_params = dict(mock_http.post.call_args_list[1].kwargs["data"])
    assert link_params["return_url"] == "https://nubarber.test/dashboard/settings?stripe_connected=true"
    assert link_params["type"] == "account_onboarding"
