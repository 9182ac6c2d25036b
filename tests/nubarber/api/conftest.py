"""Shared fixtures for API tests."""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch, MagicMock

from nubarber.api.deps import get_mailer, get_payments, get_settings
from nubarber.api.main import create_app
from nubarber.db.database import TEST_DATABASE_URL, DatabaseRouter
from nubarber.models import Region
from nubarber.notifications import ConfirmationMailer
from nubarber.payments import StripeGateway

OWNER_ID = "owner-1"


# --- Test API Key Fixture ---
@pytest.fixture
def test_api_key():
    """Valid API key for testing."""
    return "test-api-key"


# --- Mock Settings Fixture ---
@pytest.fixture
def mock_settings(test_api_key):
    """Mock settings for API tests."""
    return {
        "database_url": TEST_DATABASE_URL,
        "api_keys": [test_api_key],
        "public_base_url": "https://nubarber.test",
        "default_currency": "usd",
        "log_level": "INFO",
    }


# --- External Service Fixtures ---
@pytest.fixture
def mock_payments():
    payments = MagicMock(spec=StripeGateway)
    payments.create_checkout_session.return_value = "https://checkout.stripe.com/c/pay/cs_test_123"
    payments.create_connect_account.return_value = ("acct_123", "https://connect.stripe.com/setup/e/acct_123")
    return payments


@pytest.fixture
def mock_mailer():
    mailer = MagicMock(spec=ConfirmationMailer)
    mailer.send_booking_confirmation.return_value = True
    return mailer


# --- Test Client Fixture ---
@pytest.fixture
def client(mock_settings, mock_payments, mock_mailer):
    """
    FastAPI TestClient backed by a fresh in-memory database, with settings
    and external services replaced by mocks.
    """
    db_router = DatabaseRouter({region.value: TEST_DATABASE_URL for region in Region})

    with patch("nubarber.api.deps.get_settings", return_value=mock_settings):
        app = create_app(db_router=db_router)
        app.dependency_overrides[get_settings] = lambda: mock_settings
        app.dependency_overrides[get_payments] = lambda: mock_payments
        app.dependency_overrides[get_mailer] = lambda: mock_mailer

        with TestClient(app) as test_client:
            yield test_client

        # Clean up dependency overrides after tests
        app.dependency_overrides = {}
    db_router.dispose()


@pytest.fixture
def owner_headers(test_api_key):
    return {"api-key": test_api_key, "owner-id": OWNER_ID}


@pytest.fixture
def shop(client, owner_headers):
    """A signed-up shop with one staff member on the default schedule and one service."""
    response = client.post("/api/v1/shops", headers=owner_headers, json={
        "name": "Sharp Cuts",
        "region": "eu",
        "currency": "EUR",
        "location_type": "physical",
        "address": "12 High Street",
        "staff_names": ["Marco"],
    })
    assert response.status_code == 201
    service = client.post("/api/v1/services", headers=owner_headers, json={
        "name": "Skin Fade", "duration_minutes": 30, "price": 35.0,
    }).json()
    staff = client.get("/api/v1/staff", headers=owner_headers).json()
    return {"shop": response.json(), "service": service, "staff": staff[0]}
