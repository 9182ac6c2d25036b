from nubarber.errors import PaymentError

OWNER_ID = "owner-1"

MONDAY = "2025-06-02"


def _book(client, shop, **overrides):
    body = {
        "service_id": shop["service"]["id"],
        "staff_id": shop["staff"]["id"],
        "date": MONDAY,
        "time": "10:00",
        "customer_name": "Dana Reyes",
        "customer_email": "dana@example.com",
    }
    body.update(overrides)
    return client.post(f"/api/v1/barbers/{OWNER_ID}/bookings", json=body)


def _connect_stripe(client, owner_headers):
    assert client.post("/api/v1/shop/stripe/connect", headers=owner_headers).status_code == 200
    assert client.post("/api/v1/shop/stripe/connected", headers=owner_headers).status_code == 200


# --- Health / Auth ---

def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_owner_routes_require_api_key(client):
    response = client.get("/api/v1/shop", headers={"api-key": "wrong", "owner-id": OWNER_ID})
    assert response.status_code == 401


def test_owner_routes_require_owner_header(client, test_api_key):
    response = client.get("/api/v1/shop", headers={"api-key": test_api_key})
    assert response.status_code == 422


# --- Shop ---

def test_sign_up(client, shop, owner_headers):
    data = shop["shop"]
    assert data["region"] == "eu"
    assert data["currency"] == "eur"
    assert data["staff_count"] == 1
    assert data["headline"] == "Book your next appointment with us"
    assert data["stripe_connected"] is False
    assert "stripe_account_id" not in data

    assert shop["staff"]["name"] == "Marco"
    assert shop["staff"]["title"] == "Barber"


def test_sign_up_twice_is_rejected(client, shop, owner_headers):
    response = client.post("/api/v1/shops", headers=owner_headers, json={
        "name": "Again", "region": "us", "location_type": "mobile", "staff_names": ["Lena"],
    })
    assert response.status_code == 422


def test_unknown_shop(client, test_api_key):
    response = client.get("/api/v1/shop", headers={"api-key": test_api_key, "owner-id": "nobody"})
    assert response.status_code == 404


def test_update_public_site(client, shop, owner_headers):
    response = client.patch("/api/v1/shop/public-site", headers=owner_headers, json={"headline": "Fresh cuts daily"})

    assert response.status_code == 200
    assert response.json()["headline"] == "Fresh cuts daily"
    assert response.json()["description"] == "Easy and fast booking, available 24/7."


def test_stripe_onboarding(client, shop, owner_headers, mock_payments):
    response = client.post("/api/v1/shop/stripe/connect", headers=owner_headers)

    assert response.status_code == 200
    assert response.json() == {"onboarding_url": "https://connect.stripe.com/setup/e/acct_123"}
    mock_payments.create_connect_account.assert_called_once_with(OWNER_ID, "https://nubarber.test")

    response = client.post("/api/v1/shop/stripe/connected", headers=owner_headers)
    assert response.json()["stripe_connected"] is True


def test_mark_connected_without_account(client, shop, owner_headers):
    response = client.post("/api/v1/shop/stripe/connected", headers=owner_headers)
    assert response.status_code == 404


# --- Services / Staff / Time off ---

def test_invalid_service_is_422(client, shop, owner_headers):
    response = client.post("/api/v1/services", headers=owner_headers, json={
        "name": "Free Cut", "duration_minutes": 0, "price": 0,
    })
    assert response.status_code == 422


def test_replace_availability(client, shop, owner_headers):
    staff_id = shop["staff"]["id"]
    response = client.put(f"/api/v1/staff/{staff_id}/availability", headers=owner_headers, json={
        "availability": [{"day": "Saturday", "is_working": True, "start_time": "10:00", "end_time": "12:00"}],
    })

    assert response.status_code == 200
    assert response.json()["availability"] == [
        {"day": "Saturday", "is_working": True, "start_time": "10:00", "end_time": "12:00"},
    ]


def test_time_off_blocks_public_slots(client, shop, owner_headers):
    staff_id = shop["staff"]["id"]
    response = client.post("/api/v1/time-off", headers=owner_headers, json={"staff_id": staff_id, "date": MONDAY})
    assert response.status_code == 201
    assert response.json()["staff_name"] == "Marco"

    slots = client.get(f"/api/v1/barbers/{OWNER_ID}/slots", params={
        "staff_id": staff_id, "service_id": shop["service"]["id"], "date": MONDAY,
    }).json()
    assert slots["slots"] == []

    time_off_id = response.json()["id"]
    assert client.delete(f"/api/v1/time-off/{time_off_id}", headers=owner_headers).status_code == 204
    assert client.get("/api/v1/time-off", headers=owner_headers).json() == []


def test_deleting_staff_clears_their_time_off(client, shop, owner_headers):
    staff_id = shop["staff"]["id"]
    client.post("/api/v1/time-off", headers=owner_headers, json={"staff_id": staff_id, "date": MONDAY})

    assert client.delete(f"/api/v1/staff/{staff_id}", headers=owner_headers).status_code == 204
    assert client.get("/api/v1/time-off", headers=owner_headers).json() == []


# --- Public booking page ---

def test_booking_page(client, shop):
    response = client.get(f"/api/v1/barbers/{OWNER_ID}")

    assert response.status_code == 200
    data = response.json()
    assert data["shop"]["name"] == "Sharp Cuts"
    assert [s["name"] for s in data["services"]] == ["Skin Fade"]
    assert data["heatmap"] == {"density": {}, "levels": {}}


def test_booking_page_unknown_shop(client):
    assert client.get("/api/v1/barbers/nobody").status_code == 404


def test_slots_keep_valid_selection(client, shop):
    params = {"staff_id": shop["staff"]["id"], "service_id": shop["service"]["id"], "date": MONDAY}

    kept = client.get(f"/api/v1/barbers/{OWNER_ID}/slots", params={**params, "selected_time": "09:30"}).json()
    cleared = client.get(f"/api/v1/barbers/{OWNER_ID}/slots", params={**params, "selected_time": "18:00"}).json()

    assert len(kept["slots"]) == 16
    assert kept["selected_time"] == "09:30"
    assert cleared["selected_time"] is None


def test_slots_unknown_staff(client, shop):
    response = client.get(f"/api/v1/barbers/{OWNER_ID}/slots", params={
        "staff_id": 999, "service_id": shop["service"]["id"], "date": MONDAY,
    })
    assert response.status_code == 404


# --- Booking submission ---

def test_direct_booking_without_stripe(client, shop, owner_headers, mock_mailer):
    response = _book(client, shop)

    assert response.status_code == 201
    data = response.json()
    assert data["requires_payment"] is False
    assert data["redirect_url"].endswith(f"/barbers/{OWNER_ID}/thank-you?booking_id={data['booking_id']}&status=confirmed")
    mock_mailer.send_booking_confirmation.assert_called_once()

    heatmap = client.get(f"/api/v1/barbers/{OWNER_ID}").json()["heatmap"]
    assert heatmap == {"density": {MONDAY: 6.25}, "levels": {MONDAY: "low"}}


def test_incomplete_booking_is_rejected(client, shop, owner_headers):
    response = _book(client, shop, customer_name=None)

    assert response.status_code == 422
    assert client.get("/api/v1/clients", headers=owner_headers).json() == []


def test_invalid_email_is_rejected(client, shop):
    assert _book(client, shop, customer_email="not-an-email").status_code == 422


def test_checkout_flow_and_idempotent_confirm(client, shop, owner_headers, mock_payments, mock_mailer):
    _connect_stripe(client, owner_headers)

    response = _book(client, shop)
    assert response.status_code == 201
    data = response.json()
    assert data["requires_payment"] is True
    assert data["redirect_url"] == "https://checkout.stripe.com/c/pay/cs_test_123"
    mock_mailer.send_booking_confirmation.assert_not_called()

    confirm_url = f"/api/v1/barbers/{OWNER_ID}/bookings/{data['booking_id']}/confirm"
    mock_payments.retrieve_checkout_session.return_value = {
        "id": "cs_test_123", "payment_status": "paid", "metadata": {"bookingId": str(data["booking_id"])},
    }
    first = client.post(confirm_url, params={"session_id": "cs_test_123"})
    second = client.post(confirm_url, params={"session_id": "cs_test_123"})

    assert first.json() == {"booking_id": data["booking_id"], "confirmed": True, "status": "Paid"}
    assert second.json()["confirmed"] is False
    mock_mailer.send_booking_confirmation.assert_called_once()

    overview = client.get("/api/v1/overview", headers=owner_headers).json()
    assert overview["total_revenue"] == 35.0


def test_checkout_failure_removes_booking(client, shop, owner_headers, mock_payments):
    _connect_stripe(client, owner_headers)
    mock_payments.create_checkout_session.side_effect = PaymentError("Stripe returned an error: 400")

    response = _book(client, shop)

    assert response.status_code == 502
    schedule = client.get("/api/v1/schedule", headers=owner_headers, params={"date": MONDAY}).json()
    assert schedule["bookings"] == []


def test_confirm_unknown_booking(client, shop):
    response = client.post(f"/api/v1/barbers/{OWNER_ID}/bookings/999/confirm", params={"session_id": "cs_test_123"})
    assert response.status_code == 404


def test_direct_booking_cannot_be_confirmed_as_paid(client, shop, owner_headers, mock_payments):
    booking_id = _book(client, shop).json()["booking_id"]

    response = client.post(f"/api/v1/barbers/{OWNER_ID}/bookings/{booking_id}/confirm", params={"session_id": "anything"})

    assert response.status_code == 422
    mock_payments.retrieve_checkout_session.assert_not_called()
    assert client.get("/api/v1/overview", headers=owner_headers).json()["total_revenue"] == 0


def test_forged_session_is_rejected(client, shop, owner_headers, mock_payments, mock_mailer):
    _connect_stripe(client, owner_headers)
    booking_id = _book(client, shop).json()["booking_id"]
    mock_payments.retrieve_checkout_session.return_value = {
        "id": "cs_other", "payment_status": "paid", "metadata": {"bookingId": str(booking_id + 1)},
    }

    response = client.post(f"/api/v1/barbers/{OWNER_ID}/bookings/{booking_id}/confirm", params={"session_id": "cs_other"})

    assert response.status_code == 422
    mock_payments.retrieve_checkout_session.assert_called_once_with("cs_other")
    mock_mailer.send_booking_confirmation.assert_not_called()
    assert client.get("/api/v1/overview", headers=owner_headers).json()["total_revenue"] == 0


def test_unknown_session_is_bad_gateway(client, shop, owner_headers, mock_payments):
    _connect_stripe(client, owner_headers)
    booking_id = _book(client, shop).json()["booking_id"]
    mock_payments.retrieve_checkout_session.side_effect = PaymentError("Stripe returned an error: 404")

    response = client.post(f"/api/v1/barbers/{OWNER_ID}/bookings/{booking_id}/confirm", params={"session_id": "cs_forged"})

    assert response.status_code == 502
    assert client.get("/api/v1/overview", headers=owner_headers).json()["total_revenue"] == 0


# --- Dashboard ---

def test_schedule_and_clients(client, shop, owner_headers):
    _book(client, shop, time="11:00")
    _book(client, shop, time="09:00", customer_email="sam@example.com", customer_name="Sam")

    schedule = client.get("/api/v1/schedule", headers=owner_headers, params={"date": MONDAY}).json()
    assert [b["booking_time"] for b in schedule["bookings"]] == ["2025-06-02T09:00:00", "2025-06-02T11:00:00"]
    assert schedule["heatmap"]["density"] == {MONDAY: 12.5}

    clients = client.get("/api/v1/clients", headers=owner_headers).json()
    assert {c["email"] for c in clients} == {"dana@example.com", "sam@example.com"}
    assert all(c["appointment_count"] == 1 for c in clients)
