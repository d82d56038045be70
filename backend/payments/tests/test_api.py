from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from accounts.models import User
from bookings.models import Booking
from bookings.services.bookings import create_booking
from catalog.models import Service
from payments import api
from payments.models import Payment
from payments.services.gateway import PaymentGatewayError, StubGateway


class FailingGateway(StubGateway):
    def create_checkout_session(self, **kwargs):
        raise PaymentGatewayError("Stripe rejected the checkout session: bad image")


@pytest.fixture
def gateway(monkeypatch):
    stub = StubGateway()
    monkeypatch.setattr(api, "get_payment_gateway", lambda: stub)
    return stub


@pytest.fixture
def customer(db):
    return User.objects.create_user(
        username="customer@example.com",
        email="customer@example.com",
        password="password123",
        display_name="Rafi Customer",
    )


@pytest.fixture
def client(customer):
    client = APIClient()
    client.force_authenticate(customer)
    return client


@pytest.fixture
def service(db):
    return Service.objects.create(
        name="Living Room Makeover",
        description="Full styling of one room.",
        price=Decimal("500.00"),
        unit="per room",
        image="https://images.example.com/room.jpg",
        category="home",
        provider_name="Priya Provider",
        provider_email="provider@example.com",
    )


@pytest.fixture
def booking(customer, service):
    return create_booking(customer=customer, service=service, location="Sylhet")


def _checkout_payload(service, booking=None, **overrides):
    payload = {
        "service": {
            "id": str(service.pk),
            "name": service.name,
            "image": service.image,
            "description": service.description,
        },
        "totalPrice": "500.00",
    }
    if booking is not None:
        payload["bookingId"] = str(booking.pk)
    payload.update(overrides)
    return payload


def _session_from(response) -> str:
    return response.json()["url"].split("session=")[1].split("&")[0]


def _checkout(client, gateway, service, booking):
    response = client.post(
        "/api/create-checkout-session/",
        _checkout_payload(service, booking),
        format="json",
    )
    assert response.status_code == 200
    return _session_from(response)


@pytest.mark.django_db
def test_endpoints_require_authentication(service):
    client = APIClient()

    checkout = client.post("/api/create-checkout-session/", _checkout_payload(service), format="json")
    success = client.post("/api/payment-success/", {"sessionId": "cs_test_1"}, format="json")

    assert checkout.status_code == 401
    assert success.status_code == 401


@pytest.mark.django_db
def test_checkout_returns_gateway_url_without_writing(client, gateway, settings, service, booking):
    settings.FRONTEND_URL = "https://app.test"
    bookings_before = list(Booking.objects.values_list("id", "status"))

    response = client.post(
        "/api/create-checkout-session/",
        _checkout_payload(service, booking),
        format="json",
    )

    assert response.status_code == 200
    assert response.json() == {"url": gateway.retrieve_session(_session_from(response)).url}
    assert response.json()["url"].startswith("https://app.test/payments/preview?")
    assert list(Booking.objects.values_list("id", "status")) == bookings_before
    assert Payment.objects.count() == 0


@pytest.mark.django_db
def test_checkout_defaults_payer_and_location_from_account_and_booking(client, gateway, service, booking):
    session_id = _checkout(client, gateway, service, booking)

    session = gateway.retrieve_session(session_id)
    assert session.customer_email == "customer@example.com"
    assert session.metadata == {
        "serviceId": str(service.pk),
        "bookingId": str(booking.pk),
        "customer": "Rafi Customer",
        "location": "Sylhet",
    }
    assert session.amount_total == 50000


@pytest.mark.django_db
def test_checkout_rejects_unknown_or_paid_booking(client, gateway, service, booking):
    missing = client.post(
        "/api/create-checkout-session/",
        _checkout_payload(service, bookingId="999999"),
        format="json",
    )
    Booking.objects.filter(pk=booking.pk).update(status=Booking.PAID)
    paid = client.post(
        "/api/create-checkout-session/",
        _checkout_payload(service, booking),
        format="json",
    )

    assert missing.status_code == 400
    assert "bookingId" in missing.json()
    assert paid.status_code == 400
    assert paid.json()["bookingId"] == ["Booking is already paid."]


@pytest.mark.django_db
def test_checkout_rejects_service_other_than_booked(client, gateway, service, booking):
    payload = _checkout_payload(service, booking)
    payload["service"]["id"] = str(service.pk + 1)

    response = client.post("/api/create-checkout-session/", payload, format="json")

    assert response.status_code == 400
    assert response.json()["service"] == ["Service does not match the booking."]
    assert gateway._sessions == {}


@pytest.mark.django_db
def test_checkout_rejects_malformed_price(client, gateway, service):
    response = client.post(
        "/api/create-checkout-session/",
        _checkout_payload(service, totalPrice="10.555"),
        format="json",
    )

    assert response.status_code == 400
    assert "totalPrice" in response.json()


@pytest.mark.django_db
def test_checkout_for_someone_elses_booking_is_forbidden(gateway, service, booking):
    stranger = User.objects.create_user(username="s@example.com", email="s@example.com", password="password123")
    staff = User.objects.create_user(
        username="admin@example.com", email="admin@example.com", password="password123", is_staff=True
    )
    client = APIClient()

    client.force_authenticate(stranger)
    forbidden = client.post("/api/create-checkout-session/", _checkout_payload(service, booking), format="json")
    client.force_authenticate(staff)
    allowed = client.post("/api/create-checkout-session/", _checkout_payload(service, booking), format="json")

    assert forbidden.status_code == 403
    assert allowed.status_code == 200


@pytest.mark.django_db
def test_checkout_gateway_failure_is_bad_gateway(client, monkeypatch, service):
    monkeypatch.setattr(api, "get_payment_gateway", lambda: FailingGateway())

    response = client.post("/api/create-checkout-session/", _checkout_payload(service), format="json")

    assert response.status_code == 502
    assert "bad image" in response.json()["detail"]


@pytest.mark.django_db
def test_checkout_without_stripe_key_is_server_error(client, settings, service):
    settings.STRIPE_USE_STUB = False
    settings.STRIPE_SECRET_KEY = ""

    response = client.post("/api/create-checkout-session/", _checkout_payload(service), format="json")

    assert response.status_code == 500


@pytest.mark.django_db
def test_payment_success_records_once(client, gateway, service, booking):
    session_id = _checkout(client, gateway, service, booking)
    gateway.complete_session(session_id)

    first = client.post("/api/payment-success/", {"sessionId": session_id}, format="json")
    second = client.post("/api/payment-success/", {"sessionId": session_id}, format="json")

    assert first.status_code == 201
    assert first.json()["status"] == "recorded"
    assert second.status_code == 200
    assert second.json() == {**first.json(), "status": "already_recorded"}
    payment = Payment.objects.get()
    assert first.json()["transactionId"] == payment.transaction_id
    assert first.json()["orderId"] == str(payment.pk)
    booking.refresh_from_db()
    assert booking.status == Booking.PAID


@pytest.mark.django_db
def test_payment_success_for_open_session_is_accepted_noop(client, gateway, service, booking):
    session_id = _checkout(client, gateway, service, booking)

    response = client.post("/api/payment-success/", {"sessionId": session_id}, format="json")

    assert response.status_code == 202
    assert response.json()["status"] == "not_complete"
    assert Payment.objects.count() == 0


@pytest.mark.django_db
def test_payment_success_for_deleted_booking_is_accepted_noop(client, gateway, service, booking):
    session_id = _checkout(client, gateway, service, booking)
    gateway.complete_session(session_id)
    booking.delete()

    response = client.post("/api/payment-success/", {"sessionId": session_id}, format="json")

    assert response.status_code == 202
    assert response.json()["status"] == "booking_not_found"
    assert Payment.objects.count() == 0


@pytest.mark.django_db
def test_payment_success_validation_and_gateway_errors(client, gateway):
    missing = client.post("/api/payment-success/", {}, format="json")
    unknown = client.post("/api/payment-success/", {"sessionId": "cs_unknown"}, format="json")

    assert missing.status_code == 400
    assert "sessionId" in missing.json()
    assert unknown.status_code == 502
