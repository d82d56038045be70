import logging
from decimal import Decimal

import pytest
from django.db import DatabaseError

from accounts.models import User
from bookings.models import Booking
from bookings.services.store import BookingStore
from payments.models import Payment
from payments.services.checkout import CheckoutContext, CheckoutSessionInitiator
from payments.services.gateway import StubGateway
from payments.services.ledger import PaymentLedger
from payments.services.reconciliation import (
    ReconciliationResult,
    ReconciliationService,
    settle_recorded_bookings,
)


@pytest.fixture
def customer(db):
    return User.objects.create_user(
        username="customer@example.com",
        email="customer@example.com",
        password="password123",
        display_name="Rafi Customer",
    )


@pytest.fixture
def booking(customer):
    return Booking.objects.create(
        customer=customer,
        customer_name="Rafi Customer",
        customer_email="customer@example.com",
        service_ref="S1",
        service={
            "id": "S1",
            "name": "Living Room Makeover",
            "description": "Full styling of one room.",
            "price": "500.00",
            "unit": "per room",
            "image": "https://images.example.com/room.jpg",
            "category": "home",
            "provider": {"name": "Priya Provider", "email": "provider@example.com"},
        },
        location="Dhaka",
    )


@pytest.fixture
def gateway():
    return StubGateway()


def _start_checkout(gateway, *, booking_id=None, service_id="S1", total_price="500", location="Chattogram"):
    redirect = CheckoutSessionInitiator(gateway).create_session(
        CheckoutContext(
            booking_id=str(booking_id) if booking_id else None,
            service_id=service_id,
            service_name="Living Room Makeover",
            total_price=Decimal(total_price),
            customer_name="Rafi Customer",
            customer_email="customer@example.com",
            location=location,
        )
    )
    return redirect.session_id


class StaleReadLedger(PaymentLedger):
    """Misses the first lookup, like a racer that checked before the winner inserted."""

    def __init__(self):
        self.stale_reads = 1

    def find_by_transaction_id(self, transaction_id):
        if self.stale_reads:
            self.stale_reads -= 1
            return None
        return super().find_by_transaction_id(transaction_id)


class BrokenBookingStore(BookingStore):
    def update_status_by_key(self, booking_id, status=Booking.PAID):
        raise DatabaseError("connection lost")


@pytest.mark.django_db
def test_completed_session_records_payment_and_marks_booking_paid(gateway, booking):
    session_id = _start_checkout(gateway)
    gateway.complete_session(session_id)
    transaction_id = gateway.retrieve_session(session_id).payment_intent

    result = ReconciliationService(gateway).complete_payment(session_id)

    assert result.outcome == ReconciliationResult.RECORDED
    assert result.transaction_id == transaction_id
    payment = Payment.objects.get()
    assert result.order_id == str(payment.pk)
    assert payment.booking == booking
    assert payment.service_id == "S1"
    assert payment.price == Decimal("500.00")
    assert payment.quantity == 1
    assert payment.currency == "bdt"
    assert payment.status == Payment.PAID
    assert payment.customer_name == "Rafi Customer"
    assert payment.customer_email == "customer@example.com"
    assert payment.provider_name == "Priya Provider"
    assert payment.provider_email == "provider@example.com"
    assert payment.service_name == "Living Room Makeover"
    assert payment.service_category == "home"
    assert payment.service_unit == "per room"
    assert payment.location == "Chattogram"
    assert payment.checkout_session_id == session_id
    booking.refresh_from_db()
    assert booking.status == Booking.PAID
    assert booking.service_view["status"] == "paid"


@pytest.mark.django_db
def test_repeat_confirmation_returns_same_ids_without_writes(
    gateway, booking, django_assert_num_queries
):
    session_id = _start_checkout(gateway, booking_id=booking.pk)
    gateway.complete_session(session_id)
    service = ReconciliationService(gateway)
    first = service.complete_payment(session_id)
    booking.refresh_from_db()
    paid_at = booking.paid_at

    # only the ledger lookup runs on a replay
    with django_assert_num_queries(1):
        second = service.complete_payment(session_id)

    assert second.outcome == ReconciliationResult.ALREADY_RECORDED
    assert (second.transaction_id, second.order_id) == (first.transaction_id, first.order_id)
    assert Payment.objects.count() == 1
    booking.refresh_from_db()
    assert booking.paid_at == paid_at


@pytest.mark.django_db
def test_ledger_price_comes_from_gateway_amount(gateway, booking):
    session_id = _start_checkout(gateway, total_price="500")
    gateway.complete_session(session_id, amount_total=45050)

    ReconciliationService(gateway).complete_payment(session_id)

    assert Payment.objects.get().price == Decimal("450.50")


@pytest.mark.django_db
def test_missing_booking_is_a_noop(gateway, booking):
    session_id = _start_checkout(gateway, service_id="S-unknown")
    gateway.complete_session(session_id)

    result = ReconciliationService(gateway).complete_payment(session_id)

    assert result.outcome == ReconciliationResult.BOOKING_NOT_FOUND
    assert result.payment is None
    assert Payment.objects.count() == 0
    booking.refresh_from_db()
    assert booking.status == Booking.REQUESTED


@pytest.mark.django_db
def test_payment_from_other_customer_leaves_booking_untouched(gateway, booking):
    redirect = CheckoutSessionInitiator(gateway).create_session(
        CheckoutContext(
            service_id="S1",
            service_name="Living Room Makeover",
            total_price=Decimal("500"),
            customer_name="Bob",
            customer_email="bob@example.com",
        )
    )
    gateway.complete_session(redirect.session_id)

    result = ReconciliationService(gateway).complete_payment(redirect.session_id)

    assert result.outcome == ReconciliationResult.BOOKING_NOT_FOUND
    assert Payment.objects.count() == 0
    booking.refresh_from_db()
    assert booking.status == Booking.REQUESTED


@pytest.mark.django_db
def test_ledger_service_id_comes_from_booking(gateway, booking):
    session_id = _start_checkout(gateway, booking_id=booking.pk, service_id="S-other")
    gateway.complete_session(session_id)

    ReconciliationService(gateway).complete_payment(session_id)

    assert Payment.objects.get().service_id == "S1"


@pytest.mark.django_db
def test_unknown_booking_id_is_a_noop(gateway, booking):
    session_id = _start_checkout(gateway, booking_id=booking.pk + 1000)
    gateway.complete_session(session_id)

    result = ReconciliationService(gateway).complete_payment(session_id)

    assert result.outcome == ReconciliationResult.BOOKING_NOT_FOUND
    assert Payment.objects.count() == 0


@pytest.mark.django_db
@pytest.mark.parametrize("finish", ["pending", "expired"])
def test_incomplete_session_is_a_noop(gateway, booking, finish):
    session_id = _start_checkout(gateway)
    if finish == "expired":
        gateway.expire_session(session_id)

    result = ReconciliationService(gateway).complete_payment(session_id)

    assert result.outcome == ReconciliationResult.NOT_COMPLETE
    assert result.transaction_id is None
    assert Payment.objects.count() == 0
    booking.refresh_from_db()
    assert booking.status == Booking.REQUESTED


@pytest.mark.django_db
def test_concurrent_insert_loser_reports_existing_entry(gateway, booking):
    session_id = _start_checkout(gateway)
    gateway.complete_session(session_id)
    winner = ReconciliationService(gateway).complete_payment(session_id)

    loser = ReconciliationService(gateway, ledger=StaleReadLedger()).complete_payment(session_id)

    assert loser.outcome == ReconciliationResult.ALREADY_RECORDED
    assert loser.order_id == winner.order_id
    assert Payment.objects.count() == 1


@pytest.mark.django_db
def test_booking_update_failure_is_logged_and_swept(gateway, booking, caplog):
    session_id = _start_checkout(gateway)
    gateway.complete_session(session_id)

    with caplog.at_level(logging.ERROR):
        result = ReconciliationService(gateway, bookings=BrokenBookingStore()).complete_payment(session_id)

    assert result.outcome == ReconciliationResult.RECORDED
    assert Payment.objects.count() == 1
    booking.refresh_from_db()
    assert booking.status == Booking.REQUESTED
    assert "could not be marked paid" in caplog.text

    settled = settle_recorded_bookings()

    assert [payment.transaction_id for payment in settled] == [result.transaction_id]
    booking.refresh_from_db()
    assert booking.status == Booking.PAID
    assert settle_recorded_bookings() == []


@pytest.mark.django_db
def test_second_payment_for_paid_booking_is_recorded_without_transition(gateway, booking, caplog):
    first_session = _start_checkout(gateway, booking_id=booking.pk)
    gateway.complete_session(first_session)
    ReconciliationService(gateway).complete_payment(first_session)
    booking.refresh_from_db()
    paid_at = booking.paid_at

    second_session = _start_checkout(gateway, booking_id=booking.pk)
    gateway.complete_session(second_session)
    with caplog.at_level(logging.WARNING):
        result = ReconciliationService(gateway).complete_payment(second_session)

    assert result.outcome == ReconciliationResult.RECORDED
    assert Payment.objects.count() == 2
    assert "already paid" in caplog.text
    booking.refresh_from_db()
    assert booking.paid_at == paid_at
