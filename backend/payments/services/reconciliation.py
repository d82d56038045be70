from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import DatabaseError, transaction

from bookings.models import Booking
from bookings.services.store import BookingStore
from payments.models import Payment
from payments.services.gateway import CheckoutSessionRecord
from payments.services.ledger import DuplicateTransaction, PaymentLedger

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class ReconciliationResult:
    RECORDED = "recorded"
    ALREADY_RECORDED = "already_recorded"
    NOT_COMPLETE = "not_complete"
    BOOKING_NOT_FOUND = "booking_not_found"

    outcome: str
    session_id: str
    payment: Optional[Payment] = None

    @property
    def transaction_id(self) -> str | None:
        return self.payment.transaction_id if self.payment else None

    @property
    def order_id(self) -> str | None:
        return self.payment.order_id if self.payment else None


def settled_price(amount_total: int) -> Decimal:
    """Gateway minor units back to major units."""
    return (Decimal(amount_total) / 100).quantize(CENTS)


class ReconciliationService:
    """
    Turn a completed checkout session into exactly one ledger entry and one
    booking transition.

    The session is always re-read from the gateway; nothing the client sends
    beyond the session id is trusted. Replays (double clicks, page revisits,
    concurrent confirmations) resolve to ``ALREADY_RECORDED`` without writing.
    """

    def __init__(self, gateway, *, bookings: BookingStore | None = None, ledger: PaymentLedger | None = None):
        self.gateway = gateway
        self.bookings = bookings or BookingStore()
        self.ledger = ledger or PaymentLedger()

    def complete_payment(self, session_id: str) -> ReconciliationResult:
        session = self.gateway.retrieve_session(session_id)

        # completion first: the ledger is keyed on the payment intent, which open sessions lack
        if not session.is_complete or not session.payment_intent or session.amount_total is None:
            logger.info(
                "Checkout session %s is not payable yet (status=%s, payment_status=%s).",
                session_id,
                session.status,
                session.payment_status,
            )
            return ReconciliationResult(ReconciliationResult.NOT_COMPLETE, session_id)

        existing = self.ledger.find_by_transaction_id(session.payment_intent)
        if existing is not None:
            logger.info("Payment %s already recorded as order %s.", existing.transaction_id, existing.order_id)
            return ReconciliationResult(ReconciliationResult.ALREADY_RECORDED, session_id, existing)

        booking = self.bookings.find_for_session(
            booking_id=session.metadata.get("bookingId"),
            service_id=session.metadata.get("serviceId"),
            customer_email=session.customer_email,
        )
        if booking is None:
            logger.info(
                "No booking found for checkout session %s (metadata=%s).",
                session_id,
                session.metadata,
            )
            return ReconciliationResult(ReconciliationResult.BOOKING_NOT_FOUND, session_id)

        try:
            payment = self.ledger.insert(**self.build_ledger_fields(session, booking))
        except DuplicateTransaction:
            payment = self.ledger.find_by_transaction_id(session.payment_intent)
            logger.info("Payment %s was recorded by a concurrent confirmation.", session.payment_intent)
            return ReconciliationResult(ReconciliationResult.ALREADY_RECORDED, session_id, payment)

        logger.info(
            "Recorded payment %s (order %s) for booking %s.",
            payment.transaction_id,
            payment.order_id,
            booking.pk,
        )
        self.mark_booking_paid(payment, booking)
        return ReconciliationResult(ReconciliationResult.RECORDED, session_id, payment)

    def build_ledger_fields(self, session: CheckoutSessionRecord, booking: Booking) -> dict:
        snapshot = booking.service or {}
        provider = booking.provider
        metadata = session.metadata
        return {
            "transaction_id": session.payment_intent,
            "checkout_session_id": session.id,
            "booking": booking,
            "service_id": booking.service_ref,
            "customer_name": metadata.get("customer") or booking.customer_name,
            "customer_email": session.customer_email or booking.customer_email,
            "provider_name": provider.get("name", ""),
            "provider_email": provider.get("email", ""),
            "service_name": snapshot.get("name", ""),
            "service_category": snapshot.get("category", ""),
            "service_unit": snapshot.get("unit", ""),
            "service_image": snapshot.get("image", ""),
            "quantity": 1,
            "price": settled_price(session.amount_total),
            "currency": session.currency or settings.CHECKOUT_CURRENCY,
            "location": metadata.get("location") or booking.location,
            "status": Payment.PAID,
        }

    def mark_booking_paid(self, payment: Payment, booking: Booking) -> bool:
        """
        Flip the booking once its ledger entry is stored. A failure here leaves
        a paid ledger entry with a requested booking; it is logged and picked
        up by ``reconcile_payments`` instead of being retried inline.
        """
        try:
            with transaction.atomic():
                updated = self.bookings.update_status_by_key(booking.pk, Booking.PAID)
        except DatabaseError:
            logger.exception(
                "Payment %s recorded but booking %s could not be marked paid; run reconcile_payments.",
                payment.transaction_id,
                booking.pk,
            )
            return False

        if not updated:
            logger.warning(
                "Booking %s was already paid; payment %s recorded without a status change.",
                booking.pk,
                payment.transaction_id,
            )
        return bool(updated)


def settle_recorded_bookings(
    *,
    bookings: BookingStore | None = None,
    ledger: PaymentLedger | None = None,
    dry_run: bool = False,
) -> list[Payment]:
    """Apply the paid transition for ledger entries whose booking is still requested."""

    bookings = bookings or BookingStore()
    ledger = ledger or PaymentLedger()
    settled = []
    for payment in ledger.entries_awaiting_booking():
        if dry_run:
            settled.append(payment)
            continue
        if bookings.update_status_by_key(payment.booking_id, Booking.PAID):
            logger.info("Marked booking %s paid from payment %s.", payment.booking_id, payment.transaction_id)
            settled.append(payment)
    return settled
