from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Any, Optional
from uuid import uuid4

import stripe
from django.conf import settings

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """A checkout session could not be created or retrieved."""


class PaymentGatewayNotConfigured(PaymentGatewayError):
    """Live checkout was requested without Stripe credentials."""


@dataclass
class CheckoutSessionRecord:
    """
    The subset of a Stripe Checkout Session the booking workflow relies on.

    ``metadata`` is echoed back exactly as attached at creation time and carries
    the identifiers reconciliation needs (``serviceId``, ``bookingId``,
    ``customer``, ``location``).
    """

    id: str
    status: str
    payment_status: str
    amount_total: Optional[int]
    currency: Optional[str]
    customer_email: Optional[str]
    payment_intent: Optional[str]
    metadata: dict[str, str] = field(default_factory=dict)
    url: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.status == "complete" and self.payment_status != "unpaid"

    @classmethod
    def from_stripe(cls, session: Any) -> "CheckoutSessionRecord":
        payment_intent = getattr(session, "payment_intent", None)
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = getattr(payment_intent, "id", None)

        customer_email = getattr(session, "customer_email", None)
        if not customer_email:
            details = getattr(session, "customer_details", None)
            customer_email = getattr(details, "email", None) if details else None

        return cls(
            id=session.id,
            status=getattr(session, "status", None) or "open",
            payment_status=getattr(session, "payment_status", None) or "unpaid",
            amount_total=getattr(session, "amount_total", None),
            currency=getattr(session, "currency", None),
            customer_email=customer_email,
            payment_intent=payment_intent,
            metadata=_as_dict(getattr(session, "metadata", None)),
            url=getattr(session, "url", None),
        )


def _as_dict(value: Any) -> dict[str, str]:
    if not value:
        return {}
    if isinstance(value, dict):
        return dict(value)
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return dict(value)


def build_checkout_preview_url(*, session_id: str, amount_cents: int, booking_id: str | None) -> str:
    url = f"{settings.FRONTEND_URL.rstrip('/')}/payments/preview?amount={amount_cents}&session={session_id}"
    if booking_id:
        url = f"{url}&booking={booking_id}"
    return url


class StubGateway:
    """
    In-process stand-in for Stripe Checkout used in development and tests.

    Sessions start ``open``. ``complete_session`` plays the part of the customer
    paying on the hosted page; with ``auto_complete`` the first retrieval does
    that implicitly so the local success page can reconcile without Stripe.
    """

    def __init__(self, *, auto_complete: bool = False):
        self.auto_complete = auto_complete
        self._sessions: dict[str, CheckoutSessionRecord] = {}

    def create_checkout_session(
        self,
        *,
        line_items: list[dict],
        customer_email: str | None,
        mode: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSessionRecord:
        session_id = f"cs_test_{uuid4().hex}"
        amount_total = sum(
            item["price_data"]["unit_amount"] * item.get("quantity", 1) for item in line_items
        )
        currency = line_items[0]["price_data"]["currency"] if line_items else settings.CHECKOUT_CURRENCY
        record = CheckoutSessionRecord(
            id=session_id,
            status="open",
            payment_status="unpaid",
            amount_total=amount_total,
            currency=currency,
            customer_email=customer_email,
            payment_intent=None,
            metadata=dict(metadata),
            url=build_checkout_preview_url(
                session_id=session_id,
                amount_cents=amount_total,
                booking_id=metadata.get("bookingId"),
            ),
        )
        self._sessions[session_id] = record
        return replace(record)

    def retrieve_session(self, session_id: str) -> CheckoutSessionRecord:
        record = self._get(session_id)
        if self.auto_complete and record.status == "open":
            record = self.complete_session(session_id)
        return replace(record, metadata=dict(record.metadata))

    def complete_session(self, session_id: str, *, amount_total: int | None = None) -> CheckoutSessionRecord:
        record = self._get(session_id)
        record.status = "complete"
        record.payment_status = "paid"
        record.payment_intent = record.payment_intent or f"pi_test_{uuid4().hex}"
        if amount_total is not None:
            record.amount_total = amount_total
        return record

    def expire_session(self, session_id: str) -> CheckoutSessionRecord:
        record = self._get(session_id)
        record.status = "expired"
        return record

    def _get(self, session_id: str) -> CheckoutSessionRecord:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise PaymentGatewayError(f"No such checkout session: {session_id}") from None


class StripeGateway:
    """Stripe Checkout adapter. The API key is passed per request, never set globally."""

    def __init__(self, api_key: str):
        if not api_key:
            raise PaymentGatewayNotConfigured("Stripe secret key is not configured.")
        self.api_key = api_key

    def create_checkout_session(
        self,
        *,
        line_items: list[dict],
        customer_email: str | None,
        mode: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSessionRecord:
        stripe_kwargs = {}
        if customer_email:
            stripe_kwargs["customer_email"] = customer_email
        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                mode=mode,
                line_items=line_items,
                metadata=metadata,
                success_url=success_url,
                cancel_url=cancel_url,
                **stripe_kwargs,
            )
        except stripe.StripeError as exc:
            raise PaymentGatewayError(f"Stripe rejected the checkout session: {exc}") from exc
        return CheckoutSessionRecord.from_stripe(session)

    def retrieve_session(self, session_id: str) -> CheckoutSessionRecord:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            raise PaymentGatewayError(f"Unable to retrieve checkout session {session_id}: {exc}") from exc
        return CheckoutSessionRecord.from_stripe(session)


def _get_stripe_api_key() -> Optional[str]:
    key = getattr(settings, "STRIPE_SECRET_KEY", "")
    return key or None


def _should_use_stub() -> bool:
    return bool(getattr(settings, "STRIPE_USE_STUB", False))


@lru_cache(maxsize=2)
def _stub_gateway(auto_complete: bool) -> StubGateway:
    # one stub per process so sessions survive between requests
    logger.info("Using stub checkout gateway (auto_complete=%s).", auto_complete)
    return StubGateway(auto_complete=auto_complete)


def get_payment_gateway():
    """Return the gateway selected by settings: the stub, or Stripe when a live key is configured."""

    if _should_use_stub():
        # a stub that pays for itself must never record payments outside development
        auto_complete = bool(getattr(settings, "STRIPE_STUB_AUTO_COMPLETE", False)) and settings.DEBUG
        return _stub_gateway(auto_complete)
    return StripeGateway(api_key=_get_stripe_api_key() or "")
