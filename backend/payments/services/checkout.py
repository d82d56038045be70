from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings

NO_DESCRIPTION = "No description available...!"


@dataclass
class CheckoutContext:
    service_id: str
    service_name: str
    total_price: Decimal
    customer_email: str
    customer_name: str = ""
    booking_id: str | None = None
    service_image: str = ""
    service_description: str = ""
    location: str | None = None


@dataclass
class CheckoutRedirect:
    url: str
    session_id: str


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to the gateway's integer minor units, truncating."""
    return int(Decimal(amount) * 100)


class CheckoutSessionInitiator:
    """
    Build a one-shot hosted checkout for a booking and return the redirect URL.

    Nothing is written locally here: a payment record only exists once the
    gateway reports the session complete and reconciliation runs.
    """

    def __init__(self, gateway, *, currency: str | None = None, frontend_url: str | None = None):
        self.gateway = gateway
        self.currency = currency or settings.CHECKOUT_CURRENCY
        self.frontend_url = (frontend_url or settings.FRONTEND_URL).rstrip("/")

    def build_line_items(self, context: CheckoutContext) -> list[dict]:
        product_data = {
            "name": context.service_name,
            "description": context.service_description or NO_DESCRIPTION,
        }
        if context.service_image:
            product_data["images"] = [context.service_image]
        return [
            {
                "price_data": {
                    "currency": self.currency,
                    "product_data": product_data,
                    "unit_amount": to_minor_units(context.total_price),
                },
                "quantity": 1,
            }
        ]

    def build_metadata(self, context: CheckoutContext) -> dict[str, str]:
        metadata = {
            "serviceId": str(context.service_id),
            "customer": context.customer_name or "",
            "location": (context.location or "").strip() or settings.DEFAULT_SERVICE_LOCATION,
        }
        if context.booking_id:
            metadata["bookingId"] = str(context.booking_id)
        return metadata

    def create_session(self, context: CheckoutContext) -> CheckoutRedirect:
        session = self.gateway.create_checkout_session(
            line_items=self.build_line_items(context),
            customer_email=context.customer_email,
            mode="payment",
            metadata=self.build_metadata(context),
            success_url=f"{self.frontend_url}/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{self.frontend_url}/dashboard/bookings",
        )
        return CheckoutRedirect(url=session.url, session_id=session.id)
