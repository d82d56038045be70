from __future__ import annotations

from django.conf import settings

from bookings.models import Booking
from catalog.models import Service


def create_booking(*, customer, service: Service, location: str | None = None) -> Booking:
    """Snapshot ``service`` into a new ``requested`` booking for ``customer``."""

    return Booking.objects.create(
        customer=customer,
        customer_name=customer.public_name,
        customer_email=customer.email,
        service_ref=str(service.pk),
        service=service.snapshot(),
        location=(location or "").strip() or settings.DEFAULT_SERVICE_LOCATION,
        status=Booking.REQUESTED,
    )
