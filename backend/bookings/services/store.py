from __future__ import annotations

from django.utils import timezone

from bookings.models import Booking


class BookingStore:
    """
    Lookup and status access for bookings during payment reconciliation.

    Bookings are located through the identifiers echoed back in checkout
    session metadata; the booking id wins when both are present.
    """

    def find_by_id(self, booking_id) -> Booking | None:
        try:
            return Booking.objects.filter(pk=booking_id).first()
        except (TypeError, ValueError):
            return None

    def find_by_service_id(self, service_id: str, *, customer_email: str | None = None) -> Booking | None:
        candidates = Booking.objects.filter(service_ref=str(service_id), status=Booking.REQUESTED)
        # never settle another customer's booking with this payment
        if customer_email:
            candidates = candidates.filter(customer_email__iexact=customer_email)
        return candidates.first()

    def find_for_session(
        self,
        *,
        booking_id: str | None,
        service_id: str | None,
        customer_email: str | None = None,
    ) -> Booking | None:
        if booking_id:
            return self.find_by_id(booking_id)
        if service_id:
            return self.find_by_service_id(service_id, customer_email=customer_email)
        return None

    def update_status_by_key(self, booking_id, status: str = Booking.PAID) -> int:
        """
        Move a booking from ``requested`` to ``status``.

        Returns the number of rows changed; 0 means the booking was already
        settled or no longer exists. Paid bookings never move back.
        """
        if status != Booking.PAID:
            raise ValueError(f"Unsupported booking transition to {status!r}.")
        return Booking.objects.filter(pk=booking_id, status=Booking.REQUESTED).update(
            status=Booking.PAID,
            paid_at=timezone.now(),
        )
