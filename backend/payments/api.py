import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from bookings.models import Booking
from bookings.services.store import BookingStore
from payments.serializers import CheckoutSessionRequestSerializer, PaymentSuccessRequestSerializer
from payments.services.checkout import CheckoutSessionInitiator
from payments.services.gateway import (
    PaymentGatewayError,
    PaymentGatewayNotConfigured,
    get_payment_gateway,
)
from payments.services.ledger import PaymentLedger
from payments.services.reconciliation import ReconciliationResult, ReconciliationService

logger = logging.getLogger(__name__)

NOOP_DETAILS = {
    ReconciliationResult.NOT_COMPLETE: "Checkout session has not completed payment yet.",
    ReconciliationResult.BOOKING_NOT_FOUND: "No booking matches this checkout session.",
}


def _can_pay_for(user, booking: Booking) -> bool:
    if user.is_staff:
        return True
    if booking.customer_id is not None:
        return booking.customer_id == user.id
    return booking.customer_email.lower() == (user.email or "").lower()


class CheckoutSessionView(APIView):
    """Start a hosted checkout for a service booking and return the gateway redirect URL."""

    def post(self, request, *args, **kwargs):
        serializer = CheckoutSessionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        booking = serializer.validated_data.get("booking")
        if booking is not None and not _can_pay_for(request.user, booking):
            return Response({"detail": "Not permitted."}, status=status.HTTP_403_FORBIDDEN)

        try:
            initiator = CheckoutSessionInitiator(get_payment_gateway())
            redirect = initiator.create_session(serializer.to_context(request.user))
        except PaymentGatewayNotConfigured as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        except PaymentGatewayError as exc:
            logger.exception("Failed to create checkout session: %s", exc)
            return Response({"detail": str(exc)}, status=status.HTTP_502_BAD_GATEWAY)

        return Response({"url": redirect.url})


class PaymentSuccessView(APIView):
    """
    Confirm a checkout after the customer returns from the hosted page.

    Safe to call repeatedly: replays return the original transaction and order
    ids, and sessions that cannot be settled answer 202 with a status string.
    """

    def post(self, request, *args, **kwargs):
        serializer = PaymentSuccessRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        session_id = serializer.validated_data["session_id"]

        try:
            service = ReconciliationService(
                get_payment_gateway(),
                bookings=BookingStore(),
                ledger=PaymentLedger(),
            )
            result = service.complete_payment(session_id)
        except PaymentGatewayNotConfigured as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        except PaymentGatewayError as exc:
            logger.exception("Failed to reconcile checkout session %s: %s", session_id, exc)
            return Response({"detail": str(exc)}, status=status.HTTP_502_BAD_GATEWAY)

        if result.payment is None:
            return Response(
                {"status": result.outcome, "detail": NOOP_DETAILS[result.outcome]},
                status=status.HTTP_202_ACCEPTED,
            )

        response_status = (
            status.HTTP_201_CREATED
            if result.outcome == ReconciliationResult.RECORDED
            else status.HTTP_200_OK
        )
        return Response(
            {
                "transactionId": result.transaction_id,
                "orderId": result.order_id,
                "status": result.outcome,
            },
            status=response_status,
        )
