from decimal import Decimal

from rest_framework import serializers

from bookings.services.store import BookingStore
from payments.services.checkout import CheckoutContext


class CheckoutServiceSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=200)
    image = serializers.URLField(required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)


class CheckoutPayerSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True, max_length=200)
    email = serializers.EmailField(required=False)


class CheckoutSessionRequestSerializer(serializers.Serializer):
    bookingId = serializers.CharField(source="booking_id", required=False, allow_blank=True, max_length=64)
    service = CheckoutServiceSerializer()
    totalPrice = serializers.DecimalField(
        source="total_price",
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
    )
    user = CheckoutPayerSerializer(required=False)
    location = serializers.CharField(required=False, allow_blank=True, max_length=200)

    def validate(self, attrs):
        booking_id = attrs.get("booking_id")
        if booking_id:
            booking = BookingStore().find_by_id(booking_id)
            if booking is None:
                raise serializers.ValidationError({"bookingId": "Booking not found."})
            if booking.is_paid:
                raise serializers.ValidationError({"bookingId": "Booking is already paid."})
            if attrs["service"]["id"] != booking.service_ref:
                raise serializers.ValidationError({"service": "Service does not match the booking."})
            attrs["booking"] = booking
        return attrs

    def to_context(self, user) -> CheckoutContext:
        """Payer details fall back to the authenticated account."""
        data = self.validated_data
        service = data["service"]
        payer = data.get("user") or {}
        booking = data.get("booking")
        location = data.get("location") or (booking.location if booking else None)
        return CheckoutContext(
            booking_id=data.get("booking_id") or None,
            service_id=service["id"],
            service_name=service["name"],
            service_image=service.get("image", ""),
            service_description=service.get("description", ""),
            total_price=data["total_price"],
            customer_name=payer.get("name") or user.public_name,
            customer_email=payer.get("email") or user.email,
            location=location,
        )


class PaymentSuccessRequestSerializer(serializers.Serializer):
    sessionId = serializers.CharField(source="session_id", max_length=255)
