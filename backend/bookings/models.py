from django.conf import settings
from django.db import models


class Booking(models.Model):
    """A customer's request for a service, holding a snapshot of the service at booking time."""

    REQUESTED = "requested"
    PAID = "paid"
    STATUSES = [
        (REQUESTED, "Requested"),
        (PAID, "Paid"),
    ]

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="bookings",
    )
    customer_name = models.CharField(max_length=200, blank=True)
    customer_email = models.EmailField()
    service_ref = models.CharField(max_length=64, db_index=True)
    service = models.JSONField(default=dict)
    location = models.CharField(max_length=200, blank=True)
    status = models.CharField(max_length=12, choices=STATUSES, default=REQUESTED)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.service.get('name', self.service_ref)} for {self.customer_email}"

    @property
    def is_paid(self) -> bool:
        return self.status == self.PAID

    @property
    def service_view(self) -> dict:
        """The embedded service snapshot with the live booking status under ``status``."""
        return {**self.service, "status": self.status}

    @property
    def provider(self) -> dict:
        return self.service.get("provider") or {}
