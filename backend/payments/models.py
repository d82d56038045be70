from django.db import models


class Payment(models.Model):
    """
    Ledger entry for a settled checkout. Written once during reconciliation and
    never updated; ``transaction_id`` is the gateway payment intent.
    """

    PAID = "paid"

    transaction_id = models.CharField(max_length=255, unique=True)
    checkout_session_id = models.CharField(max_length=255, blank=True)
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
    )
    service_id = models.CharField(max_length=64, db_index=True)
    customer_name = models.CharField(max_length=200, blank=True)
    customer_email = models.EmailField(blank=True)
    provider_name = models.CharField(max_length=200, blank=True)
    provider_email = models.EmailField(blank=True)
    service_name = models.CharField(max_length=200)
    service_category = models.CharField(max_length=80, blank=True)
    service_unit = models.CharField(max_length=60, blank=True)
    service_image = models.URLField(blank=True)
    quantity = models.PositiveIntegerField(default=1)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=10)
    location = models.CharField(max_length=200, blank=True)
    status = models.CharField(max_length=30, default=PAID)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.transaction_id} ({self.service_name})"

    @property
    def order_id(self) -> str:
        return str(self.pk)
