from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class Service(models.Model):
    """A bookable home service offered by a provider."""

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    unit = models.CharField(max_length=60, blank=True)
    image = models.URLField(blank=True)
    category = models.CharField(max_length=80, blank=True)
    provider_name = models.CharField(max_length=200)
    provider_email = models.EmailField()
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="services_created",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["category", "name"]

    def __str__(self):
        return self.name

    def snapshot(self) -> dict:
        """Denormalized copy embedded in bookings at booking time."""
        return {
            "id": str(self.pk),
            "name": self.name,
            "description": self.description,
            "price": str(self.price),
            "unit": self.unit,
            "image": self.image,
            "category": self.category,
            "provider": {"name": self.provider_name, "email": self.provider_email},
        }
