from decimal import Decimal

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from accounts.models import User
from bookings.models import Booking
from bookings.services.bookings import create_booking
from catalog.models import Service


SEED_PASSWORD = "StyleDecor123!"
SUPERUSER_EMAIL = "admin@styledecor.test"
SUPERUSER_PASSWORD = "AdminStyleDecor123!"

SERVICES = [
    {
        "name": "Living Room Makeover",
        "category": "home",
        "price": Decimal("500.00"),
        "unit": "per room",
        "description": "Full styling of one living room, furniture layout included.",
        "image": "https://images.styledecor.test/living-room.jpg",
    },
    {
        "name": "Wedding Stage Decoration",
        "category": "wedding",
        "price": Decimal("2500.00"),
        "unit": "per event",
        "description": "Stage, backdrop and floral arrangement for one ceremony.",
        "image": "https://images.styledecor.test/wedding-stage.jpg",
    },
    {
        "name": "Office Plant Styling",
        "category": "office",
        "price": Decimal("150.00"),
        "unit": "per sq-ft",
        "description": "",
        "image": "",
    },
]


class Command(BaseCommand):
    help = "Populate the local development database with sample services and bookings."

    def handle(self, *args, **options):
        if not settings.DEBUG:
            raise CommandError("Refusing to seed data while DEBUG is False.")

        with transaction.atomic():
            self.stdout.write(self.style.MIGRATE_HEADING("Creating users"))
            provider = self._ensure_user(
                email="provider@styledecor.test",
                first_name="Priya",
                last_name="Provider",
                display_name="Priya Provider",
            )
            customer = self._ensure_user(
                email="customer@styledecor.test",
                first_name="Rafi",
                last_name="Customer",
                display_name="Rafi Customer",
            )

            self.stdout.write(self.style.MIGRATE_HEADING("Ensuring admin superuser"))
            self._ensure_superuser()

            self.stdout.write(self.style.MIGRATE_HEADING("Creating services"))
            services = [self._ensure_service(provider, **data) for data in SERVICES]

            self.stdout.write(self.style.MIGRATE_HEADING("Creating bookings"))
            Booking.objects.filter(customer=customer, status=Booking.REQUESTED).delete()
            for service, location in zip(services, ["Dhaka", "Chattogram", None]):
                booking = create_booking(customer=customer, service=service, location=location)
                self.stdout.write(
                    self.style.NOTICE(f"Booking {booking.pk}: {service.name} in {booking.location}")
                )

        self.stdout.write(self.style.SUCCESS("Development seed data created."))
        self.stdout.write(self.style.NOTICE(f"Sample login accounts use password: {SEED_PASSWORD}"))
        self.stdout.write(self.style.NOTICE(f"Admin superuser {SUPERUSER_EMAIL} password: {SUPERUSER_PASSWORD}"))

    def _ensure_service(self, provider: User, *, name: str, **fields) -> Service:
        service, _ = Service.objects.update_or_create(
            name=name,
            defaults={
                **fields,
                "provider_name": provider.public_name,
                "provider_email": provider.email,
                "created_by": provider,
            },
        )
        return service

    def _ensure_user(
        self,
        email: str,
        first_name: str,
        last_name: str,
        display_name: str,
    ) -> User:
        user, created = User.objects.get_or_create(
            email=email,
            defaults={
                "username": email,
                "first_name": first_name,
                "last_name": last_name,
                "display_name": display_name,
            },
        )
        if created or not user.has_usable_password():
            user.set_password(SEED_PASSWORD)
            user.save(update_fields=["password"])
        return user

    def _ensure_superuser(self) -> User:
        user, created = User.objects.get_or_create(
            email=SUPERUSER_EMAIL,
            defaults={
                "username": SUPERUSER_EMAIL,
                "first_name": "Admin",
                "last_name": "User",
                "display_name": "Admin User",
                "is_staff": True,
                "is_superuser": True,
            },
        )
        flag_updates = {}
        if not user.is_staff:
            flag_updates["is_staff"] = True
        if not user.is_superuser:
            flag_updates["is_superuser"] = True
        if flag_updates:
            for attr, value in flag_updates.items():
                setattr(user, attr, value)
            user.save(update_fields=list(flag_updates.keys()))
        if created or not user.has_usable_password():
            user.set_password(SUPERUSER_PASSWORD)
            user.save(update_fields=["password"])
        return user
