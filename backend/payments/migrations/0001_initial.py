from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("transaction_id", models.CharField(max_length=255, unique=True)),
                ("checkout_session_id", models.CharField(blank=True, max_length=255)),
                ("service_id", models.CharField(db_index=True, max_length=64)),
                ("customer_name", models.CharField(blank=True, max_length=200)),
                ("customer_email", models.EmailField(blank=True, max_length=254)),
                ("provider_name", models.CharField(blank=True, max_length=200)),
                ("provider_email", models.EmailField(blank=True, max_length=254)),
                ("service_name", models.CharField(max_length=200)),
                ("service_category", models.CharField(blank=True, max_length=80)),
                ("service_unit", models.CharField(blank=True, max_length=60)),
                ("service_image", models.URLField(blank=True)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(max_length=10)),
                ("location", models.CharField(blank=True, max_length=200)),
                ("status", models.CharField(default="paid", max_length=30)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "booking",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payments",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
