from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("service_ref", "customer_email", "location", "status", "paid_at", "created_at")
    list_filter = ("status",)
    search_fields = ("service_ref", "customer_email", "customer_name")
    # status only moves through payment reconciliation
    readonly_fields = ("status", "paid_at", "service")
