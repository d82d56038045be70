from django.contrib import admin

from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("transaction_id", "service_name", "customer_email", "price", "currency", "status", "created_at")
    list_filter = ("status", "currency")
    search_fields = ("transaction_id", "checkout_session_id", "customer_email", "service_name")

    # ledger entries are append-only
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
