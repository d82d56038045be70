from django.contrib import admin

from .models import Service


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "price", "unit", "provider_name", "updated_at")
    list_filter = ("category",)
    search_fields = ("name", "category", "provider_name", "provider_email")
