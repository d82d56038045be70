from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import User


@admin.register(User)
class MarketplaceUserAdmin(UserAdmin):
    list_display = ("email", "display_name", "is_staff", "date_joined")
    search_fields = ("email", "first_name", "last_name", "display_name")
    fieldsets = UserAdmin.fieldsets + (("Profile", {"fields": ("display_name",)}),)
