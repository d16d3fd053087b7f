# apps/outlets/admin.py
from django.contrib import admin

from .models import Outlet


@admin.register(Outlet)
class OutletAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "location_alias", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("id", "name", "location_alias")
