# apps/notifications/admin.py
from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = (
        "user",
        "outlet",
        "type",
        "title",
        "order",
        "is_read",
        "created_at",
    )
    list_filter = ("type", "is_read", "outlet")
    search_fields = ("title", "body", "user__username", "order__id")
    readonly_fields = (
        "user",
        "outlet",
        "order",
        "type",
        "title",
        "body",
        "data",
        "read_at",
        "created_at",
        "updated_at",
    )

    def has_add_permission(self, request):
        return False
