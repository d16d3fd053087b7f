from django.contrib import admin

from .models import Order, OrderAuditEntry, DELIVERY_ONLY_FIELDS
from .status import Branch


class OrderAuditEntryInline(admin.TabularInline):
    model = OrderAuditEntry
    extra = 0
    readonly_fields = ("created_at", "actor", "actor_role", "old_value", "new_value", "note")
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "customer_name",
        "shipping_status",
        "outlet",
        "assigned_deliveryman",
        "total_amount",
        "created_at",
    )
    list_filter = ("shipping_status", "outlet", "pickup_method", "created_at")
    search_fields = ("id", "customer_name", "customer_phone", "tracking_number")
    raw_id_fields = ("assigned_deliveryman",)

    inlines = [OrderAuditEntryInline]

    # Status only moves through OrderService so every change is audited
    readonly_fields = (
        "id",
        "shipping_status",
        "pickup_outlet",
        "picked_up_by",
        "pickup_date",
        "pickup_time",
        "created_at",
        "updated_at",
    )

    fieldsets = (
        ("Order Details", {
            "fields": ("id", "shipping_status", "total_amount", "outlet", "outlet_name", "assigned_deliveryman")
        }),
        ("Customer", {
            "fields": ("customer_name", "customer_phone", "customer_email", "customer_address")
        }),
        ("Delivery Info", {
            "fields": ("shipping_area", "pickup_method", "courier_service", "tracking_number",
                       "shipping_location", "pickup_location")
        }),
        ("Pickup Info", {
            "fields": ("pickup_outlet", "picked_up_by", "pickup_date", "pickup_time")
        }),
        ("System Data", {
            "fields": ("created_at", "updated_at"),
            "classes": ("collapse",)
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        readonly = list(super().get_readonly_fields(request, obj))
        if obj is not None and obj.branch == Branch.PICKUP:
            readonly += DELIVERY_ONLY_FIELDS
        return readonly

    def has_add_permission(self, request):
        return False

    # Deleted through OrderService.delete_order, which cascades the audit trail
    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(OrderAuditEntry)
class OrderAuditEntryAdmin(admin.ModelAdmin):
    list_display = ("order", "old_value", "new_value", "actor_role", "actor", "created_at")
    list_filter = ("actor_role", "new_value")
    search_fields = ("order__id", "note")
    readonly_fields = [f.name for f in OrderAuditEntry._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
