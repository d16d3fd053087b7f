from django.db import models
from django.conf import settings

from apps.orders.status import ShippingStatus, INITIAL_STATUS, branch_of, is_terminal as status_is_terminal

# Fields that only make sense while the order is on the delivery branch.
# Cleared in the same update that moves an order onto the pickup branch.
DELIVERY_ONLY_FIELDS = (
    "shipping_area",
    "pickup_method",
    "courier_service",
    "tracking_number",
    "shipping_location",
    "pickup_location",
)

PICKUP_METADATA_FIELDS = (
    "pickup_outlet",
    "picked_up_by",
    "pickup_date",
    "pickup_time",
)


class Order(models.Model):
    class PickupMethod(models.TextChoices):
        DELIVERYMAN = "deliveryman", "Kurir Outlet"
        SELF_PICKUP = "pickup_sendiri", "Pickup Sendiri di Outlet"
        ONLINE_OJEK = "ojek-online", "Ojek Online"
        CUSTOMER_ADDRESS = "alamat_customer", "Antar ke Alamat"

    id = models.CharField(primary_key=True, max_length=50, editable=False)  # ORD-<millis>-<rand>

    # Customer snapshot; customers have no account
    customer_name = models.CharField(max_length=255)
    customer_phone = models.CharField(max_length=32)
    customer_email = models.EmailField(blank=True)
    customer_address = models.TextField(blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    shipping_status = models.CharField(
        max_length=30,
        choices=ShippingStatus.choices,
        default=INITIAL_STATUS,
        db_index=True,
    )

    # Outlet linkage. outlet_id is authoritative; outlet_name is the legacy
    # display value kept for name matching on old rows.
    outlet = models.ForeignKey(
        "outlets.Outlet",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="orders",
    )
    outlet_name = models.CharField(max_length=100, blank=True, null=True)

    assigned_deliveryman = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="assigned_orders",
    )

    # Delivery-only
    shipping_area = models.CharField(max_length=50, blank=True, null=True)  # dalam-kota / luar-kota
    pickup_method = models.CharField(max_length=30, choices=PickupMethod.choices, blank=True, null=True)
    courier_service = models.CharField(max_length=50, blank=True, null=True)
    tracking_number = models.CharField(max_length=100, blank=True, null=True)
    shipping_location = models.CharField(max_length=255, blank=True, null=True)  # lokasi_pengiriman
    pickup_location = models.CharField(max_length=255, blank=True, null=True)  # lokasi_pengambilan

    # Pickup metadata, populated on entry into a pickup status
    pickup_outlet = models.CharField(max_length=100, blank=True, null=True)
    picked_up_by = models.CharField(max_length=255, blank=True, null=True)
    pickup_date = models.DateField(blank=True, null=True)
    pickup_time = models.TimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["outlet", "shipping_status"], name="orders_orde_outlet__3f2a1c_idx"),
            models.Index(fields=["assigned_deliveryman", "shipping_status"], name="orders_orde_assigne_8b7d4e_idx"),
        ]

    def __str__(self):
        return f"{self.id} [{self.shipping_status}]"

    @property
    def branch(self):
        return branch_of(self.shipping_status)

    @property
    def is_terminal(self):
        return status_is_terminal(self.shipping_status)

    @property
    def resolved_outlet_name(self):
        if self.outlet_id and self.outlet is not None:
            return self.outlet.name
        return self.outlet_name or None
