import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


SHIPPING_STATUS_CHOICES = [
    ("menunggu diproses", "Menunggu Diproses"),
    ("dikemas", "Dikemas"),
    ("siap kirim", "Siap Kirim"),
    ("dalam pengiriman", "Dalam Pengiriman"),
    ("diterima", "Diterima"),
    ("siap di ambil", "Siap Di Ambil"),
    ("sudah diambil", "Sudah Diambil"),
]

PICKUP_METHOD_CHOICES = [
    ("deliveryman", "Kurir Outlet"),
    ("pickup_sendiri", "Pickup Sendiri di Outlet"),
    ("ojek-online", "Ojek Online"),
    ("alamat_customer", "Antar ke Alamat"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("outlets", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.CharField(editable=False, max_length=50, primary_key=True, serialize=False)),
                ("customer_name", models.CharField(max_length=255)),
                ("customer_phone", models.CharField(max_length=32)),
                ("customer_email", models.EmailField(blank=True, max_length=254)),
                ("customer_address", models.TextField(blank=True)),
                ("total_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                (
                    "shipping_status",
                    models.CharField(
                        choices=SHIPPING_STATUS_CHOICES,
                        db_index=True,
                        default="menunggu diproses",
                        max_length=30,
                    ),
                ),
                ("outlet_name", models.CharField(blank=True, max_length=100, null=True)),
                ("shipping_area", models.CharField(blank=True, max_length=50, null=True)),
                (
                    "pickup_method",
                    models.CharField(blank=True, choices=PICKUP_METHOD_CHOICES, max_length=30, null=True),
                ),
                ("courier_service", models.CharField(blank=True, max_length=50, null=True)),
                ("tracking_number", models.CharField(blank=True, max_length=100, null=True)),
                ("shipping_location", models.CharField(blank=True, max_length=255, null=True)),
                ("pickup_location", models.CharField(blank=True, max_length=255, null=True)),
                ("pickup_outlet", models.CharField(blank=True, max_length=100, null=True)),
                ("picked_up_by", models.CharField(blank=True, max_length=255, null=True)),
                ("pickup_date", models.DateField(blank=True, null=True)),
                ("pickup_time", models.TimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "assigned_deliveryman",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="assigned_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "outlet",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to="outlets.outlet",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["outlet", "shipping_status"], name="orders_orde_outlet__3f2a1c_idx"),
                    models.Index(
                        fields=["assigned_deliveryman", "shipping_status"],
                        name="orders_orde_assigne_8b7d4e_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderAuditEntry",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("actor_role", models.CharField(max_length=20)),
                ("field_name", models.CharField(default="shipping_status", max_length=50)),
                ("old_value", models.CharField(blank=True, max_length=255, null=True)),
                ("new_value", models.CharField(blank=True, max_length=255, null=True)),
                ("note", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="order_audit_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="audit_entries",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "order audit entries",
                "ordering": ["-created_at"],
            },
        ),
    ]
