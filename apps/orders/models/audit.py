import uuid
from django.db import models
from django.conf import settings
from .order import Order


class OrderAuditEntry(models.Model):
    """
    Append-only record of one accepted change to an order field.
    Only removed through the cascade of a hard order delete.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, related_name="audit_entries", on_delete=models.CASCADE)

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="order_audit_entries",
    )
    actor_role = models.CharField(max_length=20)

    field_name = models.CharField(max_length=50, default="shipping_status")
    old_value = models.CharField(max_length=255, blank=True, null=True)
    new_value = models.CharField(max_length=255, blank=True, null=True)
    note = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "order audit entries"

    def __str__(self):
        return f"{self.order_id}: {self.old_value} -> {self.new_value} ({self.actor_role})"
