# apps/notifications/models.py
from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.utils.models import TimestampedModel


class NotificationType(models.TextChoices):
    ORDER_STATUS_UPDATE = "order_status_update", "Order Status Update"


class Notification(TimestampedModel):
    """
    Single notification instance (inbox row), always owned by one user.

    `outlet` is set when the row reached the user as a member of that
    outlet; direct notifications leave it empty.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    outlet = models.ForeignKey(
        "outlets.Outlet",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="notifications",
    )
    order = models.ForeignKey(
        "orders.Order",
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="notifications",
    )

    type = models.CharField(
        max_length=50,
        choices=NotificationType.choices,
        default=NotificationType.ORDER_STATUS_UPDATE,
        db_index=True,
    )

    title = models.CharField(max_length=255, blank=True)
    body = models.TextField()

    data = models.JSONField(default=dict, blank=True)

    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "is_read", "created_at"], name="notif_user_read_idx"),
        ]

    def mark_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=["is_read", "read_at", "updated_at"])

    @property
    def is_broadcast(self):
        return self.outlet_id is not None

    def __str__(self):
        return f"{self.user_id} [{self.type}] {self.title}"
