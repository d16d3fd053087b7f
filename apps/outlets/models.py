from django.db import models


class Outlet(models.Model):
    """
    Physical store that packs orders and hands them off.

    `id` is a stable slug (e.g. "outlet_bonbin") because legacy orders and
    the keyword synonym table refer to outlets by it.
    """
    id = models.CharField(primary_key=True, max_length=64)
    name = models.CharField(max_length=100)
    # Short place name used to match free-text shipping fields, e.g. "bonbin"
    location_alias = models.CharField(max_length=100, blank=True)
    address = models.TextField(blank=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.name} ({self.id})"
