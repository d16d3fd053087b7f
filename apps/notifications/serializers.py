# apps/notifications/serializers.py
from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    order_id = serializers.CharField(read_only=True, allow_null=True)
    is_broadcast = serializers.BooleanField(read_only=True)

    class Meta:
        model = Notification
        fields = [
            "id",
            "type",
            "title",
            "body",
            "data",
            "order_id",
            "outlet",
            "is_broadcast",
            "is_read",
            "read_at",
            "created_at",
        ]
        read_only_fields = fields
