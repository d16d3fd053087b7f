# apps/outlets/serializers.py
from rest_framework import serializers

from .models import Outlet


class OutletSerializer(serializers.ModelSerializer):
    class Meta:
        model = Outlet
        fields = ["id", "name", "location_alias", "address", "is_active"]


class BackfillRequestSerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False, min_value=1, max_value=1000)
