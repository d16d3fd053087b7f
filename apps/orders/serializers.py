from django.contrib.auth import get_user_model
from rest_framework import serializers

from apps.outlets.serializers import OutletSerializer
from apps.utils.utils import dict_clean
from apps.utils.validators import validate_phone
from .models import Order, OrderAuditEntry
from .status import accepted_statuses, branch_of


class OrderSerializer(serializers.ModelSerializer):
    outlet_id = serializers.CharField(read_only=True, allow_null=True)
    outlet_display_name = serializers.CharField(source="resolved_outlet_name", read_only=True)
    assigned_deliveryman_name = serializers.SerializerMethodField()
    branch = serializers.CharField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id", "customer_name", "customer_phone", "customer_email", "customer_address",
            "total_amount", "shipping_status", "branch",
            "outlet_id", "outlet_name", "outlet_display_name",
            "assigned_deliveryman", "assigned_deliveryman_name",
            "shipping_area", "pickup_method", "courier_service", "tracking_number",
            "shipping_location", "pickup_location",
            "pickup_outlet", "picked_up_by", "pickup_date", "pickup_time",
            "created_at", "updated_at",
        ]
        read_only_fields = fields

    def get_assigned_deliveryman_name(self, obj):
        if obj.assigned_deliveryman_id and obj.assigned_deliveryman is not None:
            return obj.assigned_deliveryman.display_name
        return None


class OrderCreateSerializer(serializers.ModelSerializer):
    outlet_id = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    class Meta:
        model = Order
        fields = [
            "customer_name", "customer_phone", "customer_email", "customer_address",
            "total_amount", "outlet_id", "outlet_name",
            "shipping_area", "pickup_method", "courier_service", "tracking_number",
            "shipping_location", "pickup_location",
        ]
        extra_kwargs = {"customer_phone": {"validators": [validate_phone]}}


class StatusTransitionSerializer(serializers.Serializer):
    status = serializers.CharField()
    outlet_id = serializers.CharField(required=False, allow_blank=True)
    outlet_name = serializers.CharField(required=False, allow_blank=True)
    deliveryman_id = serializers.UUIDField(required=False, allow_null=True)
    picked_up_by = serializers.CharField(required=False, allow_blank=True, max_length=255)
    pickup_date = serializers.DateField(required=False, allow_null=True)
    pickup_time = serializers.TimeField(required=False, allow_null=True)
    note = serializers.CharField(required=False, allow_blank=True)

    # Status membership is checked by the service so that the error
    # carries the accepted values in its payload.

    def validated_fields(self):
        """Everything but `status`, minus empty values."""
        return dict_clean({k: v for k, v in self.validated_data.items() if k != "status"})


class ConfirmReceiptSerializer(serializers.Serializer):
    customer_name = serializers.CharField()
    customer_phone = serializers.CharField()
    note = serializers.CharField(required=False, allow_blank=True)


class AuditEntrySerializer(serializers.ModelSerializer):
    actor_name = serializers.SerializerMethodField()

    class Meta:
        model = OrderAuditEntry
        fields = [
            "id", "order", "actor", "actor_name", "actor_role",
            "field_name", "old_value", "new_value", "note", "created_at",
        ]
        read_only_fields = fields

    def get_actor_name(self, obj):
        return obj.actor.display_name if obj.actor_id and obj.actor is not None else None


class StatusChoiceSerializer(serializers.Serializer):
    value = serializers.CharField()
    branch = serializers.CharField()

    @staticmethod
    def for_all():
        return [{"value": value, "branch": branch_of(value)} for value in accepted_statuses()]


class DeliverymanOptionSerializer(serializers.ModelSerializer):
    outlet_id = serializers.CharField(read_only=True, allow_null=True)
    outlet_name = serializers.CharField(source="outlet.name", read_only=True, default=None)

    class Meta:
        model = get_user_model()
        fields = ["id", "username", "full_name", "outlet_id", "outlet_name"]
        read_only_fields = fields


class AssignmentOptionsSerializer(serializers.Serializer):
    outlets = OutletSerializer(many=True, read_only=True)
    deliverymen = DeliverymanOptionSerializer(many=True, read_only=True)
