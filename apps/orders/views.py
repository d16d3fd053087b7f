import logging

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.filters import SearchFilter, OrderingFilter
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.permissions import IsAdmin, IsStaffMember
from apps.utils.pagination import StandardResultsSetPagination
from .access import OrderAccessGuard
from .models import Order
from .serializers import (
    OrderSerializer,
    OrderCreateSerializer,
    StatusTransitionSerializer,
    ConfirmReceiptSerializer,
    AuditEntrySerializer,
    StatusChoiceSerializer,
    AssignmentOptionsSerializer,
)
from .services import OrderService

logger = logging.getLogger(__name__)


class OrderViewSet(mixins.ListModelMixin,
                   mixins.RetrieveModelMixin,
                   mixins.CreateModelMixin,
                   mixins.DestroyModelMixin,
                   viewsets.GenericViewSet):
    """
    Back-office order API. Every read is scoped by OrderAccessGuard;
    every write goes through OrderService.
    """
    serializer_class = OrderSerializer
    permission_classes = [IsStaffMember]
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ["shipping_status", "outlet", "assigned_deliveryman"]
    search_fields = ["id", "customer_name", "customer_phone", "tracking_number"]
    ordering_fields = ["created_at", "updated_at", "total_amount"]

    def get_permissions(self):
        if self.action in ("create", "destroy", "resolve_outlet"):
            return [IsAdmin()]
        return super().get_permissions()

    def get_queryset(self):
        qs = Order.objects.select_related("outlet", "assigned_deliveryman")
        return OrderAccessGuard.visible_orders(self.request.user, qs)

    def retrieve(self, request, pk=None):
        order = OrderService.get_order(request.user, pk)
        return Response(OrderSerializer(order).data)

    def create(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = OrderService.create_order(request.user, serializer.validated_data)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        OrderService.delete_order(request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request, pk=None):
        serializer = StatusTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = OrderService.apply_status_transition(
            pk,
            serializer.validated_data["status"],
            actor=request.user,
            fields=serializer.validated_fields(),
        )
        return Response({
            "order": OrderSerializer(result.order).data,
            "old_status": result.old_status,
            "new_status": result.new_status,
            "audit_entry_id": result.audit_entry_id,
        })

    @action(detail=True, methods=["get"])
    def audit(self, request, pk=None):
        order = OrderService.get_order(request.user, pk)
        entries = order.audit_entries.select_related("actor")
        return Response(AuditEntrySerializer(entries, many=True).data)

    @action(detail=True, methods=["post"], url_path="resolve-outlet")
    def resolve_outlet(self, request, pk=None):
        order = OrderService.reassign_outlet(request.user, pk)
        return Response(OrderSerializer(order).data)

    @action(detail=False, methods=["get"], url_path="assignment-options")
    def assignment_options(self, request):
        options = OrderService.assignment_options(request.user)
        return Response(AssignmentOptionsSerializer(options).data)

    @action(detail=False, methods=["get"])
    def statuses(self, request):
        return Response(StatusChoiceSerializer(StatusChoiceSerializer.for_all(), many=True).data)


class ConfirmReceiptView(APIView):
    """
    Customer confirms delivery. No account: the name and phone on the
    order are the proof of identity.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request, order_id):
        serializer = ConfirmReceiptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = OrderService.confirm_receipt(
            order_id,
            customer_name=data["customer_name"],
            customer_phone=data["customer_phone"],
            note=data.get("note", ""),
        )
        return Response({
            "id": result.order.id,
            "shipping_status": result.new_status,
            "old_status": result.old_status,
        })
