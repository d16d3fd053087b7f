# apps/outlets/views.py
from rest_framework import viewsets, permissions
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.accounts.permissions import IsAdmin
from apps.orders.access import OrderAccessGuard
from apps.orders.exceptions import Forbidden
from apps.orders.serializers import OrderSerializer
from apps.utils.pagination import StandardResultsSetPagination
from .models import Outlet
from .serializers import OutletSerializer, BackfillRequestSerializer
from .services import OutletService


class OutletViewSet(viewsets.ReadOnlyModelViewSet):
    """
    GET  /api/v1/outlets/
    GET  /api/v1/outlets/<id>/orders/   (admin or outlet member)
    POST /api/v1/outlets/backfill/      (admin)
    """
    queryset = Outlet.objects.filter(is_active=True)
    serializer_class = OutletSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = None

    @action(detail=True, methods=["get"])
    def orders(self, request, pk=None):
        outlet = self.get_object()
        decision = OrderAccessGuard.check_outlet(request.user, outlet)
        if not decision:
            raise Forbidden(decision.reason, details={"outlet_id": outlet.id})

        qs = OrderAccessGuard.visible_orders(request.user).filter(outlet_id=outlet.id)
        qs = qs.select_related("outlet", "assigned_deliveryman")

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(qs, request, view=self)
        return paginator.get_paginated_response(OrderSerializer(page, many=True).data)

    @action(detail=False, methods=["post"], permission_classes=[IsAdmin])
    def backfill(self, request):
        serializer = BackfillRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = OutletService.backfill_outlets(limit=serializer.validated_data.get("limit"))
        return Response(result)
