# apps/notifications/views.py
from django.shortcuts import get_object_or_404

from rest_framework import generics, views, permissions
from rest_framework.response import Response

from apps.utils.pagination import StandardResultsSetPagination
from .serializers import NotificationSerializer
from .services import inbox_for, mark_all_read


class NotificationListView(generics.ListAPIView):
    """
    GET /api/v1/notifications/?unread=true
    """
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = StandardResultsSetPagination

    def get_queryset(self):
        qs = inbox_for(self.request.user).order_by("-created_at")
        if self.request.query_params.get("unread", "").lower() in ("1", "true", "yes"):
            qs = qs.filter(is_read=False)
        return qs


class NotificationMarkReadView(views.APIView):
    """
    POST /api/v1/notifications/<id>/read/
    POST /api/v1/notifications/read-all/
    """

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk=None):
        if pk == "read-all":
            updated = mark_all_read(request.user)
            return Response({"status": "all_read", "updated": updated})

        notif = get_object_or_404(inbox_for(request.user), id=pk)
        notif.mark_read()
        return Response({"status": "read"})
