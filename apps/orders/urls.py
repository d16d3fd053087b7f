from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import OrderViewSet, ConfirmReceiptView

router = SimpleRouter()
router.register(r"", OrderViewSet, basename="orders")

urlpatterns = [
    path("<str:order_id>/received/", ConfirmReceiptView.as_view(), name="order-received"),
    path("", include(router.urls)),
]
