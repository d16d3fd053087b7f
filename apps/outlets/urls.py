from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import OutletViewSet

router = SimpleRouter()
router.register(r"", OutletViewSet, basename="outlets")

urlpatterns = [
    path("", include(router.urls)),
]
