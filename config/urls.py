from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

admin_url = settings.ADMIN_URL.strip("/") + "/"

urlpatterns = [
    path(admin_url, admin.site.urls),

    path('api/v1/orders/', include('apps.orders.urls')),
    path('api/v1/outlets/', include('apps.outlets.urls')),
    path('api/v1/notifications/', include('apps.notifications.urls')),
    path('api/v1/utils/', include('apps.utils.urls')),

    # Schema
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
]
