from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView


def health_check(request):
    return JsonResponse({"status": "healthy", "service": "spa_notify"})


urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', health_check, name='service-health'),

    # API Schema and Docs
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # Notifications app endpoints
    path('api/notifications/', include('booking_notifications.urls')),
]
