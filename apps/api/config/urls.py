"""
URL configuration for the telehealth API.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)
from apps.authz.urls import auth_urlpatterns
from apps.core.observability.health import HealthzView, ReadyzView

urlpatterns = [
    # Health checks (no auth required)
    path('healthz', HealthzView.as_view(), name='healthz'),
    path('readyz', ReadyzView.as_view(), name='readyz'),

    # Admin
    path('admin/', admin.site.urls),

    # Authentication (JWT, registration, profile)
    path('api/', include('apps.core.urls')),
    path('api/', include(auth_urlpatterns)),

    # Private API (authentication required)
    path('api/v1/', include('apps.authz.urls')),  # User administration
    path('api/v1/', include('apps.audit.urls')),  # Audit log browsing
    path('api/v1/', include('apps.notifications.urls')),
    path('api/v1/', include('apps.connections.urls')),  # Provider-patient links
    path('api/v1/', include('apps.emr.urls')),  # Encounters + progress notes
    path('api/v1/', include('apps.scheduling.urls')),  # Appointments

    # API Schema
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/schema/swagger-ui/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/schema/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]

# Serve static files in development
if settings.DEBUG:
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
