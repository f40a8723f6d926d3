"""
Tumble Dashboard Main URL Configuration
"""

from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.health import health_check, readiness_check


@api_view(['GET'])
@permission_classes([AllowAny])
def api_root(request):
    """API Root endpoint with available routes."""
    return Response({
        'name': 'Tumble Dashboard API',
        'version': '1.0.0',
        'endpoints': {
            'session': '/api/session/',
            'orders': {
                'estimate': '/api/orders/estimate/',
            },
            'health': {
                'live': '/health/',
                'ready': '/health/ready/',
            },
            'schema': '/api/schema/',
            'docs': '/api/docs/',
        }
    })


urlpatterns = [
    # Landing Page (Home)
    path('', include('home.urls')),

    # Health checks
    path('health/', health_check, name='health'),
    path('health/ready/', readiness_check, name='health-ready'),

    # API Root & docs
    path('api/', api_root, name='api-root'),
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # JSON helpers
    path('api/', include('core.api_urls')),
    path('api/orders/', include('orders.api_urls')),

    # Auth & role dashboards
    path('', include('core.urls')),

    # Customer workspace
    path('dashboard/', include('orders.urls')),
    path('dashboard/subscription/', include('subscriptions.urls')),
    path('dashboard/settings/', include('accounts.urls')),

    # Driver workspace
    path('dashboard/', include('drivers.urls')),

    # Admin workspace
    path('dashboard/', include('backoffice.urls')),
]
