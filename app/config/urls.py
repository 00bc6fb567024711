"""
Root URL configuration.

URL Structure:
    /                                   - ReDoc API documentation
    /schema/                            - OpenAPI schema (YAML)
    /admin/                             - Django admin interface
    /health/                            - Health check endpoint
    /api/v1/auth/token/                 - Obtain JWT pair
    /api/v1/auth/token/refresh/         - Refresh JWT access token
    /api/v1/payments/                   - Payment endpoints
        initiate/                       - Start a listing term purchase (POST)
        {id}/status/                    - Poll payment status (GET)
        callbacks/{provider}/           - Provider result callbacks (POST)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Hidden Gems Admin"
admin.site.site_title = "Hidden Gems"
admin.site.index_title = "Listings and payments"
