"""
URL configuration for the payments app.

Routes:
    - POST /initiate/ - Start a payment
    - GET /<payment_id>/status/ - Poll a payment
    - GET|POST /callbacks/<provider>/ - Provider result callbacks

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments.views import InitiatePaymentView, PaymentStatusView
from payments.webhooks.views import provider_callback

app_name = "payments"

urlpatterns = [
    path("initiate/", InitiatePaymentView.as_view(), name="initiate"),
    path("<uuid:payment_id>/status/", PaymentStatusView.as_view(), name="status"),
    # Provider callbacks
    path("callbacks/<str:provider>/", provider_callback, name="provider-callback"),
]
