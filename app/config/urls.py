"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/payments/              - Payment endpoints
        ""                         - Create payment (POST)
        history/                   - Own payment history (GET, paginated)
        {id}/confirm/              - Confirm payment with the gateway (POST)
        {id}/refund/               - Refund a completed payment (POST)
        listings/{id}/feature/     - Pay to feature a listing (POST)
        plans/                     - Active subscription plans (GET, public)
        featured-packages/         - Active featured packages (GET, public)
        subscriptions/             - Create subscription (POST)
        subscriptions/current/     - Current active subscription (GET)
        subscriptions/check/       - Subscription status with lazy expiry (GET)
        subscriptions/{id}/cancel/ - Cancel at period end (POST)
        webhooks/stripe/           - Stripe webhook endpoint (POST)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Payments, subscriptions and gateway webhooks
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Listing Billing Admin"
admin.site.site_title = "Billing Admin Portal"
admin.site.index_title = "Payments and subscriptions"
