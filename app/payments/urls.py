"""
URL configuration for the payments app.

Routes:
    - POST ""                           - Create payment
    - GET  history/                     - Own payment history
    - POST <uuid>/confirm/              - Confirm payment
    - POST <uuid>/refund/               - Refund payment
    - POST listings/<int>/feature/      - Feature a listing by package
    - GET  plans/                       - Active subscription plans
    - GET  featured-packages/           - Active featured packages
    - POST subscriptions/               - Create subscription
    - GET  subscriptions/current/       - Current subscription
    - GET  subscriptions/check/         - Subscription status
    - POST subscriptions/<uuid>/cancel/ - Cancel at period end
    - POST webhooks/stripe/             - Stripe webhook endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import stripe_webhook

app_name = "payments"

urlpatterns = [
    # Payments
    path("", views.PaymentCreateView.as_view(), name="payment_create"),
    path("history/", views.PaymentHistoryView.as_view(), name="payment_history"),
    path(
        "<uuid:payment_id>/confirm/",
        views.PaymentConfirmView.as_view(),
        name="payment_confirm",
    ),
    path(
        "<uuid:payment_id>/refund/",
        views.PaymentRefundView.as_view(),
        name="payment_refund",
    ),
    path(
        "listings/<int:listing_id>/feature/",
        views.FeatureListingView.as_view(),
        name="feature_listing",
    ),
    # Catalog
    path("plans/", views.SubscriptionPlanListView.as_view(), name="plan_list"),
    path(
        "featured-packages/",
        views.FeaturedPackageListView.as_view(),
        name="featured_package_list",
    ),
    # Subscriptions
    path(
        "subscriptions/",
        views.SubscriptionCreateView.as_view(),
        name="subscription_create",
    ),
    path(
        "subscriptions/current/",
        views.CurrentSubscriptionView.as_view(),
        name="subscription_current",
    ),
    path(
        "subscriptions/check/",
        views.SubscriptionCheckView.as_view(),
        name="subscription_check",
    ),
    path(
        "subscriptions/<uuid:subscription_id>/cancel/",
        views.SubscriptionCancelView.as_view(),
        name="subscription_cancel",
    ),
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
]
