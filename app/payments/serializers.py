"""
DRF serializers for payments app.

This module provides serializers for:
- Payment display and history
- Subscription display and status reports
- Plan and featured-package catalog
- Payment, featuring and subscription requests

Serializer Hierarchy:
    PaymentSerializer: Ledger row for history and detail responses
    CreatedPaymentSerializer: PaymentSerializer plus the client secret
    SubscriptionSerializer: Subscription with computed days_remaining
    SubscriptionStatusSerializer: Answer to "am I subscribed?"

    CreatePaymentSerializer / FeatureListingSerializer /
    CreateSubscriptionSerializer / RefundPaymentSerializer: Requests

Related files:
    - views.py: Payment API views
    - services/: Orchestrators the views delegate to

Usage:
    serializer = PaymentSerializer(payment)
    data = serializer.data
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from rest_framework import serializers

from payments.models import (
    FeaturedListingPackage,
    Payment,
    Subscription,
    SubscriptionPlan,
)
from payments.state_machines import PaymentKind


# =============================================================================
# Catalog
# =============================================================================


class SubscriptionPlanSerializer(serializers.ModelSerializer):
    """Active plan as shown on the pricing page."""

    class Meta:
        model = SubscriptionPlan
        fields = ["id", "slug", "name", "price", "currency", "features"]
        read_only_fields = fields


class FeaturedListingPackageSerializer(serializers.ModelSerializer):
    """Purchasable featured-placement window."""

    class Meta:
        model = FeaturedListingPackage
        fields = ["id", "name", "duration_days", "price", "currency"]
        read_only_fields = fields


# =============================================================================
# Payments
# =============================================================================


class PaymentSerializer(serializers.ModelSerializer):
    """
    Payment serializer for API responses.

    Fields:
        id: Payment UUID
        kind: featured_listing or subscription
        amount/currency: Charged amount in major units
        status: pending, completed, failed or refunded
        listing: Featured listing ID (featured_listing payments only)
        subscription: Subscription ID (subscription payments only)
        metadata: Kind-specific metadata
        completed_at/failed_at/refunded_at: State timestamps
        failure_reason: Why the payment failed
        created_at: When the payment was created
    """

    class Meta:
        model = Payment
        fields = [
            "id",
            "kind",
            "amount",
            "currency",
            "status",
            "listing",
            "subscription",
            "metadata",
            "completed_at",
            "failed_at",
            "refunded_at",
            "failure_reason",
            "created_at",
        ]
        read_only_fields = fields


class CreatedPaymentSerializer(serializers.Serializer):
    """
    Response for payment creation.

    The frontend confirms the PaymentIntent with client_secret and then
    calls the confirm endpoint (or waits for the webhook).
    """

    payment = PaymentSerializer(read_only=True)
    client_secret = serializers.CharField(read_only=True, allow_null=True)


class CreatePaymentSerializer(serializers.Serializer):
    """
    Request body for POST /payments/.

    Fields:
        kind: featured_listing or subscription
        amount: Positive amount in major units
        currency: ISO 4217 code (defaults to PAYMENTS_DEFAULT_CURRENCY)
        listing_id: Target listing (required for featured_listing)
        duration_days: Featured window length (featured_listing only)
    """

    kind = serializers.ChoiceField(choices=PaymentKind.choices)
    amount = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal("0.01"),
    )
    currency = serializers.CharField(min_length=3, max_length=3, required=False)
    listing_id = serializers.IntegerField(required=False, allow_null=True)
    duration_days = serializers.IntegerField(
        required=False,
        min_value=1,
        max_value=settings.PAYMENTS_FEATURED_MAX_DAYS,
    )

    def validate_currency(self, value: str) -> str:
        if not value.isalpha():
            raise serializers.ValidationError("Currency must be a 3-letter ISO code.")
        return value.upper()

    def validate(self, attrs: dict) -> dict:
        if attrs["kind"] == PaymentKind.FEATURED_LISTING and not attrs.get("listing_id"):
            raise serializers.ValidationError(
                {"listing_id": "This field is required for featured listing payments."}
            )
        return attrs


class FeatureListingSerializer(serializers.Serializer):
    """Request body for POST /listings/{id}/feature/."""

    package_id = serializers.IntegerField()


class RefundPaymentSerializer(serializers.Serializer):
    """Request body for POST /payments/{id}/refund/."""

    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


# =============================================================================
# Subscriptions
# =============================================================================


class SubscriptionSerializer(serializers.ModelSerializer):
    """
    Subscription serializer for API responses.

    Fields:
        id: Subscription UUID
        plan: Plan slug
        status: active, cancelled or expired
        starts_at/ends_at: Paid period
        auto_renew: False once cancellation was requested
        cancelled_at: When Stripe cancelled the subscription
        days_remaining: Whole days left while active
    """

    days_remaining = serializers.IntegerField(read_only=True)

    class Meta:
        model = Subscription
        fields = [
            "id",
            "plan",
            "status",
            "starts_at",
            "ends_at",
            "auto_renew",
            "cancelled_at",
            "days_remaining",
            "created_at",
        ]
        read_only_fields = fields


class CreateSubscriptionSerializer(serializers.Serializer):
    """Request body for POST /subscriptions/."""

    plan = serializers.SlugField(max_length=50)


class SubscriptionStatusSerializer(serializers.Serializer):
    """Response for GET /subscriptions/check/."""

    has_active_subscription = serializers.BooleanField(read_only=True)
    subscription = SubscriptionSerializer(read_only=True, allow_null=True)
    days_remaining = serializers.IntegerField(read_only=True)
