"""
State enums for payment models.

This module defines all state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Payment States:
    pending → completed → refunded
    pending → failed

Subscription States:
    active → cancelled
    active → expired
    cancelled/expired → active (gateway reports the subscription active again)

WebhookEvent Status:
    pending → processing → processed
    pending → processing → failed (can retry)
"""

from django.db import models


class PaymentKind(models.TextChoices):
    """
    What a Payment buys.

    - FEATURED_LISTING: Promotes a listing for a number of days
    - SUBSCRIPTION: A charge on a recurring subscription
    """

    FEATURED_LISTING = "featured_listing", "Featured Listing"
    SUBSCRIPTION = "subscription", "Subscription"


class PaymentStatus(models.TextChoices):
    """
    States for the Payment model lifecycle.

    Terminal states: FAILED, REFUNDED

    State Flow:
        PENDING → COMPLETED (intent succeeded; side effects applied once)
        PENDING → FAILED (intent did not succeed)
        COMPLETED → REFUNDED (side effects reversed)
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class SubscriptionStatus(models.TextChoices):
    """
    States for the Subscription model lifecycle.

    At most one ACTIVE row exists per owner (partial unique constraint).

    State Flow:
        ACTIVE → CANCELLED (gateway confirms cancellation)
        ACTIVE → EXPIRED (paid-through date elapsed, checked lazily)
        CANCELLED/EXPIRED → ACTIVE (gateway reports it active again)
    """

    ACTIVE = "active", "Active"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    Tracks the lifecycle of webhook event processing for idempotency.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


# Stripe subscription.status values mapped onto local status
STRIPE_SUBSCRIPTION_STATUS_MAP: dict[str, str] = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "canceled": SubscriptionStatus.CANCELLED,
    "unpaid": SubscriptionStatus.CANCELLED,
    "past_due": SubscriptionStatus.CANCELLED,
}


def map_stripe_subscription_status(stripe_status: str | None) -> str:
    """Map a Stripe subscription status to SubscriptionStatus; unknown → EXPIRED."""
    return STRIPE_SUBSCRIPTION_STATUS_MAP.get(
        stripe_status or "", SubscriptionStatus.EXPIRED
    )


__all__ = [
    "PaymentKind",
    "PaymentStatus",
    "SubscriptionStatus",
    "WebhookEventStatus",
    "STRIPE_SUBSCRIPTION_STATUS_MAP",
    "map_stripe_subscription_status",
]
