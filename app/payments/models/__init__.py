"""
Payment domain models.

This module contains all billing models:
- Payment: Local ledger row for a single charge
- Subscription: Recurring plan subscription per owner
- SubscriptionPlan: Plan reference data
- FeaturedListingPackage: Featured placement reference data
- WebhookEvent: Stripe webhook event tracking for idempotent processing
"""

from payments.models.catalog import FeaturedListingPackage, SubscriptionPlan
from payments.models.payment import (
    FeaturedListingMetadata,
    Payment,
    PaymentMetadata,
    SubscriptionPaymentMetadata,
)
from payments.models.subscription import Subscription
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "FeaturedListingMetadata",
    "FeaturedListingPackage",
    "Payment",
    "PaymentMetadata",
    "Subscription",
    "SubscriptionPaymentMetadata",
    "SubscriptionPlan",
    "WebhookEvent",
]
