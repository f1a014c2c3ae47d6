"""
Payment services for coordinating billing operations.

This module provides:
- PaymentOrchestrator: Create, confirm and refund one-off payments
- SubscriptionOrchestrator: Create, cancel and report on subscriptions
- PaymentTransitionService: The single Payment state-transition path
- SideEffectApplier: Feature/unfeature listings for completed/refunded payments
- CustomerService: Obtain-or-create the Stripe customer for a user

Usage:
    from payments.services import CreatePaymentParams, PaymentOrchestrator

    created = PaymentOrchestrator.create_payment(
        CreatePaymentParams(
            owner=user,
            kind="featured_listing",
            amount=Decimal("29.99"),
            listing_id=listing.id,
        )
    )

    # Subscribe
    from payments.services import SubscriptionOrchestrator

    subscription = SubscriptionOrchestrator.create_subscription(user, "basic")
"""

from payments.services.customers import CustomerService
from payments.services.payment_orchestrator import (
    CreatedPayment,
    CreatePaymentParams,
    PaymentOrchestrator,
)
from payments.services.side_effects import SideEffectApplier
from payments.services.subscription_orchestrator import (
    SubscriptionOrchestrator,
    SubscriptionStatusReport,
)
from payments.services.transitions import (
    PaymentTransitionService,
    TransitionOutcome,
)

__all__ = [
    "CreatePaymentParams",
    "CreatedPayment",
    "CustomerService",
    "PaymentOrchestrator",
    "PaymentTransitionService",
    "SideEffectApplier",
    "SubscriptionOrchestrator",
    "SubscriptionStatusReport",
    "TransitionOutcome",
]
