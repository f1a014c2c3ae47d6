"""
Payment adapters for external services.

This module provides adapters for external payment services like Stripe.
All external payment API calls should go through these adapters to ensure
consistent error handling, timeouts, idempotency, and observability.

Usage:
    from payments.adapters import StripeAdapter, CreatePaymentIntentParams

    # Create a PaymentIntent
    result = StripeAdapter.create_payment_intent(
        CreatePaymentIntentParams(
            amount_cents=2999,
            currency='usd',
            idempotency_key='create_intent:<payment_id>:1:a1b2c3d4',
        )
    )
"""

from payments.adapters.stripe_adapter import (
    CreateCustomerParams,
    CreatePaymentIntentParams,
    CreateSubscriptionParams,
    CustomerResult,
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    RefundResult,
    StripeAdapter,
    SubscriptionResult,
    from_minor_units,
    from_timestamp,
    to_minor_units,
)

__all__ = [
    "CreateCustomerParams",
    "CreatePaymentIntentParams",
    "CreateSubscriptionParams",
    "CustomerResult",
    "IdempotencyKeyGenerator",
    "PaymentIntentResult",
    "RefundResult",
    "StripeAdapter",
    "SubscriptionResult",
    "from_minor_units",
    "from_timestamp",
    "to_minor_units",
]
