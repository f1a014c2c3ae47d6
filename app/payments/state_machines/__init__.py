"""
State machine enums and helpers for payment models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    STRIPE_SUBSCRIPTION_STATUS_MAP,
    PaymentKind,
    PaymentStatus,
    SubscriptionStatus,
    WebhookEventStatus,
    map_stripe_subscription_status,
)

__all__ = [
    "STRIPE_SUBSCRIPTION_STATUS_MAP",
    "PaymentKind",
    "PaymentStatus",
    "SubscriptionStatus",
    "WebhookEventStatus",
    "map_stripe_subscription_status",
]
