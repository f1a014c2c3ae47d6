"""
Payments app configuration.

This app provides the billing engine:
- Featured-listing payments backed by Stripe PaymentIntents
- Recurring plan subscriptions backed by Stripe Subscriptions
- Idempotent Stripe webhook reconciliation
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self) -> None:
        # Registers the webhook handlers
        from payments.webhooks import handlers  # noqa: F401
