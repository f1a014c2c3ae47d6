"""
Stripe customer handle management.

Each user has at most one Stripe Customer. Its ID is cached on the
user's Profile the first time the user pays and is never overwritten.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService

from payments.adapters import (
    CreateCustomerParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
)

if TYPE_CHECKING:
    from authentication.models import User


class CustomerService(BaseService):
    """Obtain-or-create the gateway customer for a user."""

    @classmethod
    def get_or_create_customer_id(cls, user: User) -> str:
        """
        Return the user's Stripe Customer ID, creating the customer if needed.

        Must be called outside any transaction: it may call Stripe.

        Raises:
            StripeError: The gateway call failed
        """
        from authentication.models import Profile

        profile, _ = Profile.objects.get_or_create(user=user)
        if profile.stripe_customer_id:
            return profile.stripe_customer_id

        result = StripeAdapter.get_or_create_customer(
            CreateCustomerParams(
                user_id=user.pk,
                email=user.email,
                name=profile.full_name,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    operation="create_customer",
                    entity_id=user.pk,
                ),
            )
        )

        # Set once: a concurrent request may have stored it first
        updated = Profile.objects.filter(pk=profile.pk, stripe_customer_id="").update(
            stripe_customer_id=result.id
        )
        if not updated:
            return Profile.objects.get(pk=profile.pk).stripe_customer_id

        cls.get_logger().info(
            "Stored Stripe customer for user",
            extra={"user_id": user.pk, "customer_id": result.id},
        )
        return result.id
