"""
Subscription orchestrator: create, cancel and report on subscriptions.

Stripe owns the recurring billing; the local Subscription row mirrors it.
The orchestrator creates the row together with the first charge, and
asks Stripe to stop renewing on cancel. Status changes after that
arrive through the customer.subscription.* webhooks.

Expiry is lazy: a subscription whose ends_at has passed is flipped to
EXPIRED the next time it is read through this service.

Usage:
    from payments.services import SubscriptionOrchestrator

    subscription = SubscriptionOrchestrator.create_subscription(user, "premium")
    report = SubscriptionOrchestrator.check_status(user)
    if report.has_active_subscription:
        ...
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.utils import timezone

from core.services import BaseService

from payments.adapters import (
    CreateSubscriptionParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
)
from payments.exceptions import (
    AlreadySubscribedError,
    GatewayUnavailableError,
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentValidationError,
    StripeError,
)
from payments.models import (
    Payment,
    Subscription,
    SubscriptionPaymentMetadata,
    SubscriptionPlan,
)
from payments.services.customers import CustomerService
from payments.services.payment_orchestrator import PaymentOrchestrator
from payments.state_machines import PaymentKind, PaymentStatus, SubscriptionStatus

if TYPE_CHECKING:
    from authentication.models import User


@dataclass
class SubscriptionStatusReport:
    """
    Answer to "does this owner have an active subscription right now?".

    Attributes:
        has_active_subscription: Active and not past ends_at
        subscription: Most recent subscription, if any
        days_remaining: Whole days left in the paid period
    """

    has_active_subscription: bool
    subscription: Subscription | None
    days_remaining: int


class SubscriptionOrchestrator(BaseService):
    """
    Entry point for recurring plan subscriptions.

    All methods are class methods - no instance state is maintained.
    """

    # =========================================================================
    # Lazy Expiry
    # =========================================================================

    @classmethod
    def expire_if_lapsed(cls, subscription: Subscription) -> Subscription:
        """
        Flip an ACTIVE subscription past its ends_at to EXPIRED.

        Returns the current row; unchanged when not lapsed.
        """
        if not subscription.is_lapsed:
            return subscription

        with cls.atomic():
            locked = Subscription.objects.select_for_update().get(pk=subscription.pk)
            if locked.is_lapsed:
                locked.expire()
                locked.save()
                cls.get_logger().info(
                    "Subscription expired",
                    extra={
                        "subscription_id": str(locked.id),
                        "owner_id": locked.owner_id,
                        "ends_at": locked.ends_at.isoformat(),
                    },
                )
        return locked

    # =========================================================================
    # Create
    # =========================================================================

    @classmethod
    def create_subscription(cls, owner: User, plan_slug: str) -> Subscription:
        """
        Subscribe the owner to a plan and record the first charge.

        Steps:
        1. Reject when an unexpired ACTIVE subscription exists
        2. Resolve the plan
        3. Create the Stripe customer and subscription (no transaction open)
        4. Insert Subscription{active} and Payment{completed} atomically

        Raises:
            AlreadySubscribedError: Owner already has an active subscription
            PaymentValidationError: Unknown, inactive or unpriced plan
            GatewayUnavailableError: Stripe failed; nothing was recorded
        """
        logger = cls.get_logger()

        existing = Subscription.objects.filter(
            owner=owner, status=SubscriptionStatus.ACTIVE
        ).first()
        if existing is not None:
            existing = cls.expire_if_lapsed(existing)
            if existing.is_active:
                raise AlreadySubscribedError(
                    "You already have an active subscription",
                    details={
                        "subscription_id": str(existing.id),
                        "plan": existing.plan,
                    },
                )

        plan = SubscriptionPlan.objects.filter(slug=plan_slug, is_active=True).first()
        if plan is None or not plan.stripe_price_id:
            raise PaymentValidationError(
                f"Subscription plan '{plan_slug}' is not available",
                error_code="PLAN_UNAVAILABLE",
                details={"plan": plan_slug},
            )

        subscription_id = uuid.uuid4()

        try:
            customer_id = CustomerService.get_or_create_customer_id(owner)
            result = StripeAdapter.create_subscription(
                CreateSubscriptionParams(
                    customer_id=customer_id,
                    price_id=plan.stripe_price_id,
                    idempotency_key=IdempotencyKeyGenerator.generate(
                        operation="create_subscription",
                        entity_id=subscription_id,
                    ),
                    metadata={
                        "subscription_id": str(subscription_id),
                        "user_id": str(owner.pk),
                        "plan": plan.slug,
                    },
                )
            )
        except StripeError as e:
            logger.error(
                "Failed to create subscription: Stripe error",
                extra={
                    "owner_id": owner.pk,
                    "plan": plan.slug,
                    "error_code": e.error_code,
                },
            )
            raise GatewayUnavailableError.from_stripe_error(e) from e

        try:
            with cls.atomic():
                subscription = Subscription.objects.create(
                    id=subscription_id,
                    owner=owner,
                    plan=plan.slug,
                    starts_at=timezone.now(),
                    ends_at=result.current_period_end,
                    auto_renew=not result.cancel_at_period_end,
                    stripe_subscription_id=result.id,
                    stripe_customer_id=result.customer_id or customer_id,
                )
                Payment.objects.create(
                    owner=owner,
                    subscription=subscription,
                    kind=PaymentKind.SUBSCRIPTION,
                    amount=plan.price,
                    currency=plan.currency,
                    status=PaymentStatus.COMPLETED,
                    stripe_payment_intent_id=result.latest_payment_intent_id,
                    transaction_id=result.latest_invoice_id,
                    completed_at=timezone.now(),
                    metadata=SubscriptionPaymentMetadata(
                        subscription_id=str(subscription.id),
                        plan=plan.slug,
                        invoice_id=result.latest_invoice_id,
                    ).to_dict(),
                )
        except IntegrityError:
            logger.warning(
                "Concurrent subscription creation lost the race",
                extra={"owner_id": owner.pk, "stripe_subscription_id": result.id},
            )
            cls._cancel_orphan(result.id)
            raise AlreadySubscribedError(
                "You already have an active subscription",
                details={"plan": plan.slug},
            )

        logger.info(
            "Subscription created",
            extra={
                "subscription_id": str(subscription.id),
                "owner_id": owner.pk,
                "plan": plan.slug,
                "stripe_subscription_id": result.id,
            },
        )
        return subscription

    @classmethod
    def _cancel_orphan(cls, stripe_subscription_id: str) -> None:
        """Cancel a Stripe subscription that has no local row."""
        try:
            StripeAdapter.cancel_subscription(stripe_subscription_id, at_period_end=False)
        except StripeError:
            cls.get_logger().error(
                "Failed to cancel orphaned Stripe subscription",
                extra={"stripe_subscription_id": stripe_subscription_id},
                exc_info=True,
            )

    # =========================================================================
    # Cancel
    # =========================================================================

    @classmethod
    def cancel_subscription(
        cls,
        subscription_id: uuid.UUID | str,
        actor: User,
    ) -> Subscription:
        """
        Stop renewing at the end of the paid period.

        Only auto_renew changes locally. The subscription stays ACTIVE
        until Stripe reports it cancelled or ends_at passes.

        Raises:
            PaymentNotFoundError: No such subscription
            PaymentPermissionDeniedError: Actor is not owner or staff
            InvalidStateTransitionError: Subscription is not active
            GatewayUnavailableError: Stripe failed; nothing changed locally
        """
        try:
            subscription = Subscription.objects.get(pk=subscription_id)
        except (Subscription.DoesNotExist, ValueError):
            raise PaymentNotFoundError(
                f"Subscription {subscription_id} not found",
                error_code="SUBSCRIPTION_NOT_FOUND",
                details={"subscription_id": str(subscription_id)},
            )

        PaymentOrchestrator.check_actor(
            subscription.owner_id, actor, "cancel this subscription"
        )

        subscription = cls.expire_if_lapsed(subscription)
        if not subscription.is_active:
            raise InvalidStateTransitionError(
                f"Cannot cancel subscription in {subscription.status} status",
                details={
                    "subscription_id": str(subscription.id),
                    "current_state": subscription.status,
                    "transition": "cancel",
                },
            )

        if not subscription.auto_renew:
            return subscription

        if subscription.stripe_subscription_id:
            try:
                StripeAdapter.cancel_subscription(
                    subscription.stripe_subscription_id,
                    at_period_end=True,
                )
            except StripeError as e:
                raise GatewayUnavailableError.from_stripe_error(e) from e

        with cls.atomic():
            subscription = Subscription.objects.select_for_update().get(
                pk=subscription.pk
            )
            subscription.auto_renew = False
            subscription.save()

        cls.get_logger().info(
            "Subscription set to cancel at period end",
            extra={
                "subscription_id": str(subscription.id),
                "ends_at": subscription.ends_at.isoformat() if subscription.ends_at else None,
            },
        )
        return subscription

    # =========================================================================
    # Status
    # =========================================================================

    @classmethod
    def check_status(cls, owner: User) -> SubscriptionStatusReport:
        """Report on the owner's most recent subscription, expiring it if lapsed."""
        subscription = (
            Subscription.objects.filter(owner=owner).order_by("-created_at").first()
        )
        if subscription is None:
            return SubscriptionStatusReport(
                has_active_subscription=False,
                subscription=None,
                days_remaining=0,
            )

        subscription = cls.expire_if_lapsed(subscription)
        return SubscriptionStatusReport(
            has_active_subscription=subscription.is_active,
            subscription=subscription,
            days_remaining=subscription.days_remaining,
        )

    @classmethod
    def current_subscription(cls, owner: User) -> Subscription | None:
        """The owner's ACTIVE subscription, or None."""
        subscription = Subscription.objects.filter(
            owner=owner, status=SubscriptionStatus.ACTIVE
        ).first()
        if subscription is None:
            return None
        subscription = cls.expire_if_lapsed(subscription)
        return subscription if subscription.is_active else None
