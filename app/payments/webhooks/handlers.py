"""
Webhook event handlers for Stripe events.

This module provides a handler registry and implementations for
processing different Stripe webhook events.

The handler registry allows:
- Clean separation between event routing and handling
- Easy extension for new event types
- Centralized error handling

Delivery is at-least-once and unordered, so every handler is safe to
replay: payment transitions only move out of PENDING, ends_at only moves
forward, and invoice charges are recorded once per invoice ID.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    # Register a custom handler
    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    # Dispatch an event to its handler
    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.services import ServiceResult

from payments.adapters import from_minor_units, from_timestamp
from payments.models import (
    Payment,
    Subscription,
    SubscriptionPaymentMetadata,
    WebhookEvent,
)
from payments.services import PaymentTransitionService
from payments.state_machines import (
    PaymentKind,
    PaymentStatus,
    SubscriptionStatus,
    map_stripe_subscription_status,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(*event_types: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("invoice.paid", "invoice.payment_succeeded")
        def handle_invoice_paid(webhook_event: WebhookEvent) -> ServiceResult:
            ...

    Args:
        event_types: One or more Stripe event types

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
            logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Looks up the handler by event type and calls it. If no handler
    is registered, logs and returns success (to avoid failing on
    unknown events).

    Args:
        webhook_event: The WebhookEvent to process

    Returns:
        ServiceResult from the handler, or success if no handler
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )

    return handler(webhook_event)


# =============================================================================
# Payload Helpers
# =============================================================================


def _parse_uuid(value: Any) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _subscription_period_end(data_object: dict) -> Any:
    """current_period_end, which newer API versions moved onto the items."""
    period_end = data_object.get("current_period_end")
    if period_end:
        return from_timestamp(period_end)
    items = (data_object.get("items") or {}).get("data") or []
    ends = [item.get("current_period_end") for item in items if item.get("current_period_end")]
    return from_timestamp(max(ends)) if ends else None


def _invoice_subscription_id(invoice: dict) -> str | None:
    """The subscription an invoice bills, across API versions."""
    subscription = invoice.get("subscription")
    if isinstance(subscription, dict):
        subscription = subscription.get("id")
    if subscription:
        return subscription
    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    return details.get("subscription")


def _invoice_period_end(invoice: dict) -> Any:
    """End of the billed period: latest line period end, else period_end."""
    lines = (invoice.get("lines") or {}).get("data") or []
    ends = [
        (line.get("period") or {}).get("end")
        for line in lines
        if (line.get("period") or {}).get("end")
    ]
    if ends:
        return from_timestamp(max(ends))
    return from_timestamp(invoice.get("period_end"))


# =============================================================================
# Payment Intent Handlers
# =============================================================================


def _find_payment_for_intent(
    payment_intent_id: str,
    data_object: dict,
    stripe_event_id: str,
) -> Payment | None:
    """
    Find the Payment an intent belongs to.

    Looks up by intent reference first. An intent that raced ahead of
    attach_intent() is matched by metadata.payment_id and attached here.
    """
    payment = Payment.objects.filter(stripe_payment_intent_id=payment_intent_id).first()
    if payment is not None:
        return payment

    payment_id = _parse_uuid((data_object.get("metadata") or {}).get("payment_id"))
    if payment_id is None:
        return None

    with transaction.atomic():
        payment = Payment.objects.select_for_update().filter(pk=payment_id).first()
        if payment is None:
            return None
        if payment.stripe_payment_intent_id not in (None, "", payment_intent_id):
            logger.warning(
                "Payment from metadata already has a different intent",
                extra={
                    "payment_id": str(payment.id),
                    "payment_intent_id": payment_intent_id,
                    "stripe_event_id": stripe_event_id,
                },
            )
            return None
        payment.attach_intent(payment_intent_id)
        payment.save()

    logger.info(
        "Attached intent to payment from webhook metadata",
        extra={
            "payment_id": str(payment.id),
            "payment_intent_id": payment_intent_id,
            "stripe_event_id": stripe_event_id,
        },
    )
    return payment


@register_handler("payment_intent.succeeded")
def handle_payment_intent_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle successful payment confirmation.

    Called when Stripe sends payment_intent.succeeded webhook.
    Completes the Payment through PaymentTransitionService, the same
    path the synchronous confirm uses. Replays are no-ops.

    Args:
        webhook_event: The WebhookEvent containing the event data

    Returns:
        ServiceResult with success/failure status
    """
    data_object = webhook_event.data_object
    payment_intent_id = webhook_event.get_object_id()

    if not payment_intent_id:
        logger.error(
            "payment_intent.succeeded: Could not extract payment_intent_id",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.failure(
            "Could not extract payment_intent_id from webhook",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    logger.info(
        "Processing payment_intent.succeeded",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "payment_intent_id": payment_intent_id,
        },
    )

    payment = _find_payment_for_intent(
        payment_intent_id, data_object, webhook_event.stripe_event_id
    )
    if payment is None:
        logger.warning(
            "Payment not found for payment_intent_id",
            extra={
                "payment_intent_id": payment_intent_id,
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        return ServiceResult.success(None)

    outcome = PaymentTransitionService.complete(
        payment.id,
        transaction_id=data_object.get("latest_charge") or payment_intent_id,
    )
    return ServiceResult.success(outcome.payment)


@register_handler("payment_intent.payment_failed")
def handle_payment_intent_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle payment failure notification.

    Called when Stripe sends payment_intent.payment_failed webhook.
    Payments that already left PENDING are left alone.

    Args:
        webhook_event: The WebhookEvent containing the event data

    Returns:
        ServiceResult with success/failure status
    """
    data_object = webhook_event.data_object
    payment_intent_id = webhook_event.get_object_id()

    if not payment_intent_id:
        logger.error(
            "payment_intent.payment_failed: Could not extract payment_intent_id",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.failure(
            "Could not extract payment_intent_id from webhook",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    # Extract failure reason from payload
    last_error = data_object.get("last_payment_error") or {}
    reason = last_error.get("message") or "Payment failed"

    logger.info(
        "Processing payment_intent.payment_failed",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "payment_intent_id": payment_intent_id,
            "reason": reason,
        },
    )

    payment = _find_payment_for_intent(
        payment_intent_id, data_object, webhook_event.stripe_event_id
    )
    if payment is None:
        logger.warning(
            "Payment not found for payment_intent_id",
            extra={
                "payment_intent_id": payment_intent_id,
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        return ServiceResult.success(None)

    outcome = PaymentTransitionService.fail(payment.id, reason=reason)
    return ServiceResult.success(outcome.payment)


# =============================================================================
# Subscription Handlers
# =============================================================================


def _lock_subscription(stripe_subscription_id: str) -> Subscription | None:
    return (
        Subscription.objects.select_for_update()
        .filter(stripe_subscription_id=stripe_subscription_id)
        .first()
    )


def _try_reactivate(subscription: Subscription, webhook_event: WebhookEvent) -> bool:
    """
    Return a cancelled or expired row to ACTIVE if nothing forbids it.

    A row Stripe already cancelled stays cancelled, and an owner never
    ends up with two active rows. Does not save.
    """
    log_extra = {
        "subscription_id": str(subscription.id),
        "stripe_event_id": webhook_event.stripe_event_id,
    }
    if subscription.cancelled_at:
        # Stripe never revives a canceled subscription
        logger.info(
            "Ignoring active status for a subscription Stripe already cancelled",
            extra=log_extra,
        )
        return False

    other_active = (
        Subscription.objects.filter(
            owner_id=subscription.owner_id,
            status=SubscriptionStatus.ACTIVE,
        )
        .exclude(pk=subscription.pk)
        .exists()
    )
    if other_active:
        logger.warning(
            "Not reactivating subscription: owner has another active one",
            extra={**log_extra, "owner_id": subscription.owner_id},
        )
        return False

    subscription.reactivate()
    return True



@register_handler("customer.subscription.created")
def handle_subscription_created(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Reconcile ends_at of a subscription the orchestrator already created.

    The local row is created by SubscriptionOrchestrator, not here; an
    event for an unknown subscription is a no-op.
    """
    data_object = webhook_event.data_object
    stripe_subscription_id = data_object.get("id")

    with transaction.atomic():
        subscription = (
            _lock_subscription(stripe_subscription_id) if stripe_subscription_id else None
        )
        if subscription is None:
            logger.info(
                "No local subscription for customer.subscription.created",
                extra={
                    "stripe_subscription_id": stripe_subscription_id,
                    "stripe_event_id": webhook_event.stripe_event_id,
                },
            )
            return ServiceResult.success(None)

        if subscription.extend_to(_subscription_period_end(data_object)):
            subscription.save()

    return ServiceResult.success(subscription)


@register_handler("customer.subscription.updated")
def handle_subscription_updated(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Mirror Stripe's view of a subscription onto the local row.

    Status mapping:
        active, trialing -> ACTIVE
        canceled, unpaid, past_due -> CANCELLED
        anything else -> EXPIRED

    Also updates ends_at from current_period_end and auto_renew from
    cancel_at_period_end.
    An active status never revives a row Stripe already cancelled.
    """
    data_object = webhook_event.data_object
    stripe_subscription_id = data_object.get("id")
    stripe_status = data_object.get("status")
    target = map_stripe_subscription_status(stripe_status)
    period_end = _subscription_period_end(data_object)

    logger.info(
        "Processing customer.subscription.updated",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "stripe_subscription_id": stripe_subscription_id,
            "stripe_status": stripe_status,
        },
    )

    with transaction.atomic():
        subscription = (
            _lock_subscription(stripe_subscription_id) if stripe_subscription_id else None
        )
        if subscription is None:
            logger.info(
                "No local subscription for customer.subscription.updated",
                extra={
                    "stripe_subscription_id": stripe_subscription_id,
                    "stripe_event_id": webhook_event.stripe_event_id,
                },
            )
            return ServiceResult.success(None)

        if target != subscription.status:
            if target == SubscriptionStatus.ACTIVE:
                _try_reactivate(subscription, webhook_event)
            elif target == SubscriptionStatus.CANCELLED:
                subscription.cancel()
            elif subscription.is_active:
                subscription.expire()

        if subscription.is_active:
            subscription.extend_to(period_end)
        elif period_end is not None:
            subscription.ends_at = period_end

        subscription.auto_renew = (
            subscription.is_active and not data_object.get("cancel_at_period_end", False)
        )
        subscription.save()

    logger.info(
        "Subscription reconciled",
        extra={
            "subscription_id": str(subscription.id),
            "status": subscription.status,
            "auto_renew": subscription.auto_renew,
        },
    )
    return ServiceResult.success(subscription)


@register_handler("customer.subscription.deleted")
def handle_subscription_deleted(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Stripe ended the subscription: mark it CANCELLED.

    Arrives independently of any local cancel request, possibly before
    the updated event. A missing local row is a logged no-op.
    """
    stripe_subscription_id = webhook_event.get_object_id()

    with transaction.atomic():
        subscription = (
            _lock_subscription(stripe_subscription_id) if stripe_subscription_id else None
        )
        if subscription is None:
            logger.info(
                "No local subscription for customer.subscription.deleted",
                extra={
                    "stripe_subscription_id": stripe_subscription_id,
                    "stripe_event_id": webhook_event.stripe_event_id,
                },
            )
            return ServiceResult.success(None)

        if subscription.status == SubscriptionStatus.CANCELLED:
            if subscription.auto_renew or subscription.cancelled_at is None:
                subscription.auto_renew = False
                subscription.cancelled_at = subscription.cancelled_at or timezone.now()
                subscription.save()
            return ServiceResult.success(subscription)

        subscription.cancel()
        subscription.save()

    logger.info(
        "Subscription cancelled by Stripe",
        extra={
            "subscription_id": str(subscription.id),
            "stripe_subscription_id": stripe_subscription_id,
        },
    )
    return ServiceResult.success(subscription)


# =============================================================================
# Invoice Handlers
# =============================================================================


@register_handler("invoice.paid", "invoice.payment_succeeded")
def handle_invoice_paid(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Record a renewal charge and extend the subscription.

    The first invoice (billing_reason=subscription_create) is skipped:
    SubscriptionOrchestrator already recorded that charge. Other
    invoices extend ends_at and add one completed Payment per invoice.
    A row that lapsed locally while the renewal was in flight is
    reactivated once the paid period covers now.
    """
    invoice = webhook_event.data_object
    invoice_id = invoice.get("id")
    billing_reason = invoice.get("billing_reason")

    if billing_reason == "subscription_create":
        logger.info(
            "Skipping subscription creation invoice",
            extra={"invoice_id": invoice_id, "stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    stripe_subscription_id = _invoice_subscription_id(invoice)
    if not invoice_id or not stripe_subscription_id:
        logger.info(
            "Invoice is not for a subscription, ignoring",
            extra={"invoice_id": invoice_id, "stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    with transaction.atomic():
        subscription = _lock_subscription(stripe_subscription_id)
        if subscription is None:
            logger.info(
                "No local subscription for paid invoice",
                extra={
                    "invoice_id": invoice_id,
                    "stripe_subscription_id": stripe_subscription_id,
                    "stripe_event_id": webhook_event.stripe_event_id,
                },
            )
            return ServiceResult.success(None)

        if Payment.objects.filter(
            subscription=subscription, transaction_id=invoice_id
        ).exists():
            logger.info(
                "Invoice already recorded",
                extra={"invoice_id": invoice_id, "subscription_id": str(subscription.id)},
            )
            return ServiceResult.success(subscription)

        changed = subscription.extend_to(_invoice_period_end(invoice))
        if (
            subscription.status == SubscriptionStatus.EXPIRED
            and subscription.ends_at is not None
            and subscription.ends_at > timezone.now()
        ):
            changed = _try_reactivate(subscription, webhook_event) or changed
        if changed:
            subscription.save()

        amount_paid = invoice.get("amount_paid") or 0
        currency = (invoice.get("currency") or settings.PAYMENTS_DEFAULT_CURRENCY).upper()
        if amount_paid > 0:
            Payment.objects.create(
                owner_id=subscription.owner_id,
                subscription=subscription,
                kind=PaymentKind.SUBSCRIPTION,
                amount=from_minor_units(amount_paid, currency),
                currency=currency,
                status=PaymentStatus.COMPLETED,
                stripe_payment_intent_id=invoice.get("payment_intent"),
                transaction_id=invoice_id,
                completed_at=timezone.now(),
                metadata=SubscriptionPaymentMetadata(
                    subscription_id=str(subscription.id),
                    plan=subscription.plan,
                    invoice_id=invoice_id,
                ).to_dict(),
            )

    logger.info(
        "Renewal invoice recorded",
        extra={
            "invoice_id": invoice_id,
            "subscription_id": str(subscription.id),
            "amount_paid": amount_paid,
            "ends_at": subscription.ends_at.isoformat() if subscription.ends_at else None,
        },
    )
    return ServiceResult.success(subscription)


@register_handler("invoice.payment_failed")
def handle_invoice_payment_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Log a failed renewal charge.

    Stripe retries the charge itself and reports the outcome through
    customer.subscription.updated / deleted.
    """
    invoice = webhook_event.data_object
    logger.warning(
        "Subscription invoice payment failed",
        extra={
            "invoice_id": invoice.get("id"),
            "stripe_subscription_id": _invoice_subscription_id(invoice),
            "attempt_count": invoice.get("attempt_count"),
            "stripe_event_id": webhook_event.stripe_event_id,
        },
    )
    return ServiceResult.success(None)
