"""
Celery tasks for payment processing.

This module provides async tasks for:
- Re-processing stored Stripe webhook events
- Retrying failed webhook events
- Periodic cleanup of old/stuck events

The webhook view processes events synchronously; these tasks pick up
whatever it left FAILED or stuck in PROCESSING.

Usage:
    from payments.tasks import process_webhook_event

    # Re-process a stored webhook
    process_webhook_event.delay(str(webhook_event_id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

STUCK_PROCESSING_THRESHOLD_MINUTES = 30
RETRY_BATCH_SIZE = 100


class WebhookProcessingFailed(Exception):
    """Raised inside process_webhook_event so Celery retries it."""


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(WebhookProcessingFailed,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 3},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a stored Stripe webhook event.

    This task:
    1. Loads the WebhookEvent by ID
    2. Skips it if already processed or out of attempts
    3. Runs it through WebhookProcessor

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with processing result status

    Raises:
        WebhookProcessingFailed: Handler failed and attempts remain
    """
    # Import here to avoid circular imports
    from payments.webhooks.processor import WebhookProcessor

    # Convert string ID to UUID if needed
    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    # Check if already processed (idempotency)
    if webhook_event.is_processed:
        return {
            "status": "already_processed",
            "webhook_event_id": str(webhook_event_id),
        }

    if webhook_event.retry_count >= settings.PAYMENTS_WEBHOOK_MAX_RETRIES:
        logger.warning(
            "WebhookEvent exhausted its attempts",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "retry_count": webhook_event.retry_count,
            },
        )
        return {"status": "exhausted", "webhook_event_id": str(webhook_event_id)}

    result = WebhookProcessor.process(webhook_event)

    if result.success:
        return {
            "status": "processed",
            "webhook_event_id": str(webhook_event_id),
            "stripe_event_id": webhook_event.stripe_event_id,
        }

    if webhook_event.can_retry:
        raise WebhookProcessingFailed(result.error)

    return {
        "status": "handler_failed",
        "webhook_event_id": str(webhook_event_id),
        "error": result.error,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to retry failed webhook events.

    Finds failed webhooks below PAYMENTS_WEBHOOK_MAX_RETRIES attempts
    and re-queues them for processing.

    Scheduled via celery-beat every 5 minutes.

    Returns:
        Dict with count of webhooks queued for retry
    """
    failed_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=settings.PAYMENTS_WEBHOOK_MAX_RETRIES,
    ).order_by("created_at")[:RETRY_BATCH_SIZE]

    queued_count = 0
    for webhook in failed_webhooks:
        process_webhook_event.delay(str(webhook.id))
        queued_count += 1
        logger.info(
            "Queued failed webhook for retry",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
                "retry_count": webhook.retry_count,
            },
        )

    logger.info(
        f"Queued {queued_count} failed webhooks for retry",
        extra={"queued_count": queued_count},
    )

    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Periodic task to reset stuck webhooks.

    Finds webhooks that have been in PROCESSING status for too long
    and resets them to FAILED so they can be retried.

    This handles cases where the web or worker process died during
    processing.

    Returns:
        Dict with count of webhooks reset
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)

    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        stuck_since = webhook.updated_at
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save()
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
                "stuck_since": stuck_since.isoformat(),
            },
        )

    if reset_count > 0:
        logger.info(
            f"Reset {reset_count} stuck webhooks",
            extra={"reset_count": reset_count},
        )

    return {"reset_count": reset_count}


@shared_task
def cleanup_old_webhooks(days: int | None = None) -> dict:
    """
    Periodic task to clean up old processed webhook events.

    Removes processed webhooks older than the given number of days
    (PAYMENTS_WEBHOOK_RETENTION_DAYS by default). Failed webhooks are
    kept for debugging.

    Args:
        days: Delete processed webhooks older than this many days

    Returns:
        Dict with count of webhooks deleted
    """
    if days is None:
        days = settings.PAYMENTS_WEBHOOK_RETENTION_DAYS
    cutoff = timezone.now() - timedelta(days=days)

    deleted_count, _ = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSED,
        processed_at__lt=cutoff,
    ).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={
                "deleted_count": deleted_count,
                "cutoff_date": cutoff.isoformat(),
            },
        )

    return {"deleted_count": deleted_count}
