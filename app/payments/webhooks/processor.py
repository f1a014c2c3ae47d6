"""
Synchronous processing of a stored WebhookEvent.

Used by the webhook view (so Stripe gets a 500 and redelivers when a
handler fails) and by the retry task for events left FAILED.

Usage:
    from payments.webhooks.processor import WebhookProcessor

    result = WebhookProcessor.process(webhook_event)
    if not result.success:
        ...
"""

from __future__ import annotations

from django.db import transaction

from core.services import BaseService, ServiceResult

from payments.models import WebhookEvent
from payments.webhooks.handlers import dispatch_webhook


class WebhookProcessor(BaseService):
    """Run the registered handler for an event and record the outcome."""

    @classmethod
    def process(cls, webhook_event: WebhookEvent) -> ServiceResult:
        """
        Process one event.

        Steps:
        1. Skip if already PROCESSED
        2. Mark PROCESSING (counts the attempt)
        3. Dispatch inside a transaction; a failed result rolls it back
        4. Mark PROCESSED or FAILED

        Returns:
            ServiceResult from the handler, or a failure for exceptions
        """
        logger = cls.get_logger()
        log_context = {
            "webhook_event_id": str(webhook_event.id),
            "stripe_event_id": webhook_event.stripe_event_id,
            "event_type": webhook_event.event_type,
        }

        if webhook_event.is_processed:
            logger.info("WebhookEvent already processed, skipping", extra=log_context)
            return ServiceResult.success(None)

        webhook_event.mark_processing()
        webhook_event.save()

        try:
            with transaction.atomic():
                result = dispatch_webhook(webhook_event)
                if not result.success:
                    transaction.set_rollback(True)
        except Exception as e:
            webhook_event.mark_failed(f"{type(e).__name__}: {e}")
            webhook_event.save()
            return cls.handle_exception(
                e, f"Webhook processing failed for {webhook_event.stripe_event_id}"
            )

        if result.success:
            webhook_event.mark_processed()
            webhook_event.save()
            logger.info(
                "Webhook processed successfully",
                extra={**log_context, "retry_count": webhook_event.retry_count},
            )
        else:
            error_msg = result.error or "Handler returned failure"
            webhook_event.mark_failed(error_msg)
            webhook_event.save()
            logger.warning(
                f"Webhook handler failed: {error_msg}",
                extra={**log_context, "error_code": result.error_code},
            )

        return result
