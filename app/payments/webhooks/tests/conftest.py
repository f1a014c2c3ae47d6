"""
Pytest fixtures for webhook tests.

Provides fixtures for testing webhook views, handlers, processor and
tasks: Stripe event payloads, stored WebhookEvent rows and a request
factory for the webhook endpoint.
"""

import json
import uuid
from datetime import datetime, timezone as dt_timezone
from unittest.mock import patch

import pytest
from django.test import RequestFactory

from payments.state_machines import WebhookEventStatus
from payments.tests.factories import WebhookEventFactory


def ts(value: datetime) -> int:
    """Unix timestamp as Stripe sends it."""
    return int(value.timestamp())


RENEWAL_END = datetime(2030, 3, 1, tzinfo=dt_timezone.utc)


# =============================================================================
# Payload Builders
# =============================================================================


def stripe_event(event_type: str, data_object: dict, event_id: str | None = None) -> dict:
    """Build a Stripe event envelope around a data object."""
    return {
        "id": event_id or f"evt_{uuid.uuid4().hex[:16]}",
        "object": "event",
        "type": event_type,
        "data": {"object": data_object},
    }


def payment_intent_object(
    intent_id: str,
    payment_id=None,
    latest_charge: str | None = "ch_webhook_123",
    error_message: str | None = None,
) -> dict:
    data = {
        "id": intent_id,
        "object": "payment_intent",
        "latest_charge": latest_charge,
        "metadata": {"payment_id": str(payment_id)} if payment_id else {},
    }
    if error_message:
        data["last_payment_error"] = {"message": error_message}
    return data


def subscription_object(
    stripe_subscription_id: str,
    status: str = "active",
    current_period_end: datetime | None = RENEWAL_END,
    cancel_at_period_end: bool = False,
) -> dict:
    return {
        "id": stripe_subscription_id,
        "object": "subscription",
        "status": status,
        "current_period_end": ts(current_period_end) if current_period_end else None,
        "cancel_at_period_end": cancel_at_period_end,
    }


def invoice_object(
    invoice_id: str,
    stripe_subscription_id: str | None,
    amount_paid: int = 2999,
    period_end: datetime = RENEWAL_END,
    billing_reason: str = "subscription_cycle",
) -> dict:
    return {
        "id": invoice_id,
        "object": "invoice",
        "subscription": stripe_subscription_id,
        "billing_reason": billing_reason,
        "amount_paid": amount_paid,
        "currency": "usd",
        "payment_intent": f"pi_{invoice_id}",
        "lines": {"data": [{"period": {"end": ts(period_end)}}]},
    }


# =============================================================================
# WebhookEvent Fixtures
# =============================================================================


@pytest.fixture
def make_webhook_event(db):
    """Store a WebhookEvent for a Stripe event dict."""

    def _create(event: dict, **kwargs):
        return WebhookEventFactory(
            stripe_event_id=event["id"],
            event_type=event["type"],
            payload=event,
            **kwargs,
        )

    return _create


@pytest.fixture
def failed_webhook_event(db):
    """A FAILED event for a type with no handler (succeeds on retry)."""
    event = stripe_event("charge.updated", {"id": "ch_1"})
    return WebhookEventFactory(
        stripe_event_id=event["id"],
        event_type=event["type"],
        payload=event,
        status=WebhookEventStatus.FAILED,
        retry_count=1,
        error_message="boom",
    )


# =============================================================================
# Request Fixtures
# =============================================================================


@pytest.fixture
def rf():
    """Request factory for creating test requests."""
    return RequestFactory()


@pytest.fixture
def webhook_request(rf):
    """Build a POST to the webhook endpoint with a Stripe-Signature header."""

    def _create(payload: dict, signature: str | None = "t=1,v1=test"):
        headers = {"HTTP_STRIPE_SIGNATURE": signature} if signature else {}
        return rf.post(
            "/api/v1/payments/webhooks/stripe/",
            data=json.dumps(payload),
            content_type="application/json",
            **headers,
        )

    return _create


@pytest.fixture
def mock_verify_signature():
    """Patch signature verification; set return_value to the event dict."""
    with patch(
        "payments.webhooks.views.StripeAdapter.verify_webhook_signature"
    ) as mock:
        yield mock
