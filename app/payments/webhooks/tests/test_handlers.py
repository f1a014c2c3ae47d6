"""
Tests for payment intent webhook handlers and the handler registry.

Tests cover:
- Handler registration and dispatch
- payment_intent.succeeded completing the payment once
- payment_intent.payment_failed failing only PENDING payments
- Matching an intent by metadata.payment_id before it was attached
- Missing or unknown payments
"""

from listings.models import Listing
from payments.models import Payment
from payments.state_machines import PaymentStatus
from payments.tests.factories import PaymentFactory
from payments.webhooks.handlers import (
    WEBHOOK_HANDLERS,
    dispatch_webhook,
    register_handler,
)
from payments.webhooks.tests.conftest import payment_intent_object, stripe_event


# =============================================================================
# Registry Tests
# =============================================================================


class TestHandlerRegistry:
    """Tests for register_handler and dispatch_webhook."""

    def test_expected_event_types_registered(self):
        for event_type in (
            "payment_intent.succeeded",
            "payment_intent.payment_failed",
            "customer.subscription.created",
            "customer.subscription.updated",
            "customer.subscription.deleted",
            "invoice.paid",
            "invoice.payment_succeeded",
            "invoice.payment_failed",
        ):
            assert event_type in WEBHOOK_HANDLERS

    def test_register_several_types(self, monkeypatch):
        monkeypatch.setattr(
            "payments.webhooks.handlers.WEBHOOK_HANDLERS", dict(WEBHOOK_HANDLERS)
        )
        from payments.webhooks import handlers

        @register_handler("test.one", "test.two")
        def handler(webhook_event):
            return None

        assert handlers.WEBHOOK_HANDLERS["test.one"] is handler
        assert handlers.WEBHOOK_HANDLERS["test.two"] is handler

    def test_unknown_type_succeeds(self, make_webhook_event):
        event = make_webhook_event(stripe_event("charge.refunded", {"id": "ch_1"}))

        result = dispatch_webhook(event)

        assert result.success is True
        assert result.data is None


# =============================================================================
# payment_intent.succeeded Tests
# =============================================================================


class TestPaymentIntentSucceeded:
    """Tests for handle_payment_intent_succeeded."""

    def test_completes_pending_payment(self, make_webhook_event, listing, pending_payment):
        event = make_webhook_event(
            stripe_event(
                "payment_intent.succeeded",
                payment_intent_object("pi_test_pending", latest_charge="ch_abc"),
            )
        )

        result = dispatch_webhook(event)

        assert result.success is True
        payment = Payment.objects.get(pk=pending_payment.pk)
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.transaction_id == "ch_abc"
        assert Listing.objects.get(pk=listing.pk).is_featured is True

    def test_transaction_id_falls_back_to_intent(
        self, make_webhook_event, pending_payment
    ):
        event = make_webhook_event(
            stripe_event(
                "payment_intent.succeeded",
                payment_intent_object("pi_test_pending", latest_charge=None),
            )
        )

        dispatch_webhook(event)

        assert Payment.objects.get(pk=pending_payment.pk).transaction_id == "pi_test_pending"

    def test_replay_applies_side_effect_once(
        self, make_webhook_event, listing, pending_payment
    ):
        data = payment_intent_object("pi_test_pending")
        dispatch_webhook(make_webhook_event(stripe_event("payment_intent.succeeded", data)))
        window = Listing.objects.get(pk=listing.pk).featured_until

        result = dispatch_webhook(
            make_webhook_event(stripe_event("payment_intent.succeeded", data))
        )

        assert result.success is True
        assert Listing.objects.get(pk=listing.pk).featured_until == window

    def test_matches_unattached_payment_by_metadata(self, make_webhook_event, user, listing):
        payment = PaymentFactory(
            owner=user, listing=listing, stripe_payment_intent_id=None
        )
        event = make_webhook_event(
            stripe_event(
                "payment_intent.succeeded",
                payment_intent_object("pi_early", payment_id=payment.id),
            )
        )

        result = dispatch_webhook(event)

        assert result.success is True
        payment = Payment.objects.get(pk=payment.pk)
        assert payment.stripe_payment_intent_id == "pi_early"
        assert payment.status == PaymentStatus.COMPLETED

    def test_metadata_payment_with_other_intent_ignored(
        self, make_webhook_event, pending_payment
    ):
        event = make_webhook_event(
            stripe_event(
                "payment_intent.succeeded",
                payment_intent_object("pi_stranger", payment_id=pending_payment.id),
            )
        )

        result = dispatch_webhook(event)

        assert result.success is True
        payment = Payment.objects.get(pk=pending_payment.pk)
        assert payment.status == PaymentStatus.PENDING
        assert payment.stripe_payment_intent_id == "pi_test_pending"

    def test_unknown_intent_is_noop(self, make_webhook_event):
        event = make_webhook_event(
            stripe_event("payment_intent.succeeded", payment_intent_object("pi_nobody"))
        )

        result = dispatch_webhook(event)

        assert result.success is True
        assert result.data is None

    def test_missing_intent_id_fails(self, make_webhook_event):
        event = make_webhook_event(
            stripe_event("payment_intent.succeeded", {"object": "payment_intent"})
        )

        result = dispatch_webhook(event)

        assert result.success is False
        assert result.error_code == "INVALID_WEBHOOK_PAYLOAD"


# =============================================================================
# payment_intent.payment_failed Tests
# =============================================================================


class TestPaymentIntentFailed:
    """Tests for handle_payment_intent_failed."""

    def test_fails_pending_payment(self, make_webhook_event, listing, pending_payment):
        event = make_webhook_event(
            stripe_event(
                "payment_intent.payment_failed",
                payment_intent_object(
                    "pi_test_pending", error_message="Your card was declined."
                ),
            )
        )

        result = dispatch_webhook(event)

        assert result.success is True
        payment = Payment.objects.get(pk=pending_payment.pk)
        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "Your card was declined."
        assert Listing.objects.get(pk=listing.pk).is_featured is False

    def test_default_reason(self, make_webhook_event, pending_payment):
        event = make_webhook_event(
            stripe_event(
                "payment_intent.payment_failed", payment_intent_object("pi_test_pending")
            )
        )

        dispatch_webhook(event)

        assert Payment.objects.get(pk=pending_payment.pk).failure_reason == "Payment failed"

    def test_does_not_touch_completed(self, make_webhook_event, completed_payment):
        event = make_webhook_event(
            stripe_event(
                "payment_intent.payment_failed",
                payment_intent_object("pi_test_completed"),
            )
        )

        result = dispatch_webhook(event)

        assert result.success is True
        assert (
            Payment.objects.get(pk=completed_payment.pk).status
            == PaymentStatus.COMPLETED
        )
