"""
Tests for subscription and invoice webhook handlers.

Tests cover:
- customer.subscription.created reconciling ends_at
- customer.subscription.updated status mapping, ends_at and auto_renew
- customer.subscription.deleted, including out-of-order delivery
- invoice.paid recording one renewal Payment per invoice
- invoice.paid reactivating a row that lapsed before the renewal arrived
- Events for subscriptions with no local row
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from freezegun import freeze_time

from payments.models import Payment, Subscription
from payments.state_machines import PaymentKind, PaymentStatus, SubscriptionStatus
from payments.tests.factories import SubscriptionFactory
from payments.webhooks.handlers import dispatch_webhook
from payments.webhooks.tests.conftest import (
    RENEWAL_END,
    invoice_object,
    stripe_event,
    subscription_object,
    ts,
)


def reload(subscription: Subscription) -> Subscription:
    return Subscription.objects.get(pk=subscription.pk)


# =============================================================================
# customer.subscription.created Tests
# =============================================================================


class TestSubscriptionCreated:
    """Tests for handle_subscription_created."""

    def test_extends_ends_at(self, make_webhook_event, active_subscription):
        event = make_webhook_event(
            stripe_event(
                "customer.subscription.created",
                subscription_object(active_subscription.stripe_subscription_id),
            )
        )

        result = dispatch_webhook(event)

        assert result.success is True
        assert reload(active_subscription).ends_at == RENEWAL_END

    def test_period_end_from_items(self, make_webhook_event, active_subscription):
        data = subscription_object(
            active_subscription.stripe_subscription_id, current_period_end=None
        )
        data["items"] = {"data": [{"current_period_end": ts(RENEWAL_END)}]}

        dispatch_webhook(make_webhook_event(stripe_event("customer.subscription.created", data)))

        assert reload(active_subscription).ends_at == RENEWAL_END

    def test_unknown_subscription_is_noop(self, make_webhook_event):
        event = make_webhook_event(
            stripe_event("customer.subscription.created", subscription_object("sub_nobody"))
        )

        result = dispatch_webhook(event)

        assert result.success is True
        assert Subscription.objects.count() == 0


# =============================================================================
# customer.subscription.updated Tests
# =============================================================================


class TestSubscriptionUpdated:
    """Tests for handle_subscription_updated."""

    def dispatch(self, make_webhook_event, subscription, **kwargs):
        event = make_webhook_event(
            stripe_event(
                "customer.subscription.updated",
                subscription_object(subscription.stripe_subscription_id, **kwargs),
            )
        )
        return dispatch_webhook(event)

    def test_active_extends_period(self, make_webhook_event, active_subscription):
        result = self.dispatch(make_webhook_event, active_subscription)

        assert result.success is True
        subscription = reload(active_subscription)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.ends_at == RENEWAL_END
        assert subscription.auto_renew is True

    def test_earlier_period_end_ignored(self, make_webhook_event, user):
        subscription = SubscriptionFactory(
            owner=user, ends_at=RENEWAL_END + timedelta(days=30)
        )

        self.dispatch(make_webhook_event, subscription)

        assert reload(subscription).ends_at == RENEWAL_END + timedelta(days=30)

    def test_cancel_at_period_end_clears_auto_renew(
        self, make_webhook_event, active_subscription
    ):
        self.dispatch(make_webhook_event, active_subscription, cancel_at_period_end=True)

        subscription = reload(active_subscription)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.auto_renew is False

    @pytest.mark.parametrize("stripe_status", ["canceled", "unpaid", "past_due"])
    def test_cancelled_statuses(self, make_webhook_event, active_subscription, stripe_status):
        self.dispatch(make_webhook_event, active_subscription, status=stripe_status)

        subscription = reload(active_subscription)
        assert subscription.status == SubscriptionStatus.CANCELLED
        assert subscription.auto_renew is False
        assert subscription.cancelled_at is not None

    def test_unknown_status_expires(self, make_webhook_event, active_subscription):
        self.dispatch(make_webhook_event, active_subscription, status="incomplete_expired")

        assert reload(active_subscription).status == SubscriptionStatus.EXPIRED

    def test_reactivates_cancelled(self, make_webhook_event, user):
        subscription = SubscriptionFactory(owner=user, status=SubscriptionStatus.CANCELLED)

        self.dispatch(make_webhook_event, subscription)

        subscription = reload(subscription)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.auto_renew is True
        assert subscription.ends_at == RENEWAL_END

    def test_stale_active_after_stripe_cancel_ignored(self, make_webhook_event, user):
        subscription = SubscriptionFactory(
            owner=user,
            status=SubscriptionStatus.CANCELLED,
            cancelled_at=timezone.now(),
            auto_renew=False,
        )

        result = self.dispatch(make_webhook_event, subscription)

        assert result.success is True
        subscription = reload(subscription)
        assert subscription.status == SubscriptionStatus.CANCELLED
        assert subscription.auto_renew is False

    def test_no_reactivation_when_owner_has_other_active(
        self, make_webhook_event, user, active_subscription
    ):
        old = SubscriptionFactory(owner=user, status=SubscriptionStatus.CANCELLED)

        result = self.dispatch(make_webhook_event, old)

        assert result.success is True
        assert reload(old).status == SubscriptionStatus.CANCELLED
        assert reload(active_subscription).status == SubscriptionStatus.ACTIVE

    def test_replay_is_stable(self, make_webhook_event, active_subscription):
        self.dispatch(make_webhook_event, active_subscription, status="canceled")
        self.dispatch(make_webhook_event, active_subscription, status="canceled")

        assert reload(active_subscription).status == SubscriptionStatus.CANCELLED


# =============================================================================
# customer.subscription.deleted Tests
# =============================================================================


class TestSubscriptionDeleted:
    """Tests for handle_subscription_deleted."""

    def test_cancels_active(self, make_webhook_event, active_subscription):
        event = make_webhook_event(
            stripe_event(
                "customer.subscription.deleted",
                subscription_object(
                    active_subscription.stripe_subscription_id, status="canceled"
                ),
            )
        )

        result = dispatch_webhook(event)

        assert result.success is True
        subscription = reload(active_subscription)
        assert subscription.status == SubscriptionStatus.CANCELLED
        assert subscription.auto_renew is False

    def test_deleted_before_updated(self, make_webhook_event, active_subscription):
        """Out-of-order delivery ends CANCELLED either way."""
        sub_id = active_subscription.stripe_subscription_id
        dispatch_webhook(
            make_webhook_event(
                stripe_event(
                    "customer.subscription.deleted",
                    subscription_object(sub_id, status="canceled"),
                )
            )
        )
        dispatch_webhook(
            make_webhook_event(
                stripe_event(
                    "customer.subscription.updated",
                    subscription_object(
                        sub_id, status="canceled", cancel_at_period_end=True
                    ),
                )
            )
        )

        subscription = reload(active_subscription)
        assert subscription.status == SubscriptionStatus.CANCELLED
        assert subscription.auto_renew is False

    def test_already_cancelled_is_noop(self, make_webhook_event, user):
        subscription = SubscriptionFactory(owner=user, status=SubscriptionStatus.CANCELLED)
        event = make_webhook_event(
            stripe_event(
                "customer.subscription.deleted",
                subscription_object(subscription.stripe_subscription_id, status="canceled"),
            )
        )

        result = dispatch_webhook(event)

        assert result.success is True
        assert reload(subscription).status == SubscriptionStatus.CANCELLED

    def test_expired_becomes_cancelled(self, make_webhook_event, user):
        subscription = SubscriptionFactory(owner=user, status=SubscriptionStatus.EXPIRED)
        event = make_webhook_event(
            stripe_event(
                "customer.subscription.deleted",
                subscription_object(subscription.stripe_subscription_id, status="canceled"),
            )
        )

        dispatch_webhook(event)

        assert reload(subscription).status == SubscriptionStatus.CANCELLED

    def test_unknown_subscription_is_noop(self, make_webhook_event):
        event = make_webhook_event(
            stripe_event("customer.subscription.deleted", subscription_object("sub_nobody"))
        )

        assert dispatch_webhook(event).success is True


# =============================================================================
# Invoice Tests
# =============================================================================


class TestInvoicePaid:
    """Tests for handle_invoice_paid."""

    def test_records_renewal_and_extends(self, make_webhook_event, active_subscription):
        event = make_webhook_event(
            stripe_event(
                "invoice.paid",
                invoice_object("in_renewal_1", active_subscription.stripe_subscription_id),
            )
        )

        result = dispatch_webhook(event)

        assert result.success is True
        assert reload(active_subscription).ends_at == RENEWAL_END
        payment = Payment.objects.get(transaction_id="in_renewal_1")
        assert payment.kind == PaymentKind.SUBSCRIPTION
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.subscription_id == active_subscription.id
        assert payment.owner_id == active_subscription.owner_id
        assert payment.amount == Decimal("29.99")
        assert payment.currency == "USD"
        assert payment.stripe_payment_intent_id == "pi_in_renewal_1"
        assert payment.metadata["invoice_id"] == "in_renewal_1"

    def test_both_invoice_events_record_once(self, make_webhook_event, active_subscription):
        data = invoice_object("in_renewal_2", active_subscription.stripe_subscription_id)
        dispatch_webhook(make_webhook_event(stripe_event("invoice.paid", data)))
        dispatch_webhook(make_webhook_event(stripe_event("invoice.payment_succeeded", data)))

        assert Payment.objects.filter(transaction_id="in_renewal_2").count() == 1

    def test_creation_invoice_skipped(self, make_webhook_event, active_subscription):
        event = make_webhook_event(
            stripe_event(
                "invoice.paid",
                invoice_object(
                    "in_first",
                    active_subscription.stripe_subscription_id,
                    billing_reason="subscription_create",
                ),
            )
        )

        dispatch_webhook(event)

        assert Payment.objects.count() == 0

    def test_zero_amount_extends_without_payment(
        self, make_webhook_event, active_subscription
    ):
        event = make_webhook_event(
            stripe_event(
                "invoice.paid",
                invoice_object(
                    "in_free", active_subscription.stripe_subscription_id, amount_paid=0
                ),
            )
        )

        dispatch_webhook(event)

        assert Payment.objects.count() == 0
        assert reload(active_subscription).ends_at == RENEWAL_END

    @freeze_time("2030-02-10")
    def test_reactivates_row_that_lapsed_before_renewal(self, make_webhook_event, user):
        subscription = SubscriptionFactory(
            owner=user,
            status=SubscriptionStatus.EXPIRED,
            ends_at=timezone.now() - timedelta(days=9),
        )

        dispatch_webhook(
            make_webhook_event(
                stripe_event(
                    "invoice.paid",
                    invoice_object("in_late", subscription.stripe_subscription_id),
                )
            )
        )

        subscription = reload(subscription)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.ends_at == RENEWAL_END
        assert Payment.objects.filter(transaction_id="in_late").count() == 1

    @freeze_time("2030-02-10")
    def test_lapsed_row_stays_expired_when_owner_resubscribed(
        self, make_webhook_event, user
    ):
        lapsed = SubscriptionFactory(
            owner=user,
            status=SubscriptionStatus.EXPIRED,
            ends_at=timezone.now() - timedelta(days=9),
        )
        SubscriptionFactory(owner=user)

        dispatch_webhook(
            make_webhook_event(
                stripe_event(
                    "invoice.paid",
                    invoice_object("in_late", lapsed.stripe_subscription_id),
                )
            )
        )

        lapsed = reload(lapsed)
        assert lapsed.status == SubscriptionStatus.EXPIRED
        assert lapsed.ends_at == RENEWAL_END

    @freeze_time("2030-04-01")
    def test_paid_period_already_over_stays_expired(self, make_webhook_event, user):
        subscription = SubscriptionFactory(
            owner=user,
            status=SubscriptionStatus.EXPIRED,
            ends_at=timezone.now() - timedelta(days=60),
        )

        dispatch_webhook(
            make_webhook_event(
                stripe_event(
                    "invoice.paid",
                    invoice_object("in_old", subscription.stripe_subscription_id),
                )
            )
        )

        assert reload(subscription).status == SubscriptionStatus.EXPIRED

    def test_subscription_from_parent_details(self, make_webhook_event, active_subscription):
        data = invoice_object("in_new_api", None)
        data["parent"] = {
            "subscription_details": {
                "subscription": active_subscription.stripe_subscription_id
            }
        }

        dispatch_webhook(make_webhook_event(stripe_event("invoice.paid", data)))

        assert Payment.objects.filter(transaction_id="in_new_api").exists()

    def test_non_subscription_invoice_ignored(self, make_webhook_event):
        event = make_webhook_event(stripe_event("invoice.paid", invoice_object("in_x", None)))

        assert dispatch_webhook(event).success is True
        assert Payment.objects.count() == 0

    def test_unknown_subscription_ignored(self, make_webhook_event):
        event = make_webhook_event(
            stripe_event("invoice.paid", invoice_object("in_y", "sub_nobody"))
        )

        assert dispatch_webhook(event).success is True
        assert Payment.objects.count() == 0

    def test_payment_failed_only_logs(self, make_webhook_event, active_subscription):
        ends_at = active_subscription.ends_at
        event = make_webhook_event(
            stripe_event(
                "invoice.payment_failed",
                invoice_object("in_z", active_subscription.stripe_subscription_id),
            )
        )

        assert dispatch_webhook(event).success is True
        subscription = reload(active_subscription)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.ends_at == ends_at
        assert timezone.now() < subscription.ends_at
