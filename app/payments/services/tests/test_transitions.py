"""
Tests for PaymentTransitionService and SideEffectApplier.

Tests cover:
- complete/fail/refund from the expected source state
- Replays and lost races returning changed=False
- Featured listing side effect applied once and reversed on refund
- A refund that must not unfeature a window bought by a later payment
"""

from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.utils import timezone
from freezegun import freeze_time

from listings.models import Listing
from payments.exceptions import NotRefundableError, PaymentNotFoundError
from payments.services import PaymentTransitionService, SideEffectApplier
from payments.state_machines import PaymentKind, PaymentStatus
from payments.tests.factories import PaymentFactory, SubscriptionFactory


# =============================================================================
# complete Tests
# =============================================================================


class TestComplete:
    """Tests for PaymentTransitionService.complete."""

    def test_completes_and_features_listing(self, listing, pending_payment):
        with freeze_time("2030-01-01 00:00:00"):
            outcome = PaymentTransitionService.complete(
                pending_payment.id, transaction_id="ch_1"
            )

        assert outcome.changed is True
        assert outcome.payment.status == PaymentStatus.COMPLETED
        assert outcome.payment.transaction_id == "ch_1"

        listing.refresh_from_db()
        assert listing.is_featured is True
        assert listing.featured_until == datetime(
            2030, 1, 31, tzinfo=dt_timezone.utc
        )
        assert listing.featured_payment_id == pending_payment.id

    def test_replay_is_noop(self, listing, pending_payment):
        PaymentTransitionService.complete(pending_payment.id, transaction_id="ch_1")
        listing.refresh_from_db()
        first_window = listing.featured_until

        outcome = PaymentTransitionService.complete(
            pending_payment.id, transaction_id="ch_2"
        )

        assert outcome.changed is False
        assert outcome.payment.transaction_id == "ch_1"
        listing.refresh_from_db()
        assert listing.featured_until == first_window

    def test_failed_payment_never_completes(self, listing):
        payment = PaymentFactory(
            owner=listing.owner, listing=listing, status=PaymentStatus.FAILED
        )

        outcome = PaymentTransitionService.complete(payment.id)

        assert outcome.changed is False
        assert outcome.payment.status == PaymentStatus.FAILED
        assert Listing.objects.get(pk=listing.pk).is_featured is False

    def test_unknown_payment(self, db):
        with pytest.raises(PaymentNotFoundError):
            PaymentTransitionService.complete("00000000-0000-0000-0000-000000000000")

    def test_deleted_listing_still_completes(self, listing, pending_payment):
        Listing.objects.filter(pk=listing.pk).delete()

        outcome = PaymentTransitionService.complete(pending_payment.id)

        assert outcome.changed is True


# =============================================================================
# fail Tests
# =============================================================================


class TestFail:
    """Tests for PaymentTransitionService.fail."""

    def test_fails_pending(self, pending_payment):
        outcome = PaymentTransitionService.fail(pending_payment.id, reason="declined")

        assert outcome.changed is True
        assert outcome.payment.status == PaymentStatus.FAILED
        assert outcome.payment.failure_reason == "declined"

    def test_does_not_fail_completed(self, completed_payment):
        """A late failure event cannot undo a completion."""
        outcome = PaymentTransitionService.fail(completed_payment.id, reason="late")

        assert outcome.changed is False
        assert outcome.payment.status == PaymentStatus.COMPLETED


# =============================================================================
# refund Tests
# =============================================================================


class TestRefund:
    """Tests for PaymentTransitionService.refund."""

    def test_refund_reverses_feature(self, listing, completed_payment):
        outcome = PaymentTransitionService.refund(completed_payment.id)

        assert outcome.changed is True
        assert outcome.payment.status == PaymentStatus.REFUNDED
        listing.refresh_from_db()
        assert listing.is_featured is False
        assert listing.featured_payment_id is None

    def test_refund_replay_is_noop(self, completed_payment):
        PaymentTransitionService.refund(completed_payment.id)

        outcome = PaymentTransitionService.refund(completed_payment.id)

        assert outcome.changed is False

    def test_refund_pending_refused(self, pending_payment):
        with pytest.raises(NotRefundableError):
            PaymentTransitionService.refund(pending_payment.id)

    def test_refund_keeps_window_bought_by_later_payment(self, user, listing):
        earlier = PaymentFactory(
            owner=user, listing=listing, status=PaymentStatus.COMPLETED
        )
        later = PaymentFactory(
            owner=user, listing=listing, status=PaymentStatus.COMPLETED
        )
        listing.is_featured = True
        listing.featured_until = timezone.now() + timedelta(days=30)
        listing.featured_payment_id = later.id
        listing.save()

        PaymentTransitionService.refund(earlier.id)

        listing.refresh_from_db()
        assert listing.is_featured is True
        assert listing.featured_payment_id == later.id


# =============================================================================
# SideEffectApplier Tests
# =============================================================================


class TestSideEffectApplier:
    """Tests for SideEffectApplier dispatch by kind."""

    def test_subscription_payment_has_no_effect(self, user, listing):
        subscription = SubscriptionFactory(owner=user)
        payment = PaymentFactory(
            owner=user,
            listing=None,
            subscription=subscription,
            kind=PaymentKind.SUBSCRIPTION,
            status=PaymentStatus.COMPLETED,
            metadata={"subscription_id": str(subscription.id)},
        )

        SideEffectApplier.apply(payment)
        SideEffectApplier.reverse(payment)

        assert Listing.objects.get(pk=listing.pk).is_featured is False

    def test_uses_metadata_duration(self, user, listing):
        payment = PaymentFactory(
            owner=user,
            listing=listing,
            status=PaymentStatus.COMPLETED,
            metadata={"duration_days": 7},
        )

        with freeze_time("2030-05-01 00:00:00"):
            SideEffectApplier.apply(payment)

        listing.refresh_from_db()
        assert listing.featured_until == datetime(
            2030, 5, 8, tzinfo=dt_timezone.utc
        )
