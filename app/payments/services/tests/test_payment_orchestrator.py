"""
Tests for PaymentOrchestrator.

Tests cover:
- CreatePaymentParams validation
- create_payment happy path and kind-specific validation
- Compensation when Stripe fails during creation
- confirm_payment for succeeded, failed and already-settled intents
- request_refund, including the featured-listing reversal
- feature_listing priced from a package
"""

from decimal import Decimal

import pytest

from listings.models import Listing
from payments.exceptions import (
    GatewayUnavailableError,
    NotRefundableError,
    PaymentNotFoundError,
    PaymentPermissionDeniedError,
    PaymentValidationError,
    StripeAPIUnavailableError,
    StripeInvalidRequestError,
)
from payments.models import Payment
from payments.services import CreatePaymentParams, PaymentOrchestrator
from payments.state_machines import PaymentKind, PaymentStatus
from payments.tests.factories import (
    FeaturedListingPackageFactory,
    ListingFactory,
    PaymentFactory,
    make_intent,
)


def featured_params(owner, listing, **overrides) -> CreatePaymentParams:
    values = {
        "owner": owner,
        "kind": PaymentKind.FEATURED_LISTING,
        "amount": Decimal("29.99"),
        "currency": "usd",
        "listing_id": listing.pk,
        "metadata": {"duration_days": 30},
    }
    values.update(overrides)
    return CreatePaymentParams(**values)


# =============================================================================
# CreatePaymentParams Tests
# =============================================================================


class TestCreatePaymentParams:
    """Tests for CreatePaymentParams validation."""

    def test_normalises_currency_and_amount(self, user, listing):
        params = featured_params(user, listing, amount="29.99", currency="eur")

        assert params.amount == Decimal("29.99")
        assert params.currency == "EUR"

    @pytest.mark.parametrize("amount", ["0", "-1", "0.00"])
    def test_rejects_non_positive_amount(self, user, listing, amount):
        with pytest.raises(ValueError, match="amount must be positive"):
            featured_params(user, listing, amount=amount)

    def test_rejects_sub_cent_amount(self, user, listing):
        with pytest.raises(ValueError, match="2 decimal places"):
            featured_params(user, listing, amount="1.001")

    def test_rejects_garbage_amount(self, user, listing):
        with pytest.raises(ValueError, match="decimal number"):
            featured_params(user, listing, amount="abc")

    def test_rejects_unknown_kind(self, user, listing):
        with pytest.raises(ValueError, match="Unknown payment kind"):
            featured_params(user, listing, kind="donation")

    @pytest.mark.parametrize("currency", ["", "US", "USDT", "12$"])
    def test_rejects_bad_currency(self, user, listing, currency):
        with pytest.raises(ValueError, match="3-letter"):
            featured_params(user, listing, currency=currency)


# =============================================================================
# create_payment Tests
# =============================================================================


class TestCreatePayment:
    """Tests for PaymentOrchestrator.create_payment."""

    def test_creates_pending_payment_with_intent(self, user, listing, mock_stripe):
        created = PaymentOrchestrator.create_payment(featured_params(user, listing))

        payment = Payment.objects.get(pk=created.payment.pk)
        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == Decimal("29.99")
        assert payment.currency == "USD"
        assert payment.listing_id == listing.pk
        assert payment.stripe_payment_intent_id == "pi_test_123"
        assert payment.metadata == {"duration_days": 30}
        assert created.client_secret == "pi_test_123_secret_abc"

    def test_intent_is_tagged_with_payment_id(self, user, listing, mock_stripe):
        created = PaymentOrchestrator.create_payment(featured_params(user, listing))

        params = mock_stripe.payments.create_payment_intent.call_args.args[0]
        assert params.amount_cents == 2999
        assert params.customer_id == "cus_test_123"
        assert params.metadata["payment_id"] == str(created.payment.id)
        assert params.metadata["kind"] == PaymentKind.FEATURED_LISTING
        assert params.idempotency_key.startswith(f"create_intent:{created.payment.id}:")

    def test_caches_customer_on_profile(self, user, listing, mock_stripe):
        PaymentOrchestrator.create_payment(featured_params(user, listing))
        PaymentOrchestrator.create_payment(featured_params(user, listing))

        user.profile.refresh_from_db()
        assert user.profile.stripe_customer_id == "cus_test_123"
        assert mock_stripe.customers.get_or_create_customer.call_count == 1

    def test_listing_untouched_until_completion(self, user, listing, mock_stripe):
        PaymentOrchestrator.create_payment(featured_params(user, listing))

        listing.refresh_from_db()
        assert listing.is_featured is False

    def test_subscription_kind_needs_no_listing(self, user, mock_stripe):
        created = PaymentOrchestrator.create_payment(
            CreatePaymentParams(
                owner=user,
                kind=PaymentKind.SUBSCRIPTION,
                amount=Decimal("79.99"),
            )
        )

        assert created.payment.listing_id is None
        assert created.payment.currency == "USD"

    def test_featured_requires_listing(self, user, listing, mock_stripe):
        with pytest.raises(PaymentValidationError):
            PaymentOrchestrator.create_payment(
                featured_params(user, listing, listing_id=None)
            )

        assert Payment.objects.count() == 0
        mock_stripe.payments.create_payment_intent.assert_not_called()

    def test_unknown_listing(self, user, listing, mock_stripe):
        with pytest.raises(PaymentValidationError) as exc_info:
            PaymentOrchestrator.create_payment(
                featured_params(user, listing, listing_id=999999)
            )

        assert exc_info.value.error_code == "LISTING_NOT_FOUND"

    def test_foreign_listing_denied(self, user, other_user, mock_stripe):
        listing = ListingFactory(owner=other_user)

        with pytest.raises(PaymentPermissionDeniedError):
            PaymentOrchestrator.create_payment(featured_params(user, listing))

        assert Payment.objects.count() == 0

    def test_staff_may_feature_any_listing(self, staff_user, other_user, mock_stripe):
        listing = ListingFactory(owner=other_user)

        created = PaymentOrchestrator.create_payment(featured_params(staff_user, listing))

        assert created.payment.owner_id == staff_user.pk

    @pytest.mark.parametrize("duration", [0, 366, "abc"])
    def test_duration_out_of_range(self, user, listing, mock_stripe, duration):
        with pytest.raises(PaymentValidationError):
            PaymentOrchestrator.create_payment(
                featured_params(user, listing, metadata={"duration_days": duration})
            )

    def test_stripe_failure_leaves_no_row(self, user, listing, mock_stripe):
        """A failed intent creation removes the reserved row."""
        mock_stripe.payments.create_payment_intent.side_effect = (
            StripeAPIUnavailableError("down", stripe_code="api_error")
        )

        with pytest.raises(GatewayUnavailableError) as exc_info:
            PaymentOrchestrator.create_payment(featured_params(user, listing))

        assert Payment.objects.count() == 0
        assert exc_info.value.details["retryable"] is True

    def test_customer_failure_leaves_no_row(self, user, listing, mock_stripe):
        mock_stripe.customers.get_or_create_customer.side_effect = (
            StripeInvalidRequestError("bad key", stripe_code="authentication_error")
        )

        with pytest.raises(GatewayUnavailableError) as exc_info:
            PaymentOrchestrator.create_payment(featured_params(user, listing))

        assert Payment.objects.count() == 0
        assert exc_info.value.details["retryable"] is False
        mock_stripe.payments.create_payment_intent.assert_not_called()

    def test_unexpected_failure_leaves_no_row(self, user, listing, mock_stripe):
        mock_stripe.payments.create_payment_intent.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            PaymentOrchestrator.create_payment(featured_params(user, listing))

        assert Payment.objects.count() == 0


# =============================================================================
# feature_listing Tests
# =============================================================================


class TestFeatureListing:
    """Tests for PaymentOrchestrator.feature_listing."""

    def test_priced_from_package(self, user, listing, mock_stripe):
        package = FeaturedListingPackageFactory(
            duration_days=7, price=Decimal("9.99"), currency="USD"
        )

        created = PaymentOrchestrator.feature_listing(
            listing_id=listing.pk, package_id=package.pk, actor=user
        )

        assert created.payment.amount == Decimal("9.99")
        assert created.payment.metadata == {
            "duration_days": 7,
            "package_id": package.pk,
        }

    def test_inactive_package(self, user, listing, mock_stripe):
        package = FeaturedListingPackageFactory(is_active=False)

        with pytest.raises(PaymentValidationError) as exc_info:
            PaymentOrchestrator.feature_listing(
                listing_id=listing.pk, package_id=package.pk, actor=user
            )

        assert exc_info.value.error_code == "PACKAGE_UNAVAILABLE"


# =============================================================================
# confirm_payment Tests
# =============================================================================


class TestConfirmPayment:
    """Tests for PaymentOrchestrator.confirm_payment."""

    def test_succeeded_intent_completes_and_features(
        self, user, listing, pending_payment, mock_stripe
    ):
        payment = PaymentOrchestrator.confirm_payment(pending_payment.id, actor=user)

        assert payment.status == PaymentStatus.COMPLETED
        assert payment.transaction_id == "ch_test_123"
        listing.refresh_from_db()
        assert listing.is_featured is True
        assert listing.featured_payment_id == payment.id
        mock_stripe.payments.retrieve_payment_intent.assert_called_once_with(
            "pi_test_pending"
        )

    def test_failed_intent_fails_payment(
        self, user, listing, pending_payment, mock_stripe
    ):
        mock_stripe.payments.retrieve_payment_intent.return_value = make_intent(
            status="requires_payment_method"
        )

        payment = PaymentOrchestrator.confirm_payment(pending_payment.id, actor=user)

        assert payment.status == PaymentStatus.FAILED
        assert "requires_payment_method" in payment.failure_reason
        listing.refresh_from_db()
        assert listing.is_featured is False

    def test_repeat_confirm_is_noop(self, user, listing, pending_payment, mock_stripe):
        PaymentOrchestrator.confirm_payment(pending_payment.id, actor=user)
        listing.refresh_from_db()
        featured_until = listing.featured_until

        payment = PaymentOrchestrator.confirm_payment(pending_payment.id, actor=user)

        assert payment.status == PaymentStatus.COMPLETED
        assert mock_stripe.payments.retrieve_payment_intent.call_count == 1
        listing.refresh_from_db()
        assert listing.featured_until == featured_until

    def test_missing_intent(self, user, listing, mock_stripe):
        payment = PaymentFactory(
            owner=user, listing=listing, stripe_payment_intent_id=None
        )

        with pytest.raises(PaymentValidationError) as exc_info:
            PaymentOrchestrator.confirm_payment(payment.id, actor=user)

        assert exc_info.value.error_code == "INTENT_MISSING"

    def test_other_user_denied(self, other_user, pending_payment, mock_stripe):
        with pytest.raises(PaymentPermissionDeniedError):
            PaymentOrchestrator.confirm_payment(pending_payment.id, actor=other_user)

        mock_stripe.payments.retrieve_payment_intent.assert_not_called()

    def test_staff_may_confirm(self, staff_user, pending_payment, mock_stripe):
        payment = PaymentOrchestrator.confirm_payment(
            pending_payment.id, actor=staff_user
        )

        assert payment.status == PaymentStatus.COMPLETED

    def test_unknown_payment(self, user, mock_stripe):
        with pytest.raises(PaymentNotFoundError):
            PaymentOrchestrator.confirm_payment(
                "00000000-0000-0000-0000-000000000000", actor=user
            )

    def test_stripe_failure_keeps_pending(self, user, pending_payment, mock_stripe):
        mock_stripe.payments.retrieve_payment_intent.side_effect = (
            StripeAPIUnavailableError("down")
        )

        with pytest.raises(GatewayUnavailableError):
            PaymentOrchestrator.confirm_payment(pending_payment.id, actor=user)

        assert Payment.objects.get(pk=pending_payment.pk).status == PaymentStatus.PENDING


# =============================================================================
# request_refund Tests
# =============================================================================


class TestRequestRefund:
    """Tests for PaymentOrchestrator.request_refund."""

    def test_refund_unfeatures_listing(
        self, user, listing, completed_payment, mock_stripe
    ):
        payment = PaymentOrchestrator.request_refund(
            completed_payment.id, actor=user, reason="requested_by_customer"
        )

        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refunded_at is not None
        listing.refresh_from_db()
        assert listing.is_featured is False
        assert listing.featured_until is None

        call_kwargs = mock_stripe.payments.create_refund.call_args.kwargs
        assert call_kwargs["payment_intent_id"] == "pi_test_completed"
        assert call_kwargs["reason"] == "requested_by_customer"
        assert call_kwargs["idempotency_key"].startswith(
            f"refund:{completed_payment.id}:"
        )

    def test_pending_not_refundable(self, user, pending_payment, mock_stripe):
        with pytest.raises(NotRefundableError):
            PaymentOrchestrator.request_refund(pending_payment.id, actor=user)

        mock_stripe.payments.create_refund.assert_not_called()

    def test_refunded_not_refundable_again(self, user, listing, mock_stripe):
        payment = PaymentFactory(
            owner=user, listing=listing, status=PaymentStatus.REFUNDED
        )

        with pytest.raises(NotRefundableError):
            PaymentOrchestrator.request_refund(payment.id, actor=user)

    def test_stripe_rejection_changes_nothing(
        self, user, listing, completed_payment, mock_stripe
    ):
        mock_stripe.payments.create_refund.side_effect = StripeInvalidRequestError(
            "charge already refunded", stripe_code="charge_already_refunded"
        )

        with pytest.raises(GatewayUnavailableError):
            PaymentOrchestrator.request_refund(completed_payment.id, actor=user)

        payment = Payment.objects.get(pk=completed_payment.pk)
        assert payment.status == PaymentStatus.COMPLETED
        assert Listing.objects.get(pk=listing.pk).is_featured is True

    def test_other_user_denied(self, other_user, completed_payment, mock_stripe):
        with pytest.raises(PaymentPermissionDeniedError):
            PaymentOrchestrator.request_refund(completed_payment.id, actor=other_user)
