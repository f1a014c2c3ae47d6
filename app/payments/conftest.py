"""
Pytest fixtures for payment tests.

This module provides fixtures for creating billing test data and for
faking Stripe. Fixtures are designed to provide objects in various states
for testing state transitions and business logic.

Usage:
    def test_complete_payment(pending_payment):
        outcome = PaymentTransitionService.complete(pending_payment.id)
        assert outcome.changed
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from payments.adapters import CustomerResult, RefundResult
from payments.state_machines import PaymentStatus
from payments.tests.factories import (
    FeaturedListingPackageFactory,
    ListingFactory,
    PaymentFactory,
    StaffUserFactory,
    SubscriptionFactory,
    SubscriptionPlanFactory,
    UserFactory,
    make_intent,
    make_subscription_result,
)


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a test user."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    """A second user who owns nothing of user's."""
    return UserFactory()


@pytest.fixture
def staff_user(db):
    """A user with elevated privilege."""
    return StaffUserFactory()


@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def auth_client(api_client, user):
    """API client authenticated as user."""
    api_client.force_authenticate(user=user)
    return api_client


# =============================================================================
# Listing & Catalog Fixtures
# =============================================================================


@pytest.fixture
def listing(db, user):
    """A listing owned by user."""
    return ListingFactory(owner=user)


@pytest.fixture
def plan(db):
    """Active 'basic' plan with a Stripe price."""
    return SubscriptionPlanFactory(
        slug="basic",
        name="Basic",
        stripe_price_id="price_basic_test",
    )


@pytest.fixture
def package(db):
    """Active 30-day featured package."""
    return FeaturedListingPackageFactory(duration_days=30)


# =============================================================================
# Payment Fixtures
# =============================================================================


@pytest.fixture
def pending_payment(db, user, listing):
    """PENDING featured_listing payment for listing, intent attached."""
    return PaymentFactory(
        owner=user,
        listing=listing,
        stripe_payment_intent_id="pi_test_pending",
        metadata={"duration_days": 30},
    )


@pytest.fixture
def completed_payment(db, user, listing):
    """COMPLETED featured_listing payment that featured listing."""
    payment = PaymentFactory(
        owner=user,
        listing=listing,
        status=PaymentStatus.COMPLETED,
        stripe_payment_intent_id="pi_test_completed",
        transaction_id="ch_test_completed",
        completed_at=timezone.now(),
        metadata={"duration_days": 30},
    )
    listing.is_featured = True
    listing.featured_until = timezone.now() + timedelta(days=30)
    listing.featured_payment_id = payment.id
    listing.save()
    return payment


@pytest.fixture
def active_subscription(db, user):
    """ACTIVE subscription for user paid through 30 days from now."""
    return SubscriptionFactory(owner=user, plan="basic")


# =============================================================================
# Stripe Fakes
# =============================================================================


@pytest.fixture
def mock_stripe():
    """
    Patch every StripeAdapter call the services make.

    Defaults describe a happy path; tests override return_value or
    side_effect on the individual mocks.
    """
    with patch("payments.services.customers.StripeAdapter") as customers_adapter, patch(
        "payments.services.payment_orchestrator.StripeAdapter"
    ) as payment_adapter, patch(
        "payments.services.subscription_orchestrator.StripeAdapter"
    ) as subscription_adapter:
        customers_adapter.get_or_create_customer.return_value = CustomerResult(
            id="cus_test_123",
            email="user@example.com",
        )
        payment_adapter.create_payment_intent.return_value = make_intent()
        payment_adapter.retrieve_payment_intent.return_value = make_intent(
            status="succeeded", latest_charge="ch_test_123"
        )
        payment_adapter.create_refund.return_value = RefundResult(
            id="re_test_123",
            amount_cents=2999,
            currency="usd",
            status="succeeded",
            payment_intent_id="pi_test_123",
        )
        subscription_adapter.create_subscription.return_value = make_subscription_result()
        subscription_adapter.cancel_subscription.return_value = make_subscription_result(
            cancel_at_period_end=True
        )

        class Mocks:
            customers = customers_adapter
            payments = payment_adapter
            subscriptions = subscription_adapter

        yield Mocks
