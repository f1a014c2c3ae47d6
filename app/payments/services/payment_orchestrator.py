"""
Payment orchestrator: create, confirm and refund one-off payments.

The orchestrator never holds a database transaction across a Stripe
call. Each operation follows the same shape:

    1. Local transaction: reserve or read the Payment row
    2. Stripe call (no transaction open)
    3. Local transaction: record the result

If step 2 fails, step 1 is undone so no PENDING row is left without a
gateway object, and GatewayUnavailableError is raised. The client may
retry the whole operation.

Usage:
    from payments.services import CreatePaymentParams, PaymentOrchestrator

    created = PaymentOrchestrator.create_payment(
        CreatePaymentParams(
            owner=user,
            kind=PaymentKind.FEATURED_LISTING,
            amount=Decimal("29.99"),
            currency="USD",
            listing_id=listing.id,
            metadata={"duration_days": 30},
        )
    )
    # Hand created.client_secret to the frontend

    payment = PaymentOrchestrator.confirm_payment(created.payment.id, actor=user)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from django.conf import settings

from core.services import BaseService

from listings.models import Listing
from payments.adapters import (
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
    to_minor_units,
)
from payments.exceptions import (
    GatewayUnavailableError,
    NotRefundableError,
    PaymentNotFoundError,
    PaymentPermissionDeniedError,
    PaymentValidationError,
    StripeError,
)
from payments.models import FeaturedListingMetadata, FeaturedListingPackage, Payment
from payments.services.customers import CustomerService
from payments.services.transitions import PaymentTransitionService
from payments.state_machines import PaymentKind, PaymentStatus

if TYPE_CHECKING:
    from authentication.models import User


# =============================================================================
# Parameter Types
# =============================================================================


@dataclass
class CreatePaymentParams:
    """
    Parameters for creating a payment.

    Attributes:
        owner: User paying (also the actor making the request)
        kind: PaymentKind value
        amount: Amount in major units, must be positive
        currency: ISO 4217 code, normalised to upper-case
        listing_id: Target listing (required for featured_listing)
        metadata: Kind-specific metadata (duration_days, package_id, ...)

    Raises:
        ValueError: On malformed amount, kind or currency
    """

    owner: User
    kind: str
    amount: Decimal
    currency: str = field(default_factory=lambda: settings.PAYMENTS_DEFAULT_CURRENCY)
    listing_id: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        try:
            self.amount = Decimal(str(self.amount))
        except InvalidOperation:
            raise ValueError("amount must be a decimal number")
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if self.amount != self.amount.quantize(Decimal("0.01")):
            raise ValueError("amount must have at most 2 decimal places")
        if self.kind not in PaymentKind.values:
            raise ValueError(f"Unknown payment kind: {self.kind}")
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise ValueError("currency must be a 3-letter ISO code")
        self.currency = self.currency.upper()


@dataclass
class CreatedPayment:
    """
    Result of create_payment.

    Attributes:
        payment: The PENDING Payment with its intent attached
        client_secret: Secret the frontend uses to confirm the intent
    """

    payment: Payment
    client_secret: str | None


# =============================================================================
# Payment Orchestrator
# =============================================================================


class PaymentOrchestrator(BaseService):
    """
    Entry point for one-off payments.

    All methods are class methods - no instance state is maintained.

    Operations:
        create_payment: Reserve a PENDING row and create the Stripe intent
        feature_listing: create_payment priced from a FeaturedListingPackage
        confirm_payment: Pull the intent status and transition the row
        request_refund: Refund through Stripe, then reverse the side effect
    """

    # =========================================================================
    # Lookups & Guards
    # =========================================================================

    @classmethod
    def get_payment(cls, payment_id: uuid.UUID | str) -> Payment:
        """
        Load a payment by ID.

        Raises:
            PaymentNotFoundError: No such payment
        """
        try:
            return Payment.objects.select_related("owner", "listing").get(pk=payment_id)
        except (Payment.DoesNotExist, ValueError):
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )

    @staticmethod
    def check_actor(owner_id: int, actor: User, action: str) -> None:
        """
        Require the actor to be the owner or to hold elevated privilege.

        Raises:
            PaymentPermissionDeniedError: Actor is someone else
        """
        if owner_id != actor.pk and not actor.has_elevated_privilege:
            raise PaymentPermissionDeniedError(
                f"You are not allowed to {action}",
                details={"action": action},
            )

    # =========================================================================
    # Create
    # =========================================================================

    @classmethod
    def create_payment(cls, params: CreatePaymentParams) -> CreatedPayment:
        """
        Create a PENDING payment and its Stripe PaymentIntent.

        Steps:
        1. Validate kind-specific input
        2. Insert Payment{status=pending}
        3. Obtain-or-create the Stripe customer, create the intent
           (tagged with the payment id)
        4. Attach the intent id to the Payment

        Returns:
            CreatedPayment with the payment and client_secret

        Raises:
            PaymentValidationError: Bad input
            PaymentPermissionDeniedError: Listing belongs to someone else
            GatewayUnavailableError: Stripe failed; no row is left behind
        """
        logger = cls.get_logger()
        metadata = cls._validate_metadata(params)

        logger.info(
            "Creating payment",
            extra={
                "owner_id": params.owner.pk,
                "kind": params.kind,
                "amount": str(params.amount),
                "currency": params.currency,
                "listing_id": params.listing_id,
            },
        )

        # Step 1: reserve the ledger row
        with cls.atomic():
            payment = Payment.objects.create(
                owner=params.owner,
                listing_id=params.listing_id,
                kind=params.kind,
                amount=params.amount,
                currency=params.currency,
                metadata=metadata,
            )

        # Step 2: gateway calls, no transaction open
        try:
            customer_id = CustomerService.get_or_create_customer_id(params.owner)
            intent = StripeAdapter.create_payment_intent(
                CreatePaymentIntentParams(
                    amount_cents=to_minor_units(params.amount, params.currency),
                    currency=params.currency,
                    customer_id=customer_id,
                    idempotency_key=IdempotencyKeyGenerator.generate(
                        operation="create_intent",
                        entity_id=payment.id,
                    ),
                    metadata={
                        "payment_id": str(payment.id),
                        "user_id": str(params.owner.pk),
                        "kind": params.kind,
                    },
                ),
            )
        except StripeError as e:
            cls._discard_reservation(payment)
            logger.error(
                "Failed to create payment: Stripe error",
                extra={
                    "payment_id": str(payment.id),
                    "error_code": e.error_code,
                    "is_retryable": e.is_retryable,
                },
            )
            raise GatewayUnavailableError.from_stripe_error(e) from e
        except Exception:
            cls._discard_reservation(payment)
            raise

        # Step 3: record the intent
        with cls.atomic():
            payment = Payment.objects.select_for_update().get(pk=payment.pk)
            payment.attach_intent(intent.id)
            payment.save()

        logger.info(
            "Payment created",
            extra={
                "payment_id": str(payment.id),
                "payment_intent_id": intent.id,
            },
        )
        return CreatedPayment(payment=payment, client_secret=intent.client_secret)

    @classmethod
    def feature_listing(
        cls,
        listing_id: int,
        package_id: int,
        actor: User,
    ) -> CreatedPayment:
        """
        Start paying for a featured placement priced by a package.

        Raises:
            PaymentValidationError: Package missing or inactive
            (plus everything create_payment raises)
        """
        package = FeaturedListingPackage.objects.filter(
            pk=package_id, is_active=True
        ).first()
        if package is None:
            raise PaymentValidationError(
                "Featured listing package not found or inactive",
                error_code="PACKAGE_UNAVAILABLE",
                details={"package_id": package_id},
            )

        return cls.create_payment(
            CreatePaymentParams(
                owner=actor,
                kind=PaymentKind.FEATURED_LISTING,
                amount=package.price,
                currency=package.currency,
                listing_id=listing_id,
                metadata=FeaturedListingMetadata(
                    duration_days=package.duration_days,
                    package_id=package.pk,
                ).to_dict(),
            )
        )

    @classmethod
    def _validate_metadata(cls, params: CreatePaymentParams) -> dict[str, Any]:
        """Check kind-specific input and return the metadata to store."""
        if params.kind != PaymentKind.FEATURED_LISTING:
            return dict(params.metadata or {})

        if params.listing_id is None:
            raise PaymentValidationError(
                "listing_id is required for featured listing payments",
                details={"listing_id": ["This field is required."]},
            )

        listing = Listing.objects.filter(pk=params.listing_id).first()
        if listing is None:
            raise PaymentValidationError(
                f"Listing {params.listing_id} not found",
                error_code="LISTING_NOT_FOUND",
                details={"listing_id": params.listing_id},
            )
        cls.check_actor(listing.owner_id, params.owner, "feature this listing")

        try:
            metadata = FeaturedListingMetadata.from_dict(params.metadata or {})
        except (TypeError, ValueError):
            raise PaymentValidationError(
                "duration_days must be an integer",
                details={"duration_days": ["Must be an integer."]},
            )
        if not 1 <= metadata.duration_days <= settings.PAYMENTS_FEATURED_MAX_DAYS:
            raise PaymentValidationError(
                f"duration_days must be between 1 and "
                f"{settings.PAYMENTS_FEATURED_MAX_DAYS}",
                details={"duration_days": metadata.duration_days},
            )
        return metadata.to_dict()

    @classmethod
    def _discard_reservation(cls, payment: Payment) -> None:
        """Delete a PENDING row whose intent was never created."""
        Payment.objects.filter(
            pk=payment.pk,
            status=PaymentStatus.PENDING,
            stripe_payment_intent_id__isnull=True,
        ).delete()

    # =========================================================================
    # Confirm
    # =========================================================================

    @classmethod
    def confirm_payment(cls, payment_id: uuid.UUID | str, actor: User) -> Payment:
        """
        Pull the intent status from Stripe and transition the payment.

        succeeded -> COMPLETED (side effect applied once)
        anything else -> FAILED

        Payments that already left PENDING are returned unchanged,
        which makes repeated confirms and confirm-after-webhook no-ops.

        Raises:
            PaymentNotFoundError: No such payment
            PaymentPermissionDeniedError: Actor is not owner or staff
            GatewayUnavailableError: Stripe failed
        """
        payment = cls.get_payment(payment_id)
        cls.check_actor(payment.owner_id, actor, "confirm this payment")

        if payment.status != PaymentStatus.PENDING:
            return payment

        if not payment.stripe_payment_intent_id:
            raise PaymentValidationError(
                "Payment has no payment intent to confirm",
                error_code="INTENT_MISSING",
                details={"payment_id": str(payment.id)},
            )

        try:
            intent = StripeAdapter.retrieve_payment_intent(payment.stripe_payment_intent_id)
        except StripeError as e:
            raise GatewayUnavailableError.from_stripe_error(e) from e

        if intent.succeeded:
            outcome = PaymentTransitionService.complete(
                payment.id,
                transaction_id=intent.latest_charge or intent.id,
            )
        else:
            outcome = PaymentTransitionService.fail(
                payment.id,
                reason=f"Payment intent status: {intent.status}",
            )

        cls.get_logger().info(
            "Payment confirmation processed",
            extra={
                "payment_id": str(payment.id),
                "intent_status": intent.status,
                "changed": outcome.changed,
                "status": outcome.payment.status,
            },
        )
        return outcome.payment

    # =========================================================================
    # Refund
    # =========================================================================

    @classmethod
    def request_refund(
        cls,
        payment_id: uuid.UUID | str,
        actor: User,
        reason: str | None = None,
    ) -> Payment:
        """
        Refund a completed payment in full.

        Stripe is called first; the local row only moves to REFUNDED
        (and the listing is unfeatured) after Stripe accepted the refund.

        Raises:
            PaymentNotFoundError: No such payment
            PaymentPermissionDeniedError: Actor is not owner or staff
            NotRefundableError: Payment is not COMPLETED
            GatewayUnavailableError: Stripe failed; nothing changed locally
        """
        logger = cls.get_logger()

        payment = cls.get_payment(payment_id)
        cls.check_actor(payment.owner_id, actor, "refund this payment")

        if not payment.is_refundable:
            raise NotRefundableError(
                f"Cannot refund payment in {payment.status} status",
                details={
                    "payment_id": str(payment.id),
                    "current_status": payment.status,
                },
            )

        try:
            refund = StripeAdapter.create_refund(
                payment_intent_id=payment.stripe_payment_intent_id,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    operation="refund",
                    entity_id=payment.id,
                ),
                reason=reason,
                metadata={"payment_id": str(payment.id)},
            )
        except StripeError as e:
            logger.error(
                "Refund rejected by Stripe",
                extra={"payment_id": str(payment.id), "error_code": e.error_code},
            )
            raise GatewayUnavailableError.from_stripe_error(e) from e

        outcome = PaymentTransitionService.refund(payment.id)

        logger.info(
            "Refund recorded",
            extra={
                "payment_id": str(payment.id),
                "refund_id": refund.id,
                "refund_status": refund.status,
            },
        )
        return outcome.payment
