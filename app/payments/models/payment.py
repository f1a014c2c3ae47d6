"""
Payment model: the local ledger row for a single charge.

A Payment is created in PENDING by an orchestrator before the gateway is
called, and is only ever moved forward by PaymentTransitionService (sync
confirm and webhook share it) or by a refund.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentKind

    payment = Payment.objects.create(
        owner=user,
        listing=listing,
        kind=PaymentKind.FEATURED_LISTING,
        amount=Decimal("29.99"),
        currency="USD",
        metadata=FeaturedListingMetadata(duration_days=30).to_dict(),
    )

    payment.attach_intent("pi_xxx")
    payment.save()

    # State transitions using django-fsm
    payment.complete(transaction_id="pi_xxx")  # pending -> completed
    payment.save()

Note:
    status is a protected FSMField. Re-fetch the row with
    Payment.objects.get() instead of calling refresh_from_db() on it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.exceptions import ConflictError
from core.models import BaseModel
from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin

from payments.state_machines import PaymentKind, PaymentStatus

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Typed Metadata
# =============================================================================


@dataclass(frozen=True)
class FeaturedListingMetadata:
    """Metadata carried by a featured_listing Payment."""

    duration_days: int
    package_id: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FeaturedListingMetadata:
        package_id = data.get("package_id")
        return cls(
            duration_days=int(
                data.get("duration_days", settings.PAYMENTS_FEATURED_DEFAULT_DAYS)
            ),
            package_id=int(package_id) if package_id is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class SubscriptionPaymentMetadata:
    """Metadata carried by a subscription Payment (first charge or renewal)."""

    subscription_id: str
    plan: str | None = None
    invoice_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SubscriptionPaymentMetadata:
        return cls(
            subscription_id=str(data.get("subscription_id", "")),
            plan=data.get("plan"),
            invoice_id=data.get("invoice_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


PaymentMetadata = FeaturedListingMetadata | SubscriptionPaymentMetadata


# =============================================================================
# Payment
# =============================================================================


class Payment(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    A single charge recorded in the local ledger.

    Uses django-fsm for state machine management and optimistic
    locking via version field for concurrency control.

    State Flow:
        PENDING -> COMPLETED (intent succeeded; side effects applied once)
        PENDING -> FAILED (intent did not succeed)
        COMPLETED -> REFUNDED (gateway refund succeeded; side effects reversed)

    Fields:
        owner: User who pays
        listing: Target listing (featured_listing payments only)
        subscription: Subscription this charge belongs to (subscription payments only)
        kind: What the payment buys
        amount: Decimal amount in major units (e.g. 29.99)
        currency: ISO 4217 currency code (upper-case)
        status: Current FSM state
        stripe_payment_intent_id: Stripe PaymentIntent ID, set at most once
        transaction_id: Settled transaction reference (intent or invoice ID)
        completed_at/failed_at/refunded_at: State timestamps
        failure_reason: Why the payment failed
        version: Optimistic locking version
        metadata: Typed per kind, see typed_metadata
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="User who pays",
    )

    listing = models.ForeignKey(
        "listings.Listing",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Listing being featured (featured_listing payments only)",
    )

    subscription = models.ForeignKey(
        "payments.Subscription",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Subscription this charge belongs to",
    )

    # ==========================================================================
    # Amount & Kind
    # ==========================================================================

    kind = models.CharField(
        max_length=32,
        choices=PaymentKind.choices,
        db_index=True,
        help_text="What the payment buys",
    )

    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Amount in major currency units",
    )

    currency = models.CharField(
        max_length=3,
        default="USD",
        help_text="ISO 4217 currency code (upper-case)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payment (managed by FSM)",
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe PaymentIntent ID (pi_xxx) - never overwritten once set",
    )

    transaction_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Settled transaction reference (intent or invoice ID)",
    )

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment completed",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment failed",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment was refunded",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Reason reported when the payment failed",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(
                fields=["owner", "created_at"],
                name="payments_pa_owner_i_2d7a91_idx",
            ),
            models.Index(
                fields=["owner", "status"],
                name="payments_pa_owner_i_8c4f03_idx",
            ),
            models.Index(
                fields=["listing", "status"],
                name="payments_pa_listing_5e9b17_idx",
            ),
            models.Index(
                fields=["subscription", "created_at"],
                name="payments_pa_subscri_a41d6e_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with ID, state, and amount."""
        return f"Payment({self.id}, {self.status}, {self.amount} {self.currency})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.

        On update (not force_insert), atomically increments the version
        field to detect concurrent modifications.
        """
        is_update = self.pk and not self._state.adding
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.COMPLETED,
    )
    def complete(self, transaction_id: str | None = None):
        """
        Mark the payment as completed.

        Transition: PENDING -> COMPLETED

        Only PaymentTransitionService calls this, inside the transaction
        that also applies side effects.
        """
        self.completed_at = timezone.now()
        if transaction_id:
            self.transaction_id = transaction_id

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark the payment as failed.

        Transition: PENDING -> FAILED
        """
        self.failed_at = timezone.now()
        self.failure_reason = reason

    @transition(
        field=status,
        source=PaymentStatus.COMPLETED,
        target=PaymentStatus.REFUNDED,
    )
    def refund(self):
        """
        Mark the payment as refunded after the gateway accepted the refund.

        Transition: COMPLETED -> REFUNDED
        """
        self.refunded_at = timezone.now()

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def attach_intent(self, intent_id: str) -> None:
        """
        Record the Stripe PaymentIntent ID.

        Attaching the same ID again is a no-op. A different ID is refused.

        Note: Does not save - caller must save after calling.
        """
        if self.stripe_payment_intent_id and self.stripe_payment_intent_id != intent_id:
            raise ConflictError(
                "Payment already has a different payment intent",
                error_code="INTENT_ALREADY_ATTACHED",
                details={
                    "payment_id": str(self.pk),
                    "existing_intent": self.stripe_payment_intent_id,
                },
            )
        self.stripe_payment_intent_id = intent_id

    @property
    def typed_metadata(self) -> PaymentMetadata:
        """Parse metadata into the dataclass for this payment's kind."""
        data = self.metadata or {}
        if self.kind == PaymentKind.FEATURED_LISTING:
            return FeaturedListingMetadata.from_dict(data)
        if self.kind == PaymentKind.SUBSCRIPTION:
            return SubscriptionPaymentMetadata.from_dict(data)
        raise ValueError(f"Unknown payment kind: {self.kind}")

    @property
    def is_pending(self) -> bool:
        """Check if payment is awaiting confirmation."""
        return self.status == PaymentStatus.PENDING

    @property
    def is_completed(self) -> bool:
        """Check if payment has completed."""
        return self.status == PaymentStatus.COMPLETED

    @property
    def is_refundable(self) -> bool:
        """Only completed payments with a gateway intent can be refunded."""
        return self.is_completed and bool(self.stripe_payment_intent_id)
