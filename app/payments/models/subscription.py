"""
Subscription model for recurring plan billing.

A Subscription is created ACTIVE by SubscriptionOrchestrator once Stripe
has created the recurring object. Each paid invoice extends ends_at and
adds a completed Payment linked to this Subscription.

Usage:
    from payments.models import Subscription

    subscription = Subscription.objects.create(
        owner=user,
        plan="premium",
        starts_at=timezone.now(),
        ends_at=period_end,
        stripe_subscription_id="sub_xxx",
        stripe_customer_id="cus_xxx",
    )

    # State transitions using django-fsm
    subscription.cancel()  # active -> cancelled
    subscription.save()
"""

from __future__ import annotations

from datetime import datetime

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import SubscriptionStatus


class Subscription(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks an owner's recurring plan subscription.

    Uses django-fsm for state machine management and optimistic
    locking via version field for concurrency control.

    State Flow:
        ACTIVE -> CANCELLED (gateway confirms cancellation)
        ACTIVE -> EXPIRED (ends_at elapsed, detected lazily on read)
        CANCELLED/EXPIRED -> ACTIVE (gateway reports the subscription active again)

    Fields:
        owner: User holding the subscription
        plan: SubscriptionPlan slug
        status: Current FSM state
        starts_at: When the subscription started
        ends_at: Paid-through timestamp (only moves forward)
        auto_renew: False once cancellation at period end was requested
        stripe_subscription_id: Stripe Subscription ID (sub_xxx)
        stripe_customer_id: Stripe Customer ID (cus_xxx)
        cancelled_at: When the subscription was cancelled
        version: Optimistic locking version

    Note:
        At most one ACTIVE row per owner is enforced by a partial unique
        constraint, not by application locking.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="subscriptions",
        help_text="User holding the subscription",
    )

    plan = models.CharField(
        max_length=50,
        help_text="SubscriptionPlan slug",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=SubscriptionStatus.ACTIVE,
        choices=SubscriptionStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the subscription (managed by FSM)",
    )

    # ==========================================================================
    # Billing Period
    # ==========================================================================

    starts_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the subscription started",
    )

    ends_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Paid-through timestamp",
    )

    auto_renew = models.BooleanField(
        default=True,
        help_text="Whether Stripe will renew at period end",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When subscription was cancelled",
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    stripe_subscription_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Stripe Subscription ID (sub_xxx)",
    )

    stripe_customer_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        db_index=True,
        help_text="Stripe Customer ID (cus_xxx)",
    )

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(
                fields=["owner", "status"],
                name="payments_su_owner_i_6f1c2a_idx",
            ),
            models.Index(
                fields=["status", "ends_at"],
                name="payments_su_status_3b8e4d_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["owner"],
                condition=Q(status=SubscriptionStatus.ACTIVE),
                name="one_active_subscription_per_owner",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with ID, plan, and state."""
        return f"Subscription({self.id}, {self.plan}, {self.status})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.
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
        source=[SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED],
        target=SubscriptionStatus.CANCELLED,
    )
    def cancel(self):
        """
        Cancel the subscription.

        Transition: ACTIVE/EXPIRED -> CANCELLED

        Triggered only by the gateway (customer.subscription.deleted or
        an updated status that maps to cancelled), never by a local
        cancellation request.
        """
        self.cancelled_at = timezone.now()
        self.auto_renew = False

    @transition(
        field=status,
        source=[SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED],
        target=SubscriptionStatus.EXPIRED,
    )
    def expire(self):
        """
        Expire the subscription.

        Transition: ACTIVE/CANCELLED -> EXPIRED
        """
        pass

    @transition(
        field=status,
        source=[SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED],
        target=SubscriptionStatus.ACTIVE,
    )
    def reactivate(self):
        """
        Reactivate after the gateway reports the subscription active again.

        Transition: CANCELLED/EXPIRED -> ACTIVE
        """
        self.cancelled_at = None

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def extend_to(self, new_end: datetime | None) -> bool:
        """
        Move ends_at forward to new_end.

        Earlier or missing timestamps are ignored.

        Returns:
            True if ends_at changed

        Note: Does not save - caller must save after calling.
        """
        if new_end is None:
            return False
        if self.ends_at is not None and new_end <= self.ends_at:
            return False
        self.ends_at = new_end
        return True

    # ==========================================================================
    # Helper Properties
    # ==========================================================================

    @property
    def is_active(self) -> bool:
        """Check if subscription is currently active."""
        return self.status == SubscriptionStatus.ACTIVE

    @property
    def is_lapsed(self) -> bool:
        """Active locally but the paid-through date has passed."""
        return (
            self.is_active
            and self.ends_at is not None
            and self.ends_at <= timezone.now()
        )

    @property
    def days_remaining(self) -> int:
        """Whole days left in the paid period, 0 when not active."""
        if not self.is_active or self.ends_at is None:
            return 0
        remaining = self.ends_at - timezone.now()
        return max(remaining.days, 0)
