"""
Listing model.

Only the fields the billing engine touches are modelled here. Featuring is
written exclusively by payments.services.side_effects.SideEffectApplier.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel


class Listing(BaseModel):
    """
    A property listing as seen by the billing engine.

    Fields:
        owner: User who published the listing
        title: Display title
        is_featured: Whether the listing is currently promoted
        featured_until: End of the paid featured window
        featured_payment_id: Payment that bought the current window
    """

    # ==========================================================================
    # Ownership
    # ==========================================================================

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="listings",
        help_text="User who published the listing",
    )

    title = models.CharField(
        max_length=255,
        help_text="Listing title",
    )

    # ==========================================================================
    # Featured Placement
    # ==========================================================================

    is_featured = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether the listing is currently featured",
    )

    featured_until = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the paid featured window ends",
    )

    # Using UUID instead of FK to Payment to keep listings free of a
    # dependency on the payments app
    featured_payment_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Payment that bought the current featured window",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Listing"
        verbose_name_plural = "Listings"
        indexes = [
            models.Index(
                fields=["is_featured", "featured_until"],
                name="listing_featured_window_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Listing({self.pk}, {self.title})"

    @property
    def is_currently_featured(self) -> bool:
        """Featured flag set and the paid window not yet elapsed."""
        if not self.is_featured:
            return False
        return self.featured_until is None or self.featured_until > timezone.now()
