"""
Reference data: subscription plans and featured-listing packages.

Both are read-only to the billing engine. Staff edit them in the Django
admin; the initial catalog is seeded by a data migration.
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel


class SubscriptionPlan(BaseModel):
    """
    A recurring plan an owner can subscribe to.

    Fields:
        name: Display name
        slug: Identifier used by API clients ("basic", "premium", ...)
        price: Recurring price in major units
        currency: ISO 4217 currency code
        features: List of feature descriptions for display
        stripe_price_id: Stripe Price ID (price_xxx) billed for this plan
        is_active: Inactive plans cannot be subscribed to
        sort_order: Display ordering
    """

    name = models.CharField(max_length=100)

    slug = models.SlugField(
        max_length=50,
        unique=True,
        help_text="Identifier used by API clients",
    )

    price = models.DecimalField(max_digits=10, decimal_places=2)

    currency = models.CharField(max_length=3, default="USD")

    features = models.JSONField(
        default=list,
        blank=True,
        help_text="Feature descriptions shown to users",
    )

    stripe_price_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe Price ID (price_xxx)",
    )

    is_active = models.BooleanField(default=True, db_index=True)

    sort_order = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "price"]
        verbose_name = "Subscription Plan"
        verbose_name_plural = "Subscription Plans"

    def __str__(self) -> str:
        return f"{self.name} ({self.price} {self.currency})"


class FeaturedListingPackage(BaseModel):
    """
    A purchasable featured-placement window for a listing.

    Fields:
        name: Display name
        duration_days: Length of the featured window
        price: One-off price in major units
        currency: ISO 4217 currency code
        is_active: Inactive packages cannot be purchased
        sort_order: Display ordering
    """

    name = models.CharField(max_length=100)

    duration_days = models.PositiveSmallIntegerField()

    price = models.DecimalField(max_digits=10, decimal_places=2)

    currency = models.CharField(max_length=3, default="USD")

    is_active = models.BooleanField(default=True, db_index=True)

    sort_order = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "duration_days"]
        verbose_name = "Featured Listing Package"
        verbose_name_plural = "Featured Listing Packages"

    def __str__(self) -> str:
        return f"{self.name} ({self.duration_days} days, {self.price} {self.currency})"
