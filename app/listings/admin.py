"""
Django admin configuration for listings.
"""

from django.contrib import admin

from listings.models import Listing


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    """Featured state is read-only; it is owned by the payments engine."""

    list_display = ("id", "title", "owner", "is_featured", "featured_until")
    list_filter = ("is_featured",)
    search_fields = ("title", "owner__email")
    raw_id_fields = ("owner",)
    readonly_fields = (
        "is_featured",
        "featured_until",
        "featured_payment_id",
        "created_at",
        "updated_at",
    )
