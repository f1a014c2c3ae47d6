"""
Payment admin configuration.

Ledger rows (Payment, Subscription, WebhookEvent) are read-only here:
they only change through the orchestrators and webhook handlers.
Plans and packages are reference data that staff edit freely.
"""

from django.contrib import admin

from payments.models import (
    FeaturedListingPackage,
    Payment,
    Subscription,
    SubscriptionPlan,
    WebhookEvent,
)
from payments.tasks import process_webhook_event

__all__ = [
    "FeaturedListingPackageAdmin",
    "PaymentAdmin",
    "SubscriptionAdmin",
    "SubscriptionPlanAdmin",
    "WebhookEventAdmin",
]


# =============================================================================
# Ledger Admin
# =============================================================================


class ReadOnlyLedgerAdmin(admin.ModelAdmin):
    """Base admin for rows owned by the billing services."""

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete (audit trail)."""
        return False


@admin.register(Payment)
class PaymentAdmin(ReadOnlyLedgerAdmin):
    """
    Admin configuration for Payment.

    Provides visibility into the charge ledger and its state timestamps.
    """

    list_display = [
        "id",
        "owner",
        "kind",
        "amount",
        "currency",
        "status",
        "listing",
        "created_at",
    ]
    list_filter = ["status", "kind", "currency", "created_at"]
    search_fields = [
        "id",
        "owner__email",
        "stripe_payment_intent_id",
        "transaction_id",
    ]
    raw_id_fields = ["owner", "listing", "subscription"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "owner", "kind", "amount", "currency", "status"),
            },
        ),
        (
            "Target",
            {
                "fields": ("listing", "subscription", "metadata"),
            },
        ),
        (
            "Stripe",
            {
                "fields": ("stripe_payment_intent_id", "transaction_id"),
            },
        ),
        (
            "State Timestamps",
            {
                "fields": (
                    "completed_at",
                    "failed_at",
                    "refunded_at",
                    "failure_reason",
                ),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at", "version"),
                "classes": ("collapse",),
            },
        ),
    )


@admin.register(Subscription)
class SubscriptionAdmin(ReadOnlyLedgerAdmin):
    """Admin configuration for Subscription."""

    list_display = [
        "id",
        "owner",
        "plan",
        "status",
        "auto_renew",
        "starts_at",
        "ends_at",
    ]
    list_filter = ["status", "plan", "auto_renew"]
    search_fields = [
        "id",
        "owner__email",
        "stripe_subscription_id",
        "stripe_customer_id",
    ]
    raw_id_fields = ["owner"]
    ordering = ["-created_at"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(ReadOnlyLedgerAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received; failed ones can be
    re-queued with the retry action.
    """

    list_display = [
        "id",
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "stripe_event_id", "event_type"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["retry_events"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "stripe_event_id", "event_type", "status"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "retry_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.action(description="Re-process selected webhook events")
    def retry_events(self, request, queryset):
        count = 0
        for event in queryset.exclude(status="processed"):
            process_webhook_event.delay(str(event.id))
            count += 1
        self.message_user(request, f"Queued {count} webhook event(s) for processing.")


# =============================================================================
# Catalog Admin
# =============================================================================


@admin.register(SubscriptionPlan)
class SubscriptionPlanAdmin(admin.ModelAdmin):
    """Admin configuration for SubscriptionPlan."""

    list_display = [
        "name",
        "slug",
        "price",
        "currency",
        "stripe_price_id",
        "is_active",
        "sort_order",
    ]
    list_filter = ["is_active", "currency"]
    list_editable = ["is_active", "sort_order"]
    search_fields = ["name", "slug", "stripe_price_id"]
    prepopulated_fields = {"slug": ("name",)}
    ordering = ["sort_order", "price"]


@admin.register(FeaturedListingPackage)
class FeaturedListingPackageAdmin(admin.ModelAdmin):
    """Admin configuration for FeaturedListingPackage."""

    list_display = [
        "name",
        "duration_days",
        "price",
        "currency",
        "is_active",
        "sort_order",
    ]
    list_filter = ["is_active", "currency"]
    list_editable = ["is_active", "sort_order"]
    ordering = ["sort_order", "duration_days"]
