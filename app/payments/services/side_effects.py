"""
Domain effects of completed and refunded payments.

SideEffectApplier.apply() runs inside the transaction that moved a
Payment into COMPLETED, so it runs at most once per payment id.
SideEffectApplier.reverse() runs inside the transaction that moved it
into REFUNDED.

Effects by kind:
    featured_listing: feature the target listing for duration_days
    subscription: none (the Subscription row is maintained by whoever
        recorded the charge)
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from django.utils import timezone

from core.services import BaseService

from listings.models import Listing
from payments.state_machines import PaymentKind

if TYPE_CHECKING:
    from payments.models import Payment


class SideEffectApplier(BaseService):
    """
    Apply and reverse the domain effect of a Payment.

    Callers must hold a transaction; the listing row is locked here.
    """

    @classmethod
    def apply(cls, payment: Payment) -> None:
        """Apply the effect of a payment that just completed."""
        if payment.kind == PaymentKind.FEATURED_LISTING:
            cls._feature_listing(payment)
        elif payment.kind == PaymentKind.SUBSCRIPTION:
            cls.get_logger().debug(
                "No side effect for subscription payment",
                extra={"payment_id": str(payment.id)},
            )
        else:
            raise ValueError(f"Unknown payment kind: {payment.kind}")

    @classmethod
    def reverse(cls, payment: Payment) -> None:
        """Undo the effect of a payment that was just refunded."""
        if payment.kind == PaymentKind.FEATURED_LISTING:
            cls._unfeature_listing(payment)
        elif payment.kind == PaymentKind.SUBSCRIPTION:
            cls.get_logger().debug(
                "No side effect to reverse for subscription payment",
                extra={"payment_id": str(payment.id)},
            )
        else:
            raise ValueError(f"Unknown payment kind: {payment.kind}")

    # =========================================================================
    # Featured Listings
    # =========================================================================

    @classmethod
    def _feature_listing(cls, payment: Payment) -> None:
        logger = cls.get_logger()

        listing = (
            Listing.objects.select_for_update().filter(pk=payment.listing_id).first()
            if payment.listing_id
            else None
        )
        if listing is None:
            logger.warning(
                "Featured payment completed but listing is gone",
                extra={"payment_id": str(payment.id), "listing_id": payment.listing_id},
            )
            return

        metadata = payment.typed_metadata
        listing.is_featured = True
        listing.featured_until = timezone.now() + timedelta(days=metadata.duration_days)
        listing.featured_payment_id = payment.id
        listing.save(
            update_fields=[
                "is_featured",
                "featured_until",
                "featured_payment_id",
                "updated_at",
            ]
        )

        logger.info(
            "Listing featured",
            extra={
                "payment_id": str(payment.id),
                "listing_id": listing.pk,
                "featured_until": listing.featured_until.isoformat(),
            },
        )

    @classmethod
    def _unfeature_listing(cls, payment: Payment) -> None:
        logger = cls.get_logger()

        if not payment.listing_id:
            return

        listing = Listing.objects.select_for_update().filter(pk=payment.listing_id).first()
        if listing is None:
            return

        # A later payment may have bought the current window
        if listing.featured_payment_id not in (None, payment.id):
            logger.info(
                "Listing featured by another payment, leaving it featured",
                extra={
                    "payment_id": str(payment.id),
                    "listing_id": listing.pk,
                    "featured_payment_id": str(listing.featured_payment_id),
                },
            )
            return

        listing.is_featured = False
        listing.featured_until = None
        listing.featured_payment_id = None
        listing.save(
            update_fields=[
                "is_featured",
                "featured_until",
                "featured_payment_id",
                "updated_at",
            ]
        )

        logger.info(
            "Listing unfeatured after refund",
            extra={"payment_id": str(payment.id), "listing_id": listing.pk},
        )
