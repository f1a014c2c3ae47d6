"""
The single state-transition function for Payment rows.

Both confirmation paths (the synchronous confirm call and the
payment_intent.* webhooks) go through PaymentTransitionService. Each
call locks the Payment row, transitions only from the expected source
state, and applies or reverses side effects in the same transaction.
A caller that loses a race sees the row already moved and gets
TransitionOutcome(changed=False) back.

Usage:
    from payments.services import PaymentTransitionService

    outcome = PaymentTransitionService.complete(payment.id, transaction_id="ch_xxx")
    if outcome.changed:
        ...  # this caller performed the completion
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from core.services import BaseService

from payments.exceptions import NotRefundableError, PaymentNotFoundError
from payments.models import Payment
from payments.services.side_effects import SideEffectApplier
from payments.state_machines import PaymentStatus


@dataclass
class TransitionOutcome:
    """
    Result of a transition attempt.

    Attributes:
        payment: The Payment as it is after the attempt
        changed: True only for the caller that performed the transition
    """

    payment: Payment
    changed: bool


class PaymentTransitionService(BaseService):
    """Idempotent Payment transitions shared by confirm and webhook paths."""

    @classmethod
    def _lock(cls, payment_id: uuid.UUID | str) -> Payment:
        try:
            return Payment.objects.select_for_update().get(pk=payment_id)
        except Payment.DoesNotExist:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )

    @classmethod
    def complete(
        cls,
        payment_id: uuid.UUID | str,
        transaction_id: str | None = None,
    ) -> TransitionOutcome:
        """
        Move a PENDING payment to COMPLETED and apply its side effect.

        Replays and lost races are no-ops.

        Raises:
            PaymentNotFoundError: No such payment
        """
        logger = cls.get_logger()

        with cls.atomic():
            payment = cls._lock(payment_id)

            if payment.status != PaymentStatus.PENDING:
                logger.info(
                    "Payment not pending, completion ignored",
                    extra={
                        "payment_id": str(payment.id),
                        "current_status": payment.status,
                    },
                )
                return TransitionOutcome(payment=payment, changed=False)

            payment.complete(transaction_id=transaction_id)
            payment.save()
            SideEffectApplier.apply(payment)

        logger.info(
            "Payment completed",
            extra={
                "payment_id": str(payment.id),
                "kind": payment.kind,
                "transaction_id": transaction_id,
            },
        )
        return TransitionOutcome(payment=payment, changed=True)

    @classmethod
    def fail(
        cls,
        payment_id: uuid.UUID | str,
        reason: str | None = None,
    ) -> TransitionOutcome:
        """
        Move a PENDING payment to FAILED.

        Payments already in a terminal or completed state are left alone.

        Raises:
            PaymentNotFoundError: No such payment
        """
        logger = cls.get_logger()

        with cls.atomic():
            payment = cls._lock(payment_id)

            if payment.status != PaymentStatus.PENDING:
                logger.info(
                    "Payment not pending, failure ignored",
                    extra={
                        "payment_id": str(payment.id),
                        "current_status": payment.status,
                    },
                )
                return TransitionOutcome(payment=payment, changed=False)

            payment.fail(reason=reason)
            payment.save()

        logger.info(
            "Payment failed",
            extra={"payment_id": str(payment.id), "reason": reason},
        )
        return TransitionOutcome(payment=payment, changed=True)

    @classmethod
    def refund(cls, payment_id: uuid.UUID | str) -> TransitionOutcome:
        """
        Move a COMPLETED payment to REFUNDED and reverse its side effect.

        Call only after the gateway accepted the refund. A payment that
        is already REFUNDED is a no-op.

        Raises:
            PaymentNotFoundError: No such payment
            NotRefundableError: Payment is pending or failed
        """
        logger = cls.get_logger()

        with cls.atomic():
            payment = cls._lock(payment_id)

            if payment.status == PaymentStatus.REFUNDED:
                return TransitionOutcome(payment=payment, changed=False)

            if payment.status != PaymentStatus.COMPLETED:
                raise NotRefundableError(
                    f"Cannot refund payment in {payment.status} status",
                    details={
                        "payment_id": str(payment.id),
                        "current_status": payment.status,
                    },
                )

            payment.refund()
            payment.save()
            SideEffectApplier.reverse(payment)

        logger.info(
            "Payment refunded",
            extra={"payment_id": str(payment.id), "kind": payment.kind},
        )
        return TransitionOutcome(payment=payment, changed=True)
