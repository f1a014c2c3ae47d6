"""
Payment-specific exceptions for payment operations.

This module provides a hierarchy of exceptions for the payments engine:
payment domain errors, gateway (Stripe) errors and state conflicts.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Payment/Subscription lookup failures (404)
    ├── PaymentValidationError - Bad input, inactive plan/package (400)
    └── PaymentProcessingError - Gateway rejected the request (502)
        └── StripeError - Base for all Stripe errors
            ├── StripeCardDeclinedError - Card declined (permanent)
            ├── StripeInvalidRequestError - Invalid request params (permanent)
            ├── WebhookSignatureError - Webhook failed verification (permanent)
            ├── StripeRateLimitError - Rate limited (transient)
            ├── StripeAPIUnavailableError - API unavailable (transient)
            └── StripeTimeoutError - Request timeout (transient)

    PaymentPermissionDeniedError - Actor may not act on the resource (PermissionDeniedError, 403)
    GatewayUnavailableError - Transient gateway failure, retry the whole call (ExternalServiceError, 503)
    AlreadySubscribedError - Owner already has an active subscription (ConflictError, 409)
    NotRefundableError - Payment is not in a refundable state (ConflictError, 409)
    InvalidStateTransitionError - FSM transition not allowed (ConflictError, 409)

Usage:
    from payments.exceptions import GatewayUnavailableError, StripeError

    try:
        intent = StripeAdapter.create_payment_intent(params)
    except StripeError as e:
        raise GatewayUnavailableError.from_stripe_error(e) from e
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    PermissionDeniedError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    All payment-specific exceptions inherit from this class,
    which itself inherits from BaseApplicationError for
    consistent API error responses.
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError):
    """
    Raised when a payment entity cannot be found.

    Example:
        payment = Payment.objects.filter(id=payment_id).first()
        if not payment:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)}
            )
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"
    http_status: int = 404


class PaymentValidationError(PaymentError):
    """
    Raised when payment validation fails.

    Use for:
    - Non-positive amount
    - Unknown kind or malformed currency
    - Missing or foreign target listing
    - Inactive or unknown plan/package
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class PaymentProcessingError(PaymentError):
    """
    Raised when the gateway refuses a request.

    Nothing is recorded locally when this is raised.
    """

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"
    http_status: int = 502


class PaymentPermissionDeniedError(PermissionDeniedError):
    """
    Raised when the actor is neither the owner nor staff.

    Example:
        if payment.owner_id != actor.pk and not actor.has_elevated_privilege:
            raise PaymentPermissionDeniedError(
                "You cannot confirm this payment",
                details={"payment_id": str(payment.pk)},
            )
    """

    default_error_code: str = "UNAUTHORIZED"


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(PaymentProcessingError):
    """
    Base exception for all Stripe-related errors.

    Provides common attributes for Stripe error handling:
    - stripe_code: Stripe's internal error code
    - decline_code: Card decline code (if applicable)
    - is_retryable: Whether the operation can be retried

    Use is_retryable to determine retry behavior:
    - True: Transient error, safe to retry with the same idempotency key
    - False: Permanent error, do not retry
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeCardDeclinedError(StripeError):
    """
    Card was declined by the issuing bank.

    Only reachable when the customer's default payment method is charged
    server-side (first invoice of a subscription). The decline_code
    attribute contains the specific reason.
    """

    default_error_code: str = "CARD_DECLINED"
    http_status: int = 402


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe.

    Possible causes:
    - Unknown payment intent or price ID
    - Refund of an intent that has no successful charge
    - Invalid API key

    Note:
        This usually indicates a bug or misconfiguration, not a user error.
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"


class WebhookSignatureError(StripeError):
    """
    Webhook payload failed Stripe signature verification.

    The event is logged and dropped without touching the ledger.
    Stripe redelivers genuine events on its own schedule.
    """

    default_error_code: str = "SIGNATURE_INVALID"
    http_status: int = 400


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    """Rate limited by Stripe API."""

    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """
    Stripe API is temporarily unavailable.

    This covers:
    - Network connectivity issues
    - Stripe server errors (5xx)
    - Unexpected SDK failures
    """

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe API call timed out.

    The request was sent but no response was received within
    STRIPE_API_TIMEOUT_SECONDS. The operation may have succeeded on
    Stripe's side, so retries must reuse the same idempotency key.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Gateway Availability
# =============================================================================


class GatewayUnavailableError(ExternalServiceError):
    """
    Gateway failure surfaced to API callers.

    Raised by the orchestrators after local writes were rolled back or
    compensated, so the client may safely retry the whole operation.
    details["retryable"] tells whether retrying can help at all.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"

    @classmethod
    def from_stripe_error(cls, error: StripeError) -> GatewayUnavailableError:
        """Wrap a StripeError, keeping its Stripe code."""
        return cls(
            "Payment gateway is unavailable. Please retry.",
            details={
                "stripe_error": error.error_code,
                "retryable": error.is_retryable,
                **error.details,
            },
        )


# =============================================================================
# State Conflicts
# =============================================================================


class AlreadySubscribedError(ConflictError):
    """
    Raised when the owner already has an active, unexpired subscription.

    Also raised when a concurrent creator wins the race on the
    one-active-subscription-per-owner constraint.
    """

    default_error_code: str = "ALREADY_SUBSCRIBED"


class NotRefundableError(ConflictError):
    """Raised when a refund is requested for a payment that is not completed."""

    default_error_code: str = "NOT_REFUNDABLE"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    This exception wraps django-fsm's TransitionNotAllowed to provide
    our standard error format with additional context.

    Example:
        from django_fsm import TransitionNotAllowed

        try:
            payment.refund()
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot refund payment from '{payment.status}' state",
                details={
                    "current_state": payment.status,
                    "transition": "refund",
                }
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "PaymentProcessingError",
    "PaymentPermissionDeniedError",
    # Stripe-specific
    "StripeError",
    "StripeCardDeclinedError",
    "StripeInvalidRequestError",
    "WebhookSignatureError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StripeTimeoutError",
    # Gateway availability
    "GatewayUnavailableError",
    # State conflicts
    "AlreadySubscribedError",
    "NotRefundableError",
    "InvalidStateTransitionError",
]
