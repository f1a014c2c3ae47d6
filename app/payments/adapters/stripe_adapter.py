"""
Stripe API adapter for payment operations.

This module provides the StripeAdapter class which encapsulates all
Stripe API interactions. All Stripe calls should go through this
adapter to ensure consistent error handling, timeouts, idempotency,
and observability.

Features:
- Configurable timeouts on all API calls
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Idempotency support for safe retries
- No local state: every method is a plain request/response

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: Network retries performed by the SDK (default: 3)

Usage:
    from payments.adapters import StripeAdapter, CreatePaymentIntentParams

    # Create a PaymentIntent
    result = StripeAdapter.create_payment_intent(
        CreatePaymentIntentParams(
            amount_cents=2999,
            currency='usd',
            metadata={'payment_id': str(payment.id)},
            idempotency_key='create_intent:<payment_id>:1:a1b2c3d4',
        )
    )

    # Check how the customer's confirmation went
    result = StripeAdapter.retrieve_payment_intent('pi_xxx')
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
    WebhookSignatureError,
)


# =============================================================================
# Amount Conversion
# =============================================================================

# Currencies Stripe bills in whole units (no minor unit)
ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
        "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
    }
)


def to_minor_units(amount: Decimal, currency: str) -> int:
    """
    Convert a decimal amount in major units to Stripe's integer minor units.

    Example:
        to_minor_units(Decimal("29.99"), "USD")  # 2999
        to_minor_units(Decimal("500"), "JPY")    # 500
    """
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return int(Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int(
        (Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )


def from_minor_units(amount_cents: int, currency: str) -> Decimal:
    """Convert Stripe's integer minor units back to a 2-place Decimal."""
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount_cents).quantize(Decimal("0.01"))
    return (Decimal(amount_cents) / 100).quantize(Decimal("0.01"))


def from_timestamp(value: int | None) -> datetime | None:
    """Convert a Stripe unix timestamp to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreateCustomerParams:
    """
    Parameters for finding or creating a Stripe Customer.

    Attributes:
        user_id: Local user ID, stored in customer metadata
        email: Customer email (lookup key)
        name: Display name
        idempotency_key: Unique key for idempotent creation
    """

    user_id: int | str
    email: str
    idempotency_key: str
    name: str = ""

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if not self.email:
            raise ValueError("email is required")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")


@dataclass
class CustomerResult:
    """
    Result from Stripe Customer operations.

    Attributes:
        id: Customer ID (cus_xxx)
        email: Customer email
        created: False when an existing customer was found
    """

    id: str
    email: str
    created: bool = False


@dataclass
class CreatePaymentIntentParams:
    """
    Parameters for creating a Stripe PaymentIntent.

    Attributes:
        amount_cents: Payment amount in smallest currency unit (e.g., cents)
        currency: ISO 4217 currency code
        idempotency_key: Unique key for idempotent creation
        metadata: Key-value pairs to attach to the PaymentIntent
        customer_id: Optional Stripe Customer ID
        payment_method_types: Allowed payment methods (default: ['card'])
    """

    amount_cents: int
    currency: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)
    customer_id: str | None = None
    payment_method_types: list[str] = field(default_factory=lambda: ["card"])

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if self.amount_cents <= 0:
            raise ValueError("amount_cents must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if not self.currency:
            raise ValueError("currency is required")


@dataclass
class PaymentIntentResult:
    """
    Result from Stripe PaymentIntent operations.

    Attributes:
        id: PaymentIntent ID (pi_xxx)
        status: Current status (requires_payment_method, succeeded, etc.)
        amount_cents: Amount in cents
        currency: Currency code
        client_secret: Secret for client-side confirmation
        latest_charge: Charge ID (ch_xxx) once the intent has been charged
        metadata: Attached metadata
        raw_response: Full Stripe response dict (for debugging)
    """

    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str | None = None
    latest_charge: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


@dataclass
class CreateSubscriptionParams:
    """
    Parameters for creating a Stripe Subscription.

    Attributes:
        customer_id: Stripe Customer ID (cus_xxx)
        price_id: Stripe Price ID (price_xxx) to bill
        idempotency_key: Unique key for idempotent creation
        metadata: Key-value pairs to attach to the Subscription
    """

    customer_id: str
    price_id: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if not self.customer_id:
            raise ValueError("customer_id is required")
        if not self.price_id:
            raise ValueError("price_id is required")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")


@dataclass
class SubscriptionResult:
    """
    Result from Stripe Subscription operations.

    Attributes:
        id: Subscription ID (sub_xxx)
        status: Stripe status (active, past_due, canceled, ...)
        customer_id: Stripe Customer ID
        current_period_end: End of the paid period (aware UTC datetime)
        cancel_at_period_end: Whether Stripe stops renewing at period end
        latest_invoice_id: Invoice ID of the latest charge
        latest_payment_intent_id: PaymentIntent of the latest invoice
        raw_response: Full Stripe response dict
    """

    id: str
    status: str
    customer_id: str
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False
    latest_invoice_id: str | None = None
    latest_payment_intent_id: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class RefundResult:
    """
    Result from Stripe Refund operations.

    Attributes:
        id: Refund ID (re_xxx)
        amount_cents: Refunded amount in cents
        currency: Currency code
        status: Refund status (succeeded, pending, failed)
        payment_intent_id: Original PaymentIntent ID
        metadata: Attached metadata
        raw_response: Full Stripe response dict
    """

    id: str
    amount_cents: int
    currency: str
    status: str
    payment_intent_id: str
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The hash component provides uniqueness across service restarts
    while the structured format aids debugging and correlation.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation='create_intent',
            entity_id=payment.id,
            attempt=1,
        )
        # Result: "create_intent:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str | int,
        attempt: int = 1,
    ) -> str:
        """
        Generate a unique idempotency key.

        Args:
            operation: The Stripe operation (create_intent, refund, etc.)
            entity_id: The domain entity ID (payment id, user id, ...)
            attempt: Attempt number for retries (default: 1)

        Returns:
            Formatted idempotency key string
        """
        entity_str = str(entity_id)
        # Create a short hash for uniqueness using SECRET_KEY
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are class methods - no instance state is maintained.
    Thread-safe for use from web workers and Celery workers.

    Operations:
    - get_or_create_customer: Find a customer by email or create one
    - create_payment_intent / retrieve_payment_intent
    - create_subscription / cancel_subscription
    - create_refund
    - verify_webhook_signature

    Every SDK failure is translated by _handle_stripe_error into a
    payments.exceptions.StripeError subclass. Anything that is not a
    stripe.StripeError propagates unchanged.
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key, retries and timeout."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = getattr(settings, "STRIPE_MAX_RETRIES", 3)
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Customers
    # =========================================================================

    @classmethod
    def get_or_create_customer(cls, params: CreateCustomerParams) -> CustomerResult:
        """
        Find a Stripe Customer by email, or create one.

        Args:
            params: Customer lookup/creation parameters

        Returns:
            CustomerResult with the customer ID

        Raises:
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError: Stripe service unavailable
            StripeTimeoutError: Request timed out
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "get_or_create_customer",
            "user_id": str(params.user_id),
            "idempotency_key": params.idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            existing = stripe.Customer.list(email=params.email, limit=1)
            if existing.data:
                customer = existing.data[0]
                created = False
            else:
                customer = stripe.Customer.create(
                    email=params.email,
                    name=params.name or None,
                    metadata={"user_id": str(params.user_id)},
                    idempotency_key=params.idempotency_key,
                )
                created = True

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "customer_id": customer.id,
                    "created": created,
                    "duration_ms": duration_ms,
                },
            )

            return CustomerResult(id=customer.id, email=params.email, created=created)

        except stripe.StripeError as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise  # Never reached, but satisfies type checker

    # =========================================================================
    # Payment Intents
    # =========================================================================

    @classmethod
    def create_payment_intent(
        cls,
        params: CreatePaymentIntentParams,
        trace_id: str | None = None,
    ) -> PaymentIntentResult:
        """
        Create a Stripe PaymentIntent.

        Args:
            params: Parameters for creating the PaymentIntent
            trace_id: Optional trace ID for distributed tracing

        Returns:
            PaymentIntentResult with PaymentIntent details including client_secret

        Raises:
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError: Stripe service unavailable
            StripeTimeoutError: Request timed out
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_payment_intent",
            "amount_cents": params.amount_cents,
            "currency": params.currency,
            "idempotency_key": params.idempotency_key,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            intent = stripe.PaymentIntent.create(
                amount=params.amount_cents,
                currency=params.currency.lower(),
                metadata=params.metadata,
                customer=params.customer_id,
                payment_method_types=params.payment_method_types,
                idempotency_key=params.idempotency_key,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "payment_intent_id": intent.id,
                    "status": intent.status,
                    "duration_ms": duration_ms,
                },
            )

            return cls._to_intent_result(intent)

        except stripe.StripeError as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def retrieve_payment_intent(
        cls,
        payment_intent_id: str,
        trace_id: str | None = None,
    ) -> PaymentIntentResult:
        """
        Retrieve a PaymentIntent by ID.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx)
            trace_id: Optional trace ID for distributed tracing

        Returns:
            PaymentIntentResult with PaymentIntent details

        Raises:
            StripeInvalidRequestError: PaymentIntent not found
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "retrieve_payment_intent",
            "payment_intent_id": payment_intent_id,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.debug("Starting Stripe operation", extra=log_context)

        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)

            duration_ms = (time.time() - start_time) * 1000
            logger.debug(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "status": intent.status,
                    "duration_ms": duration_ms,
                },
            )

            return cls._to_intent_result(intent)

        except stripe.StripeError as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @staticmethod
    def _to_intent_result(intent: Any) -> PaymentIntentResult:
        return PaymentIntentResult(
            id=intent.id,
            status=intent.status,
            amount_cents=intent.amount,
            currency=intent.currency,
            client_secret=getattr(intent, "client_secret", None),
            latest_charge=getattr(intent, "latest_charge", None),
            metadata=dict(intent.metadata or {}),
            raw_response=intent.to_dict(),
        )

    # =========================================================================
    # Subscriptions
    # =========================================================================

    @classmethod
    def create_subscription(
        cls,
        params: CreateSubscriptionParams,
        trace_id: str | None = None,
    ) -> SubscriptionResult:
        """
        Create a recurring Stripe Subscription for a customer.

        The latest invoice and its payment intent are expanded so the
        caller can record the first charge locally. The first invoice must
        be paid on creation: a failed charge raises instead of leaving an
        incomplete subscription behind.

        Args:
            params: Subscription creation parameters
            trace_id: Optional trace ID for distributed tracing

        Returns:
            SubscriptionResult with the period end and latest payment intent

        Raises:
            StripeCardDeclinedError: Default payment method was declined
            StripeInvalidRequestError: Unknown price or customer
            StripeAPIUnavailableError: Stripe service unavailable
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_subscription",
            "customer_id": params.customer_id,
            "price_id": params.price_id,
            "idempotency_key": params.idempotency_key,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            subscription = stripe.Subscription.create(
                customer=params.customer_id,
                items=[{"price": params.price_id}],
                metadata=params.metadata,
                payment_behavior="error_if_incomplete",
                expand=["latest_invoice.payment_intent"],
                idempotency_key=params.idempotency_key,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "subscription_id": subscription.id,
                    "status": subscription.status,
                    "duration_ms": duration_ms,
                },
            )

            return cls._to_subscription_result(subscription)

        except stripe.StripeError as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def cancel_subscription(
        cls,
        subscription_id: str,
        at_period_end: bool = True,
        trace_id: str | None = None,
    ) -> SubscriptionResult:
        """
        Cancel a Stripe Subscription.

        Args:
            subscription_id: Stripe Subscription ID (sub_xxx)
            at_period_end: Stop renewing at period end (True) or cancel now
            trace_id: Optional trace ID for distributed tracing

        Returns:
            SubscriptionResult reflecting the updated subscription

        Raises:
            StripeInvalidRequestError: Subscription not found
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "cancel_subscription",
            "subscription_id": subscription_id,
            "at_period_end": at_period_end,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            if at_period_end:
                subscription = stripe.Subscription.modify(
                    subscription_id,
                    cancel_at_period_end=True,
                )
            else:
                subscription = stripe.Subscription.cancel(subscription_id)

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "status": subscription.status,
                    "duration_ms": duration_ms,
                },
            )

            return cls._to_subscription_result(subscription)

        except stripe.StripeError as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @staticmethod
    def _to_subscription_result(subscription: Any) -> SubscriptionResult:
        invoice = getattr(subscription, "latest_invoice", None)
        invoice_id = None
        intent_id = None
        if isinstance(invoice, str):
            invoice_id = invoice
        elif invoice is not None:
            invoice_id = getattr(invoice, "id", None)
            intent = getattr(invoice, "payment_intent", None)
            intent_id = intent if isinstance(intent, str) else getattr(intent, "id", None)

        customer = subscription.customer
        return SubscriptionResult(
            id=subscription.id,
            status=subscription.status,
            customer_id=customer if isinstance(customer, str) else customer.id,
            current_period_end=from_timestamp(
                getattr(subscription, "current_period_end", None)
            ),
            cancel_at_period_end=bool(
                getattr(subscription, "cancel_at_period_end", False)
            ),
            latest_invoice_id=invoice_id,
            latest_payment_intent_id=intent_id,
            raw_response=subscription.to_dict(),
        )

    # =========================================================================
    # Refunds
    # =========================================================================

    @classmethod
    def create_refund(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        reason: str | None = None,
        metadata: dict[str, str] | None = None,
        trace_id: str | None = None,
    ) -> RefundResult:
        """
        Create a full refund for a PaymentIntent.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx)
            idempotency_key: Unique key for idempotent refund
            reason: Refund reason (duplicate, fraudulent, requested_by_customer)
            metadata: Optional metadata dict
            trace_id: Optional trace ID for distributed tracing

        Returns:
            RefundResult with refund details

        Raises:
            StripeInvalidRequestError: Refund not possible
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_refund",
            "payment_intent_id": payment_intent_id,
            "idempotency_key": idempotency_key,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            refund_params: dict[str, Any] = {
                "payment_intent": payment_intent_id,
                "metadata": metadata or {},
            }
            if reason:
                refund_params["reason"] = reason

            refund = stripe.Refund.create(
                idempotency_key=idempotency_key,
                **refund_params,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "refund_id": refund.id,
                    "status": refund.status,
                    "duration_ms": duration_ms,
                },
            )

            return RefundResult(
                id=refund.id,
                amount_cents=refund.amount,
                currency=refund.currency,
                status=refund.status,
                payment_intent_id=refund.payment_intent,
                metadata=dict(refund.metadata or {}),
                raw_response=refund.to_dict(),
            )

        except stripe.StripeError as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Args:
            payload: Raw webhook payload bytes
            signature: Stripe-Signature header value

        Returns:
            Parsed event data dict

        Raises:
            WebhookSignatureError: Invalid signature or unparseable payload
        """
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
            return event.to_dict()
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            raise WebhookSignatureError(
                "Invalid webhook payload",
                stripe_code="invalid_payload",
                details={"error": str(e)},
            ) from e

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: stripe.StripeError,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Maps Stripe SDK errors to appropriate domain exceptions
        with proper error categorization for retry decisions.

        Args:
            error: The Stripe exception
            log_context: Logging context dict
            duration_ms: Operation duration for logging

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInvalidRequestError: Invalid request parameters
            StripeRateLimitError: Rate limited
            StripeAPIUnavailableError: API unavailable
            StripeTimeoutError: Request timed out
        """
        logger = cls.get_logger()

        # Add timing to context
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            ) from error

        elif isinstance(error, stripe.InvalidRequestError):
            # Invalid parameters or resource not found
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise StripeInvalidRequestError(
                str(error),
                stripe_code=error.code,
            ) from error

        elif isinstance(error, stripe.RateLimitError):
            logger.warning(
                "Rate limited by Stripe",
                extra=log_context,
            )
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        elif isinstance(error, stripe.APIConnectionError):
            # The SDK reports read timeouts as connection errors
            if "timed out" in str(error).lower() or "timeout" in str(error).lower():
                logger.error(
                    "Stripe request timed out",
                    extra=log_context,
                )
                raise StripeTimeoutError(
                    "Stripe request timed out. Please retry.",
                    stripe_code="timeout",
                ) from error

            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        elif isinstance(error, stripe.APIError):
            # Stripe server error
            logger.error(
                "Stripe API error",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        elif isinstance(error, stripe.AuthenticationError):
            # Invalid API key - permanent, operational issue
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        else:
            logger.error(
                f"Unmapped Stripe error: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
            ) from error
