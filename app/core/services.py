"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Pattern Comparison:
    - ServiceResult: Use for expected outcomes (webhook no-ops, handler failures)
    - Exceptions: Use for domain errors surfaced to API callers
      (validation, permission, conflict, gateway failures)

Usage:
    from core.services import BaseService, ServiceResult

    class ListingFeatureService(BaseService):
        @classmethod
        def unfeature(cls, listing_id) -> ServiceResult[Listing]:
            with cls.atomic():
                listing = Listing.objects.select_for_update().get(pk=listing_id)
                listing.is_featured = False
                listing.save(update_fields=["is_featured", "updated_at"])

            cls.get_logger().info("Listing unfeatured", extra={"listing_id": listing_id})
            return ServiceResult.success(listing)

Related:
    - core.exceptions: Domain exception hierarchy
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.
    Use this for expected failures (validation errors, business rule violations).

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        # Success case
        user = User.objects.create(email=email)
        return ServiceResult.success(user)

        # Failure case
        return ServiceResult.failure("Email already exists", "EMAIL_EXISTS")

        # Validation errors with field details
        return ServiceResult.failure(
            "Validation failed",
            error_code="VALIDATION_ERROR",
            errors={"email": ["Invalid format"], "password": ["Too short"]}
        )

        # Check result
        result = UserService.create_user(email, password)
        if result.success:
            user = result.data
        else:
            print(f"Error: {result.error} ({result.error_code})")

    Note:
        This pattern is inspired by Result types in Rust/Swift.
        It makes error handling explicit without try/except blocks.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set

        Example:
            user = User.objects.create(email=email)
            return ServiceResult.success(user)
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)

        Returns:
            ServiceResult with success=False and error details

        Example:
            # Simple error
            return ServiceResult.failure("User not found", "USER_NOT_FOUND")

            # Validation errors
            return ServiceResult.failure(
                "Validation failed",
                error_code="VALIDATION_ERROR",
                errors={"email": ["Already exists"], "username": ["Too short"]}
            )
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Useful for converting caught exceptions to ServiceResult.

        Args:
            exc: The caught exception
            error_code: Optional error code (defaults to exception class name)

        Returns:
            ServiceResult with error details from exception

        Example:
            try:
                external_api.call()
            except ExternalAPIError as e:
                return ServiceResult.from_exception(e, "API_ERROR")
        """
        return cls(
            success=False,
            error=str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
        )

    def __bool__(self) -> bool:
        """
        Allow using result in boolean context.

        Example:
            result = UserService.create_user(email)
            if result:  # Same as: if result.success
                print("Success!")
        """
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Exception handling patterns

    Usage:
        class UserService(BaseService):
            @classmethod
            def create_user(cls, email: str) -> ServiceResult[User]:
                with cls.atomic():
                    # All operations in this block are in a transaction
                    user = User.objects.create(email=email)
                    Profile.objects.create(user=user)

                cls.get_logger().info(f"Created user {user.id}")
                return ServiceResult.success(user)

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Services should be stateless
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.

        Returns:
            Logger instance for this service

        Example:
            class PaymentService(BaseService):
                @classmethod
                def process_payment(cls, amount):
                    cls.get_logger().info(f"Processing payment: {amount}")
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back.

        Yields:
            None

        Example:
            with cls.atomic():
                payment = Payment.objects.select_for_update().get(pk=pk)
                payment.complete()
                payment.save()

        Note:
            Never call an external service inside this block. Reserve
            rows, leave the block, call out, then open a new block to
            record the result.
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Provides consistent exception handling across services.
        Logs the exception and returns a ServiceResult.

        Args:
            exc: The caught exception
            context: Additional context for logging
            log_level: Logging level (default ERROR)

        Returns:
            ServiceResult with error details

        Example:
            try:
                dispatch_webhook(webhook_event)
            except IntegrityError as e:
                return cls.handle_exception(e, "webhook processing")
        """
        logger = cls.get_logger()
        message = f"{context}: {exc}" if context else str(exc)
        logger.log(log_level, message, exc_info=True)
        error_code = getattr(exc, "error_code", None)
        return ServiceResult.from_exception(exc, error_code)
