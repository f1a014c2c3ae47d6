"""
DRF views for payments app.

This module provides API views for:
- Featured-listing payments (create, confirm, refund, history)
- Subscriptions (create, cancel, current, status check)
- Public plan and package catalog

Views only translate HTTP to orchestrator calls. Domain failures raised
as BaseApplicationError subclasses are rendered with their to_dict()
body and http_status.

Related files:
    - services/: PaymentOrchestrator, SubscriptionOrchestrator
    - serializers.py: Request/response serializers
    - webhooks/views.py: Stripe webhook endpoint
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/ - Create a payment
    GET  /api/v1/payments/history/ - Own payments, newest first
    POST /api/v1/payments/{id}/confirm/ - Confirm a payment
    POST /api/v1/payments/{id}/refund/ - Refund a payment
    POST /api/v1/payments/listings/{id}/feature/ - Feature a listing by package
    GET  /api/v1/payments/plans/ - Active subscription plans
    GET  /api/v1/payments/featured-packages/ - Active featured packages
    POST /api/v1/payments/subscriptions/ - Subscribe to a plan
    GET  /api/v1/payments/subscriptions/current/ - Current subscription
    GET  /api/v1/payments/subscriptions/check/ - Subscription status
    POST /api/v1/payments/subscriptions/{id}/cancel/ - Stop renewing
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError

from payments.exceptions import PaymentValidationError
from payments.models import FeaturedListingPackage, Payment, SubscriptionPlan
from payments.serializers import (
    CreatedPaymentSerializer,
    CreatePaymentSerializer,
    CreateSubscriptionSerializer,
    FeaturedListingPackageSerializer,
    FeatureListingSerializer,
    PaymentSerializer,
    RefundPaymentSerializer,
    SubscriptionPlanSerializer,
    SubscriptionSerializer,
    SubscriptionStatusSerializer,
)
from payments.services import (
    CreatePaymentParams,
    PaymentOrchestrator,
    SubscriptionOrchestrator,
)


def error_response(error: BaseApplicationError) -> Response:
    """Render a domain error as {"error", "error_code", "details"}."""
    return Response(error.to_dict(), status=error.http_status)


def invalid_request(errors) -> Response:
    """Render serializer field errors as a PaymentValidationError."""
    return error_response(
        PaymentValidationError("Invalid request body", details={"fields": errors})
    )


# =============================================================================
# Catalog Views
# =============================================================================


@extend_schema(
    summary="List subscription plans",
    tags=["Payments - Catalog"],
    responses={200: SubscriptionPlanSerializer(many=True)},
)
class SubscriptionPlanListView(ListAPIView):
    """Active subscription plans ordered by sort_order. Public."""

    permission_classes = [AllowAny]
    serializer_class = SubscriptionPlanSerializer
    pagination_class = None
    queryset = SubscriptionPlan.objects.filter(is_active=True).order_by("sort_order", "price")


@extend_schema(
    summary="List featured listing packages",
    tags=["Payments - Catalog"],
    responses={200: FeaturedListingPackageSerializer(many=True)},
)
class FeaturedPackageListView(ListAPIView):
    """Active featured-listing packages ordered by sort_order. Public."""

    permission_classes = [AllowAny]
    serializer_class = FeaturedListingPackageSerializer
    pagination_class = None
    queryset = FeaturedListingPackage.objects.filter(is_active=True).order_by(
        "sort_order", "duration_days"
    )


# =============================================================================
# Payment Views
# =============================================================================


class PaymentCreateView(APIView):
    """
    API view for payment creation.

    POST: Reserve a payment and create its Stripe PaymentIntent

    URL: /api/v1/payments/

    Request body:
        {
            "kind": "featured_listing",
            "amount": "29.99",
            "currency": "USD",
            "listing_id": 42,
            "duration_days": 30
        }

    Returns:
        201 with {"payment": {...}, "client_secret": "pi_xxx_secret_xxx"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Create a payment",
        tags=["Payments"],
        request=CreatePaymentSerializer,
        responses={
            201: CreatedPaymentSerializer,
            400: OpenApiResponse(description="Validation error"),
            403: OpenApiResponse(description="Listing belongs to another user"),
            503: OpenApiResponse(description="Payment gateway unavailable"),
        },
    )
    def post(self, request):
        serializer = CreatePaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer.errors)
        data = serializer.validated_data

        metadata = {}
        if "duration_days" in data:
            metadata["duration_days"] = data["duration_days"]

        kwargs = {
            "owner": request.user,
            "kind": data["kind"],
            "amount": data["amount"],
            "listing_id": data.get("listing_id"),
            "metadata": metadata,
        }
        if "currency" in data:
            kwargs["currency"] = data["currency"]

        try:
            params = CreatePaymentParams(**kwargs)
        except ValueError as e:
            return error_response(PaymentValidationError(str(e)))

        try:
            created = PaymentOrchestrator.create_payment(params)
        except BaseApplicationError as e:
            return error_response(e)

        return Response(
            CreatedPaymentSerializer(created).data,
            status=status.HTTP_201_CREATED,
        )


class PaymentHistoryView(ListAPIView):
    """
    API view for the current user's payment history.

    GET: Paginated list of own payments, newest first

    URL: /api/v1/payments/history/
    """

    permission_classes = [IsAuthenticated]
    serializer_class = PaymentSerializer

    @extend_schema(
        summary="List own payments",
        tags=["Payments"],
        responses={200: PaymentSerializer(many=True)},
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return Payment.objects.filter(owner=self.request.user).order_by("-created_at")


class PaymentConfirmView(APIView):
    """
    API view for payment confirmation.

    POST: Pull the PaymentIntent status from Stripe and settle the payment

    URL: /api/v1/payments/{id}/confirm/

    Confirming a payment that already left PENDING returns it unchanged.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Confirm a payment",
        tags=["Payments"],
        request=None,
        responses={
            200: PaymentSerializer,
            403: OpenApiResponse(description="Not your payment"),
            404: OpenApiResponse(description="Payment not found"),
            503: OpenApiResponse(description="Payment gateway unavailable"),
        },
    )
    def post(self, request, payment_id):
        try:
            payment = PaymentOrchestrator.confirm_payment(payment_id, actor=request.user)
        except BaseApplicationError as e:
            return error_response(e)

        return Response(PaymentSerializer(payment).data)


class PaymentRefundView(APIView):
    """
    API view for refunds.

    POST: Refund a completed payment in full

    URL: /api/v1/payments/{id}/refund/

    Request body:
        {
            "reason": "requested_by_customer"  // Optional
        }
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Refund a payment",
        tags=["Payments"],
        request=RefundPaymentSerializer,
        responses={
            200: PaymentSerializer,
            403: OpenApiResponse(description="Not your payment"),
            404: OpenApiResponse(description="Payment not found"),
            409: OpenApiResponse(description="Payment is not refundable"),
            503: OpenApiResponse(description="Payment gateway unavailable"),
        },
    )
    def post(self, request, payment_id):
        serializer = RefundPaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer.errors)

        try:
            payment = PaymentOrchestrator.request_refund(
                payment_id,
                actor=request.user,
                reason=serializer.validated_data.get("reason") or None,
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(PaymentSerializer(payment).data)


class FeatureListingView(APIView):
    """
    API view for featuring a listing with a package.

    POST: Create a featured_listing payment priced by the package

    URL: /api/v1/payments/listings/{id}/feature/

    Request body:
        {
            "package_id": 2
        }
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Feature a listing",
        tags=["Payments"],
        request=FeatureListingSerializer,
        responses={
            201: CreatedPaymentSerializer,
            400: OpenApiResponse(description="Unknown listing or package"),
            403: OpenApiResponse(description="Not your listing"),
            503: OpenApiResponse(description="Payment gateway unavailable"),
        },
    )
    def post(self, request, listing_id):
        serializer = FeatureListingSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer.errors)

        try:
            created = PaymentOrchestrator.feature_listing(
                listing_id=listing_id,
                package_id=serializer.validated_data["package_id"],
                actor=request.user,
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(
            CreatedPaymentSerializer(created).data,
            status=status.HTTP_201_CREATED,
        )


# =============================================================================
# Subscription Views
# =============================================================================


class SubscriptionCreateView(APIView):
    """
    API view for subscribing.

    POST: Subscribe the current user to a plan

    URL: /api/v1/payments/subscriptions/

    Request body:
        {
            "plan": "premium"
        }
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Subscribe to a plan",
        tags=["Payments - Subscriptions"],
        request=CreateSubscriptionSerializer,
        responses={
            201: SubscriptionSerializer,
            400: OpenApiResponse(description="Plan unavailable"),
            409: OpenApiResponse(description="Already subscribed"),
            503: OpenApiResponse(description="Payment gateway unavailable"),
        },
    )
    def post(self, request):
        serializer = CreateSubscriptionSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer.errors)

        try:
            subscription = SubscriptionOrchestrator.create_subscription(
                request.user,
                serializer.validated_data["plan"],
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(
            SubscriptionSerializer(subscription).data,
            status=status.HTTP_201_CREATED,
        )


class CurrentSubscriptionView(APIView):
    """
    API view for the current subscription.

    GET: The active subscription, or 404 when there is none

    URL: /api/v1/payments/subscriptions/current/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get current subscription",
        tags=["Payments - Subscriptions"],
        responses={
            200: SubscriptionSerializer,
            404: OpenApiResponse(description="No active subscription"),
        },
    )
    def get(self, request):
        subscription = SubscriptionOrchestrator.current_subscription(request.user)
        if subscription is None:
            return Response(
                {"detail": "No active subscription"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(SubscriptionSerializer(subscription).data)


class SubscriptionCheckView(APIView):
    """
    API view for subscription status.

    GET: has_active_subscription, subscription and days_remaining

    URL: /api/v1/payments/subscriptions/check/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Check subscription status",
        tags=["Payments - Subscriptions"],
        responses={200: SubscriptionStatusSerializer},
    )
    def get(self, request):
        report = SubscriptionOrchestrator.check_status(request.user)
        return Response(SubscriptionStatusSerializer(report).data)


class SubscriptionCancelView(APIView):
    """
    API view for cancellation.

    POST: Stop renewing at the end of the paid period

    URL: /api/v1/payments/subscriptions/{id}/cancel/

    The subscription stays active until ends_at; Stripe reports the
    final cancellation through webhooks.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Cancel a subscription",
        tags=["Payments - Subscriptions"],
        request=None,
        responses={
            200: SubscriptionSerializer,
            403: OpenApiResponse(description="Not your subscription"),
            404: OpenApiResponse(description="Subscription not found"),
            409: OpenApiResponse(description="Subscription is not active"),
            503: OpenApiResponse(description="Payment gateway unavailable"),
        },
    )
    def post(self, request, subscription_id):
        try:
            subscription = SubscriptionOrchestrator.cancel_subscription(
                subscription_id,
                actor=request.user,
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(SubscriptionSerializer(subscription).data)
