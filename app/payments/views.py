"""
Payment API views.

This module provides API views for:
- Starting a payment for a listing term
- Polling a payment's status (backs the client confirmation loop)

The provider callback endpoint lives in webhooks/views.py.

Related files:
    - serializers.py: Request/response serialization
    - services/payment_orchestrator.py: Business logic
    - urls.py: URL routing

Endpoints:
    - Initiate: POST /api/v1/payments/initiate/
    - Status: GET /api/v1/payments/<payment_id>/status/
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiExample, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)
from listings.models import Listing
from payments.exceptions import PaymentNotFoundError
from payments.plans import price_for
from payments.serializers import (
    InitiatePaymentResponseSerializer,
    InitiatePaymentSerializer,
    PaymentFailedResponseSerializer,
    PaymentStatusSerializer,
)
from payments.services import InitiatePaymentParams, PaymentOrchestrator
from payments.state_machines import PaymentType

logger = logging.getLogger(__name__)


def _load_payable_listing(listing_id, user, payment_type: str) -> Listing:
    """
    Fetch a listing the user may pay for.

    Raises:
        NotFoundError: Unknown listing
        PermissionDeniedError: User does not own the listing
        ConflictError: Listing not approved, or already active for a
            new-listing payment
    """
    try:
        listing = Listing.objects.get(id=listing_id)
    except Listing.DoesNotExist:
        raise NotFoundError(
            "Listing not found",
            error_code="LISTING_NOT_FOUND",
            details={"listing_id": str(listing_id)},
        ) from None

    if listing.owner_id != user.id:
        raise PermissionDeniedError(
            "You can only pay for your own listings",
            details={"listing_id": str(listing_id)},
        )
    if not listing.is_approved:
        raise ConflictError(
            "Listing must be approved before it can be paid for",
            error_code="LISTING_NOT_APPROVED",
            details={"moderation_status": listing.moderation_status},
        )
    if payment_type == PaymentType.NEW_LISTING and listing.has_active_term:
        raise ConflictError(
            "Listing already has an active term; renew it instead",
            error_code="TERM_ALREADY_ACTIVE",
            details={"current_term_end": listing.current_term_end.isoformat()},
        )
    return listing


class InitiatePaymentView(APIView):
    """
    API view for starting a payment.

    POST: Price the plan, persist a pending payment and push the charge
    prompt to the payer's phone.

    URL: /api/v1/payments/initiate/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Initiate a listing payment",
        description=(
            "Prices the requested plan and sends an M-Pesa STK push to the given "
            "phone number. Poll the status endpoint until the payment resolves."
        ),
        tags=["Payments"],
        request=InitiatePaymentSerializer,
        responses={
            201: OpenApiResponse(
                response=InitiatePaymentResponseSerializer,
                description="Charge accepted by the provider",
                examples=[
                    OpenApiExample(
                        "Accepted",
                        value={
                            "payment_id": "3f0e6d1c-5c1a-4a8e-9a0f-2b7f4c7b9d11",
                            "status": "processing",
                            "checkout_request_id": "ws_CO_191220191020363925",
                            "message": "Success. Request accepted for processing",
                        },
                    ),
                ],
            ),
            400: OpenApiResponse(description="Invalid request or phone number"),
            403: OpenApiResponse(description="Listing belongs to another user"),
            404: OpenApiResponse(description="Listing not found"),
            409: OpenApiResponse(description="Listing not approved or already active"),
            502: OpenApiResponse(
                response=PaymentFailedResponseSerializer,
                description="Provider refused the charge or could not be reached",
            ),
        },
    )
    def post(self, request):
        """
        Initiate a payment.

        Request body:
            {
                "listing_id": "<uuid>",
                "plan": "standard",
                "term_months": 6,
                "phone_number": "0712345678",
                "payment_type": "new_listing"
            }
        """
        serializer = InitiatePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            listing = _load_payable_listing(data["listing_id"], request.user, data["payment_type"])
            params = InitiatePaymentParams(
                listing_id=listing.id,
                payer_id=request.user.id,
                amount=price_for(data["plan"], data["term_months"]),
                payment_type=data["payment_type"],
                term_months=data["term_months"],
                contact=data["phone_number"],
                tier=data["plan"],
            )
            result = PaymentOrchestrator.initiate(params)
        except BaseApplicationError as e:
            return Response(e.to_dict(), status=e.http_status)

        if not result.success:
            body = PaymentFailedResponseSerializer(
                {"payment_id": result.payment_id, "status": result.status, "error": result.message}
            ).data
            return Response(body, status=status.HTTP_502_BAD_GATEWAY)

        body = InitiatePaymentResponseSerializer(
            {
                "payment_id": result.payment_id,
                "status": result.status,
                "checkout_request_id": result.checkout_request_id,
                "message": result.message,
            }
        ).data
        return Response(body, status=status.HTTP_201_CREATED)


class PaymentStatusView(APIView):
    """
    API view for polling a payment.

    GET: Return the payment's status, asking the provider first if it is
    still open.

    URL: /api/v1/payments/<payment_id>/status/

    Only the payer can see a payment; anyone else gets 404.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get payment status",
        tags=["Payments"],
        responses={
            200: PaymentStatusSerializer,
            404: OpenApiResponse(description="Payment not found"),
        },
    )
    def get(self, request, payment_id):
        try:
            payment = PaymentOrchestrator.get_payment(payment_id)
            if payment.payer_id != request.user.id:
                raise PaymentNotFoundError(
                    f"Payment {payment_id} not found",
                    details={"payment_id": str(payment_id)},
                )
            payment = PaymentOrchestrator.check_status(payment.id)
        except BaseApplicationError as e:
            return Response(e.to_dict(), status=e.http_status)

        return Response(PaymentStatusSerializer(payment).data)
