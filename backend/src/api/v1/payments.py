"""
Checkout and payment gateway API endpoints.

This module implements the public checkout endpoint that hands the shopper
off to the hosted payment page, the gateway webhook that reconciles payment
outcomes into order status, and an admin lookup of a payment at the gateway.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.api.deps import AdminContext, DatabaseSession
from src.core.logging import get_logger
from src.schemas.payments import (
    CheckoutRequest,
    CheckoutResponse,
    WebhookAcknowledgement,
)
from src.services.notifications.service import NotificationService, get_notification_service
from src.services.orders.repository import OrderRepository
from src.services.payments.hitpay_client import HitPayClient, get_hitpay_client
from src.services.payments.service import (
    CheckoutValidationError,
    PaymentProcessingError,
    PaymentService,
    WebhookPayloadError,
    WebhookSignatureError,
)
from src.services.payments.signature import extract_signature

logger = get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


def get_payment_service(
    db: DatabaseSession,
    hitpay_client: Annotated[HitPayClient, Depends(get_hitpay_client)],
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
) -> PaymentService:
    """
    Dependency for payment service initialization.

    Returns:
        PaymentService: Configured payment service instance
    """
    return PaymentService(
        repository=OrderRepository(db),
        hitpay_client=hitpay_client,
        notification_service=notification_service,
    )


@router.post(
    "/create",
    response_model=CheckoutResponse,
    status_code=status.HTTP_200_OK,
    summary="Start checkout",
    description="Create a hosted payment request and record the order",
)
async def create_payment(
    checkout: CheckoutRequest,
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> dict[str, Any]:
    """
    Start a checkout for the posted cart.

    Raises:
        HTTPException: 400 for incomplete checkouts, 500 when the gateway
            or the database fails
    """
    try:
        return await service.initiate_checkout(checkout)

    except CheckoutValidationError as e:
        logger.info("Checkout rejected", error=str(e), **e.context)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "code": "VALIDATION_ERROR"},
        )

    except PaymentProcessingError as e:
        logger.error("Checkout failed", error=str(e), **e.context)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Failed to create payment", "code": "PAYMENT_ERROR"},
        )


@router.post(
    "/webhook",
    response_model=WebhookAcknowledgement,
    status_code=status.HTTP_200_OK,
    summary="Handle payment gateway webhook",
    description="Verify and apply a payment status callback",
)
async def handle_webhook(
    request: Request,
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> dict[str, Any]:
    """
    Handle a payment status callback.

    The body is read raw so the signature is checked over the exact bytes
    the gateway signed.

    Raises:
        HTTPException: 401 for a missing or invalid signature, 400 for an
            unreadable payload
    """
    raw_body = await request.body()
    signature = extract_signature(request.headers)

    try:
        return await service.handle_webhook(raw_body, signature)

    except WebhookSignatureError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": str(e), "code": "INVALID_SIGNATURE"},
        )

    except WebhookPayloadError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "code": "INVALID_PAYLOAD"},
        )


@router.get(
    "/{payment_id}/status",
    response_model=dict[str, Any],
    summary="Look up payment at the gateway",
)
async def get_payment_status(
    payment_id: str,
    ctx: AdminContext,
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> dict[str, Any]:
    try:
        return await service.get_payment_status(ctx, payment_id)
    except PaymentProcessingError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(e), "code": "GATEWAY_ERROR"},
        )
