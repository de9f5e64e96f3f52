"""
Order management API endpoints.

This module implements the back-office order views, the admin status update,
dashboard statistics and the public order-tracking lookup.
"""

from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.deps import CurrentContext, get_order_service
from src.core.logging import get_logger
from src.database.models.order import Order, OrderStatus
from src.schemas.orders import (
    OrderListResponse,
    OrderResponse,
    OrderStatisticsResponse,
    OrderStatusUpdate,
    OrderTrackingResponse,
)
from src.services.orders.repository import OrderNotFoundError
from src.services.orders.service import OrderProcessingError, OrderService

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])

OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]


def _not_found(e: OrderNotFoundError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"message": str(e), "code": "ORDER_NOT_FOUND"},
    )


def _processing_failed(e: OrderProcessingError) -> HTTPException:
    logger.error("Order operation failed", error=str(e), **e.context)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": str(e), "code": "ORDER_ERROR"},
    )


@router.get(
    "/track/{reference_number}",
    response_model=OrderTrackingResponse,
    summary="Track an order",
    description="Public lookup by reference number and checkout e-mail",
)
async def track_order(
    reference_number: str,
    email: Annotated[str, Query(min_length=3, max_length=255)],
    service: OrderServiceDep,
) -> Order:
    try:
        return await service.track_order(reference_number, email)
    except OrderNotFoundError as e:
        raise _not_found(e)
    except OrderProcessingError as e:
        raise _processing_failed(e)


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="Paginated order list, newest first",
)
async def list_orders(
    ctx: CurrentContext,
    service: OrderServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    order_status: Annotated[Optional[OrderStatus], Query(alias="status")] = None,
    customer_email: Annotated[Optional[str], Query(max_length=255)] = None,
) -> dict[str, Any]:
    """
    List orders for the back-office.

    Raises:
        HTTPException: 403 for callers without a back-office role
    """
    try:
        return await service.list_orders(
            ctx,
            page=page,
            page_size=page_size,
            status=order_status,
            customer_email=customer_email,
        )
    except OrderProcessingError as e:
        raise _processing_failed(e)


@router.get(
    "/statistics",
    response_model=OrderStatisticsResponse,
    summary="Order statistics",
)
async def get_order_statistics(
    ctx: CurrentContext,
    service: OrderServiceDep,
) -> dict[str, Any]:
    try:
        return await service.get_statistics(ctx)
    except OrderProcessingError as e:
        raise _processing_failed(e)


@router.get(
    "/{identifier}",
    response_model=OrderResponse,
    summary="Get order",
    description="Look up an order by id or reference number",
)
async def get_order(
    identifier: str,
    ctx: CurrentContext,
    service: OrderServiceDep,
) -> Order:
    try:
        return await service.get_order(ctx, identifier)
    except OrderNotFoundError as e:
        raise _not_found(e)
    except OrderProcessingError as e:
        raise _processing_failed(e)


@router.patch(
    "/{identifier}/status",
    response_model=OrderResponse,
    summary="Update order status",
    description="Set status, tracking number and notes on an order",
)
async def update_order_status(
    identifier: str,
    update: OrderStatusUpdate,
    ctx: CurrentContext,
    service: OrderServiceDep,
) -> Order:
    """
    Update an order's status by hand.

    Raises:
        HTTPException: 403 for editors, 404 if the order does not exist
    """
    logger.info(
        "Updating order status",
        identifier=identifier,
        new_status=update.status.value,
    )

    try:
        return await service.update_order_status(
            ctx,
            identifier,
            update.status,
            tracking_number=update.tracking_number,
            notes=update.notes,
        )
    except OrderNotFoundError as e:
        raise _not_found(e)
    except OrderProcessingError as e:
        raise _processing_failed(e)
