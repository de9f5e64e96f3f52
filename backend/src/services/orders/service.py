"""
Order service for the back-office and public order tracking.

This module implements the OrderService class: admin listing, lookup,
dashboard statistics and manual status changes, plus the shopper-facing
tracking lookup. Every admin operation receives the caller's RequestContext
explicitly.
"""

import math
from typing import Any, Optional

from src.core.context import RequestContext
from src.core.logging import get_logger
from src.database.models.activity_log import ActivityAction
from src.database.models.order import Order, OrderStatus
from src.database.models.user import UserRole
from src.services.activity.service import ActivityService
from src.services.notifications.service import NotificationService
from src.services.orders.repository import (
    OrderNotFoundError,
    OrderRepository,
    OrderRepositoryError,
)

logger = get_logger(__name__)

ORDER_ENTITY = "order"
BACK_OFFICE_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.EDITOR)
ORDER_MANAGER_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN)


class OrderServiceError(Exception):
    """Base exception for order service errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class OrderProcessingError(OrderServiceError):
    """Raised when order processing fails."""

    pass


class OrderService:
    """
    Order operations for staff and shoppers.

    Attributes:
        repository: Order repository for data access
        activity_service: Records admin actions
        notification_service: Sends status e-mails, best effort
    """

    def __init__(
        self,
        repository: OrderRepository,
        activity_service: ActivityService,
        notification_service: Optional[NotificationService] = None,
    ):
        self.repository = repository
        self.activity_service = activity_service
        self.notification_service = notification_service

    async def _find_or_raise(self, identifier: str) -> Order:
        try:
            order = await self.repository.find_order(identifier)
        except OrderRepositoryError as e:
            raise OrderProcessingError("Failed to retrieve order", **e.context) from e

        if order is None:
            raise OrderNotFoundError("Order not found", identifier=identifier)
        return order

    async def get_order(self, ctx: RequestContext, identifier: str) -> Order:
        """
        Get an order by id or reference number.

        Raises:
            PermissionDeniedError: If the caller has no back-office role
            OrderNotFoundError: If no order matches
        """
        ctx.require_role(*BACK_OFFICE_ROLES)
        return await self._find_or_raise(identifier)

    async def list_orders(
        self,
        ctx: RequestContext,
        page: int = 1,
        page_size: int = 20,
        status: Optional[OrderStatus] = None,
        customer_email: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        List orders newest first.

        Returns:
            Dictionary with ``orders``, ``total``, ``page``, ``page_size`` and ``pages``
        """
        ctx.require_role(*BACK_OFFICE_ROLES)

        try:
            orders, total = await self.repository.list_orders(
                skip=(page - 1) * page_size,
                limit=page_size,
                status=status,
                customer_email=customer_email,
            )
        except OrderRepositoryError as e:
            raise OrderProcessingError("Failed to list orders", **e.context) from e

        await self.activity_service.log_activity(
            ctx,
            ActivityAction.VIEW_ORDERS,
            f"Viewed orders page {page}" + (f" with status {status.value}" if status else ""),
        )

        return {
            "orders": list(orders),
            "total": total,
            "page": page,
            "page_size": page_size,
            "pages": math.ceil(total / page_size),
        }

    async def get_statistics(self, ctx: RequestContext) -> dict[str, Any]:
        ctx.require_role(*BACK_OFFICE_ROLES)
        try:
            return await self.repository.get_order_statistics()
        except OrderRepositoryError as e:
            raise OrderProcessingError("Failed to fetch order statistics", **e.context) from e

    async def update_order_status(
        self,
        ctx: RequestContext,
        identifier: str,
        status: OrderStatus,
        tracking_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Set an order's status by hand.

        Staff may move an order to any status; tracking number and notes are
        only overwritten when provided.

        Raises:
            PermissionDeniedError: If the caller is not an admin
            OrderNotFoundError: If no order matches
            OrderProcessingError: If the update fails
        """
        ctx.require_role(*ORDER_MANAGER_ROLES)
        order = await self._find_or_raise(identifier)
        previous_status = order.status

        try:
            order = await self.repository.update_order_status(
                order,
                status,
                tracking_number=tracking_number,
                notes=notes,
            )
        except OrderRepositoryError as e:
            raise OrderProcessingError("Failed to update order status", **e.context) from e

        await self.activity_service.log_activity(
            ctx,
            ActivityAction.UPDATE_ORDER_STATUS,
            f"Changed order {order.reference_number} status from "
            f"{previous_status.value} to {status.value}",
            entity_id=str(order.id),
            entity_type=ORDER_ENTITY,
        )

        try:
            await self.repository.commit()
        except OrderRepositoryError as e:
            raise OrderProcessingError("Failed to save order status", **e.context) from e

        if self.notification_service is not None and previous_status != status:
            await self.notification_service.send_order_status_update(order, previous_status)

        return order

    async def track_order(self, reference_number: str, email: str) -> Order:
        """
        Look up an order for a shopper.

        The order is only returned when the e-mail matches the one used at
        checkout; a mismatch is reported exactly like a missing order.

        Raises:
            OrderNotFoundError: If no order matches both values
        """
        try:
            order = await self.repository.get_order_by_reference(reference_number.strip())
        except OrderRepositoryError as e:
            raise OrderProcessingError("Failed to retrieve order", **e.context) from e

        if order is None or order.customer_email.lower() != email.strip().lower():
            logger.info("Order tracking lookup missed", reference_number=reference_number)
            raise OrderNotFoundError("Order not found", reference_number=reference_number)

        return order
