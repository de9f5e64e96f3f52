"""
Order data access repository.

This module implements the OrderRepository class providing async methods for
persisting checkout orders, looking them up by id, reference number or
gateway payment id, paginated listing, status updates and statistics.
"""

import uuid
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import get_logger
from src.database.models.order import OPEN_ORDER_STATUSES, Order, OrderStatus

logger = get_logger(__name__)


class OrderRepositoryError(Exception):
    """Base exception for order repository errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class OrderNotFoundError(OrderRepositoryError):
    """Raised when order is not found."""

    pass


class OrderCreationError(OrderRepositoryError):
    """Raised when order creation fails."""

    pass


class OrderUpdateError(OrderRepositoryError):
    """Raised when order update fails."""

    pass


class OrderRepository:
    """
    Repository for order data access operations.

    The repository flushes but never commits; the request session owns the
    transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self) -> None:
        """
        Commit the current transaction.

        Used where a write must be durable before the caller reports success.

        Raises:
            OrderRepositoryError: If the commit fails
        """
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to commit order changes", error=str(e))
            raise OrderRepositoryError("Failed to commit order changes", error=str(e)) from e

    async def create_order(
        self,
        reference_number: str,
        customer_email: str,
        customer_name: str,
        items: list[dict[str, Any]],
        shipping_address: dict[str, Any],
        subtotal: Decimal,
        shipping: Decimal,
        tax: Decimal,
        total: Decimal,
        status: OrderStatus = OrderStatus.PENDING,
        customer_phone: Optional[str] = None,
        payment_id: Optional[str] = None,
        payment_provider: Optional[str] = None,
    ) -> Order:
        """
        Persist a new order.

        Returns:
            Created order with generated id and timestamps

        Raises:
            OrderCreationError: If the insert fails
        """
        order = Order(
            reference_number=reference_number,
            customer_email=customer_email,
            customer_name=customer_name,
            customer_phone=customer_phone,
            items=items,
            shipping_address=shipping_address,
            subtotal=subtotal,
            shipping=shipping,
            tax=tax,
            total=total,
            status=status,
            payment_id=payment_id,
            payment_provider=payment_provider,
        )

        try:
            self.session.add(order)
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.error(
                "Order creation violated a constraint",
                reference_number=reference_number,
                error=str(e),
            )
            raise OrderCreationError(
                "Order violates a database constraint",
                reference_number=reference_number,
                error=str(e),
            ) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Failed to create order",
                reference_number=reference_number,
                error=str(e),
            )
            raise OrderCreationError(
                "Failed to create order",
                reference_number=reference_number,
                error=str(e),
            ) from e

        logger.info(
            "Order created",
            order_id=str(order.id),
            reference_number=reference_number,
            status=status.value,
            total=str(total),
        )
        return order

    async def _fetch_one(self, description: str, stmt, **context: Any) -> Optional[Order]:
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch order by {description}", error=str(e), **context)
            raise OrderRepositoryError(
                f"Failed to fetch order by {description}",
                error=str(e),
                **context,
            ) from e
        return result.scalars().first()

    async def get_order_by_id(self, order_id: uuid.UUID) -> Optional[Order]:
        return await self._fetch_one(
            "id",
            select(Order).where(Order.id == order_id),
            order_id=str(order_id),
        )

    async def get_order_by_reference(self, reference_number: str) -> Optional[Order]:
        return await self._fetch_one(
            "reference number",
            select(Order).where(Order.reference_number == reference_number),
            reference_number=reference_number,
        )

    async def get_order_by_payment_id(self, payment_id: str) -> Optional[Order]:
        return await self._fetch_one(
            "payment id",
            select(Order)
            .where(Order.payment_id == payment_id)
            .order_by(Order.created_at.desc()),
            payment_id=payment_id,
        )

    async def find_order(self, identifier: str) -> Optional[Order]:
        """
        Find an order by UUID or, failing that, by reference number.

        Args:
            identifier: Order id or ``ORDER-xxxxxxxx`` reference

        Returns:
            Matching order or None
        """
        try:
            order_id = uuid.UUID(identifier)
        except (ValueError, AttributeError, TypeError):
            order_id = None

        if order_id is not None:
            order = await self.get_order_by_id(order_id)
            if order is not None:
                return order

        return await self.get_order_by_reference(identifier)

    async def list_orders(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[OrderStatus] = None,
        customer_email: Optional[str] = None,
    ) -> tuple[Sequence[Order], int]:
        """
        List orders newest first with pagination.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return
            status: Optional status filter
            customer_email: Optional buyer e-mail filter

        Returns:
            Tuple of (orders, total_count)

        Raises:
            OrderRepositoryError: If query fails
        """
        conditions = []
        if status is not None:
            conditions.append(Order.status == status)
        if customer_email:
            conditions.append(func.lower(Order.customer_email) == customer_email.lower())

        stmt = (
            select(Order)
            .where(*conditions)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(Order).where(*conditions)

        try:
            result = await self.session.execute(stmt)
            count_result = await self.session.execute(count_stmt)
        except SQLAlchemyError as e:
            logger.error("Failed to list orders", error=str(e))
            raise OrderRepositoryError("Failed to list orders", error=str(e)) from e

        orders = result.scalars().all()
        total_count = count_result.scalar_one()

        logger.debug("Orders listed", count=len(orders), total=total_count, skip=skip)
        return orders, total_count

    async def update_order_status(
        self,
        order: Order,
        new_status: OrderStatus,
        tracking_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Update order status, optionally setting tracking number and notes.

        Tracking number and notes are only overwritten when provided.

        Raises:
            OrderUpdateError: If update fails
        """
        old_status = order.status
        order.status = new_status
        if tracking_number is not None:
            order.tracking_number = tracking_number
        if notes is not None:
            order.notes = notes

        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Failed to update order status",
                order_id=str(order.id),
                error=str(e),
            )
            raise OrderUpdateError(
                "Failed to update order status",
                order_id=str(order.id),
                error=str(e),
            ) from e

        logger.info(
            "Order status updated",
            order_id=str(order.id),
            reference_number=order.reference_number,
            old_status=old_status.value if old_status else None,
            new_status=new_status.value,
        )
        return order

    async def get_order_statistics(self) -> dict[str, Any]:
        """
        Get order statistics for the admin dashboard.

        Returns:
            Dictionary with total orders, revenue, open and delivered counts
            and a per-status breakdown

        Raises:
            OrderRepositoryError: If query fails
        """
        status_stmt = select(Order.status, func.count()).group_by(Order.status)
        revenue_stmt = select(func.coalesce(func.sum(Order.total), 0))

        try:
            status_result = await self.session.execute(status_stmt)
            revenue_result = await self.session.execute(revenue_stmt)
        except SQLAlchemyError as e:
            logger.error("Failed to fetch order statistics", error=str(e))
            raise OrderRepositoryError(
                "Failed to fetch order statistics",
                error=str(e),
            ) from e

        status_breakdown = {status.value: count for status, count in status_result.all()}
        total_revenue = Decimal(str(revenue_result.scalar_one() or 0))

        statistics = {
            "total_orders": sum(status_breakdown.values()),
            "total_revenue": float(total_revenue),
            "pending_orders": sum(
                status_breakdown.get(status.value, 0) for status in OPEN_ORDER_STATUSES
            ),
            "completed_orders": status_breakdown.get(OrderStatus.DELIVERED.value, 0),
            "status_breakdown": status_breakdown,
        }

        logger.debug("Order statistics fetched", **statistics)
        return statistics
