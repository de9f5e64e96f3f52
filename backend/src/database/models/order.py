"""
Order model for checkout and fulfillment tracking.

An order is created by the checkout flow once the payment gateway has issued
a payment request. Line items are stored as a denormalized snapshot so later
catalog edits never change what the customer bought.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    CheckConstraint,
    Enum as SQLEnum,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import BaseModel, JSONType, enum_values


class OrderStatus(str, Enum):
    """
    Order status enumeration for tracking order lifecycle.

    Attributes:
        PENDING: Order recorded, payment outcome unknown
        PAYMENT_INITIATED: Hosted payment page issued, awaiting callback
        PAID: Gateway confirmed the payment
        PROCESSING: Order being prepared
        SHIPPED: Order handed to the courier
        DELIVERED: Order delivered to customer
        CANCELLED: Payment failed or expired, or cancelled by staff
        REFUNDED: Payment refunded
    """

    PENDING = "pending"
    PAYMENT_INITIATED = "payment_initiated"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """
        Create OrderStatus from string value.

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Invalid order status: {value}")

    @property
    def is_terminal(self) -> bool:
        """Check if status ends the order lifecycle."""
        return self in (
            OrderStatus.DELIVERED,
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
        )

    @property
    def is_open(self) -> bool:
        """Check if the order still needs action from the shop."""
        return self in OPEN_ORDER_STATUSES


OPEN_ORDER_STATUSES = frozenset(
    {
        OrderStatus.PENDING,
        OrderStatus.PAYMENT_INITIATED,
        OrderStatus.PAID,
        OrderStatus.PROCESSING,
    }
)


class Order(BaseModel):
    """
    Customer order placed through the storefront checkout.

    Attributes:
        id: Unique order identifier (UUID)
        reference_number: Human-readable reference, ``ORDER-xxxxxxxx``
        customer_email: Buyer e-mail address
        customer_name: Buyer full name
        customer_phone: Optional buyer phone number
        items: Line-item snapshots taken at checkout
        shipping_address: Delivery address snapshot
        subtotal: Sum of line totals
        shipping: Shipping charge
        tax: Tax charge
        total: Amount charged through the gateway
        status: Current lifecycle status
        payment_id: Gateway payment request identifier
        payment_provider: Gateway tag
        tracking_number: Courier tracking number set by staff
        notes: Internal staff notes
    """

    __tablename__ = "orders"

    reference_number: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        unique=True,
        comment="Human-readable order reference",
    )

    customer_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Buyer e-mail address",
    )

    customer_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    customer_phone: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )

    items: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Denormalized line-item snapshots",
    )

    shipping_address: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        comment="Delivery address snapshot",
    )

    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    shipping: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    tax: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(
            OrderStatus,
            name="order_status",
            native_enum=False,
            length=32,
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
        default=OrderStatus.PENDING,
        comment="Current order status",
    )

    payment_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Gateway payment request identifier",
    )

    payment_provider: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )

    tracking_number: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_orders_payment_id", "payment_id"),
        Index("ix_orders_status_created", "status", "created_at"),
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        CheckConstraint("shipping >= 0", name="ck_orders_shipping_non_negative"),
        CheckConstraint("tax >= 0", name="ck_orders_tax_non_negative"),
        CheckConstraint("total >= 0", name="ck_orders_total_non_negative"),
    )

    @property
    def item_count(self) -> int:
        return sum(int(item.get("quantity", 0)) for item in self.items or [])

    def __repr__(self) -> str:
        return (
            f"<Order(reference_number={self.reference_number!r}, "
            f"status={self.status.value if self.status else None!r}, "
            f"total={self.total})>"
        )
