"""
Order management Pydantic schemas for API request/response validation.

This module defines schemas for the admin order views, the admin status
update, dashboard statistics and the public order-tracking view.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.database.models.order import OrderStatus


class OrderItemResponse(BaseModel):
    """Line-item snapshot as stored on the order."""

    product_id: str
    product_name: str
    product_slug: Optional[str] = None
    price: Decimal
    quantity: int
    image: Optional[str] = None


class OrderResponse(BaseModel):
    """Complete order response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reference_number: str
    customer_email: str
    customer_name: str
    customer_phone: Optional[str] = None
    items: list[OrderItemResponse]
    shipping_address: dict[str, Any]
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    status: OrderStatus
    payment_id: Optional[str] = None
    payment_provider: Optional[str] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class OrderListResponse(BaseModel):
    """Paginated order list."""

    orders: list[OrderResponse]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    pages: int = Field(..., ge=0)


class OrderStatusUpdate(BaseModel):
    """Request schema for an admin status change."""

    model_config = ConfigDict(str_strip_whitespace=True)

    status: OrderStatus = Field(..., description="New order status")
    tracking_number: Optional[str] = Field(
        None,
        max_length=255,
        description="Courier tracking number",
    )
    notes: Optional[str] = Field(
        None,
        max_length=2000,
        description="Internal notes",
    )

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v


class OrderStatisticsResponse(BaseModel):
    """Dashboard figures."""

    total_orders: int
    total_revenue: float
    pending_orders: int
    completed_orders: int
    status_breakdown: dict[str, int] = Field(default_factory=dict)


class OrderTrackingResponse(BaseModel):
    """
    Order view returned to shoppers.

    Omits contact details, payment identifiers and internal notes.
    """

    model_config = ConfigDict(from_attributes=True)

    reference_number: str
    status: OrderStatus
    items: list[OrderItemResponse]
    total: Decimal
    tracking_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime
