"""
Database models package initialization.

Models are imported here so they are registered with the Base metadata for
Alembic and for ``Base.metadata.create_all``.
"""

from src.database.base import Base, BaseModel, TimestampMixin, UUIDMixin
from src.database.models.activity_log import ActivityAction, ActivityLog
from src.database.models.catalog import Category, Product
from src.database.models.order import Order, OrderStatus
from src.database.models.user import User, UserRole

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "ActivityAction",
    "ActivityLog",
    "Category",
    "Product",
    "Order",
    "OrderStatus",
    "User",
    "UserRole",
]
