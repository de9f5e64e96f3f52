"""
Activity log model recording back-office actions.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum as SQLEnum, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, UUIDMixin, enum_values, utcnow


class ActivityAction(str, enum.Enum):
    """Actions recorded in the activity log."""

    LOGIN = "login"
    CREATE_USER = "create_user"
    UPDATE_USER = "update_user"
    DELETE_USER = "delete_user"
    VIEW_USERS = "view_users"
    VIEW_ORDERS = "view_orders"
    UPDATE_ORDER_STATUS = "update_order_status"
    VIEW_LOGS = "view_logs"
    CREATE_PRODUCT = "create_product"
    UPDATE_PRODUCT = "update_product"
    DELETE_PRODUCT = "delete_product"
    IMPORT_PRODUCTS = "import_products"
    CREATE_CATEGORY = "create_category"
    UPDATE_CATEGORY = "update_category"
    DELETE_CATEGORY = "delete_category"


class ActivityLog(Base, UUIDMixin):
    """
    Append-only record of who did what in the back-office.

    Rows are never updated, so only a single timestamp is kept.
    """

    __tablename__ = "activity_logs"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)

    action: Mapped[ActivityAction] = mapped_column(
        SQLEnum(
            ActivityAction,
            name="activity_action",
            native_enum=False,
            length=64,
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )

    details: Mapped[str] = mapped_column(Text, nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    entity_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    entity_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        Index("ix_activity_logs_timestamp", "timestamp"),
        Index("ix_activity_logs_user_action", "user_id", "action"),
        Index("ix_activity_logs_entity", "entity_type", "entity_id"),
    )
