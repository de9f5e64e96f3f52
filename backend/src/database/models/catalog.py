"""
Product catalog models.

Categories group products on the storefront; a category cannot be removed
while products still reference it.
"""

import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import BaseModel, JSONType


class Category(BaseModel):
    """
    Product category.

    Attributes:
        name: Display name
        slug: URL identifier (unique)
        description: Optional blurb shown on the category page
    """

    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="URL identifier (unique)",
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Category(slug={self.slug!r})>"


class Product(BaseModel):
    """
    Catalog product.

    List-valued attributes (features, colours, images, materials, care
    instructions) are stored as JSON arrays; ``dimensions`` is a
    ``{width, depth, height}`` object in centimetres.
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="URL identifier (unique)",
    )

    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
    )
    category: Mapped[Category] = relationship(lazy="selectin")

    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    features: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    colors: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    images: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    materials: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    care_instructions: Mapped[list[str]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    dimensions: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    delivery_time: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    return_policy: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    warranty: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    in_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_weekly_best_seller: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    __table_args__ = (
        CheckConstraint("price IS NULL OR price >= 0", name="ck_products_price_non_negative"),
        Index("ix_products_category_id", "category_id"),
        Index("ix_products_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Product(slug={self.slug!r})>"
