"""
Product catalog schemas.

This module defines Pydantic schemas for categories, products, catalog
filtering and spreadsheet imports. Slugs are derived from the name when
the caller leaves them out.
"""

import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"
CENT = Decimal("0.01")


def slugify(value: str) -> str:
    """
    URL slug from a display name.

    Example:
        slugify("Oslo 3-Seater Sofa!")  # "oslo-3-seater-sofa"
    """
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def _clean_list(values: Optional[list[str]]) -> Optional[list[str]]:
    if values is None:
        return None
    return [value.strip() for value in values if value and value.strip()]


class CategoryCreate(BaseModel):
    """Schema for creating a category."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255, examples=["Sofas"])
    slug: Optional[str] = Field(None, max_length=255, pattern=SLUG_PATTERN)
    description: Optional[str] = None

    @model_validator(mode="after")
    def default_slug(self) -> "CategoryCreate":
        if not self.slug:
            self.slug = slugify(self.name)
        if not self.slug:
            raise ValueError("Name must contain at least one letter or digit")
        return self


class CategoryUpdate(BaseModel):
    """Partial category update; omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255, pattern=SLUG_PATTERN)
    description: Optional[str] = None


class CategorySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str


class CategoryResponse(CategorySummary):
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProductDimensions(BaseModel):
    """Outer dimensions in centimetres."""

    width: float = Field(..., ge=0)
    depth: float = Field(..., ge=0)
    height: float = Field(..., ge=0)


class _ProductFields(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("price", check_fields=False)
    @classmethod
    def round_price(cls, value: Optional[Decimal]) -> Optional[Decimal]:
        if value is None:
            return value
        return value.quantize(CENT, rounding=ROUND_HALF_UP)

    @field_validator(
        "features",
        "colors",
        "images",
        "materials",
        "care_instructions",
        check_fields=False,
    )
    @classmethod
    def strip_blank_entries(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return _clean_list(value)


class ProductCreate(_ProductFields):
    """Schema for creating a product."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "examples": [
                {
                    "name": "Oslo 3-Seater Sofa",
                    "category_id": "2b1f7f4e-8f3a-4d0e-9c55-1f1f0d7a9b10",
                    "price": "1299.00",
                    "description": "Deep-seated sofa in washed linen.",
                    "features": ["Removable covers", "Kiln-dried oak frame"],
                    "dimensions": {"width": 210, "depth": 95, "height": 80},
                }
            ]
        },
    )

    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255, pattern=SLUG_PATTERN)
    category_id: UUID
    price: Optional[Decimal] = Field(None, ge=0)
    description: str = Field(..., min_length=1)
    features: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    materials: list[str] = Field(default_factory=list)
    care_instructions: list[str] = Field(default_factory=list)
    dimensions: Optional[ProductDimensions] = None
    delivery_time: Optional[str] = Field(None, max_length=255)
    return_policy: Optional[str] = Field(None, max_length=255)
    warranty: Optional[str] = Field(None, max_length=255)
    in_stock: bool = True
    is_weekly_best_seller: bool = False

    @model_validator(mode="after")
    def default_slug(self) -> "ProductCreate":
        if not self.slug:
            self.slug = slugify(self.name)
        if not self.slug:
            raise ValueError("Name must contain at least one letter or digit")
        return self


class ProductUpdate(_ProductFields):
    """Partial product update; omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255, pattern=SLUG_PATTERN)
    category_id: Optional[UUID] = None
    price: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = Field(None, min_length=1)
    features: Optional[list[str]] = None
    colors: Optional[list[str]] = None
    images: Optional[list[str]] = None
    materials: Optional[list[str]] = None
    care_instructions: Optional[list[str]] = None
    dimensions: Optional[ProductDimensions] = None
    delivery_time: Optional[str] = Field(None, max_length=255)
    return_policy: Optional[str] = Field(None, max_length=255)
    warranty: Optional[str] = Field(None, max_length=255)
    in_stock: Optional[bool] = None
    is_weekly_best_seller: Optional[bool] = None


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    category_id: UUID
    category: CategorySummary
    price: Optional[Decimal] = None
    description: str
    features: list[str]
    colors: list[str]
    images: list[str]
    materials: list[str]
    care_instructions: list[str]
    dimensions: Optional[ProductDimensions] = None
    delivery_time: Optional[str] = None
    return_policy: Optional[str] = None
    warranty: Optional[str] = None
    in_stock: bool
    is_weekly_best_seller: bool
    created_at: datetime
    updated_at: datetime


class ProductListResponse(BaseModel):
    products: list[ProductResponse]
    total: int
    page: int
    page_size: int
    pages: int


class ProductFilter(BaseModel):
    """
    Storefront listing filters.

    ``categories`` holds category slugs; a product matches when it is in
    any of them.
    """

    categories: list[str] = Field(default_factory=list)
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    in_stock: Optional[bool] = None
    best_sellers_only: bool = False
    search: Optional[str] = Field(None, max_length=255)

    @field_validator("categories", mode="before")
    @classmethod
    def split_categories(cls, value):
        """Accept comma separated slugs, repeated parameters, or both."""
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [
            slug.strip().lower()
            for item in value
            for slug in str(item).split(",")
            if slug.strip()
        ]

    @field_validator("search")
    @classmethod
    def blank_search_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return value.strip() or None

    @model_validator(mode="after")
    def check_price_range(self) -> "ProductFilter":
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError("min_price cannot be greater than max_price")
        return self


class ProductImportRow(_ProductFields):
    """
    One spreadsheet row after header mapping.

    The category is given by name and resolved during import.
    """

    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    category: str = Field(..., min_length=1, max_length=255)
    price: Optional[Decimal] = Field(None, ge=0)
    description: str = Field(..., min_length=1)
    features: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    materials: list[str] = Field(default_factory=list)
    care_instructions: list[str] = Field(default_factory=list)
    delivery_time: Optional[str] = Field(None, max_length=255)
    return_policy: Optional[str] = Field(None, max_length=255)
    warranty: Optional[str] = Field(None, max_length=255)
    in_stock: bool = True
    is_weekly_best_seller: bool = False

    @model_validator(mode="after")
    def normalize_slug(self) -> "ProductImportRow":
        self.slug = slugify(self.slug or self.name)
        if not self.slug:
            raise ValueError("Name must contain at least one letter or digit")
        return self


class ImportRowResult(BaseModel):
    """Outcome for one spreadsheet row; ``line_number`` counts the header as line 1."""

    line_number: int
    name: Optional[str] = None
    status: str = Field(..., description="created, updated, skipped or failed")
    success: bool
    message: str


class ProductImportResponse(BaseModel):
    success: bool
    message: str
    created: int
    updated: int
    skipped: int
    failed: int
    results: list[ImportRowResult]
