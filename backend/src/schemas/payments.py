"""
Checkout and payment schemas.

This module defines Pydantic schemas for the checkout request posted by the
storefront, the checkout response pointing at the hosted payment page, and
the webhook acknowledgement. Request fields accept both snake_case and the
camelCase keys sent by the storefront client.
"""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class CartItem(CamelModel):
    """A cart line as held by the storefront."""

    id: str = Field(..., min_length=1, description="Product identifier")
    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    slug: Optional[str] = Field(None, max_length=255, description="Product URL slug")
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Unit price")
    quantity: int = Field(..., ge=1, le=999, description="Quantity ordered")
    image: Optional[str] = Field(None, description="Product image URL")

    def to_snapshot(self) -> dict[str, Any]:
        """Denormalized line item stored on the order."""
        return {
            "product_id": self.id,
            "product_name": self.name,
            "product_slug": self.slug,
            "price": float(self.price),
            "quantity": self.quantity,
            "image": self.image,
        }


class ShippingAddress(CamelModel):
    """Delivery address captured at checkout."""

    full_name: Optional[str] = Field(None, max_length=255)
    address_line1: str = Field(..., min_length=1, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field("Singapore", min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)


class CheckoutRequest(CamelModel):
    """
    Request schema for starting a checkout.

    Cart, customer and address fields are optional at the schema level so
    that the checkout service can reject incomplete requests with its own
    messages before anything is sent to the gateway.
    """

    items: Optional[list[CartItem]] = Field(None, description="Cart lines")
    customer_email: Optional[EmailStr] = Field(None, description="Buyer e-mail")
    customer_name: Optional[str] = Field(None, max_length=255, description="Buyer name")
    customer_phone: Optional[str] = Field(None, max_length=50)
    shipping_address: Optional[ShippingAddress] = None
    subtotal: Optional[Decimal] = Field(None, ge=0, description="Subtotal shown to the buyer")
    shipping: Optional[Decimal] = Field(None, ge=0, description="Shipping charge")
    tax: Optional[Decimal] = Field(None, ge=0, description="Tax charge")
    total: Optional[Decimal] = Field(None, ge=0, description="Total shown to the buyer")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "items": [
                        {
                            "id": "sofa-001",
                            "name": "Oslo 3-Seater Sofa",
                            "slug": "oslo-3-seater-sofa",
                            "price": "100.00",
                            "quantity": 1,
                            "image": "/images/oslo.jpg",
                        },
                        {
                            "id": "stool-014",
                            "name": "Birch Stool",
                            "slug": "birch-stool",
                            "price": "25.00",
                            "quantity": 2,
                        },
                    ],
                    "customer_email": "buyer@example.com",
                    "customer_name": "Tan Mei Ling",
                    "shipping_address": {
                        "address_line1": "1 Orchard Road",
                        "postal_code": "238824",
                        "country": "Singapore",
                    },
                    "total": "150.00",
                }
            ]
        }
    )

    @field_validator("customer_email", "customer_name", "customer_phone", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty strings as missing."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("customer_email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class CheckoutResponse(BaseModel):
    """Response pointing the shopper at the hosted payment page."""

    success: bool = True
    payment_url: str = Field(..., description="Hosted payment page URL")
    reference_number: str = Field(..., description="Order reference number")


class WebhookAcknowledgement(BaseModel):
    success: bool = True
