"""
Storefront contact form schemas.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class ContactRequest(BaseModel):
    """Special in-store offer claim submitted from the storefront."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "examples": [
                {
                    "name": "Tan Mei Ling",
                    "email": "meiling@example.com",
                    "phone": "+65 8123 4567",
                    "consent": True,
                }
            ]
        },
    )

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=50)
    consent: bool

    @field_validator("consent")
    @classmethod
    def consent_given(cls, value: bool) -> bool:
        if not value:
            raise ValueError("You must consent to receive communications")
        return value


class ContactResponse(BaseModel):
    success: bool
    message: str
