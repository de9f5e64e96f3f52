"""
Authentication schemas for request/response validation.
"""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.database.models.user import UserRole
from src.schemas.users import UserResponse


class UserLogin(BaseModel):
    """Schema for login requests."""

    email: EmailStr = Field(
        ...,
        description="User email address",
        examples=["admin@essen.sg"],
    )
    password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="User password",
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class TokenResponse(BaseModel):
    """Schema for a successful login."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user: UserResponse


class CurrentUserResponse(BaseModel):
    """Identity carried by the caller's token."""

    id: UUID
    email: str
    role: UserRole
