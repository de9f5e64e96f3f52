"""
User model with authentication and role management.

Users are back-office staff only; shoppers check out as guests.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import BaseModel, enum_values


class UserRole(str, enum.Enum):
    """Back-office role enumeration for role-based access control."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    EDITOR = "editor"

    @classmethod
    def from_string(cls, value: str) -> "UserRole":
        """
        Convert string to UserRole enum.

        Raises:
            ValueError: If value is not a valid role
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Invalid role: {value}")

    @property
    def is_admin(self) -> bool:
        """Check if role grants user and order administration."""
        return self in (UserRole.ADMIN, UserRole.SUPER_ADMIN)

    def has_permission(self, required_role: "UserRole") -> bool:
        """
        Check if this role has permission for required role.

        Args:
            required_role: The role required for access

        Returns:
            True if this role has sufficient permissions
        """
        role_hierarchy = {
            UserRole.EDITOR: 0,
            UserRole.ADMIN: 1,
            UserRole.SUPER_ADMIN: 2,
        }
        return role_hierarchy[self] >= role_hierarchy[required_role]


class User(BaseModel):
    """
    Back-office user.

    Attributes:
        id: Unique user identifier (UUID)
        name: Display name
        email: Login e-mail address (unique, stored lowercase)
        password_hash: Bcrypt hashed password
        role: Back-office role
        is_active: Account active status
        last_login_at: Timestamp of last successful login
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="User email address (unique, lowercase)",
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password",
    )

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(
            UserRole,
            name="user_role",
            native_enum=False,
            length=32,
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
        default=UserRole.EDITOR,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<User(email={self.email!r}, role={self.role.value if self.role else None!r})>"
