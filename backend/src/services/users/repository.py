"""
User data access repository.
"""

import uuid
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import get_logger
from src.database.models.user import User

logger = get_logger(__name__)


class UserRepositoryError(Exception):
    """Base exception for user repository errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class DuplicateEmailError(UserRepositoryError):
    """Raised when an e-mail is already taken."""

    pass


class UserRepository:
    """Repository for back-office user records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        try:
            return await self.session.get(User, user_id)
        except SQLAlchemyError as e:
            raise UserRepositoryError(
                "Failed to fetch user",
                user_id=str(user_id),
                error=str(e),
            ) from e

    async def get_by_email(self, email: str) -> Optional[User]:
        try:
            result = await self.session.execute(
                select(User).where(User.email == email.strip().lower())
            )
        except SQLAlchemyError as e:
            raise UserRepositoryError("Failed to fetch user by email", error=str(e)) from e
        return result.scalars().first()

    async def count(self) -> int:
        try:
            result = await self.session.execute(select(func.count()).select_from(User))
        except SQLAlchemyError as e:
            raise UserRepositoryError("Failed to count users", error=str(e)) from e
        return result.scalar_one()

    async def list_users(self, skip: int = 0, limit: int = 20) -> tuple[Sequence[User], int]:
        """
        List users, newest first.

        Returns:
            Tuple of (users, total_count)
        """
        stmt = select(User).order_by(User.created_at.desc()).offset(skip).limit(limit)
        try:
            result = await self.session.execute(stmt)
            total = await self.count()
        except SQLAlchemyError as e:
            raise UserRepositoryError("Failed to list users", error=str(e)) from e
        return result.scalars().all(), total

    async def _flush(self, user: User, operation: str) -> None:
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"User {operation} violated a constraint", email=user.email)
            raise DuplicateEmailError(
                "A user with this email already exists",
                email=user.email,
            ) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to {operation} user", email=user.email, error=str(e))
            raise UserRepositoryError(
                f"Failed to {operation} user",
                email=user.email,
                error=str(e),
            ) from e

    async def create(self, user: User) -> User:
        self.session.add(user)
        await self._flush(user, "create")
        logger.info("User created", user_id=str(user.id), role=user.role.value)
        return user

    async def save(self, user: User) -> User:
        await self._flush(user, "update")
        return user

    async def delete(self, user: User) -> None:
        try:
            await self.session.delete(user)
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise UserRepositoryError(
                "Failed to delete user",
                user_id=str(user.id),
                error=str(e),
            ) from e
        logger.info("User deleted", user_id=str(user.id))
