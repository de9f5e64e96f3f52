"""
Back-office user management.

Role rules:

- only admins and super admins manage users;
- only a super admin may create, edit or delete admin-level accounts;
- only a super admin may change anyone's role;
- an admin may edit their own account and editor accounts;
- nobody may delete their own account.
"""

import math
import uuid
from typing import Any

from src.core.context import PermissionDeniedError, RequestContext
from src.core.logging import get_logger
from src.core.security import hash_password
from src.database.models.activity_log import ActivityAction
from src.database.models.user import User, UserRole
from src.schemas.users import UserCreate, UserUpdate
from src.services.activity.service import ActivityService
from src.services.users.repository import (
    DuplicateEmailError,
    UserRepository,
    UserRepositoryError,
)

logger = get_logger(__name__)

USER_ENTITY = "user"
USER_MANAGER_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN)


class UserServiceError(Exception):
    """Base exception for user service errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class UserNotFoundError(UserServiceError):
    """Raised when a user does not exist."""

    pass


class UserAlreadyExistsError(UserServiceError):
    """Raised when an e-mail is already registered."""

    pass


class UserService:
    """
    User administration for the back-office.

    Attributes:
        repository: User repository for data access
        activity_service: Records admin actions
    """

    def __init__(self, repository: UserRepository, activity_service: ActivityService):
        self.repository = repository
        self.activity_service = activity_service

    async def _get_or_raise(self, user_id: uuid.UUID) -> User:
        try:
            user = await self.repository.get_by_id(user_id)
        except UserRepositoryError as e:
            raise UserServiceError("Failed to fetch user", **e.context) from e
        if user is None:
            raise UserNotFoundError("User not found", user_id=str(user_id))
        return user

    async def list_users(
        self,
        ctx: RequestContext,
        page: int = 1,
        page_size: int = 20,
    ) -> dict[str, Any]:
        ctx.require_role(*USER_MANAGER_ROLES)

        try:
            users, total = await self.repository.list_users(
                skip=(page - 1) * page_size,
                limit=page_size,
            )
        except UserRepositoryError as e:
            raise UserServiceError("Failed to list users", **e.context) from e

        await self.activity_service.log_activity(
            ctx,
            ActivityAction.VIEW_USERS,
            f"Viewed users page {page}",
        )

        return {
            "users": list(users),
            "total": total,
            "page": page,
            "page_size": page_size,
            "pages": math.ceil(total / page_size),
        }

    async def get_user(self, ctx: RequestContext, user_id: uuid.UUID) -> User:
        ctx.require_role(*USER_MANAGER_ROLES)
        return await self._get_or_raise(user_id)

    async def create_user(self, ctx: RequestContext, data: UserCreate) -> User:
        """
        Create a back-office user.

        Raises:
            PermissionDeniedError: If the caller may not create this role
            UserAlreadyExistsError: If the e-mail is taken
        """
        ctx.require_role(*USER_MANAGER_ROLES)
        if data.role.is_admin and not ctx.is_super_admin:
            raise PermissionDeniedError(
                "Only super admins can create admin accounts",
                role=data.role.value,
            )

        if await self.repository.get_by_email(data.email):
            raise UserAlreadyExistsError("A user with this email already exists", email=data.email)

        user = User(
            name=data.name,
            email=data.email,
            password_hash=hash_password(data.password),
            role=data.role,
            is_active=True,
        )

        try:
            user = await self.repository.create(user)
        except DuplicateEmailError as e:
            raise UserAlreadyExistsError(str(e), **e.context) from e
        except UserRepositoryError as e:
            raise UserServiceError("Failed to create user", **e.context) from e

        await self.activity_service.log_activity(
            ctx,
            ActivityAction.CREATE_USER,
            f"Created {user.role.value} user {user.email}",
            entity_id=str(user.id),
            entity_type=USER_ENTITY,
        )
        return user

    def _check_can_update(self, ctx: RequestContext, target: User, data: UserUpdate) -> None:
        if ctx.is_super_admin:
            return

        if target.role == UserRole.SUPER_ADMIN:
            raise PermissionDeniedError(
                "Only super admins can update super admin accounts",
                target_id=str(target.id),
            )

        if data.role is not None and data.role != target.role:
            raise PermissionDeniedError(
                "Only super admins can change user roles",
                target_id=str(target.id),
            )

        if target.id != ctx.user_id and target.role != UserRole.EDITOR:
            raise PermissionDeniedError(
                "Admins can only update their own account or editor accounts",
                target_id=str(target.id),
            )

    async def update_user(
        self,
        ctx: RequestContext,
        user_id: uuid.UUID,
        data: UserUpdate,
    ) -> User:
        """
        Apply a partial update to a user.

        Raises:
            PermissionDeniedError: If the caller may not edit this account
            UserNotFoundError: If the user does not exist
            UserAlreadyExistsError: If the new e-mail is taken
        """
        ctx.require_role(*USER_MANAGER_ROLES)
        user = await self._get_or_raise(user_id)
        self._check_can_update(ctx, user, data)

        if data.email and data.email != user.email:
            existing = await self.repository.get_by_email(data.email)
            if existing is not None and existing.id != user.id:
                raise UserAlreadyExistsError(
                    "A user with this email already exists",
                    email=data.email,
                )
            user.email = data.email

        changed = data.model_dump(exclude_unset=True, exclude={"email", "password"})
        for field, value in changed.items():
            if value is not None:
                setattr(user, field, value)
        if data.password:
            user.password_hash = hash_password(data.password)

        try:
            user = await self.repository.save(user)
        except DuplicateEmailError as e:
            raise UserAlreadyExistsError(str(e), **e.context) from e
        except UserRepositoryError as e:
            raise UserServiceError("Failed to update user", **e.context) from e

        updated_fields = sorted(data.model_dump(exclude_unset=True).keys())
        await self.activity_service.log_activity(
            ctx,
            ActivityAction.UPDATE_USER,
            f"Updated user {user.email} ({', '.join(updated_fields) or 'no changes'})",
            entity_id=str(user.id),
            entity_type=USER_ENTITY,
        )
        return user

    async def delete_user(self, ctx: RequestContext, user_id: uuid.UUID) -> None:
        """
        Delete a user.

        Raises:
            PermissionDeniedError: On self-deletion, or when a non-super admin
                targets an admin-level account
            UserNotFoundError: If the user does not exist
        """
        ctx.require_role(*USER_MANAGER_ROLES)
        if user_id == ctx.user_id:
            raise PermissionDeniedError("You cannot delete your own account", user_id=str(user_id))

        user = await self._get_or_raise(user_id)
        if user.role.is_admin and not ctx.is_super_admin:
            raise PermissionDeniedError(
                "Only super admins can delete admin accounts",
                target_id=str(user_id),
            )

        email = user.email
        try:
            await self.repository.delete(user)
        except UserRepositoryError as e:
            raise UserServiceError("Failed to delete user", **e.context) from e

        await self.activity_service.log_activity(
            ctx,
            ActivityAction.DELETE_USER,
            f"Deleted user {email}",
            entity_id=str(user_id),
            entity_type=USER_ENTITY,
        )
