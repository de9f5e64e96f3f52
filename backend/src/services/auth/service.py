"""
Authentication service implementation.

This module provides back-office login with bcrypt password verification and
JWT access tokens, and seeds the first super admin on an empty database.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from src.core.config import Settings, get_settings
from src.core.context import RequestContext
from src.core.logging import get_logger
from src.core.security import create_access_token, hash_password, verify_password
from src.database.models.activity_log import ActivityAction
from src.database.models.user import User, UserRole
from src.services.activity.service import ActivityService
from src.services.users.repository import UserRepository, UserRepositoryError

logger = get_logger(__name__)


class AuthenticationError(Exception):
    """Base exception for authentication errors."""

    def __init__(self, message: str, code: str = "AUTH_ERROR", **context: Any):
        super().__init__(message)
        self.code = code
        self.context = context


class InvalidCredentialsError(AuthenticationError):
    """Raised for unknown users, wrong passwords and inactive accounts alike."""

    def __init__(self, message: str = "Invalid email or password", **context: Any):
        super().__init__(message, code="INVALID_CREDENTIALS", **context)


class AuthService:
    """
    Authentication service for back-office users.

    Attributes:
        repository: User repository for data access
        activity_service: Records successful logins
    """

    def __init__(
        self,
        repository: UserRepository,
        activity_service: Optional[ActivityService] = None,
        settings: Optional[Settings] = None,
    ):
        self.repository = repository
        self.activity_service = activity_service
        self.settings = settings or get_settings()
        self.logger = logger.bind(service="auth")

    async def authenticate(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Verify credentials and issue an access token.

        Returns:
            Dictionary with ``access_token``, ``token_type``, ``expires_in``
            and ``user``

        Raises:
            InvalidCredentialsError: If the credentials are not accepted
        """
        user = await self.repository.get_by_email(email)

        if user is None or not verify_password(password, user.password_hash):
            self.logger.warning("Login failed", email=email)
            raise InvalidCredentialsError()

        if not user.is_active:
            self.logger.warning("Login failed - account inactive", user_id=str(user.id))
            raise InvalidCredentialsError()

        user.last_login_at = datetime.now(timezone.utc)
        await self.repository.save(user)

        token = create_access_token(user.id, user.email, user.role.value)

        if self.activity_service is not None:
            ctx = RequestContext(
                user_id=user.id,
                email=user.email,
                role=user.role,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            await self.activity_service.log_activity(
                ctx,
                ActivityAction.LOGIN,
                "Logged in",
                entity_id=str(user.id),
                entity_type="user",
            )

        self.logger.info("Login succeeded", user_id=str(user.id), role=user.role.value)

        return {
            "access_token": token,
            "token_type": "bearer",
            "expires_in": self.settings.jwt_access_token_expire_minutes * 60,
            "user": user,
        }

    async def seed_initial_admin(self) -> Optional[User]:
        """
        Create the configured super admin when no users exist yet.

        Returns:
            The created user, or None when seeding was not needed or not configured
        """
        email = self.settings.initial_admin_email
        password = self.settings.initial_admin_password
        if not email or not password:
            self.logger.debug("Initial admin not configured")
            return None

        try:
            if await self.repository.count() > 0:
                return None

            user = await self.repository.create(
                User(
                    name=self.settings.initial_admin_name,
                    email=email.strip().lower(),
                    password_hash=hash_password(password),
                    role=UserRole.SUPER_ADMIN,
                    is_active=True,
                )
            )
        except UserRepositoryError as e:
            self.logger.error("Failed to seed initial admin", error=str(e), **e.context)
            return None

        self.logger.info("Initial super admin created", user_id=str(user.id))
        return user
