"""
FastAPI dependencies for authentication, caller context and services.

This module turns the bearer token into a RequestContext, exposes role
guards, and builds the repositories and services used by the routers.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.context import RequestContext
from src.core.logging import get_logger, set_actor_id
from src.core.security import TokenError, decode_access_token
from src.database.connection import get_db
from src.database.models.user import User, UserRole
from src.services.activity.repository import ActivityRepository
from src.services.activity.service import ActivityService
from src.services.catalog.repository import CategoryRepository, ProductRepository
from src.services.catalog.service import CatalogService
from src.services.notifications.service import NotificationService, get_notification_service
from src.services.orders.repository import OrderRepository
from src.services.orders.service import OrderService
from src.services.users.repository import UserRepository
from src.services.users.service import UserService

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)

DatabaseSession = Annotated[AsyncSession, Depends(get_db)]


def get_client_ip(request: Request) -> Optional[str]:
    """Client address, preferring proxy headers over the socket peer."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: DatabaseSession,
) -> User:
    """
    Validate the bearer token and load the user it names.

    Raises:
        HTTPException: 401 if the token is missing, invalid or names an
            unknown user; 403 if the account is inactive
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"message": "Could not validate credentials", "code": "INVALID_CREDENTIALS"},
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    try:
        payload = decode_access_token(credentials.credentials)
    except TokenError as e:
        logger.info("Authentication failed", code=e.code)
        raise credentials_exception

    try:
        user = await db.get(User, UUID(payload["sub"]))
    except ValueError:
        raise credentials_exception
    except SQLAlchemyError as e:
        logger.error("Database error during user retrieval", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Internal server error", "code": "INTERNAL_ERROR"},
        )

    if user is None:
        logger.warning("Authentication failed: user not found", user_id=payload["sub"])
        raise credentials_exception

    if not user.is_active:
        logger.warning("Authentication failed: user account is inactive", user_id=str(user.id))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Inactive user account", "code": "INACTIVE_USER"},
        )

    return user


async def get_request_context(
    request: Request,
    user: Annotated[User, Depends(get_current_user)],
) -> RequestContext:
    """Build the caller context once per request."""
    set_actor_id(str(user.id))
    return RequestContext(
        user_id=user.id,
        email=user.email,
        role=user.role,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


def require_role(*allowed_roles: UserRole):
    """
    Create a dependency that requires one of ``allowed_roles``.

    Example:
        @router.get("/logs")
        async def list_logs(ctx: Annotated[RequestContext, Depends(require_role(UserRole.SUPER_ADMIN))]):
            ...
    """

    async def role_checker(
        ctx: Annotated[RequestContext, Depends(get_request_context)],
    ) -> RequestContext:
        if not ctx.has_role(*allowed_roles):
            logger.warning(
                "Access denied: insufficient permissions",
                user_role=ctx.role.value,
                required_roles=[role.value for role in allowed_roles],
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"message": "Insufficient permissions", "code": "PERMISSION_DENIED"},
            )
        return ctx

    return role_checker


CurrentContext = Annotated[RequestContext, Depends(get_request_context)]
AdminContext = Annotated[
    RequestContext,
    Depends(require_role(UserRole.ADMIN, UserRole.SUPER_ADMIN)),
]
SuperAdminContext = Annotated[RequestContext, Depends(require_role(UserRole.SUPER_ADMIN))]


def get_activity_service(db: DatabaseSession) -> ActivityService:
    return ActivityService(ActivityRepository(db))


def get_order_service(
    db: DatabaseSession,
    activity_service: Annotated[ActivityService, Depends(get_activity_service)],
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
) -> OrderService:
    return OrderService(
        repository=OrderRepository(db),
        activity_service=activity_service,
        notification_service=notification_service,
    )


def get_user_service(
    db: DatabaseSession,
    activity_service: Annotated[ActivityService, Depends(get_activity_service)],
) -> UserService:
    return UserService(UserRepository(db), activity_service)


def get_catalog_service(
    db: DatabaseSession,
    activity_service: Annotated[ActivityService, Depends(get_activity_service)],
) -> CatalogService:
    return CatalogService(
        products=ProductRepository(db),
        categories=CategoryRepository(db),
        activity_service=activity_service,
    )
