"""
Authentication API endpoints.

This module implements back-office login, which issues a JWT access token,
and an identity endpoint for the bearer of a token.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.api.deps import CurrentContext, DatabaseSession, get_activity_service, get_client_ip
from src.api.limiter import limiter
from src.core.config import get_settings
from src.core.logging import get_logger
from src.schemas.auth import CurrentUserResponse, TokenResponse, UserLogin
from src.services.activity.service import ActivityService
from src.services.auth.service import AuthService, InvalidCredentialsError
from src.services.users.repository import UserRepository

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/auth", tags=["authentication"])


def get_auth_service(
    db: DatabaseSession,
    activity_service: Annotated[ActivityService, Depends(get_activity_service)],
) -> AuthService:
    return AuthService(UserRepository(db), activity_service)


@router.post(
    "/login",
    response_model=TokenResponse,
    status_code=status.HTTP_200_OK,
    summary="Log in",
    description="Exchange e-mail and password for a JWT access token",
)
@limiter.limit(settings.login_rate_limit)
async def login(
    request: Request,
    credentials: UserLogin,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> dict[str, Any]:
    """
    Authenticate a back-office user.

    Raises:
        HTTPException: 401 for bad credentials or an inactive account,
            429 when the login rate limit is exceeded
    """
    logger.info("Login attempt", email=credentials.email)

    try:
        return await auth_service.authenticate(
            credentials.email,
            credentials.password,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": str(e), "code": e.code},
            headers={"WWW-Authenticate": "Bearer"},
        )


@router.get(
    "/me",
    response_model=CurrentUserResponse,
    summary="Current user",
)
async def get_me(ctx: CurrentContext) -> dict[str, Any]:
    return {"id": ctx.user_id, "email": ctx.email, "role": ctx.role}
