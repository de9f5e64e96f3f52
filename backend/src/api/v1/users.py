"""
Back-office user management API endpoints.
"""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from src.api.deps import CurrentContext, get_user_service
from src.core.logging import get_logger
from src.database.models.user import User
from src.schemas.users import UserCreate, UserListResponse, UserResponse, UserUpdate
from src.services.users.service import (
    UserAlreadyExistsError,
    UserNotFoundError,
    UserService,
    UserServiceError,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

UserServiceDep = Annotated[UserService, Depends(get_user_service)]


def _to_http_error(e: UserServiceError) -> HTTPException:
    if isinstance(e, UserNotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": str(e), "code": "USER_NOT_FOUND"},
        )
    if isinstance(e, UserAlreadyExistsError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "code": "USER_EXISTS"},
        )
    logger.error("User operation failed", error=str(e), **e.context)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": str(e), "code": "USER_ERROR"},
    )


@router.get("", response_model=UserListResponse, summary="List users")
async def list_users(
    ctx: CurrentContext,
    service: UserServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> dict[str, Any]:
    try:
        return await service.list_users(ctx, page=page, page_size=page_size)
    except UserServiceError as e:
        raise _to_http_error(e)


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
)
async def create_user(
    data: UserCreate,
    ctx: CurrentContext,
    service: UserServiceDep,
) -> User:
    """
    Create a back-office account.

    Raises:
        HTTPException: 403 when the caller may not grant the role,
            409 when the e-mail is already registered
    """
    logger.info("Creating user", email=data.email, role=data.role.value)
    try:
        return await service.create_user(ctx, data)
    except UserServiceError as e:
        raise _to_http_error(e)


@router.get("/{user_id}", response_model=UserResponse, summary="Get user")
async def get_user(
    user_id: UUID,
    ctx: CurrentContext,
    service: UserServiceDep,
) -> User:
    try:
        return await service.get_user(ctx, user_id)
    except UserServiceError as e:
        raise _to_http_error(e)


@router.patch("/{user_id}", response_model=UserResponse, summary="Update user")
async def update_user(
    user_id: UUID,
    data: UserUpdate,
    ctx: CurrentContext,
    service: UserServiceDep,
) -> User:
    try:
        return await service.update_user(ctx, user_id, data)
    except UserServiceError as e:
        raise _to_http_error(e)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete user",
)
async def delete_user(
    user_id: UUID,
    ctx: CurrentContext,
    service: UserServiceDep,
) -> Response:
    try:
        await service.delete_user(ctx, user_id)
    except UserServiceError as e:
        raise _to_http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
