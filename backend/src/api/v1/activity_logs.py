"""
Activity log API endpoints.

Only super admins may read the activity log.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.deps import SuperAdminContext, get_activity_service
from src.core.logging import get_logger
from src.schemas.activity_logs import ActivityLogFilter, ActivityLogListResponse
from src.services.activity.service import ActivityService, ActivityServiceError

logger = get_logger(__name__)

router = APIRouter(prefix="/activity-logs", tags=["activity-logs"])


@router.get(
    "",
    response_model=ActivityLogListResponse,
    summary="List activity logs",
    description="Filter by user, action, entity and date range; newest first",
)
async def list_activity_logs(
    ctx: SuperAdminContext,
    filters: Annotated[ActivityLogFilter, Query()],
    service: Annotated[ActivityService, Depends(get_activity_service)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> dict[str, Any]:
    try:
        return await service.get_logs(ctx, filters, page=page, limit=limit)
    except ActivityServiceError as e:
        logger.error("Failed to list activity logs", error=str(e), **e.context)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": str(e), "code": "ACTIVITY_LOG_ERROR"},
        )
