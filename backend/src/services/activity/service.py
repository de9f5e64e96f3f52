"""
Back-office activity logging.

Every admin action worth auditing is recorded with the acting user, client
address and the affected entity. Recording is best effort: a failure to
write the log never fails the action being logged. Super admin actions are
not recorded.
"""

import math
from typing import Any, Optional

from src.core.context import RequestContext
from src.core.logging import get_logger
from src.database.models.activity_log import ActivityAction, ActivityLog
from src.database.models.user import UserRole
from src.schemas.activity_logs import ActivityLogFilter
from src.services.activity.repository import ActivityRepository, ActivityRepositoryError

logger = get_logger(__name__)


class ActivityServiceError(Exception):
    """Base exception for activity service errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class ActivityService:
    def __init__(self, repository: ActivityRepository):
        self.repository = repository

    async def log_activity(
        self,
        ctx: RequestContext,
        action: ActivityAction,
        details: str,
        entity_id: Optional[str] = None,
        entity_type: Optional[str] = None,
    ) -> Optional[ActivityLog]:
        """
        Record an action taken by the caller.

        Returns:
            The stored entry, or None when skipped or when recording failed
        """
        if ctx.is_super_admin:
            return None

        entry = ActivityLog(
            user_id=ctx.user_id,
            user_email=ctx.email,
            action=action,
            details=details,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
            entity_id=entity_id,
            entity_type=entity_type,
        )

        try:
            return await self.repository.add(entry)
        except ActivityRepositoryError as e:
            logger.error(
                "Failed to record activity",
                action=action.value,
                user_id=str(ctx.user_id),
                error=str(e),
            )
            return None

    async def get_logs(
        self,
        ctx: RequestContext,
        filters: ActivityLogFilter,
        page: int = 1,
        limit: int = 50,
    ) -> dict[str, Any]:
        """
        List activity entries, newest first.

        Args:
            ctx: Caller context; must be a super admin
            filters: Validated filters
            page: 1-based page number
            limit: Page size

        Returns:
            Dictionary with ``logs``, ``total``, ``page``, ``limit`` and ``pages``

        Raises:
            PermissionDeniedError: If the caller is not a super admin
            ActivityServiceError: If the query fails
        """
        ctx.require_role(UserRole.SUPER_ADMIN)

        try:
            logs, total = await self.repository.list_logs(
                filters,
                skip=(page - 1) * limit,
                limit=limit,
            )
        except ActivityRepositoryError as e:
            raise ActivityServiceError("Failed to fetch activity logs", **e.context) from e

        await self.log_activity(
            ctx,
            ActivityAction.VIEW_LOGS,
            f"Viewed activity logs page {page}",
        )

        return {
            "logs": list(logs),
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if limit else 0,
        }
