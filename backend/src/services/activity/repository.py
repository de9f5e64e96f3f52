"""
Activity log data access repository.
"""

from typing import Any, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import get_logger
from src.database.models.activity_log import ActivityLog
from src.schemas.activity_logs import ActivityLogFilter

logger = get_logger(__name__)


class ActivityRepositoryError(Exception):
    """Base exception for activity repository errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class ActivityRepository:
    """Repository for appending and querying activity log entries."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, entry: ActivityLog) -> ActivityLog:
        """
        Persist a new log entry.

        The insert runs in a savepoint so a failure rolls back only the
        log entry, never the surrounding request transaction.

        Raises:
            ActivityRepositoryError: If the insert fails
        """
        try:
            async with self.session.begin_nested():
                self.session.add(entry)
        except SQLAlchemyError as e:
            raise ActivityRepositoryError(
                "Failed to record activity",
                action=entry.action.value if entry.action else None,
                error=str(e),
            ) from e
        return entry

    @staticmethod
    def _conditions(filters: ActivityLogFilter) -> list[Any]:
        conditions = []
        if filters.user_id is not None:
            conditions.append(ActivityLog.user_id == filters.user_id)
        if filters.action is not None:
            conditions.append(ActivityLog.action == filters.action)
        if filters.entity_id:
            conditions.append(ActivityLog.entity_id == filters.entity_id)
        if filters.entity_type:
            conditions.append(ActivityLog.entity_type == filters.entity_type)
        if filters.from_date is not None:
            conditions.append(ActivityLog.timestamp >= filters.from_date)
        if filters.to_date is not None:
            conditions.append(ActivityLog.timestamp <= filters.to_date)
        return conditions

    async def list_logs(
        self,
        filters: ActivityLogFilter,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[ActivityLog], int]:
        """
        List log entries newest first.

        Returns:
            Tuple of (entries, total_count)

        Raises:
            ActivityRepositoryError: If query fails
        """
        conditions = self._conditions(filters)
        stmt = (
            select(ActivityLog)
            .where(*conditions)
            .order_by(ActivityLog.timestamp.desc())
            .offset(skip)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(ActivityLog).where(*conditions)

        try:
            result = await self.session.execute(stmt)
            count_result = await self.session.execute(count_stmt)
        except SQLAlchemyError as e:
            logger.error("Failed to list activity logs", error=str(e))
            raise ActivityRepositoryError("Failed to list activity logs", error=str(e)) from e

        return result.scalars().all(), count_result.scalar_one()
