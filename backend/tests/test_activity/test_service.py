"""
Tests for ActivityService recording and listing.
"""

import uuid
from datetime import datetime

import pytest
from sqlalchemy import select

from src.core.context import PermissionDeniedError, RequestContext
from src.database.models import ActivityAction, ActivityLog, OrderStatus, UserRole
from src.schemas.activity_logs import ActivityLogFilter
from src.services.activity.repository import ActivityRepository
from src.services.activity.service import ActivityService
from src.services.orders.repository import OrderRepository
from src.services.orders.service import OrderService
from tests.conftest import make_context


async def add_log(session, ctx, action, timestamp, entity_id=None):
    session.add(
        ActivityLog(
            user_id=ctx.user_id,
            user_email=ctx.email,
            action=action,
            details=f"{action.value} entry",
            entity_id=entity_id,
            entity_type="order" if entity_id else None,
            timestamp=timestamp,
        )
    )
    await session.flush()


class TestLogActivity:
    async def test_records_caller_details(self, db_session):
        ctx = make_context(UserRole.ADMIN)
        service = ActivityService(ActivityRepository(db_session))

        entry = await service.log_activity(
            ctx,
            ActivityAction.UPDATE_ORDER_STATUS,
            "Changed order status",
            entity_id="abc",
            entity_type="order",
        )

        stored = (await db_session.scalars(select(ActivityLog))).one()
        assert stored.id == entry.id
        assert stored.user_id == ctx.user_id
        assert stored.ip_address == "203.0.113.7"
        assert stored.user_agent == "pytest"
        assert stored.timestamp is not None

    async def test_super_admin_not_recorded(self, db_session):
        service = ActivityService(ActivityRepository(db_session))

        entry = await service.log_activity(
            make_context(UserRole.SUPER_ADMIN),
            ActivityAction.VIEW_ORDERS,
            "Viewed orders",
        )

        assert entry is None
        assert (await db_session.scalars(select(ActivityLog))).all() == []

    async def test_failed_entry_leaves_action_intact(self, session_factory, make_order, fetch_order):
        order = await make_order(status=OrderStatus.PAID)
        # No e-mail on the caller makes the log insert violate NOT NULL.
        ctx = RequestContext(user_id=uuid.uuid4(), email=None, role=UserRole.ADMIN)

        async with session_factory() as session:
            service = OrderService(
                repository=OrderRepository(session),
                activity_service=ActivityService(ActivityRepository(session)),
            )
            await service.update_order_status(ctx, order.reference_number, OrderStatus.SHIPPED)
            await session.commit()

        assert (await fetch_order(order.id)).status == OrderStatus.SHIPPED
        async with session_factory() as session:
            assert (await session.scalars(select(ActivityLog))).all() == []


class TestGetLogs:
    async def test_requires_super_admin(self, db_session):
        service = ActivityService(ActivityRepository(db_session))

        with pytest.raises(PermissionDeniedError):
            await service.get_logs(make_context(UserRole.ADMIN), ActivityLogFilter())

    async def test_filters_by_day_and_action(self, db_session):
        # Arrange
        admin = make_context(UserRole.ADMIN)
        await add_log(db_session, admin, ActivityAction.LOGIN, datetime(2026, 3, 1, 0, 0))
        await add_log(db_session, admin, ActivityAction.LOGIN, datetime(2026, 3, 1, 23, 59, 59))
        await add_log(db_session, admin, ActivityAction.LOGIN, datetime(2026, 3, 2, 0, 0, 1))
        await add_log(db_session, admin, ActivityAction.VIEW_ORDERS, datetime(2026, 3, 1, 12, 0))
        service = ActivityService(ActivityRepository(db_session))

        # Act
        result = await service.get_logs(
            make_context(UserRole.SUPER_ADMIN),
            ActivityLogFilter(action="login", from_date="2026-03-01", to_date="2026-03-01"),
        )

        # Assert
        assert result["total"] == 2
        assert [log.timestamp.hour for log in result["logs"]] == [23, 0]

    async def test_pagination(self, db_session):
        admin = make_context(UserRole.ADMIN)
        for day in range(1, 6):
            await add_log(db_session, admin, ActivityAction.LOGIN, datetime(2026, 3, day))
        service = ActivityService(ActivityRepository(db_session))

        result = await service.get_logs(
            make_context(UserRole.SUPER_ADMIN),
            ActivityLogFilter(),
            page=2,
            limit=2,
        )

        assert result["total"] == 5
        assert result["pages"] == 3
        assert [log.timestamp.day for log in result["logs"]] == [3, 2]

    async def test_filters_by_entity(self, db_session):
        admin = make_context(UserRole.ADMIN)
        await add_log(db_session, admin, ActivityAction.UPDATE_ORDER_STATUS, datetime(2026, 3, 1), "o-1")
        await add_log(db_session, admin, ActivityAction.UPDATE_ORDER_STATUS, datetime(2026, 3, 1), "o-2")
        service = ActivityService(ActivityRepository(db_session))

        result = await service.get_logs(
            make_context(UserRole.SUPER_ADMIN),
            ActivityLogFilter(entity_id="o-2", entity_type="order"),
        )

        assert [log.entity_id for log in result["logs"]] == ["o-2"]
