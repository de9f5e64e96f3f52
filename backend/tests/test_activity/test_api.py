"""
Integration tests for the activity log endpoint.
"""

from fastapi import status

from src.database.models import UserRole
from tests.conftest import auth_headers

URL = "/api/v1/activity-logs"


class TestActivityLogsApi:
    async def test_admin_forbidden(self, async_client, make_user):
        admin = await make_user(UserRole.ADMIN)

        response = await async_client.get(URL, headers=auth_headers(admin))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    async def test_super_admin_sees_admin_activity(self, async_client, make_user):
        super_admin = await make_user(UserRole.SUPER_ADMIN)
        admin = await make_user(UserRole.ADMIN)
        await async_client.get("/api/v1/orders", headers=auth_headers(admin))

        response = await async_client.get(
            URL,
            params={"action": "view_orders", "user_id": str(admin.id)},
            headers=auth_headers(super_admin),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total"] == 1
        assert data["logs"][0]["user_email"] == admin.email
        assert data["limit"] == 50

    async def test_inverted_date_range(self, async_client, make_user):
        super_admin = await make_user(UserRole.SUPER_ADMIN)

        response = await async_client.get(
            URL,
            params={"from_date": "2026-03-02", "to_date": "2026-03-01"},
            headers=auth_headers(super_admin),
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_bad_date(self, async_client, make_user):
        super_admin = await make_user(UserRole.SUPER_ADMIN)

        response = await async_client.get(
            URL,
            params={"from_date": "not-a-date"},
            headers=auth_headers(super_admin),
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
