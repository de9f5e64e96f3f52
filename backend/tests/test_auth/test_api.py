"""
Integration tests for login and the current-identity endpoint.
"""

from datetime import timedelta

from fastapi import status
from sqlalchemy import select

from src.core.security import create_access_token, decode_access_token
from src.database.models import ActivityAction, ActivityLog, User, UserRole
from tests.conftest import TEST_PASSWORD, auth_headers

LOGIN_URL = "/api/v1/auth/login"


class TestLogin:
    async def test_successful_login(self, async_client, make_user, session_factory):
        # Arrange
        user = await make_user(UserRole.ADMIN, email="admin@essen.sg")

        # Act
        response = await async_client.post(
            LOGIN_URL,
            json={"email": "Admin@Essen.sg", "password": TEST_PASSWORD},
            headers={"User-Agent": "pytest-agent", "X-Forwarded-For": "198.51.100.4, 10.0.0.1"},
        )

        # Assert
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 24 * 60 * 60
        assert data["user"]["email"] == "admin@essen.sg"
        claims = decode_access_token(data["access_token"])
        assert claims["sub"] == str(user.id)
        assert claims["role"] == "admin"

        async with session_factory() as session:
            stored = await session.get(User, user.id)
            log = (await session.scalars(select(ActivityLog))).one()
        assert stored.last_login_at is not None
        assert log.action == ActivityAction.LOGIN
        assert log.ip_address == "198.51.100.4"
        assert log.user_agent == "pytest-agent"

    async def test_wrong_password(self, async_client, make_user):
        await make_user(UserRole.ADMIN, email="admin@essen.sg")

        response = await async_client.post(
            LOGIN_URL,
            json={"email": "admin@essen.sg", "password": "WrongPass123"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"]["code"] == "INVALID_CREDENTIALS"

    async def test_unknown_user_looks_like_wrong_password(self, async_client):
        response = await async_client.post(
            LOGIN_URL,
            json={"email": "nobody@essen.sg", "password": TEST_PASSWORD},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"]["message"] == "Invalid email or password"

    async def test_inactive_user(self, async_client, make_user):
        await make_user(UserRole.EDITOR, email="gone@essen.sg", is_active=False)

        response = await async_client.post(
            LOGIN_URL,
            json={"email": "gone@essen.sg", "password": TEST_PASSWORD},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_super_admin_login_not_logged(self, async_client, make_user, session_factory):
        await make_user(UserRole.SUPER_ADMIN, email="root@essen.sg")

        response = await async_client.post(
            LOGIN_URL,
            json={"email": "root@essen.sg", "password": TEST_PASSWORD},
        )

        assert response.status_code == status.HTTP_200_OK
        async with session_factory() as session:
            assert (await session.scalars(select(ActivityLog))).all() == []


class TestCurrentUser:
    async def test_me(self, async_client, make_user):
        editor = await make_user(UserRole.EDITOR)

        response = await async_client.get("/api/v1/auth/me", headers=auth_headers(editor))

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "id": str(editor.id),
            "email": editor.email,
            "role": "editor",
        }

    async def test_expired_token(self, async_client, make_user):
        editor = await make_user(UserRole.EDITOR)
        token = create_access_token(
            editor.id,
            editor.email,
            editor.role.value,
            expires_delta=timedelta(seconds=-5),
        )

        response = await async_client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_garbage_token(self, async_client):
        response = await async_client.get(
            "/api/v1/auth/me",
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_deactivated_account(self, async_client, make_user):
        user = await make_user(UserRole.ADMIN, is_active=False)

        response = await async_client.get("/api/v1/auth/me", headers=auth_headers(user))

        assert response.status_code == status.HTTP_403_FORBIDDEN
