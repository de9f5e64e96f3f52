"""
Tests for AuthService against an in-memory database.
"""

import pytest

from src.core.config import get_settings
from src.database.models import UserRole
from src.services.auth.service import AuthService, InvalidCredentialsError
from src.services.users.repository import UserRepository


class TestAuthenticate:
    async def test_returns_token_and_user(self, make_user, db_session):
        user = await make_user(UserRole.EDITOR, email="editor@essen.sg")

        result = await AuthService(UserRepository(db_session)).authenticate(
            "editor@essen.sg",
            "Secret123",
        )

        assert result["user"].id == user.id
        assert result["access_token"]

    async def test_wrong_password(self, make_user, db_session):
        await make_user(UserRole.EDITOR, email="editor@essen.sg")

        with pytest.raises(InvalidCredentialsError):
            await AuthService(UserRepository(db_session)).authenticate("editor@essen.sg", "Nope12345")


class TestSeedInitialAdmin:
    async def test_seeds_super_admin_once(self, db_session):
        settings = get_settings().model_copy(
            update={
                "initial_admin_email": "Owner@Essen.sg",
                "initial_admin_password": "OwnerPass123",
            }
        )
        service = AuthService(UserRepository(db_session), settings=settings)

        first = await service.seed_initial_admin()
        second = await service.seed_initial_admin()

        assert first.email == "owner@essen.sg"
        assert first.role == UserRole.SUPER_ADMIN
        assert second is None

    async def test_not_configured(self, db_session):
        assert await AuthService(UserRepository(db_session)).seed_initial_admin() is None
