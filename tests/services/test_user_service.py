"""
Service tests for user search and role administration.
"""

import pytest

from mediavault.core.exceptions import DuplicateRole, MediaVaultError, NotFound
from mediavault.services.auth_service import AuthService
from mediavault.services.user_service import UserService


class TestSearchUsers:
    """Tests for UserService.search_users."""

    @pytest.mark.asyncio
    async def test_short_query_returns_nothing(self, db_session, test_user, other_user):
        service = UserService(db_session)
        assert await service.search_users("b", test_user.id) == []
        assert await service.search_users("  ", test_user.id) == []

    @pytest.mark.asyncio
    async def test_matches_username_and_email(self, db_session, create_user, test_user):
        await create_user("bobby", email="rob@example.com")
        await create_user("carol", email="bob.c@example.com")

        results = await UserService(db_session).search_users("BOB", test_user.id)
        assert [user.username for user in results] == ["bobby", "carol"]

    @pytest.mark.asyncio
    async def test_excludes_self_and_unverified(self, db_session, create_user, test_user):
        await create_user("alicia", email_verified=False)
        await create_user("alina")

        results = await UserService(db_session).search_users("ali", test_user.id)
        assert [user.username for user in results] == ["alina"]

    @pytest.mark.asyncio
    async def test_wildcards_match_literally(self, db_session, create_user, test_user):
        await create_user("bob_smith")
        await create_user("bobxsmith")

        service = UserService(db_session)
        results = await service.search_users("o_x", test_user.id)
        assert results == []
        results = await service.search_users("bob_", test_user.id)
        assert [user.username for user in results] == ["bob_smith"]
        assert await service.search_users("%%", test_user.id) == []


class TestRoles:
    """Tests for role creation and assignment."""

    @pytest.mark.asyncio
    async def test_create_role_lowercases(self, db_session):
        role = await UserService(db_session).create_role("  Medical ")
        assert role.name == "medical"

    @pytest.mark.asyncio
    async def test_duplicate_role(self, db_session):
        service = UserService(db_session)
        await service.create_role("admin")
        with pytest.raises(DuplicateRole):
            await service.create_role("ADMIN")

    @pytest.mark.asyncio
    async def test_empty_role_name(self, db_session):
        with pytest.raises(MediaVaultError):
            await UserService(db_session).create_role("   ")

    @pytest.mark.asyncio
    async def test_assign_and_remove(self, db_session, test_user):
        service = UserService(db_session)
        role = await service.create_role("medical")

        assert await service.assign_role(test_user.id, role.id) is True
        assert await service.assign_role(test_user.id, role.id) is False
        assert await AuthService(db_session).get_user_roles(test_user.id) == ["medical"]

        assert await service.remove_role(test_user.id, role.id) is True
        assert await service.remove_role(test_user.id, role.id) is False
        assert await AuthService(db_session).get_user_roles(test_user.id) == []

    @pytest.mark.asyncio
    async def test_assign_unknown_user_or_role(self, db_session, test_user):
        service = UserService(db_session)
        role = await service.create_role("admin")

        with pytest.raises(NotFound):
            await service.assign_role("missing-user", role.id)
        with pytest.raises(NotFound):
            await service.assign_role(test_user.id, "missing-role")

    @pytest.mark.asyncio
    async def test_list_users_with_roles(self, db_session, create_user):
        await create_user("alice", roles=("admin", "medical"))
        await create_user("bob")

        page, total = await UserService(db_session).list_users_with_roles(limit=1)
        assert total == 2
        assert len(page) == 1

        everyone, _ = await UserService(db_session).list_users_with_roles()
        roles = {entry.user.username: entry.roles for entry in everyone}
        assert roles == {"alice": ["admin", "medical"], "bob": []}
