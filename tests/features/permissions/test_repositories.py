"""Tests for the asyncpg role and business repositories."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from booking_commons.core.exceptions import DatabaseError
from booking_commons.features.permissions.entities import BusinessRepository, RoleRepository
from booking_commons.features.permissions.repositories import (
    AsyncPGBusinessRepository,
    AsyncPGRoleRepository,
)


def role_record(role_id, name, level, display_name=None):
    return {
        "id": role_id,
        "name": name,
        "displayName": display_name or name.title(),
        "level": level,
        "isSystem": False,
        "isActive": True,
    }


@pytest.fixture
def mock_database():
    """Mock DatabaseManager."""
    database = MagicMock()
    database.schema = "booking"
    database.fetch = AsyncMock(return_value=[])
    database.fetchrow = AsyncMock(return_value=None)
    database.execute = AsyncMock(return_value="OK")
    return database


@pytest.fixture
def role_repository(mock_database):
    return AsyncPGRoleRepository(mock_database)


class TestRoleRepository:
    """Test AsyncPGRoleRepository."""

    def test_satisfies_protocol(self, role_repository):
        assert isinstance(role_repository, RoleRepository)

    def test_schema_override(self, mock_database):
        repository = AsyncPGRoleRepository(mock_database, schema="tenant_a")

        assert repository.schema == "tenant_a"

    @pytest.mark.asyncio
    async def test_get_user_roles_merges_staff_roles(self, role_repository, mock_database):
        mock_database.fetch.side_effect = [
            [role_record("r1", "MANAGER", 260), role_record("r2", "VIEWER", 5)],
            [{"role": "MANAGER"}, {"role": "RECEPTIONIST"}, {"role": "INTERN"}],
        ]

        roles = await role_repository.get_user_roles("u1")

        by_name = {role["name"]: role for role in roles}
        assert list(by_name) == ["MANAGER", "VIEWER", "RECEPTIONIST", "INTERN"]
        # The global role wins over the synthetic staff role of the same name
        assert by_name["MANAGER"]["id"] == "r1"
        assert by_name["MANAGER"]["level"] == 260
        assert by_name["RECEPTIONIST"]["id"] == "business_staff_receptionist"
        assert by_name["RECEPTIONIST"]["level"] == 150
        assert by_name["INTERN"]["level"] == 100
        assert by_name["VIEWER"]["display_name"] == "Viewer"

    @pytest.mark.asyncio
    async def test_get_user_roles_queries_schema(self, role_repository, mock_database):
        await role_repository.get_user_roles("u1")

        role_query = mock_database.fetch.await_args_list[0].args[0]
        assert "booking.user_roles" in role_query
        assert '"expiresAt" IS NULL OR ur."expiresAt" > NOW()' in role_query
        assert mock_database.fetch.await_args_list[0].args[1] == "u1"

    @pytest.mark.asyncio
    async def test_get_user_roles_wraps_errors(self, role_repository, mock_database):
        mock_database.fetch.side_effect = ConnectionError("pool exhausted")

        with pytest.raises(DatabaseError):
            await role_repository.get_user_roles("u1")

    @pytest.mark.asyncio
    async def test_roles_with_permissions_empty(self, role_repository, mock_database):
        result = await role_repository.get_user_roles_with_permissions("u1")

        assert result == {"roles": [], "permissions": [], "role_permissions": []}
        assert mock_database.fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_roles_with_permissions(self, role_repository, mock_database):
        mock_database.fetch.side_effect = [
            [role_record("r1", "OWNER", 300)],
            [],
            [
                {"id": "p1", "name": "cancel", "resource": "appointment", "action": "cancel",
                 "conditions": json.dumps({"owner": True}), "isSystem": True},
                {"id": "p2", "name": "view", "resource": "appointment", "action": "view",
                 "conditions": None, "isSystem": True},
            ],
            [{"roleId": "r1", "permissionId": "p1"}, {"roleId": "r1", "permissionId": "p2"}],
        ]

        result = await role_repository.get_user_roles_with_permissions("u1")

        assert [role["id"] for role in result["roles"]] == ["r1"]
        assert result["permissions"][0]["conditions"] == {"owner": True}
        assert result["permissions"][1]["conditions"] is None
        assert result["role_permissions"] == [
            {"role_id": "r1", "permission_id": "p1"},
            {"role_id": "r1", "permission_id": "p2"},
        ]
        assert mock_database.fetch.await_args_list[2].args[1] == ["r1"]

    @pytest.mark.asyncio
    async def test_roles_with_permissions_wraps_errors(self, role_repository, mock_database):
        mock_database.fetch.side_effect = [
            [role_record("r1", "OWNER", 300)],
            [],
            ConnectionError("connection reset"),
        ]

        with pytest.raises(DatabaseError):
            await role_repository.get_user_roles_with_permissions("u1")

    @pytest.mark.asyncio
    async def test_get_role_by_name(self, role_repository, mock_database):
        mock_database.fetchrow.return_value = role_record("r1", "EDITOR", 10, display_name="Editor")

        role = await role_repository.get_role_by_name("EDITOR")

        assert role == {
            "id": "r1",
            "name": "EDITOR",
            "display_name": "Editor",
            "level": 10,
            "is_system": False,
            "is_active": True,
        }

    @pytest.mark.asyncio
    async def test_get_role_by_id_missing(self, role_repository, mock_database):
        assert await role_repository.get_role_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_get_role_wraps_errors(self, role_repository, mock_database):
        mock_database.fetchrow.side_effect = ConnectionError("timeout")

        with pytest.raises(DatabaseError):
            await role_repository.get_role_by_name("EDITOR")

    @pytest.mark.asyncio
    async def test_assign_role_to_user(self, role_repository, mock_database):
        expires_at = datetime(2030, 1, 1, 9, 30, tzinfo=timezone.utc)

        await role_repository.assign_role_to_user(
            "u1", "r1", "admin", expires_at=expires_at, metadata={"reason": "promotion"}
        )

        args = mock_database.execute.await_args.args
        assert "INSERT INTO booking.user_roles" in args[0]
        assert args[1].startswith("urole_")
        assert args[2:5] == ("u1", "r1", "admin")
        assert args[5] == datetime(2030, 1, 1, 9, 30)
        assert json.loads(args[6]) == {"reason": "promotion"}

    @pytest.mark.asyncio
    async def test_assign_role_without_expiry(self, role_repository, mock_database):
        await role_repository.assign_role_to_user("u1", "r1", "admin")

        args = mock_database.execute.await_args.args
        assert args[5] is None
        assert args[6] is None

    @pytest.mark.asyncio
    async def test_assignment_ids_are_unique(self, role_repository, mock_database):
        await role_repository.assign_role_to_user("u1", "r1", "admin")
        await role_repository.assign_role_to_user("u2", "r1", "admin")

        first, second = (call.args[1] for call in mock_database.execute.await_args_list)
        assert first != second

    @pytest.mark.asyncio
    async def test_assign_role_wraps_errors(self, role_repository, mock_database):
        mock_database.execute.side_effect = ConnectionError("unique violation")

        with pytest.raises(DatabaseError):
            await role_repository.assign_role_to_user("u1", "r1", "admin")

    @pytest.mark.asyncio
    async def test_revoke_role_from_user(self, role_repository, mock_database):
        await role_repository.revoke_role_from_user("u1", "r1")

        args = mock_database.execute.await_args.args
        assert 'SET "isActive" = false' in args[0]
        assert args[1:] == ("u1", "r1")

    @pytest.mark.asyncio
    async def test_get_users_by_role(self, role_repository, mock_database):
        mock_database.fetch.return_value = [{"userId": "u1"}, {"userId": "u2"}]

        assert await role_repository.get_users_by_role("r1") == ["u1", "u2"]


class TestBusinessRepository:
    """Test AsyncPGBusinessRepository."""

    def test_satisfies_protocol(self, mock_database):
        assert isinstance(AsyncPGBusinessRepository(mock_database), BusinessRepository)

    @pytest.mark.asyncio
    async def test_find_by_id(self, mock_database):
        mock_database.fetchrow.return_value = {
            "id": "biz-1", "ownerId": "owner-1", "name": "Salon", "isActive": True
        }
        repository = AsyncPGBusinessRepository(mock_database)

        business = await repository.find_by_id("biz-1")

        assert business == {"id": "biz-1", "owner_id": "owner-1", "name": "Salon", "is_active": True}
        assert "booking.businesses" in mock_database.fetchrow.await_args.args[0]

    @pytest.mark.asyncio
    async def test_find_by_id_missing(self, mock_database):
        assert await AsyncPGBusinessRepository(mock_database).find_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_find_by_id_wraps_errors(self, mock_database):
        mock_database.fetchrow.side_effect = ConnectionError("down")

        with pytest.raises(DatabaseError):
            await AsyncPGBusinessRepository(mock_database).find_by_id("biz-1")
