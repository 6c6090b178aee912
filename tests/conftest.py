"""Pytest configuration and fixtures for booking-commons tests."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from booking_commons.config.settings import RBACSettings
from booking_commons.features.permissions.services import RBACService


def make_role_row(role_id: str, name: str, level: int = 0, is_active: bool = True, **extra) -> Dict[str, Any]:
    """Raw role row as returned by a role repository."""
    return {
        "id": role_id,
        "name": name,
        "display_name": extra.pop("display_name", name.title()),
        "level": level,
        "is_active": is_active,
        **extra
    }


def make_permission_row(
    permission_id: str,
    resource: str,
    action: str,
    name: Optional[str] = None,
    conditions: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Raw permission row as returned by a role repository."""
    return {
        "id": permission_id,
        "name": name or f"{resource}.{action}",
        "resource": resource,
        "action": action,
        "conditions": conditions,
    }


class InMemoryRoleRepository:
    """Role repository backed by dicts, counting permission loads."""

    def __init__(self):
        self.roles: Dict[str, Dict[str, Any]] = {}
        self.permissions: Dict[str, Dict[str, Any]] = {}
        self.role_permissions: List[Dict[str, str]] = []
        self.assignments: Dict[str, List[str]] = {}
        self.load_count = 0

    def add_role(self, role_id: str, name: str, level: int, is_active: bool = True) -> None:
        self.roles[role_id] = make_role_row(role_id, name, level, is_active)

    def add_permission(self, permission_id: str, resource: str, action: str,
                       role_id: str, conditions: Optional[Dict[str, Any]] = None) -> None:
        self.permissions[permission_id] = make_permission_row(
            permission_id, resource, action, conditions=conditions
        )
        self.role_permissions.append({"role_id": role_id, "permission_id": permission_id})

    def grant(self, user_id: str, role_id: str) -> None:
        self.assignments.setdefault(user_id, []).append(role_id)

    async def get_user_roles_with_permissions(self, user_id: str) -> Dict[str, List[Dict[str, Any]]]:
        self.load_count += 1
        role_ids = self.assignments.get(user_id, [])
        links = [link for link in self.role_permissions if link["role_id"] in role_ids]
        return {
            "roles": [self.roles[role_id] for role_id in role_ids],
            "permissions": [self.permissions[link["permission_id"]] for link in links],
            "role_permissions": links,
        }

    async def get_role_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        return next((role for role in self.roles.values() if role["name"] == name), None)

    async def get_role_by_id(self, role_id: str) -> Optional[Dict[str, Any]]:
        return self.roles.get(role_id)

    async def get_user_roles(self, user_id: str) -> List[Dict[str, Any]]:
        return [self.roles[role_id] for role_id in self.assignments.get(user_id, [])]

    async def assign_role_to_user(self, user_id, role_id, granted_by, expires_at=None, metadata=None) -> None:
        self.grant(user_id, role_id)

    async def revoke_role_from_user(self, user_id: str, role_id: str) -> None:
        self.assignments[user_id] = [r for r in self.assignments.get(user_id, []) if r != role_id]

    async def get_users_by_role(self, role_id: str) -> List[str]:
        return [user_id for user_id, role_ids in self.assignments.items() if role_id in role_ids]


@pytest.fixture
def rbac_settings():
    """RBAC settings independent of the environment."""
    return RBACSettings(
        cache_ttl_seconds=300,
        failure_cache_ttl_seconds=60,
        cache_max_size=1000,
        cache_high_water_ratio=0.8,
        cache_low_water_ratio=0.5,
        cleanup_interval_seconds=60,
        admin_level_threshold=100,
        load_timeout_seconds=1.0,
        time_restrictions_fail_closed=False,
    )


@pytest.fixture
def mock_role_repository():
    """Mock role repository for testing."""
    repository = AsyncMock()
    repository.get_user_roles_with_permissions = AsyncMock(
        return_value={"roles": [], "permissions": [], "role_permissions": []}
    )
    repository.get_role_by_name = AsyncMock(return_value=None)
    repository.get_role_by_id = AsyncMock(return_value=None)
    repository.get_user_roles = AsyncMock(return_value=[])
    repository.assign_role_to_user = AsyncMock()
    repository.revoke_role_from_user = AsyncMock()
    repository.get_users_by_role = AsyncMock(return_value=[])
    return repository


@pytest.fixture
def mock_business_repository():
    """Mock business repository for testing."""
    repository = AsyncMock()
    repository.find_by_id = AsyncMock(return_value=None)
    return repository


@pytest.fixture
def role_store():
    """In-memory role store with an ADMIN (level 300) and EDITOR (level 10) role.

    ``admin`` holds ADMIN; EDITOR grants ``document:edit``.
    """
    store = InMemoryRoleRepository()
    store.add_role("role-admin", "ADMIN", 300)
    store.add_role("role-editor", "EDITOR", 10)
    store.add_permission("perm-doc-edit", "document", "edit", role_id="role-editor")
    store.grant("admin", "role-admin")
    return store


@pytest_asyncio.fixture
async def rbac_service(role_store, mock_business_repository, rbac_settings):
    """RBAC service over the in-memory role store."""
    service = RBACService(role_store, mock_business_repository, settings=rbac_settings)
    yield service
    await service.close()


@pytest.fixture
def sample_user_id():
    """Sample user ID for testing."""
    return "user_1724500000000_abc123"


@pytest.fixture
def fixed_now():
    """Fixed 'current time' for time-window tests."""
    return datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def role_row():
    """Factory for raw role rows."""
    return make_role_row


@pytest.fixture
def permission_row():
    """Factory for raw permission rows."""
    return make_permission_row
