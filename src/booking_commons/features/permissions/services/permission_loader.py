"""
Permission loader - turns raw repository rows into a UserPermissions snapshot.

Every field coming from the repository is treated as untrusted: values are
coerced or the row is discarded, never assumed to match a static shape.
"""
import asyncio
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from ....core.exceptions import DatabaseError
from ..entities import Permission, Role, RoleRepository, UserPermissions


_MISSING = object()


def get_field(row: Any, snake: str, camel: Optional[str] = None, default: Any = None) -> Any:
    """Read a field from a mapping or object, accepting snake or camel case."""
    for name in (snake, camel):
        if name is None:
            continue
        if isinstance(row, Mapping):
            value = row.get(name, _MISSING)
        else:
            value = getattr(row, name, _MISSING)
        if value is not _MISSING:
            return value
    return default


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def _as_level(value: Any) -> int:
    """Coerce a role level to a non-negative int, 0 on failure."""
    if isinstance(value, bool):
        return 0
    try:
        level = int(value)
    except (TypeError, ValueError):
        return 0
    return level if level > 0 else 0


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


class PermissionLoader:
    """
    Loads and assembles the permission snapshot of a single user.

    Steps:
    - fetch roles, permissions and role/permission links
    - keep active roles, coerce their fields
    - deduplicate permissions by ``resource:action:name``
    - attach permissions to roles from the link pairs
    - compute the effective level

    Repository failures and timeouts raise; the caller decides on fallback.
    """

    def __init__(
        self,
        role_repository: RoleRepository,
        load_timeout_seconds: Optional[float] = 10.0
    ):
        self.role_repository = role_repository
        self.load_timeout_seconds = load_timeout_seconds

    async def load(self, user_id: str) -> UserPermissions:
        """
        Load a fresh snapshot for ``user_id``.

        Raises:
            DatabaseError: On a malformed repository response or timeout
        """
        call = self.role_repository.get_user_roles_with_permissions(user_id)
        try:
            if self.load_timeout_seconds:
                result = await asyncio.wait_for(call, timeout=self.load_timeout_seconds)
            else:
                result = await call
        except asyncio.TimeoutError:
            raise DatabaseError(
                f"Timed out loading permissions after {self.load_timeout_seconds}s",
                details={"user_id": user_id}
            )

        if result is None or isinstance(result, (str, bytes, int, float, bool)):
            raise DatabaseError(
                "Invalid repository response",
                details={"user_id": user_id, "response_type": type(result).__name__}
            )

        return self.build_snapshot(user_id, result)

    def build_snapshot(self, user_id: str, result: Any) -> UserPermissions:
        """Assemble a snapshot from a raw ``{roles, permissions, role_permissions}`` result."""
        role_rows = _as_list(get_field(result, "roles"))
        if not role_rows:
            return UserPermissions.empty(user_id)

        permission_rows = _as_list(get_field(result, "permissions"))
        link_rows = _as_list(get_field(result, "role_permissions", "rolePermissions"))

        roles = self.build_roles(role_rows)
        permissions, permissions_by_id = self.deduplicate_permissions(permission_rows)
        roles = self.attach_permissions(roles, permissions_by_id, link_rows)
        effective_level = max((role.level for role in roles), default=0)

        logger.bind(user_id=user_id, effective_level=effective_level).debug(
            f"Loaded {len(roles)} roles and {len(permissions)} permissions for user {user_id}"
        )

        return UserPermissions(
            user_id=user_id,
            roles=tuple(roles),
            permissions=tuple(permissions),
            effective_level=effective_level
        )

    @staticmethod
    def build_roles(role_rows: Iterable[Any]) -> List[Role]:
        """Keep active, well-formed roles with coerced fields."""
        roles = []
        for row in role_rows:
            if row is None or not get_field(row, "is_active", "isActive", False):
                continue

            role_id = _as_str(get_field(row, "id"))
            name = _as_str(get_field(row, "name"))
            if not role_id or not name:
                continue

            roles.append(Role(
                id=role_id,
                name=name,
                display_name=_as_str(get_field(row, "display_name", "displayName")) or name,
                level=_as_level(get_field(row, "level"))
            ))
        return roles

    @staticmethod
    def deduplicate_permissions(permission_rows: Iterable[Any]) -> tuple:
        """
        Deduplicate permissions by ``resource:action:name``, first wins.

        Returns:
            ``(permissions, permissions_by_id)`` where duplicate rows' IDs
            map to the permission that was kept
        """
        by_key: Dict[str, Permission] = {}
        by_id: Dict[str, Permission] = {}

        for row in permission_rows:
            if row is None:
                continue

            permission_id = _as_str(get_field(row, "id"))
            name = _as_str(get_field(row, "name"))
            resource = _as_str(get_field(row, "resource"))
            action = _as_str(get_field(row, "action"))
            if not (permission_id and name and resource and action):
                continue

            conditions = get_field(row, "conditions")
            candidate = Permission(
                id=permission_id,
                name=name,
                resource=resource,
                action=action,
                conditions=dict(conditions) if isinstance(conditions, Mapping) and conditions else None
            )
            kept = by_key.setdefault(candidate.dedup_key, candidate)
            by_id.setdefault(permission_id, kept)

        return list(by_key.values()), by_id

    @staticmethod
    def attach_permissions(
        roles: List[Role],
        permissions_by_id: Dict[str, Permission],
        link_rows: Iterable[Any]
    ) -> List[Role]:
        """Attach permissions to roles from role/permission link pairs."""
        adjacency: Dict[str, List[Permission]] = {role.id: [] for role in roles}

        for link in link_rows:
            if link is None:
                continue
            role_id = _as_str(get_field(link, "role_id", "roleId"))
            permission = permissions_by_id.get(_as_str(get_field(link, "permission_id", "permissionId")))
            if permission is None or role_id not in adjacency:
                continue
            if permission not in adjacency[role_id]:
                adjacency[role_id].append(permission)

        return [
            Role(
                id=role.id,
                name=role.name,
                display_name=role.display_name,
                level=role.level,
                permissions=tuple(adjacency[role.id])
            )
            for role in roles
        ]
