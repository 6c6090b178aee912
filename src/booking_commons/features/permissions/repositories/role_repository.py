"""AsyncPG-based role repository implementation.

Concrete implementation of the RoleRepository protocol over the booking
schema (``roles``, ``permissions``, ``user_roles``, ``role_permissions``,
``business_staff``, ``businesses``). Columns are camelCase and quoted.
"""

from typing import List, Optional, Dict, Any
from datetime import datetime
import json
import logging
import time
import uuid

import asyncpg

from ....config.constants import BUSINESS_STAFF_ROLE_LEVELS, RoleLevels
from ....core.exceptions import DatabaseError
from ....database import DatabaseManager


logger = logging.getLogger(__name__)


class AsyncPGRoleRepository:
    """AsyncPG implementation of RoleRepository protocol."""

    def __init__(self, database: DatabaseManager, schema: Optional[str] = None):
        """Initialize with database manager and target schema."""
        self.db = database
        self.schema = schema or database.schema

    def _build_role_from_row(self, row: asyncpg.Record) -> Dict[str, Any]:
        """Build raw role mapping from database row."""
        return {
            "id": row["id"],
            "name": row["name"],
            "display_name": row["displayName"],
            "level": row["level"],
            "is_system": row["isSystem"],
            "is_active": row["isActive"],
        }

    def _build_permission_from_row(self, row: asyncpg.Record) -> Dict[str, Any]:
        """Build raw permission mapping from database row."""
        conditions = row["conditions"]
        if isinstance(conditions, str):
            conditions = json.loads(conditions)
        return {
            "id": row["id"],
            "name": row["name"],
            "resource": row["resource"],
            "action": row["action"],
            "conditions": conditions,
            "is_system": row["isSystem"],
        }

    @staticmethod
    def _build_staff_role(staff_role: str) -> Dict[str, Any]:
        """Synthetic role for a ``business_staff`` membership."""
        return {
            "id": f"business_staff_{staff_role.lower()}",
            "name": staff_role,
            "display_name": f"Business {staff_role}",
            "level": BUSINESS_STAFF_ROLE_LEVELS.get(staff_role, RoleLevels.DEFAULT_STAFF_LEVEL),
            "is_system": True,
            "is_active": True,
        }

    async def get_user_roles_with_permissions(self, user_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """Get a user's roles with their permissions and role/permission links."""
        roles = await self.get_user_roles(user_id)
        role_ids = [role["id"] for role in roles]
        if not role_ids:
            return {"roles": [], "permissions": [], "role_permissions": []}

        try:
            permission_rows = await self.db.fetch(f"""
                SELECT DISTINCT p.id, p.name, p.resource, p.action, p.conditions, p."isSystem"
                FROM {self.schema}.role_permissions rp
                JOIN {self.schema}.permissions p ON p.id = rp."permissionId"
                WHERE rp."roleId" = ANY($1::text[]) AND rp."isActive" = true
                ORDER BY p.resource, p.action, p.name
            """, role_ids)

            link_rows = await self.db.fetch(f"""
                SELECT rp."roleId", rp."permissionId"
                FROM {self.schema}.role_permissions rp
                WHERE rp."roleId" = ANY($1::text[]) AND rp."isActive" = true
            """, role_ids)

            return {
                "roles": roles,
                "permissions": [self._build_permission_from_row(row) for row in permission_rows],
                "role_permissions": [
                    {"role_id": row["roleId"], "permission_id": row["permissionId"]}
                    for row in link_rows
                ],
            }

        except Exception as e:
            logger.error(f"Failed to get permissions for user {user_id}: {e}")
            raise DatabaseError(f"Failed to retrieve user permissions: {e}")

    async def get_role_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        """Get role by unique name."""
        try:
            row = await self.db.fetchrow(f"""
                SELECT id, name, "displayName", level, "isSystem", "isActive"
                FROM {self.schema}.roles
                WHERE name = $1 AND "deletedAt" IS NULL
            """, name)
            return self._build_role_from_row(row) if row else None

        except Exception as e:
            logger.error(f"Failed to get role by name {name}: {e}")
            raise DatabaseError(f"Failed to retrieve role: {e}")

    async def get_role_by_id(self, role_id: str) -> Optional[Dict[str, Any]]:
        """Get role by ID."""
        try:
            row = await self.db.fetchrow(f"""
                SELECT id, name, "displayName", level, "isSystem", "isActive"
                FROM {self.schema}.roles
                WHERE id = $1 AND "deletedAt" IS NULL
            """, role_id)
            return self._build_role_from_row(row) if row else None

        except Exception as e:
            logger.error(f"Failed to get role by id {role_id}: {e}")
            raise DatabaseError(f"Failed to retrieve role: {e}")

    async def get_user_roles(self, user_id: str) -> List[Dict[str, Any]]:
        """Get active global roles plus synthetic business-staff roles, unique by name."""
        try:
            role_rows = await self.db.fetch(f"""
                SELECT r.id, r.name, r."displayName", r.level, r."isSystem", r."isActive"
                FROM {self.schema}.user_roles ur
                JOIN {self.schema}.roles r ON r.id = ur."roleId"
                WHERE ur."userId" = $1
                  AND ur."isActive" = true
                  AND (ur."expiresAt" IS NULL OR ur."expiresAt" > NOW())
                  AND r."isActive" = true
                  AND r."deletedAt" IS NULL
                ORDER BY r.level DESC, r.name
            """, user_id)

            staff_rows = await self.db.fetch(f"""
                SELECT DISTINCT bs.role::text AS role
                FROM {self.schema}.business_staff bs
                JOIN {self.schema}.businesses b ON b.id = bs."businessId"
                WHERE bs."userId" = $1
                  AND bs."isActive" = true
                  AND b."isActive" = true
                  AND b."deletedAt" IS NULL
            """, user_id)

        except Exception as e:
            logger.error(f"Failed to get roles for user {user_id}: {e}")
            raise DatabaseError(f"Failed to retrieve user roles: {e}")

        roles: Dict[str, Dict[str, Any]] = {}
        for row in role_rows:
            roles.setdefault(row["name"], self._build_role_from_row(row))
        for row in staff_rows:
            roles.setdefault(row["role"], self._build_staff_role(row["role"]))

        return list(roles.values())

    async def assign_role_to_user(
        self,
        user_id: str,
        role_id: str,
        granted_by: str,
        expires_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Create an active role assignment."""
        assignment_id = f"urole_{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}"

        try:
            await self.db.execute(f"""
                INSERT INTO {self.schema}.user_roles
                    (id, "userId", "roleId", "grantedBy", "grantedAt", "expiresAt",
                     "isActive", metadata, "createdAt", "updatedAt")
                VALUES ($1, $2, $3, $4, NOW(), $5, true, $6::jsonb, NOW(), NOW())
            """, assignment_id, user_id, role_id, granted_by,
                expires_at.replace(tzinfo=None) if expires_at else None,
                json.dumps(metadata) if metadata is not None else None)

            logger.info(f"Assigned role {role_id} to user {user_id} (granted by {granted_by})")

        except Exception as e:
            logger.error(f"Failed to assign role {role_id} to user {user_id}: {e}")
            raise DatabaseError(f"Failed to assign role: {e}")

    async def revoke_role_from_user(self, user_id: str, role_id: str) -> None:
        """Deactivate the user's active assignments of a role."""
        try:
            await self.db.execute(f"""
                UPDATE {self.schema}.user_roles
                SET "isActive" = false, "updatedAt" = NOW()
                WHERE "userId" = $1 AND "roleId" = $2 AND "isActive" = true
            """, user_id, role_id)

            logger.info(f"Revoked role {role_id} from user {user_id}")

        except Exception as e:
            logger.error(f"Failed to revoke role {role_id} from user {user_id}: {e}")
            raise DatabaseError(f"Failed to revoke role: {e}")

    async def get_users_by_role(self, role_id: str) -> List[str]:
        """Get IDs of users actively holding a role."""
        try:
            rows = await self.db.fetch(f"""
                SELECT DISTINCT "userId"
                FROM {self.schema}.user_roles
                WHERE "roleId" = $1
                  AND "isActive" = true
                  AND ("expiresAt" IS NULL OR "expiresAt" > NOW())
            """, role_id)
            return [row["userId"] for row in rows]

        except Exception as e:
            logger.error(f"Failed to get users for role {role_id}: {e}")
            raise DatabaseError(f"Failed to retrieve users by role: {e}")
