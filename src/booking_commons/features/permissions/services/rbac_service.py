"""
RBAC service - permission, role and level gating for the booking platform.

Owns the permission cache of one process. Backing-store failures never
surface past ``get_user_permissions``: the user briefly gets an empty
snapshot instead, which denies access.
"""
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from ....config.constants import CacheKeys
from ....config.settings import RBACSettings, get_rbac_settings
from ....core.exceptions import (
    ForbiddenError,
    UserNotFoundError,
    ValidationError,
)
from ....utils.datetime import to_utc, utc_now
from ..adapters.memory_permission_cache import MemoryPermissionCache
from ..entities import BusinessRepository, Role, RoleRepository, UserPermissions
from ..validators import (
    parse_permission_string,
    validate_resource_action,
    validate_role_name,
    validate_user_id,
)
from .condition_evaluator import ConditionEvaluator
from .permission_loader import PermissionLoader, get_field

# Called with the user IDs whose cache entries were just invalidated locally.
InvalidationHook = Callable[[Tuple[str, ...]], Awaitable[None]]
# Called after the whole local cache was reset.
ResetHook = Callable[[], Awaitable[None]]


class RBACService:
    """
    Role-based access control facade.

    Features:
    - Cached per-user permission snapshots with stampede protection
    - Attribute-based conditions (ownership, minimum level, time window)
    - Role grant/revoke gated by an administrative level threshold
    - Synchronous cache invalidation on every role change
    """

    def __init__(
        self,
        role_repository: RoleRepository,
        business_repository: Optional[BusinessRepository] = None,
        settings: Optional[RBACSettings] = None,
        on_invalidate: Optional[InvalidationHook] = None,
        on_reset: Optional[ResetHook] = None,
        cache: Optional[MemoryPermissionCache] = None
    ):
        """
        Initialize RBAC service.

        Args:
            role_repository: Role and role-assignment data access
            business_repository: Business lookup for ownership conditions
            settings: Engine settings (defaults to environment settings)
            on_invalidate: Async hook run after local invalidation on role changes
            on_reset: Async hook run after ``reset_cache`` cleared the local cache
            cache: Permission cache (built from settings when omitted)
        """
        self.settings = settings or get_rbac_settings()
        self.role_repository = role_repository
        self.on_invalidate = on_invalidate
        self.on_reset = on_reset

        self._cache = cache or MemoryPermissionCache(
            max_size=self.settings.cache_max_size,
            default_ttl_seconds=self.settings.cache_ttl_seconds,
            high_water_ratio=self.settings.cache_high_water_ratio,
            low_water_ratio=self.settings.cache_low_water_ratio,
            cleanup_interval_seconds=self.settings.cleanup_interval_seconds
        )
        self._loader = PermissionLoader(
            role_repository,
            load_timeout_seconds=self.settings.load_timeout_seconds
        )
        self._conditions = ConditionEvaluator(
            business_repository,
            time_restrictions_fail_closed=self.settings.time_restrictions_fail_closed
        )

    @property
    def cache(self) -> MemoryPermissionCache:
        return self._cache

    @staticmethod
    def _cache_key(user_id: str) -> str:
        return CacheKeys.USER_PERMISSIONS.format(user_id=validate_user_id(user_id))

    # Snapshot resolution

    async def get_user_permissions(self, user_id: str, use_cache: bool = True) -> UserPermissions:
        """
        Get the permission snapshot of a user.

        Concurrent calls for the same uncached user share one load.

        Raises:
            ValidationError: If ``user_id`` is malformed
        """
        cache_key = self._cache_key(user_id)
        return await self._cache.get_or_load(
            cache_key,
            lambda: self._load_snapshot(user_id),
            use_cache=use_cache
        )

    async def _load_snapshot(self, user_id: str) -> Tuple[UserPermissions, float]:
        """Load a snapshot, falling back to a briefly cached empty one on failure."""
        try:
            snapshot = await self._loader.load(user_id)
            return snapshot, self.settings.cache_ttl_seconds
        except Exception as e:
            logger.bind(user_id=user_id, error_type=type(e).__name__).error(
                f"Failed to get user permissions for {user_id}: {e}"
            )
            return UserPermissions.empty(user_id), self.settings.failure_cache_ttl_seconds

    # Permission checks

    async def has_permission(
        self,
        user_id: str,
        resource: str,
        action: str,
        context: Optional[Mapping] = None
    ) -> bool:
        """
        Check whether a user may perform ``action`` on ``resource``.

        The first permission matching resource and action decides; its
        conditions, if any, are evaluated against ``context``.

        Returns:
            False for malformed inputs or missing permission

        Raises:
            Exception: Unexpected (non-validation) errors are logged and re-raised
        """
        try:
            validate_user_id(user_id)
            validate_resource_action(resource, action)

            user_permissions = await self.get_user_permissions(user_id)
            permission = user_permissions.find_permission(resource, action)

            if permission is None:
                return False
            if not permission.conditions:
                return True

            return await self._conditions.evaluate(permission.conditions, context, user_permissions)

        except ValidationError as e:
            logger.warning(f"Permission check rejected input for user {user_id!r}: {e.message}")
            return False
        except Exception as e:
            logger.bind(user_id=user_id, resource=resource, action=action).error(
                f"Permission check failed for user {user_id}: {e}"
            )
            raise

    async def require_permission(
        self,
        user_id: str,
        permission: str,
        context: Optional[Mapping] = None,
        error_context: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Require a ``resource:action`` permission.

        Raises:
            ValidationError: If the user ID or permission string is malformed
            ForbiddenError: If the permission is not granted
        """
        validate_user_id(user_id)
        resource, action = parse_permission_string(permission)

        if not await self.has_permission(user_id, resource, action, context):
            raise ForbiddenError(
                "Permission denied",
                error_context=error_context,
                user_id=user_id
            )

    async def require_any(
        self,
        user_id: str,
        permissions: Iterable[str],
        context: Optional[Mapping] = None
    ) -> bool:
        """Return True if the user holds any of the ``resource:action`` permissions.

        Never raises; errors are logged and reported as False.
        """
        try:
            for permission in permissions:
                resource, action = parse_permission_string(permission)
                if await self.has_permission(user_id, resource, action, context):
                    return True
            return False
        except Exception as e:
            logger.bind(user_id=user_id).error(
                f"Permission check (any) failed for user {user_id}: {e}"
            )
            return False

    async def require_all(
        self,
        user_id: str,
        permissions: Iterable[str],
        context: Optional[Mapping] = None,
        error_context: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Require every listed ``resource:action`` permission.

        Raises:
            ValidationError: If any permission string is malformed
            ForbiddenError: Naming the missing permissions
        """
        validate_user_id(user_id)
        parsed = [(p, parse_permission_string(p)) for p in permissions]

        missing = [
            permission for permission, (resource, action) in parsed
            if not await self.has_permission(user_id, resource, action, context)
        ]
        if missing:
            details = dict(error_context or {})
            details.setdefault("missing_permissions", missing)
            raise ForbiddenError(
                f"Missing required permissions: {', '.join(missing)}",
                error_context=details,
                user_id=user_id
            )

    # Role and level checks

    async def has_role(self, user_id: str, role_name: str) -> bool:
        """Check whether a user currently holds a role by name."""
        try:
            validate_user_id(user_id)
            validate_role_name(role_name)

            user_permissions = await self.get_user_permissions(user_id)
            return user_permissions.has_role(role_name)

        except ValidationError as e:
            logger.warning(f"Role check rejected input for user {user_id!r}: {e.message}")
            return False
        except Exception as e:
            logger.bind(user_id=user_id, role_name=role_name).error(
                f"Role check failed for user {user_id}: {e}"
            )
            raise

    async def require_role(
        self,
        user_id: str,
        role_name: str,
        error_context: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Require a role by name.

        Raises:
            ValidationError: If the user ID or role name is malformed
            ForbiddenError: If the role is not held
        """
        validate_user_id(user_id)
        validate_role_name(role_name)

        if not await self.has_role(user_id, role_name):
            raise ForbiddenError(
                "Role required",
                error_context=error_context,
                user_id=user_id
            )

    async def require_min_level(
        self,
        user_id: str,
        min_level: int,
        error_context: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Require an effective level of at least ``min_level``.

        Raises:
            ValidationError: If ``min_level`` is not a non-negative integer
            ForbiddenError: If the level is lower, or the check itself failed
        """
        validate_user_id(user_id)
        if not isinstance(min_level, int) or isinstance(min_level, bool) or min_level < 0:
            raise ValidationError(
                "Invalid minimum level provided",
                details={"min_level": repr(min_level)}
            )

        try:
            user_permissions = await self.get_user_permissions(user_id)
        except Exception as e:
            logger.bind(user_id=user_id, min_level=min_level).error(
                f"Level check failed for user {user_id}: {e}"
            )
            raise ForbiddenError("Access denied", error_context=error_context, user_id=user_id) from e

        if user_permissions.effective_level < min_level:
            raise ForbiddenError(
                "Insufficient role level",
                error_context=error_context,
                user_id=user_id
            )

    async def get_user_roles(self, user_id: str) -> List[Role]:
        """Get the roles of a user's snapshot; empty list if it cannot be resolved."""
        validate_user_id(user_id)
        try:
            user_permissions = await self.get_user_permissions(user_id)
            return list(user_permissions.roles)
        except Exception as e:
            logger.bind(user_id=user_id).error(f"Failed to get user roles for {user_id}: {e}")
            return []

    # Role administration

    async def _require_admin(self, actor_id: str, verb: str) -> None:
        actor_permissions = await self.get_user_permissions(actor_id)
        if actor_permissions.effective_level < self.settings.admin_level_threshold:
            raise ForbiddenError(
                f"Insufficient permissions to {verb} roles",
                error_context={
                    "required_level": self.settings.admin_level_threshold,
                    "effective_level": actor_permissions.effective_level
                },
                user_id=actor_id
            )

    async def assign_role(
        self,
        user_id: str,
        role_name_or_id: str,
        granted_by: str,
        expires_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Grant a role, looked up by name first and then by ID.

        Both the user's and the grantor's cache entries are invalidated
        before returning.

        Raises:
            ValidationError: Malformed input, past expiry, or role already held
            ForbiddenError: Grantor below the administrative level threshold
            UserNotFoundError: Role missing or inactive
        """
        validate_user_id(user_id)
        validate_user_id(granted_by)
        validate_role_name(role_name_or_id)

        if expires_at is not None:
            if not isinstance(expires_at, datetime) or to_utc(expires_at) <= utc_now():
                raise ValidationError(
                    "Invalid expiration date",
                    details={"expires_at": str(expires_at)}
                )
            expires_at = to_utc(expires_at)

        try:
            await self._require_admin(granted_by, "assign")

            role = await self.role_repository.get_role_by_name(role_name_or_id)
            if not role:
                role = await self.role_repository.get_role_by_id(role_name_or_id)

            if not role or not get_field(role, "is_active", "isActive", False):
                raise UserNotFoundError(
                    "Role not found or inactive",
                    details={"role": role_name_or_id}
                )

            role_id = str(get_field(role, "id"))
            user_roles = await self.role_repository.get_user_roles(user_id)
            if any(str(get_field(held, "id")) == role_id for held in user_roles):
                raise ValidationError(
                    "User already has this role",
                    details={"user_id": user_id, "role_id": role_id}
                )

            await self.role_repository.assign_role_to_user(
                user_id, role_id, granted_by, expires_at, metadata
            )

        except Exception as e:
            logger.bind(user_id=user_id, role=role_name_or_id, granted_by=granted_by).error(
                f"Failed to assign role {role_name_or_id} to user {user_id}: {e}"
            )
            raise

        await self._invalidate_after_change(user_id, granted_by)
        logger.bind(user_id=user_id, role_id=role_id, granted_by=granted_by).info(
            f"Role {get_field(role, 'name')} assigned to user {user_id} by {granted_by}"
        )

    async def revoke_role(self, user_id: str, role_id: str, revoked_by: str) -> None:
        """
        Revoke a held role.

        Raises:
            ValidationError: Malformed input
            ForbiddenError: Revoker below the administrative level threshold
            UserNotFoundError: The user does not hold the role
        """
        validate_user_id(user_id)
        validate_user_id(revoked_by)
        validate_user_id(role_id)

        try:
            await self._require_admin(revoked_by, "revoke")

            user_roles = await self.role_repository.get_user_roles(user_id)
            if not any(str(get_field(held, "id")) == role_id for held in user_roles):
                raise UserNotFoundError(
                    "User role assignment not found",
                    details={"user_id": user_id, "role_id": role_id}
                )

            await self.role_repository.revoke_role_from_user(user_id, role_id)

        except Exception as e:
            logger.bind(user_id=user_id, role_id=role_id, revoked_by=revoked_by).error(
                f"Failed to revoke role {role_id} from user {user_id}: {e}"
            )
            raise

        await self._invalidate_after_change(user_id, revoked_by)
        logger.bind(user_id=user_id, role_id=role_id, revoked_by=revoked_by).info(
            f"Role {role_id} revoked from user {user_id} by {revoked_by}"
        )

    async def _invalidate_after_change(self, *user_ids: str) -> None:
        for user_id in user_ids:
            self.clear_user_cache(user_id)
        await self._propagate(tuple(user_ids))

    async def _propagate(self, user_ids: Tuple[str, ...]) -> None:
        if self.on_invalidate is None or not user_ids:
            return
        try:
            await self.on_invalidate(user_ids)
        except Exception as e:
            logger.warning(f"Failed to propagate cache invalidation for {user_ids}: {e}")

    # Cache management

    def clear_user_cache(self, user_id: str) -> None:
        """Drop a user's cached snapshot and in-flight load marker."""
        self._cache.invalidate(self._cache_key(user_id))

    def force_invalidate_user(self, user_id: str) -> int:
        """Drop every cache entry namespaced under a user.

        Returns:
            Number of entries removed
        """
        cache_key = self._cache_key(user_id)
        cleared = int(self._cache.invalidate(cache_key))
        cleared += self._cache.invalidate_prefix(f"{cache_key}:")

        logger.bind(user_id=user_id, cleared_entries=cleared).info(
            f"Force invalidated {cleared} cache entries for user {user_id}"
        )
        return cleared

    def clear_all_cache(self) -> None:
        """Drop every cached snapshot of this process only."""
        previous_size = self._cache.invalidate_all()
        logger.info(f"Cleared all RBAC cache ({previous_size} entries)")

    async def reset_cache(self) -> None:
        """Drop every cached snapshot here and, through ``on_reset``, on other instances."""
        self.clear_all_cache()
        if self.on_reset is None:
            return
        try:
            await self.on_reset()
        except Exception as e:
            logger.warning(f"Failed to propagate cache reset: {e}")

    async def clear_role_holders_cache(self, role_id: str) -> int:
        """
        Invalidate every user currently holding a role.

        Used after a role's permissions change. The cleared user IDs are
        passed to ``on_invalidate``. Errors are logged, not raised.

        Returns:
            Number of users invalidated
        """
        try:
            user_ids = await self.role_repository.get_users_by_role(role_id)
        except Exception as e:
            logger.error(f"Failed to clear cache for holders of role {role_id}: {e}")
            return 0

        cleared = []
        for user_id in user_ids:
            try:
                self.clear_user_cache(str(user_id))
                cleared.append(str(user_id))
            except ValidationError:
                logger.warning(f"Skipping malformed user ID {user_id!r} for role {role_id}")

        await self._propagate(tuple(cleared))
        logger.info(f"Cleared cache for {len(cleared)} holders of role {role_id}")
        return len(cleared)

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache statistics: size, max_size, utilization_percent, in_flight_requests."""
        return self._cache.get_stats()

    async def close(self) -> None:
        """Stop the periodic cleanup task and clear the cache."""
        await self._cache.close()
        logger.info("RBAC service closed")
