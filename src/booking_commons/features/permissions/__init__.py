"""Permissions feature for booking-commons.

Feature-First architecture for the RBAC permission engine:
- entities/: Permission, role and snapshot value objects plus repository protocols
- validators/: Guard-clause validation of identifiers
- adapters/: In-memory snapshot cache and Redis invalidation broadcaster
- services/: Permission loading, condition evaluation and the RBAC facade
- repositories/: AsyncPG data access over the booking schema
- dependencies: FastAPI permission/role/level gates
"""

# Core permission entities and protocols
from .entities import (
    Permission, Role, UserPermissions,
    RoleRepository, BusinessRepository
)

# Cache adapters
from .adapters import MemoryPermissionCache, RedisInvalidationBroadcaster, create_redis_client

# Permission service orchestration
from .services import PermissionLoader, ConditionEvaluator, RBACService

# Concrete repository implementations
from .repositories import AsyncPGRoleRepository, AsyncPGBusinessRepository

__all__ = [
    # Entities
    "Permission",
    "Role",
    "UserPermissions",
    
    # Protocols
    "RoleRepository",
    "BusinessRepository",
    
    # Adapters
    "MemoryPermissionCache",
    "RedisInvalidationBroadcaster",
    "create_redis_client",
    
    # Services
    "PermissionLoader",
    "ConditionEvaluator",
    "RBACService",
    
    # Repository Implementations
    "AsyncPGRoleRepository",
    "AsyncPGBusinessRepository",
]
