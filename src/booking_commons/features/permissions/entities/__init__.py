"""Permission entities package.

Value objects and protocols for the RBAC permission engine.
"""

from .permission import Permission
from .role import Role
from .user_permissions import UserPermissions
from .protocols import RoleRepository, BusinessRepository

__all__ = [
    # Value objects
    "Permission",
    "Role",
    "UserPermissions",
    
    # Protocols
    "RoleRepository",
    "BusinessRepository",
]
