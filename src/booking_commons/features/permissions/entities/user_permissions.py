"""
UserPermissions - the immutable snapshot cached per user.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from .permission import Permission
from .role import Role


@dataclass(frozen=True)
class UserPermissions:
    """
    Roles and deduplicated permissions of one user, computed at load time.
    
    ``effective_level`` is the highest level among ``roles`` or 0 when the
    user holds none. A snapshot is never mutated; a changed permission set
    requires a fresh load.
    """
    user_id: str
    roles: Tuple[Role, ...] = ()
    permissions: Tuple[Permission, ...] = ()
    effective_level: int = 0
    
    def __post_init__(self):
        if not isinstance(self.roles, tuple):
            object.__setattr__(self, 'roles', tuple(self.roles))
        if not isinstance(self.permissions, tuple):
            object.__setattr__(self, 'permissions', tuple(self.permissions))
    
    @classmethod
    def empty(cls, user_id: str) -> "UserPermissions":
        """Canonical snapshot for a user without roles."""
        return cls(user_id=user_id)
    
    @property
    def is_empty(self) -> bool:
        return not self.roles
    
    def find_permission(self, resource: str, action: str) -> Optional[Permission]:
        """Return the first permission matching resource and action."""
        for permission in self.permissions:
            if permission.matches(resource, action):
                return permission
        return None
    
    def has_role(self, role_name: str) -> bool:
        return any(role.name == role_name for role in self.roles)
    
    def get_role_names(self) -> Tuple[str, ...]:
        return tuple(role.name for role in self.roles)
