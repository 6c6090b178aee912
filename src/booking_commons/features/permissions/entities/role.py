"""
Role entity - named permission collection ranked by level.
"""
from dataclasses import dataclass
from typing import Optional, Set, Tuple

from .permission import Permission


@dataclass(frozen=True)
class Role:
    """
    Role with an authority level and the permissions it grants.
    
    Higher ``level`` means more authority. Whether a role is a system role
    lives in the backing store only.
    """
    id: str
    name: str
    display_name: Optional[str] = None
    level: int = 0
    permissions: Tuple[Permission, ...] = ()
    
    def __post_init__(self):
        """Default display name and freeze the permission collection."""
        if self.display_name is None:
            object.__setattr__(self, 'display_name', self.name)
        if not isinstance(self.permissions, tuple):
            object.__setattr__(self, 'permissions', tuple(self.permissions))
    
    def get_permission_codes(self) -> Set[str]:
        """Get all permission codes granted by this role."""
        return {perm.code for perm in self.permissions}
    
    def __str__(self) -> str:
        return f"{self.name} (level {self.level})"
