"""Protocol interfaces for the permission engine's data-access collaborators.

Raw rows are returned as mappings (asyncpg records or plain dicts); the
permission loader treats every field as untrusted input.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class RoleRepository(Protocol):
    """Protocol for role and role-assignment data access."""
    
    @abstractmethod
    async def get_user_roles_with_permissions(self, user_id: str) -> Dict[str, List[Mapping[str, Any]]]:
        """Get ``{roles, permissions, role_permissions}`` raw rows for a user."""
        ...
    
    @abstractmethod
    async def get_role_by_name(self, name: str) -> Optional[Mapping[str, Any]]:
        """Get role row by unique name."""
        ...
    
    @abstractmethod
    async def get_role_by_id(self, role_id: str) -> Optional[Mapping[str, Any]]:
        """Get role row by ID."""
        ...
    
    @abstractmethod
    async def get_user_roles(self, user_id: str) -> List[Mapping[str, Any]]:
        """Get role rows currently held by a user."""
        ...
    
    @abstractmethod
    async def assign_role_to_user(
        self,
        user_id: str,
        role_id: str,
        granted_by: str,
        expires_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Create an active role assignment."""
        ...
    
    @abstractmethod
    async def revoke_role_from_user(self, user_id: str, role_id: str) -> None:
        """Deactivate a role assignment."""
        ...
    
    @abstractmethod
    async def get_users_by_role(self, role_id: str) -> List[str]:
        """Get IDs of users actively holding a role."""
        ...


@runtime_checkable
class BusinessRepository(Protocol):
    """Protocol for the business lookup used by ownership conditions."""
    
    @abstractmethod
    async def find_by_id(self, business_id: str) -> Optional[Mapping[str, Any]]:
        """Get business row (with ``owner_id``) by ID."""
        ...
