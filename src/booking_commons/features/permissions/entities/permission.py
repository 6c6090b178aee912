"""
Permission entity - resource/action grant with optional conditions.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Permission:
    """
    Permission value object with resource-action pattern.
    
    Examples:
        - appointment:cancel (cancel an appointment)
        - document:edit (edit a document)
    
    ``conditions`` carries attribute-based rules (``owner``, ``minLevel``,
    ``timeRestrictions``) evaluated after the resource/action match.
    """
    id: str
    name: str
    resource: str
    action: str
    conditions: Optional[Dict[str, Any]] = None
    
    @property
    def code(self) -> str:
        """Permission code in ``resource:action`` form."""
        return f"{self.resource}:{self.action}"
    
    @property
    def dedup_key(self) -> str:
        """Key used to collapse the same permission granted through several roles."""
        return f"{self.resource}:{self.action}:{self.name}"
    
    @property
    def has_conditions(self) -> bool:
        return bool(self.conditions)
    
    def matches(self, resource: str, action: str) -> bool:
        """Check if permission matches the resource:action pair exactly."""
        return self.resource == resource and self.action == action
    
    def __str__(self) -> str:
        return self.code
