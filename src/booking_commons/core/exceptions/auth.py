"""Authorization exceptions raised by the RBAC permission engine."""

from typing import Any, Dict, Optional

from ...utils.datetime import utc_now
from .base import BookingCommonsError


class ValidationError(BookingCommonsError):
    """Raised for malformed identifiers, permission strings or dates.
    
    Always the caller's fault; never retried automatically.
    """
    pass


class AuthorizationError(BookingCommonsError):
    """Base exception for authorization failures."""
    pass


class ForbiddenError(AuthorizationError):
    """Raised when a user lacks a permission, role or level.
    
    The error context (``user_id`` and ``timestamp``) is kept in ``details``
    so callers can write audit records without re-deriving it.
    """
    
    def __init__(
        self,
        message: str = "Permission denied",
        error_context: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        **kwargs
    ):
        details = dict(error_context or {})
        if user_id is not None:
            details.setdefault("user_id", user_id)
        details.setdefault("timestamp", utc_now().isoformat())
        super().__init__(message, details=details, **kwargs)
    
    @property
    def user_id(self) -> Optional[str]:
        return self.details.get("user_id")


class NotFoundError(BookingCommonsError):
    """Base exception for missing resources."""
    pass


class UserNotFoundError(NotFoundError):
    """Referenced role, permission or role assignment does not exist."""
    pass
