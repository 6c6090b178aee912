"""Booking-Commons - shared RBAC permission engine for the booking platform.

This library provides role/permission resolution with caching, attribute-based
permission conditions, database access and common utilities for the booking
platform services.
"""

# Initialize logging configuration on import
from .config.logging_config import setup_logging
setup_logging()

from .__version__ import __version__

from .config import (
    RBACSettings,
    DatabaseSettings,
    get_rbac_settings,
    get_database_settings,
)

from .core.exceptions import (
    # Base Exception
    BookingCommonsError,
    
    # Common Exceptions
    ConfigurationError,
    DatabaseError,
    ValidationError,
    AuthorizationError,
    ForbiddenError,
    NotFoundError,
    UserNotFoundError,
    
    # Utility Functions
    get_http_status_code,
    create_error_response,
)

from .database import DatabaseManager

from .features.permissions import (
    Permission,
    Role,
    UserPermissions,
    RBACService,
    MemoryPermissionCache,
    AsyncPGRoleRepository,
    AsyncPGBusinessRepository,
    RedisInvalidationBroadcaster,
)

__all__ = [
    "__version__",
    
    # Configuration
    "RBACSettings",
    "DatabaseSettings",
    "get_rbac_settings",
    "get_database_settings",
    
    # Exceptions
    "BookingCommonsError",
    "ConfigurationError",
    "DatabaseError",
    "ValidationError",
    "AuthorizationError",
    "ForbiddenError",
    "NotFoundError",
    "UserNotFoundError",
    "get_http_status_code",
    "create_error_response",
    
    # Database
    "DatabaseManager",
    
    # Permissions
    "Permission",
    "Role",
    "UserPermissions",
    "RBACService",
    "MemoryPermissionCache",
    "AsyncPGRoleRepository",
    "AsyncPGBusinessRepository",
    "RedisInvalidationBroadcaster",
]
