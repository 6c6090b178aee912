"""Exceptions module for booking-commons.

This module provides the exception hierarchy for booking-commons,
organized by authorization concerns and infrastructure concerns.
"""

from .base import BookingCommonsError

from .domain import (
    ConfigurationError,
    DatabaseError,
    QueryError,
)

from .auth import (
    ValidationError,
    AuthorizationError,
    ForbiddenError,
    NotFoundError,
    UserNotFoundError,
)

from .http_mapping import (
    HTTP_STATUS_MAP,
    create_error_response,
    get_http_status_code,
)

__all__ = [
    # Base
    "BookingCommonsError",
    "get_http_status_code",
    "create_error_response",
    "HTTP_STATUS_MAP",
    
    # Infrastructure
    "ConfigurationError",
    "DatabaseError",
    "QueryError",
    
    # Authorization
    "ValidationError",
    "AuthorizationError",
    "ForbiddenError",
    "NotFoundError",
    "UserNotFoundError",
]
