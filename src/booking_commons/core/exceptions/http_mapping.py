"""HTTP translation of booking-commons errors.

Status codes come from ``HTTP_STATUS_MAP``; response bodies use the
``{"error": {code, message, details, type}}`` envelope.
"""

from typing import Any, Dict, Type

from .base import BookingCommonsError
from .auth import (
    ValidationError,
    AuthorizationError,
    ForbiddenError,
    NotFoundError,
    UserNotFoundError,
)
from .domain import ConfigurationError, DatabaseError, QueryError


HTTP_STATUS_MAP: Dict[Type[Exception], int] = {
    # 400 Bad Request
    ValidationError: 400,
    
    # 403 Forbidden
    AuthorizationError: 403,
    ForbiddenError: 403,
    
    # 404 Not Found
    NotFoundError: 404,
    UserNotFoundError: 404,
    
    # 500 Internal Server Error
    DatabaseError: 500,
    QueryError: 500,
    ConfigurationError: 500,
    
    # Default for BookingCommonsError
    BookingCommonsError: 500,
}


def get_http_status_code(exception: Exception) -> int:
    """Get HTTP status code for an exception.
    
    Walks the exception's MRO so subclasses without an explicit entry inherit
    the status of their closest mapped ancestor.
    
    Args:
        exception: The exception instance
        
    Returns:
        HTTP status code (500 when nothing matches)
    """
    for exc_type in type(exception).__mro__:
        if exc_type in HTTP_STATUS_MAP:
            return HTTP_STATUS_MAP[exc_type]
    return 500


def create_error_response(exception: BookingCommonsError) -> Dict[str, Any]:
    """Build the JSON error envelope for an exception."""
    return {
        "error": {
            "code": exception.error_code,
            "message": exception.message,
            "details": exception.details,
            "type": type(exception).__name__,
        }
    }
