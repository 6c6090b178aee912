"""Domain-specific exceptions for booking-commons.

Configuration and database errors raised by the infrastructure layer.
"""

from .base import BookingCommonsError


# Configuration Errors
class ConfigurationError(BookingCommonsError):
    """Raised when there's a configuration issue."""
    pass


# Database Errors
class DatabaseError(BookingCommonsError):
    """Base class for database-related errors."""
    pass


class QueryError(DatabaseError):
    """Raised when database query execution fails."""
    pass
