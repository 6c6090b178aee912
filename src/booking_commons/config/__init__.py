"""Configuration for booking-commons: constants, settings and logging."""

from .constants import (
    SecurityLimits,
    CacheKeys,
    CacheTTL,
    CacheLimits,
    RoleLevels,
    BUSINESS_STAFF_ROLE_LEVELS,
    DEFAULT_TIMEZONE,
)
from .settings import (
    RBACSettings,
    DatabaseSettings,
    get_rbac_settings,
    get_database_settings,
)
from .logging_config import LoggingConfig, setup_logging, get_logger

__all__ = [
    "SecurityLimits",
    "CacheKeys",
    "CacheTTL",
    "CacheLimits",
    "RoleLevels",
    "BUSINESS_STAFF_ROLE_LEVELS",
    "DEFAULT_TIMEZONE",
    "RBACSettings",
    "DatabaseSettings",
    "get_rbac_settings",
    "get_database_settings",
    "LoggingConfig",
    "setup_logging",
    "get_logger",
]
