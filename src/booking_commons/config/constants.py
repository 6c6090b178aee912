"""Constants for booking-commons.

Security limits, cache key layout and role levels used by the RBAC permission
engine. The business staff levels correspond to the ``business_staff_role``
database enum.
"""

import re
from typing import Dict, Final, Pattern


class SecurityLimits:
    """Input limits enforced before any permission lookup."""
    
    MAX_USER_ID_LENGTH: Final[int] = 50
    MAX_ROLE_NAME_LENGTH: Final[int] = 100
    MAX_RESOURCE_LENGTH: Final[int] = 50
    MAX_ACTION_LENGTH: Final[int] = 50
    INVALID_INPUT_PATTERN: Final[Pattern[str]] = re.compile(r"[<>'\"&]")


class CacheKeys:
    """Cache key patterns for the permission cache."""
    
    USER_PREFIX: Final[str] = "rbac:user:"
    USER_PERMISSIONS: Final[str] = "rbac:user:{user_id}"


class CacheTTL:
    """Cache TTL values in seconds."""
    
    PERMISSIONS: Final[int] = 300          # 5 minutes
    FAILED_LOAD: Final[int] = 60           # 1 minute
    CLEANUP_INTERVAL: Final[int] = 60      # 1 minute


class CacheLimits:
    """Occupancy limits for the in-memory permission cache."""
    
    MAX_SIZE: Final[int] = 1000
    HIGH_WATER_RATIO: Final[float] = 0.8
    LOW_WATER_RATIO: Final[float] = 0.5


class RoleLevels:
    """Role level thresholds."""
    
    # Minimum effective level required to grant or revoke roles
    ADMIN_THRESHOLD: Final[int] = 100
    DEFAULT_STAFF_LEVEL: Final[int] = 100


BUSINESS_STAFF_ROLE_LEVELS: Final[Dict[str, int]] = {
    "OWNER": 300,
    "MANAGER": 250,
    "STAFF": 200,
    "RECEPTIONIST": 150,
}

DEFAULT_TIMEZONE: Final[str] = "UTC"
