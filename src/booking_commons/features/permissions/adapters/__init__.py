"""Permission cache adapters.

In-process snapshot cache and Redis pub/sub invalidation across instances.
"""

from .memory_permission_cache import MemoryPermissionCache
from .redis_invalidation import RedisInvalidationBroadcaster, create_redis_client

__all__ = [
    "MemoryPermissionCache",
    "RedisInvalidationBroadcaster",
    "create_redis_client",
]
