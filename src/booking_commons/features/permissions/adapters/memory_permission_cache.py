"""Memory permission cache for the RBAC engine."""

import asyncio
import logging
import time
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from ....config.constants import CacheLimits, CacheTTL, SecurityLimits
from ..entities import Permission, Role, UserPermissions

logger = logging.getLogger(__name__)

# Loader contract: returns the snapshot and the TTL to cache it with.
SnapshotLoader = Callable[[], Awaitable[Tuple[UserPermissions, float]]]


class MemoryPermissionCache:
    """Bounded TTL cache of ``UserPermissions`` snapshots.

    Handles ONLY in-memory snapshot storage for the permission engine.
    Does not load permissions or talk to the database.

    Features:
    - TTL-based expiration on a monotonic clock
    - Structural validation of entries on read
    - High/low water mark eviction, soonest expiry first
    - In-flight load registry so concurrent misses share one load

    None of the synchronous operations suspend, so a check-then-act inside
    ``get``/``put``/eviction is atomic with respect to other tasks.
    """

    def __init__(
        self,
        max_size: int = CacheLimits.MAX_SIZE,
        default_ttl_seconds: float = CacheTTL.PERMISSIONS,
        high_water_ratio: float = CacheLimits.HIGH_WATER_RATIO,
        low_water_ratio: float = CacheLimits.LOW_WATER_RATIO,
        cleanup_interval_seconds: float = CacheTTL.CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize memory permission cache.

        Args:
            max_size: Configured capacity used for the water marks
            default_ttl_seconds: TTL applied when ``put`` gets none
            high_water_ratio: Occupancy ratio that triggers eviction
            low_water_ratio: Occupancy ratio eviction brings the cache down to
            cleanup_interval_seconds: Interval of the periodic cleanup task
            clock: Monotonic time source in seconds
        """
        if max_size <= 0:
            raise ValueError("Max size must be positive")
        if default_ttl_seconds <= 0:
            raise ValueError("Default TTL must be positive")
        if not 0 <= low_water_ratio < high_water_ratio <= 1:
            raise ValueError("Water marks must satisfy 0 <= low < high <= 1")

        self.max_size = max_size
        self.default_ttl_seconds = default_ttl_seconds
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._high_water = int(max_size * high_water_ratio)
        self._low_water = int(max_size * low_water_ratio)
        self._clock = clock

        self._entries: Dict[str, UserPermissions] = {}
        self._expiry: Dict[str, float] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}

        # Statistics
        self._hits = 0
        self._misses = 0
        self._evictions = 0

        self._cleanup_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[UserPermissions]:
        """Return a fresh, structurally valid snapshot or ``None``.

        Expired and malformed entries are purged on the way out.
        """
        snapshot = self._entries.get(key)
        if snapshot is None:
            self._misses += 1
            return None

        if self._clock() >= self._expiry.get(key, 0):
            self._remove(key)
            self._misses += 1
            return None

        if not self.is_valid_snapshot(snapshot):
            logger.warning(f"Discarding malformed cached permissions for {key}")
            self._remove(key)
            self._misses += 1
            return None

        self._hits += 1
        return snapshot

    def put(self, key: str, snapshot: UserPermissions, ttl_seconds: Optional[float] = None) -> None:
        """Store a snapshot and run eviction if the high-water mark is crossed."""
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = snapshot
        self._expiry[key] = self._clock() + ttl
        self._evict_if_needed()
        self._ensure_cleanup_task()

    def invalidate(self, key: str) -> bool:
        """Remove a key's entry, expiry and in-flight marker.

        A load still running for the key keeps serving its current waiters
        but no longer writes its result into the cache.

        Returns:
            True if a cached entry was removed
        """
        self._in_flight.pop(key, None)
        return self._remove(key)

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove every entry and in-flight marker whose key starts with ``prefix``.

        Returns:
            Number of cached entries removed
        """
        for key in [k for k in self._in_flight if k.startswith(prefix)]:
            del self._in_flight[key]

        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            self._remove(key)
        return len(keys)

    def invalidate_all(self) -> int:
        """Clear all cached data, including in-flight markers.

        Returns:
            Number of cached entries removed
        """
        count = len(self._entries)
        self._entries.clear()
        self._expiry.clear()
        self._in_flight.clear()
        logger.debug(f"Cleared permission cache ({count} entries)")
        return count

    async def get_or_load(
        self,
        key: str,
        loader: SnapshotLoader,
        use_cache: bool = True
    ) -> UserPermissions:
        """Return the cached snapshot or load it once for all concurrent callers.

        The first caller on a miss registers a load task under ``key``; callers
        arriving while it runs await the same task. The registration is removed
        when the load settles. If the shared load raises, a waiting caller
        drops the marker and re-raises.

        Args:
            key: Cache key
            loader: Coroutine function returning ``(snapshot, ttl_seconds)``
            use_cache: When False, skip the cache read but still share loads
        """
        if use_cache:
            cached = self.get(key)
            if cached is not None:
                return cached

        task = self._in_flight.get(key)
        if task is not None:
            try:
                return await asyncio.shield(task)
            except asyncio.CancelledError:
                raise
            except Exception:
                if self._in_flight.get(key) is task:
                    del self._in_flight[key]
                raise

        task = asyncio.create_task(self._load(key, loader))
        self._in_flight[key] = task
        self._ensure_cleanup_task()
        return await asyncio.shield(task)

    async def _load(self, key: str, loader: SnapshotLoader) -> UserPermissions:
        task = asyncio.current_task()
        try:
            snapshot, ttl = await loader()
            # Invalidated while loading: serve the result but do not cache it
            if self._in_flight.get(key) is task:
                self.put(key, snapshot, ttl)
            else:
                logger.debug(f"Skipping cache write for invalidated key {key}")
            return snapshot
        finally:
            if self._in_flight.get(key) is task:
                del self._in_flight[key]

    def cleanup(self) -> int:
        """Remove expired entries, then evict down to the low-water mark if needed.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [key for key, expires_at in self._expiry.items() if expires_at <= now]
        for key in expired:
            self._remove(key)

        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired permission entries")

        return len(expired) + self._evict_if_needed()

    def _evict_if_needed(self) -> int:
        """Evict soonest-expiring entries once occupancy exceeds the high-water mark.

        Returns:
            Number of entries evicted
        """
        size = len(self._entries)
        if size <= self._high_water:
            return 0

        excess = size - self._low_water
        victims = sorted(self._expiry, key=self._expiry.__getitem__)[:excess]
        for key in victims:
            self._remove(key)

        self._evictions += len(victims)
        logger.info(
            f"Permission cache evicted {len(victims)} entries "
            f"({size} -> {len(self._entries)}, max {self.max_size})"
        )
        return len(victims)

    def _remove(self, key: str) -> bool:
        self._expiry.pop(key, None)
        return self._entries.pop(key, None) is not None

    def _ensure_cleanup_task(self) -> None:
        """Start the periodic cleanup task once a running loop is available."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def _cleanup_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.cleanup_interval_seconds)
                self.cleanup()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"Permission cache cleanup error: {e}")

    def start(self) -> None:
        """Start the periodic cleanup task; must be called inside a running loop."""
        asyncio.get_running_loop()
        self._ensure_cleanup_task()

    async def close(self) -> None:
        """Stop the cleanup task, cancel pending loads and clear the cache."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

        for task in self._in_flight.values():
            task.cancel()
        self.invalidate_all()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        size = len(self._entries)
        return {
            "size": size,
            "max_size": self.max_size,
            "utilization_percent": round(size / self.max_size * 100, 2),
            "in_flight_requests": len(self._in_flight),
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
        }

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    @staticmethod
    def is_valid_snapshot(snapshot: Any) -> bool:
        """Deep structural check of a cached snapshot."""
        if not isinstance(snapshot, UserPermissions):
            return False

        user_id = snapshot.user_id
        if (
            not isinstance(user_id, str)
            or not user_id
            or len(user_id) > SecurityLimits.MAX_USER_ID_LENGTH
            or not isinstance(snapshot.roles, tuple)
            or not isinstance(snapshot.permissions, tuple)
            or not _is_level(snapshot.effective_level)
        ):
            return False

        for role in snapshot.roles:
            if not _is_valid_role(role):
                return False

        return all(_is_valid_permission(p) for p in snapshot.permissions)


def _is_level(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _is_valid_role(role: Any) -> bool:
    if not isinstance(role, Role):
        return False
    if not (
        isinstance(role.id, str) and role.id
        and isinstance(role.name, str) and role.name
        and isinstance(role.display_name, str)
        and _is_level(role.level)
        and isinstance(role.permissions, tuple)
    ):
        return False
    return all(_is_valid_permission(p) for p in role.permissions)


def _is_valid_permission(permission: Any) -> bool:
    if not isinstance(permission, Permission):
        return False
    fields = (permission.id, permission.name, permission.resource, permission.action)
    if not all(isinstance(value, str) and value for value in fields):
        return False
    return (
        len(permission.resource) <= SecurityLimits.MAX_RESOURCE_LENGTH
        and len(permission.action) <= SecurityLimits.MAX_ACTION_LENGTH
        and (permission.conditions is None or isinstance(permission.conditions, Mapping))
    )
