"""Redis pub/sub propagation of permission cache invalidations.

Each process keeps its own in-memory permission cache. When one instance
grants or revokes a role it publishes the affected user IDs; every other
instance drops its copy of those entries.
"""

import asyncio
import json
import uuid
from typing import Any, Dict, Iterable, Optional, TYPE_CHECKING

from loguru import logger
from redis import asyncio as aioredis

from ....config.settings import RBACSettings, get_rbac_settings
from ....core.exceptions import ConfigurationError, ValidationError

if TYPE_CHECKING:
    from ..services.rbac_service import RBACService


MESSAGE_USER = "user"
MESSAGE_ALL = "all"


def create_redis_client(redis_url: str) -> aioredis.Redis:
    """Create a ``redis.asyncio`` client that decodes responses to str."""
    return aioredis.from_url(redis_url, decode_responses=True)


class RedisInvalidationBroadcaster:
    """Redis-based invalidation broadcaster.

    Publishes ``{"type", "user_id", "source_node"}`` JSON messages and applies
    messages from other nodes to the local ``RBACService``.
    """

    def __init__(
        self,
        redis_client: Any,
        rbac_service: "RBACService",
        channel: str = "booking:rbac:invalidate",
        node_id: Optional[str] = None
    ):
        """Initialize invalidation broadcaster.

        Args:
            redis_client: ``redis.asyncio`` client
            rbac_service: Local service whose cache is invalidated
            channel: Pub/sub channel shared by all instances
            node_id: Identifier of this instance (random when omitted)
        """
        self._redis = redis_client
        self._rbac_service = rbac_service
        self._channel = channel
        self._node_id = node_id or str(uuid.uuid4())
        self._pubsub = None
        self._listener_task: Optional[asyncio.Task] = None
        self._running = False

    @classmethod
    def from_settings(
        cls,
        rbac_service: "RBACService",
        settings: Optional[RBACSettings] = None
    ) -> "RedisInvalidationBroadcaster":
        """Build a broadcaster from ``redis_url`` and ``invalidation_channel``.

        Raises:
            ConfigurationError: If no Redis URL is configured
        """
        settings = settings or get_rbac_settings()
        if not settings.redis_url:
            raise ConfigurationError(
                "Redis URL is required for cross-instance invalidation",
                details={"setting": "BOOKING_RBAC_REDIS_URL"}
            )
        return cls(
            create_redis_client(settings.redis_url),
            rbac_service,
            channel=settings.invalidation_channel
        )

    @property
    def node_id(self) -> str:
        return self._node_id

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Subscribe to the channel, start listening and hook into role changes."""
        if self._running:
            return

        self._pubsub = self._redis.pubsub()
        await self._pubsub.subscribe(self._channel)
        self._listener_task = asyncio.create_task(self._listen_loop())
        self._rbac_service.on_invalidate = self.publish_users
        self._rbac_service.on_reset = self.publish_all
        self._running = True
        logger.info(f"Listening for RBAC invalidations on {self._channel} as node {self._node_id}")

    async def stop(self) -> None:
        """Stop listening and unsubscribe."""
        self._running = False

        if self._rbac_service.on_invalidate == self.publish_users:
            self._rbac_service.on_invalidate = None
        if self._rbac_service.on_reset == self.publish_all:
            self._rbac_service.on_reset = None

        if self._listener_task is not None:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None

        if self._pubsub is not None:
            await self._pubsub.unsubscribe(self._channel)
            await self._pubsub.aclose()
            self._pubsub = None

    async def publish_user(self, user_id: str) -> None:
        """Tell other instances to drop one user's cache entry."""
        await self._publish({"type": MESSAGE_USER, "user_id": user_id})

    async def publish_users(self, user_ids: Iterable[str]) -> None:
        for user_id in user_ids:
            await self.publish_user(user_id)

    async def publish_all(self) -> None:
        """Tell other instances to clear their whole cache."""
        await self._publish({"type": MESSAGE_ALL})

    async def _publish(self, message: Dict[str, Any]) -> None:
        message["source_node"] = self._node_id
        await self._redis.publish(self._channel, json.dumps(message))

    async def _listen_loop(self) -> None:
        while True:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=1.0
                )
                if message is not None:
                    self.handle_message(message.get("data"))
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"RBAC invalidation listener error: {e}")
                await asyncio.sleep(1.0)

    def handle_message(self, data: Any) -> bool:
        """Apply one raw pub/sub payload to the local cache.

        Returns:
            True if the message was applied
        """
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")

        try:
            message = json.loads(data)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed RBAC invalidation message: {data!r}")
            return False

        if not isinstance(message, dict) or message.get("source_node") == self._node_id:
            return False

        message_type = message.get("type")
        if message_type == MESSAGE_ALL:
            self._rbac_service.clear_all_cache()
            return True

        if message_type == MESSAGE_USER:
            try:
                self._rbac_service.clear_user_cache(message.get("user_id"))
            except ValidationError:
                logger.warning(f"Ignoring RBAC invalidation with bad user ID: {message!r}")
                return False
            return True

        logger.warning(f"Ignoring unknown RBAC invalidation type: {message_type!r}")
        return False
