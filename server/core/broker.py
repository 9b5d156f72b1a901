"""Redis connection used as the job-queue broker.

Redis is optional: when it is disabled, unreachable or lacks Streams support
the queue falls back to its in-process backend.
"""

import json
from typing import Any, Dict, List, Optional

import redis.asyncio as redis

from core.config import Settings
from core.logging import get_logger

logger = get_logger(__name__)


class RedisBroker:
    """Async Redis client wrapper with startup checks and Stream helpers."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.redis: Optional[redis.Redis] = None
        self.use_redis = settings.redis_enabled and bool(settings.redis_url)
        self._streams_available = False

    async def startup(self):
        """Connect to Redis when enabled."""
        if not self.use_redis:
            logger.info("Redis disabled, job queue will run in memory",
                        redis_enabled=self.settings.redis_enabled)
            return

        try:
            self.redis = redis.from_url(
                self.settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True
            )
            await self.redis.ping()
            logger.info("Redis broker initialized", url=self.settings.redis_url)
            await self._check_streams_support()

        except Exception as e:
            logger.warning("Redis connection failed, falling back to memory", error=str(e))
            self.use_redis = False
            self.redis = None

    async def _check_streams_support(self):
        """Check if Redis supports Streams (XADD/XREADGROUP).

        Some Redis-compatible services don't support Streams, so this is
        tested once at startup instead of failing on the first job.
        """
        test_stream = f"_{self.settings.queue_name}_streams_test"
        try:
            msg_id = await self.redis.xadd(test_stream, {"test": "1"}, maxlen=1)
            await self.redis.delete(test_stream)
            self._streams_available = bool(msg_id)
        except Exception as e:
            self._streams_available = False
            logger.warning("Redis Streams check failed", error=str(e))

        if self._streams_available:
            logger.info("Redis Streams available for job queue")

    async def shutdown(self):
        """Close broker connections."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Redis broker connections closed")

    def is_redis_available(self) -> bool:
        """Check if Redis is available and connected."""
        return self.use_redis and self.redis is not None

    def is_streams_available(self) -> bool:
        """True only if Redis is connected AND supports Streams commands."""
        return self.is_redis_available() and self._streams_available

    # ============================================================================
    # Redis Streams
    # ============================================================================

    async def stream_add(self, stream: str, data: Dict[str, Any],
                         maxlen: Optional[int] = 10000) -> Optional[str]:
        """Add message to a Redis Stream. Returns the message ID.

        ``maxlen=None`` disables trimming.
        """
        serialized = {k: json.dumps(v) if isinstance(v, (dict, list)) else str(v)
                      for k, v in data.items()}
        msg_id = await self.redis.xadd(stream, serialized, maxlen=maxlen, approximate=True)
        logger.debug("Stream add", stream=stream, msg_id=msg_id)
        return msg_id

    async def stream_create_group(self, stream: str, group: str, start_id: str = '0') -> bool:
        """Create consumer group for stream. True if created or already exists."""
        try:
            await self.redis.xgroup_create(stream, group, start_id, mkstream=True)
            logger.info("Created consumer group", stream=stream, group=group)
        except redis.ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise
        return True

    async def stream_read_group(
        self,
        group: str,
        consumer: str,
        streams: Dict[str, str],
        count: int = 1,
        block: Optional[int] = None
    ) -> List[Any]:
        """Read from streams using a consumer group ('>' for new messages)."""
        result = await self.redis.xreadgroup(group, consumer, streams, count=count, block=block)
        return result or []

    async def stream_ack(self, stream: str, group: str, *msg_ids: str) -> int:
        """Acknowledge and delete messages handled by a consumer group."""
        if not msg_ids:
            return 0
        count = await self.redis.xack(stream, group, *msg_ids)
        await self.redis.xdel(stream, *msg_ids)
        return count

    async def stream_autoclaim(
        self,
        stream: str,
        group: str,
        consumer: str,
        min_idle_ms: int,
        count: int = 1
    ) -> List[Any]:
        """Claim pending messages idle for at least ``min_idle_ms``.

        Returns ``(msg_id, fields)`` pairs; entries deleted from the stream
        come back with empty fields.
        """
        result = await self.redis.xautoclaim(
            stream, group, consumer, min_idle_ms, start_id="0-0", count=count
        )
        return result[1] if result else []

    async def stream_pending_count(self, stream: str, group: str) -> int:
        """Messages delivered to the group but not yet acknowledged."""
        summary = await self.redis.xpending(stream, group)
        return summary.get("pending", 0) if summary else 0
