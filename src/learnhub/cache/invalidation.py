"""Distributed L1 invalidation for horizontal scaling.

Uses Redis Pub/Sub to broadcast invalidation patterns across all LearnHub
instances. The writing instance has already cleared both tiers locally;
every other instance receives the pattern and purges its own L1. Redis
(L2) is shared, so subscribers never touch it.

Delivery is at-least-once and purging is idempotent. An instance skips
messages it published itself.

Example:
    broadcaster = CacheInvalidationBroadcaster(instance_id="a1b2c3d4")
    broadcaster.add_handler(LocalCacheInvalidator(cache).handle_invalidation)
    await broadcaster.start()

    await broadcaster.publish("courses:list:*")
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Awaitable, Callable, cast

import orjson

from learnhub.cache.redis import get_redis
from learnhub.config import settings

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from redis.asyncio.client import PubSub

    from learnhub.cache.service import TwoTierCache

logger = logging.getLogger(__name__)

# Back-off between resubscribe attempts after a dropped connection
RESUBSCRIBE_DELAY = 1.0


@dataclass
class InvalidationMessage:
    """Pattern purge announced to every instance."""

    key_pattern: str
    source_instance: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: str | None = None

    def to_bytes(self) -> bytes:
        """Wire form published on the channel."""
        return orjson.dumps(
            {
                "key_pattern": self.key_pattern,
                "source_instance": self.source_instance,
                "timestamp": self.timestamp,
                "correlation_id": self.correlation_id,
            }
        )

    @classmethod
    def from_bytes(cls, data: bytes | str) -> "InvalidationMessage":
        """Parse a payload received from the channel."""
        parsed = orjson.loads(data)
        return cls(
            key_pattern=parsed["key_pattern"],
            source_instance=parsed["source_instance"],
            timestamp=datetime.fromisoformat(parsed["timestamp"]),
            correlation_id=parsed.get("correlation_id"),
        )


# Called once per message received from another instance
InvalidationHandler = Callable[[InvalidationMessage], Awaitable[None]]


class CacheInvalidationBroadcaster:
    """Publishes and receives invalidation patterns via Redis Pub/Sub.

    When started, it will:
    1. Subscribe to the invalidation channel
    2. Skip messages this instance published
    3. Call registered handlers for every other message

    A dropped subscription is re-established after a short delay, so the
    listener keeps running for the lifetime of the application.
    """

    def __init__(
        self,
        instance_id: str | None = None,
        channel: str | None = None,
        client: Redis | None = None,
    ):
        self.instance_id = instance_id or settings.instance_id
        self.channel = channel or settings.cache_invalidation_channel
        self._handlers: list[InvalidationHandler] = []
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._pubsub: PubSub | None = None
        self._redis: Redis | None = client
        self.received = 0
        self.skipped_own = 0

    @property
    def running(self) -> bool:
        return self._running

    async def _get_redis(self) -> Redis:
        """Client used for both publishing and the subscription."""
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    def add_handler(self, handler: InvalidationHandler) -> None:
        """Add a coroutine called for every message from a peer."""
        self._handlers.append(handler)
        handler_name = getattr(handler, "__name__", handler.__class__.__name__)
        logger.info("Registered invalidation handler: %s", handler_name)

    async def start(self) -> None:
        """Subscribe and spawn the listener task."""
        if self._running:
            return

        await self._subscribe()
        self._running = True
        self._task = asyncio.create_task(self._listen_loop())
        logger.info(
            "Started cache invalidation listener on channel %s (instance %s)",
            self.channel,
            self.instance_id,
        )

    async def stop(self) -> None:
        """Cancel the listener task and drop the subscription."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        await self._close_pubsub()
        logger.info("Stopped cache invalidation listener")

    async def _subscribe(self) -> None:
        redis = await self._get_redis()
        self._pubsub = redis.pubsub()
        await self._pubsub.subscribe(self.channel)

    async def _close_pubsub(self) -> None:
        if self._pubsub is None:
            return
        pubsub, self._pubsub = self._pubsub, None
        try:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
        except Exception as e:
            logger.debug("Error closing invalidation subscription: %s", e)

    async def _listen_loop(self) -> None:
        """Receive messages until stopped, resubscribing after errors."""
        while self._running:
            try:
                if self._pubsub is None:
                    await self._subscribe()
                    logger.info("Resubscribed to %s", self.channel)

                assert self._pubsub is not None
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )

                if message is None:
                    continue

                if message["type"] == "message":
                    await self._handle_message(message["data"])

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in invalidation listener: %s", e)
                await self._close_pubsub()
                await asyncio.sleep(RESUBSCRIBE_DELAY)

    async def _handle_message(self, data: bytes) -> None:
        """Decode one payload and fan it out to the handlers."""
        try:
            msg = InvalidationMessage.from_bytes(data)
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.error("Failed to parse invalidation message: %s", e)
            return

        if msg.source_instance == self.instance_id:
            self.skipped_own += 1
            return

        self.received += 1
        logger.debug(
            "Received invalidation %s from %s (correlation_id=%s)",
            msg.key_pattern,
            msg.source_instance,
            msg.correlation_id,
        )
        for handler in self._handlers:
            try:
                await handler(msg)
            except Exception as e:
                logger.error("Invalidation handler failed: %s", e)

    async def publish(self, pattern: str, correlation_id: str | None = None) -> int:
        """Publish an invalidation pattern to all instances.

        Returns the number of subscribers that received the message.
        """
        message = InvalidationMessage(
            key_pattern=pattern,
            source_instance=self.instance_id,
            correlation_id=correlation_id,
        )
        redis = await self._get_redis()
        count = cast(int, await redis.publish(self.channel, message.to_bytes()))
        logger.debug("Published invalidation %s to %d subscribers", pattern, count)
        return count


class LocalCacheInvalidator:
    """Purges this instance's L1 in response to broadcast messages."""

    def __init__(self, cache: TwoTierCache):
        self.cache = cache

    async def handle_invalidation(self, message: InvalidationMessage) -> None:
        removed = self.cache.invalidate_local_l1(message.key_pattern, origin="remote")
        logger.debug("Purged %d L1 entries for %s", removed, message.key_pattern)


# Singleton instance for application use
_broadcaster: CacheInvalidationBroadcaster | None = None


def get_invalidation_broadcaster() -> CacheInvalidationBroadcaster | None:
    """The running broadcaster, if cache invalidation has been started."""
    return _broadcaster


async def start_cache_invalidation(cache: TwoTierCache) -> CacheInvalidationBroadcaster:
    """Wire the broadcaster to ``cache`` and start listening."""
    global _broadcaster

    if _broadcaster is None:
        _broadcaster = CacheInvalidationBroadcaster()
        _broadcaster.add_handler(LocalCacheInvalidator(cache).handle_invalidation)
    cache.attach_publisher(_broadcaster)
    await _broadcaster.start()
    return _broadcaster


async def stop_cache_invalidation(cache: TwoTierCache | None = None) -> None:
    """Detach the publisher and stop the shared listener."""
    global _broadcaster
    if cache is not None:
        cache.attach_publisher(None)
    if _broadcaster:
        await _broadcaster.stop()
        _broadcaster = None
