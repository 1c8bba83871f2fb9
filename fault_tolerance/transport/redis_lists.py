from __future__ import annotations

from typing import Any, Dict, Optional

import redis.asyncio as redis

from fault_tolerance.core.config import Settings, settings as default_settings
from fault_tolerance.utils.error_handler import TransportError
from fault_tolerance.utils.logger import get_logger

from .base import Handler, Message, RouteResult, TopicRouter, call_handler, stamp_delivery

logger = get_logger(__name__)


class _RedisConnection:
    """Lazily created shared Redis connection for one queue client."""

    def __init__(self, redis_client: Optional[redis.Redis], settings: Settings) -> None:
        self._redis = redis_client
        self._settings = settings

    async def client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(
                self._settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis


class RedisProducer:
    """Publishes JSON messages with LPUSH onto `{prefix}:{client}`."""

    def __init__(self, connection: _RedisConnection, key: str) -> None:
        self._connection = connection
        self.key = key

    async def send(self, message: Message) -> str:
        stamp_delivery(message)
        client = await self._connection.client()
        try:
            await client.lpush(self.key, message.to_json())
        except redis.RedisError as exc:
            raise TransportError(f"LPUSH to {self.key} failed: {exc}") from exc
        return message.message_id


class RedisConsumer:
    """
    Pops the oldest message (RPOP) and runs the handler on it.

    A failing or cancelled handler pushes the raw payload back with RPUSH so it
    is the next one delivered. Payloads that cannot be decoded are moved to
    `{key}:dead`.
    """

    def __init__(self, connection: _RedisConnection, key: str) -> None:
        self._connection = connection
        self.key = key
        self.dead_key = f"{key}:dead"

    async def consume(self, handler: Optional[Handler] = None) -> Any:
        client = await self._connection.client()
        try:
            data = await client.rpop(self.key)
        except redis.RedisError as exc:
            raise TransportError(f"RPOP from {self.key} failed: {exc}") from exc
        if not data:
            return None

        try:
            message = Message.from_json(data)
        except TransportError:
            await self._dead_letter(client, data)
            raise
        if handler is None:
            return message
        try:
            return await call_handler(handler, message)
        except BaseException as exc:
            await self._requeue(client, data, message, exc)
            raise

    async def _requeue(
        self, client: redis.Redis, data: str, message: Message, cause: BaseException
    ) -> None:
        try:
            await client.rpush(self.key, data)
        except redis.RedisError as exc:
            logger.error(
                "redis_requeue_failed",
                queue=self.key,
                message_id=message.message_id,
                payload=data,
                error=str(exc),
            )
            # Cancellation keeps propagating as is
            if isinstance(cause, Exception):
                raise TransportError(f"Requeue to {self.key} failed: {exc}") from exc
            return
        logger.warning(
            "redis_message_requeued", queue=self.key, message_id=message.message_id
        )

    async def _dead_letter(self, client: redis.Redis, data: str) -> None:
        try:
            await client.lpush(self.dead_key, data)
        except redis.RedisError as exc:
            logger.error(
                "redis_dead_letter_failed", queue=self.key, payload=data, error=str(exc)
            )
            return
        logger.error("redis_message_dead_lettered", queue=self.key, dead_queue=self.dead_key)


class RedisRouterProcessor:
    """Forwards a message to the queue bound to its topic."""

    def __init__(
        self,
        connection: _RedisConnection,
        key_prefix: str,
        routes: Optional[Dict[str, str]] = None,
    ) -> None:
        self._connection = connection
        self._key_prefix = key_prefix
        self.router = TopicRouter(routes)

    def add_route(self, topic: str, queue_name: str) -> None:
        self.router.add_route(topic, queue_name)

    async def route(self, message: Message) -> RouteResult:
        queue_name = self.router.resolve(message)
        key = f"{self._key_prefix}:{queue_name}"
        client = await self._connection.client()
        try:
            length = await client.lpush(key, message.to_json())
        except redis.RedisError as exc:
            raise TransportError(f"Dispatch to {key} failed: {exc}") from exc
        return RouteResult(topic=message.topic, destination=key, result=length)


class RedisQueueClient:
    """A named queue client on top of Redis lists."""

    def __init__(
        self,
        name: str,
        redis_client: Optional[redis.Redis] = None,
        routes: Optional[Dict[str, str]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or default_settings
        self.name = name
        self.key = f"{settings.REDIS_QUEUE_PREFIX}:{name}"
        self._connection = _RedisConnection(redis_client, settings)
        self.consumer = RedisConsumer(self._connection, self.key)
        self.producer = RedisProducer(self._connection, self.key)
        self.router_processor = RedisRouterProcessor(
            self._connection, settings.REDIS_QUEUE_PREFIX, routes
        )

    async def depth(self) -> int:
        """Number of messages waiting in this client's queue."""
        client = await self._connection.client()
        return await client.llen(self.key)
