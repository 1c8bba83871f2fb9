"""In-process queue client backed by asyncio queues."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from fault_tolerance.utils.logger import get_logger

from .base import (
    Handler,
    Message,
    RouteResult,
    TopicRouter,
    call_handler,
    stamp_delivery,
)

logger = get_logger(__name__)


class InMemoryProducer:
    def __init__(self, queue: asyncio.Queue) -> None:
        self._queue = queue

    async def send(self, message: Message) -> str:
        stamp_delivery(message)
        await self._queue.put(message)
        return message.message_id


class InMemoryConsumer:
    def __init__(self, queue: asyncio.Queue, receive_timeout: Optional[float] = None) -> None:
        self._queue = queue
        self._receive_timeout = receive_timeout

    async def _receive(self) -> Optional[Message]:
        if self._receive_timeout is None:
            try:
                return self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return None
        try:
            return await asyncio.wait_for(self._queue.get(), self._receive_timeout)
        except asyncio.TimeoutError:
            return None

    async def consume(self, handler: Optional[Handler] = None) -> Any:
        message = await self._receive()
        if message is None or handler is None:
            return message
        try:
            return await call_handler(handler, message)
        except BaseException:
            # Failed or cancelled handler: requeue so the message is delivered again
            self._queue.put_nowait(message)
            logger.warning("memory_message_requeued", message_id=message.message_id)
            raise


class InMemoryRouterProcessor:
    """Routes by topic to in-process handlers."""

    def __init__(self, routes: Optional[Dict[str, Handler]] = None) -> None:
        self.router = TopicRouter(routes)

    def add_route(self, topic: str, handler: Handler) -> None:
        self.router.add_route(topic, handler)

    async def route(self, message: Message) -> RouteResult:
        handler = self.router.resolve(message)
        result = await call_handler(handler, message)
        return RouteResult(
            topic=message.topic,
            destination=getattr(handler, "__name__", repr(handler)),
            result=result,
        )


class InMemoryQueueClient:
    """A named queue client whose three endpoints share one asyncio queue."""

    def __init__(
        self,
        name: str,
        routes: Optional[Dict[str, Handler]] = None,
        receive_timeout: Optional[float] = None,
    ) -> None:
        self.name = name
        self.queue: asyncio.Queue = asyncio.Queue()
        self.consumer = InMemoryConsumer(self.queue, receive_timeout=receive_timeout)
        self.producer = InMemoryProducer(self.queue)
        self.router_processor = InMemoryRouterProcessor(routes)

    async def depth(self) -> int:
        return self.queue.qsize()
