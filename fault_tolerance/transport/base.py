"""
Queue transport interfaces.

A queue client exposes three endpoints: a consumer, a producer and a router
processor. The fault tolerant decorators call exactly `consume`, `send` and
`route` on them and nothing else.
"""

from __future__ import annotations

import inspect
import json
import uuid
from dataclasses import asdict, dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

from fault_tolerance.utils.error_handler import RouteNotFoundError, TransportError

Handler = Callable[["Message"], Union[Any, Awaitable[Any]]]


@dataclass
class Message:
    """A queue message. Transports may stamp headers and properties on send."""

    body: Any
    headers: Dict[str, Any] = field(default_factory=dict)
    properties: Dict[str, Any] = field(default_factory=dict)
    topic: Optional[str] = None
    message_id: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @staticmethod
    def from_json(data: Union[str, bytes]) -> "Message":
        try:
            o = json.loads(data)
        except (TypeError, ValueError) as exc:
            raise TransportError(f"Malformed message payload: {exc}") from exc
        if not isinstance(o, dict):
            raise TransportError("Malformed message payload: expected a JSON object")
        return Message(
            body=o.get("body"),
            headers=o.get("headers") or {},
            properties=o.get("properties") or {},
            topic=o.get("topic"),
            message_id=o.get("message_id"),
        )


def stamp_delivery(message: Message) -> Message:
    """Stamp delivery metadata the way brokers do on publish."""
    if message.message_id is None:
        message.message_id = uuid.uuid4().hex
    message.headers["attempt"] = int(message.headers.get("attempt", 0)) + 1
    return message


async def call_handler(handler: Handler, message: Message) -> Any:
    """Run a sync or async handler."""
    result = handler(message)
    if inspect.isawaitable(result):
        result = await result
    return result


@dataclass
class RouteResult:
    topic: Optional[str]
    destination: str
    result: Any = None


@runtime_checkable
class QueueConsumer(Protocol):
    async def consume(self, handler: Optional[Handler] = None) -> Any:
        """Receive one message; run `handler` on it when given.

        Returns the handler result, or the message itself without a handler,
        or None when nothing is waiting. Acknowledge/requeue is up to the
        implementation.
        """
        ...


@runtime_checkable
class QueueProducer(Protocol):
    async def send(self, message: Message) -> Any: ...


@runtime_checkable
class RouterProcessor(Protocol):
    async def route(self, message: Message) -> RouteResult: ...


@runtime_checkable
class QueueClient(Protocol):
    name: str
    consumer: QueueConsumer
    producer: QueueProducer
    router_processor: RouterProcessor


class TopicRouter:
    """
    Topic -> destination table shared by the bundled router processors.

    Raises RouteNotFoundError when no destination matches, so the decorator
    can tell a routing failure from a dispatch failure.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None) -> None:
        self._routes: Dict[str, Any] = dict(routes or {})

    def add_route(self, topic: str, destination: Any) -> None:
        self._routes[topic] = destination

    def resolve(self, message: Message) -> Any:
        if message.topic is None or message.topic not in self._routes:
            raise RouteNotFoundError(message.topic)
        return self._routes[message.topic]

    @property
    def topics(self) -> list[str]:
        return list(self._routes)
