"""
Queue transports consumed by the fault tolerant decorators.

`InMemoryQueueClient` keeps everything in process; `RedisQueueClient` stores
messages in Redis lists.
"""

from .base import (
    Handler,
    Message,
    QueueClient,
    QueueConsumer,
    QueueProducer,
    RouteResult,
    RouterProcessor,
    TopicRouter,
)
from .memory import InMemoryQueueClient
from .redis_lists import RedisQueueClient

__all__ = [
    "Handler",
    "Message",
    "RouteResult",
    "QueueClient",
    "QueueConsumer",
    "QueueProducer",
    "RouterProcessor",
    "TopicRouter",
    "InMemoryQueueClient",
    "RedisQueueClient",
]
