from __future__ import annotations

from typing import Any, Optional

from fault_tolerance.transport.base import Handler, QueueConsumer
from fault_tolerance.utils.error_handler import ConsumeFailedError
from fault_tolerance.utils.logger import CONSUMER_CHANNEL

from .base import EndpointKind, FaultTolerantEndpoint


class FaultTolerantConsumer(FaultTolerantEndpoint):
    """
    Fault tolerant wrapper around a queue consumer.

    Acknowledge and requeue stay with the wrapped consumer; this class only
    decides whether to call it again.
    """

    kind = EndpointKind.CONSUMER
    channel = CONSUMER_CHANNEL
    failed_error = ConsumeFailedError

    _endpoint: QueueConsumer

    async def consume_once(self) -> Any:
        """Receive a single message without a handler."""
        return await self._execute(lambda: self._endpoint.consume())

    async def consume(self, handler: Optional[Handler] = None) -> Any:
        """Receive a single message and run `handler` on it through the wrapped consumer."""
        if handler is None:
            return await self.consume_once()
        return await self._execute(lambda: self._endpoint.consume(handler))
