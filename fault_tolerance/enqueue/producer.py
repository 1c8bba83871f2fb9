from __future__ import annotations

from typing import Any, Optional

from fault_tolerance.core.config import ClientConfig
from fault_tolerance.transport.base import Message, QueueProducer
from fault_tolerance.utils.copier import DeepCopier, SupportsCopy
from fault_tolerance.utils.error_handler import SendFailedError
from fault_tolerance.utils.logger import PRODUCER_CHANNEL
from fault_tolerance.utils.resilience.circuit_breaker import SupportsCircuitBreaker

from .base import EndpointKind, FaultTolerantEndpoint


class FaultTolerantProducer(FaultTolerantEndpoint):
    """
    Fault tolerant wrapper around a queue producer.

    Every attempt sends a fresh copy of the caller's message. Transports stamp
    delivery metadata on what they send, so one attempt's stamps never leak
    into the next and the caller's object is left untouched.
    """

    kind = EndpointKind.PRODUCER
    channel = PRODUCER_CHANNEL
    failed_error = SendFailedError

    _endpoint: QueueProducer

    def __init__(
        self,
        endpoint: QueueProducer,
        breaker: SupportsCircuitBreaker,
        config: ClientConfig,
        *,
        copier: Optional[SupportsCopy] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(endpoint, breaker, config, **kwargs)
        self._copier = copier or DeepCopier()

    async def send(self, message: Message) -> Any:
        async def attempt() -> Any:
            return await self._endpoint.send(self._copier.copy(message))

        return await self._execute(attempt)
