from __future__ import annotations

from enum import Enum

from fault_tolerance.transport.base import Message, RouteResult, RouterProcessor
from fault_tolerance.utils.error_handler import (
    ErrorCategory,
    RouteFailedError,
    RouteNotFoundError,
)
from fault_tolerance.utils.logger import ROUTER_CHANNEL

from .base import EndpointKind, FaultTolerantEndpoint
from .monitoring import endpoint_metrics


class RouteFailureKind(str, Enum):
    ROUTING = "routing"  # no matching route; retrying cannot change the route table
    DISPATCH = "dispatch"  # the chosen downstream failed


def classify_route_error(exc: BaseException) -> RouteFailureKind:
    """Unclassifiable errors count as dispatch failures and are retried."""
    if isinstance(exc, RouteNotFoundError):
        return RouteFailureKind.ROUTING
    return RouteFailureKind.DISPATCH


class FaultTolerantRouterProcessor(FaultTolerantEndpoint):
    """Fault tolerant wrapper around a router processor."""

    kind = EndpointKind.ROUTER_PROCESSOR
    channel = ROUTER_CHANNEL
    failed_error = RouteFailedError

    _endpoint: RouterProcessor

    def _is_retryable(self, exc: Exception) -> bool:
        return classify_route_error(exc) is RouteFailureKind.DISPATCH

    def _not_retryable(self, exc: Exception, attempts: int, elapsed: float) -> Exception:
        self._log.error(
            "endpoint_route_not_found",
            attempts=attempts,
            topic=getattr(exc, "topic", None),
            error=str(exc),
        )
        endpoint_metrics.inc_outcome(self._config.name, self.kind.value, "no_route")
        return RouteFailedError(
            client=self._config.name,
            endpoint=self.kind.value,
            attempts=attempts,
            elapsed=elapsed,
            last_error=exc,
            category=ErrorCategory.ROUTING,
        )

    async def route(self, message: Message) -> RouteResult:
        return await self._execute(lambda: self._endpoint.route(message))
