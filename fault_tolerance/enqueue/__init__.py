"""
Fault tolerant decorators for queue consumers, producers and router processors.

Obtain decorated endpoints by client name from a `ClientRegistry`, built at
startup with `bootstrap()` or `build_registry()`. Logging is configured by
the host application through `fault_tolerance.utils.logger.configure_logging`,
or by passing `bootstrap(..., setup_logging=True)`.
"""

from .base import EndpointKind, FaultTolerantEndpoint, endpoint_key
from .consumer import FaultTolerantConsumer
from .producer import FaultTolerantProducer
from .registry import ClientRegistry, bootstrap, build_registry
from .router import FaultTolerantRouterProcessor, RouteFailureKind, classify_route_error

__all__ = [
    "EndpointKind",
    "FaultTolerantEndpoint",
    "FaultTolerantConsumer",
    "FaultTolerantProducer",
    "FaultTolerantRouterProcessor",
    "RouteFailureKind",
    "classify_route_error",
    "ClientRegistry",
    "build_registry",
    "bootstrap",
    "endpoint_key",
]
