"""
Name-based lookup of fault tolerant queue endpoints.

The registry is filled once at startup, one consumer, producer and router
processor decorator per configured client, and sealed. After that it is a
plain read-only mapping and safe to share between tasks and threads.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from fault_tolerance.core.config import BreakerScope, ClientConfig, Settings
from fault_tolerance.core.config import settings as default_settings
from fault_tolerance.transport.base import QueueClient
from fault_tolerance.utils.copier import SupportsCopy
from fault_tolerance.utils.error_handler import (
    ConfigurationError,
    NotFoundError,
    RegistryError,
)
from fault_tolerance.utils.logger import configure_logging, get_logger
from fault_tolerance.utils.resilience.circuit_breaker import (
    CircuitBreaker,
    SupportsCircuitBreaker,
)
from fault_tolerance.utils.resilience.retry import RetryPolicy

from .base import EndpointKind, FaultTolerantEndpoint, endpoint_key
from .consumer import FaultTolerantConsumer
from .producer import FaultTolerantProducer
from .router import FaultTolerantRouterProcessor

logger = get_logger(__name__)

SHARED_BREAKER_NAME = "enqueue"

BreakerFactory = Callable[[str], SupportsCircuitBreaker]


class ClientRegistry:
    """Maps `{client}.{kind}` keys to decorated endpoints."""

    def __init__(self) -> None:
        self._entries: Dict[str, FaultTolerantEndpoint] = {}
        self._wrapped: Dict[int, str] = {}
        self._sealed = False

    def register(self, key: str, endpoint: FaultTolerantEndpoint) -> None:
        if self._sealed:
            raise RegistryError(f"Registry is sealed; cannot register '{key}'")
        if key in self._entries:
            raise RegistryError(
                f"Duplicate registry key '{key}'", technical_details={"key": key}
            )
        wrapped = id(endpoint.endpoint)
        if wrapped in self._wrapped:
            raise RegistryError(
                f"Endpoint for '{key}' is already wrapped as '{self._wrapped[wrapped]}'",
                technical_details={"key": key, "existing": self._wrapped[wrapped]},
            )
        self._entries[key] = endpoint
        self._wrapped[wrapped] = key

    def seal(self) -> "ClientRegistry":
        self._sealed = True
        return self

    @property
    def sealed(self) -> bool:
        return self._sealed

    def resolve(self, key: str) -> FaultTolerantEndpoint:
        try:
            return self._entries[key]
        except KeyError:
            raise NotFoundError(key) from None

    def consumer(self, client: str) -> FaultTolerantConsumer:
        return self.resolve(endpoint_key(client, EndpointKind.CONSUMER))

    def producer(self, client: str) -> FaultTolerantProducer:
        return self.resolve(endpoint_key(client, EndpointKind.PRODUCER))

    def router_processor(self, client: str) -> FaultTolerantRouterProcessor:
        return self.resolve(endpoint_key(client, EndpointKind.ROUTER_PROCESSOR))

    def keys(self) -> List[str]:
        return list(self._entries)

    def items(self) -> Iterator[tuple[str, FaultTolerantEndpoint]]:
        return iter(self._entries.items())

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def build_registry(
    configs: Iterable[ClientConfig],
    clients: Mapping[str, QueueClient],
    *,
    breaker_scope: BreakerScope = BreakerScope.SHARED,
    breaker: Optional[SupportsCircuitBreaker] = None,
    breaker_factory: Optional[BreakerFactory] = None,
    retry_policy: Optional[RetryPolicy] = None,
    copier: Optional[SupportsCopy] = None,
    **endpoint_options: Any,
) -> ClientRegistry:
    """
    Build and seal a registry with three decorators per configured client.

    Args:
        configs: One ClientConfig per client to decorate.
        clients: Underlying queue clients by name.
        breaker_scope: SHARED uses one breaker for everything; PER_CLIENT
            creates one breaker per client through `breaker_factory`.
        breaker: The shared breaker (SHARED scope only).
        breaker_factory: Creates a breaker from a name. Defaults to the
            settings-driven CircuitBreaker.
        retry_policy: Backoff between attempts, shared by all endpoints.
        copier: Copy capability for producers.
        endpoint_options: Extra keyword arguments for every decorator
            (e.g. `clock`, `sleep`).

    Raises:
        ConfigurationError: A config names a client that does not exist, or a
            shared breaker is passed together with PER_CLIENT scope.
    """
    breaker_scope = BreakerScope(breaker_scope)
    if breaker_scope is BreakerScope.PER_CLIENT and breaker is not None:
        raise ConfigurationError(
            "A shared breaker instance cannot be used with per-client breaker scope"
        )
    factory = breaker_factory or (
        lambda name: CircuitBreaker.from_settings(name, default_settings)
    )
    shared = None
    if breaker_scope is BreakerScope.SHARED:
        shared = breaker or factory(SHARED_BREAKER_NAME)

    registry = ClientRegistry()
    for config in configs:
        client = clients.get(config.name)
        if client is None:
            raise ConfigurationError(
                f"No queue client named '{config.name}'",
                technical_details={"available": sorted(clients)},
            )
        client_breaker = shared if shared is not None else factory(config.name)

        registry.register(
            endpoint_key(config.name, EndpointKind.CONSUMER),
            FaultTolerantConsumer(
                client.consumer,
                client_breaker,
                config,
                retry_policy=retry_policy,
                **endpoint_options,
            ),
        )
        registry.register(
            endpoint_key(config.name, EndpointKind.PRODUCER),
            FaultTolerantProducer(
                client.producer,
                client_breaker,
                config,
                retry_policy=retry_policy,
                copier=copier,
                **endpoint_options,
            ),
        )
        registry.register(
            endpoint_key(config.name, EndpointKind.ROUTER_PROCESSOR),
            FaultTolerantRouterProcessor(
                client.router_processor,
                client_breaker,
                config,
                retry_policy=retry_policy,
                **endpoint_options,
            ),
        )
        logger.info(
            "fault_tolerant_client_registered",
            client=config.name,
            retry_timeout_s=config.retry_timeout,
            retry_attempts=config.retry_attempts,
            breaker_scope=breaker_scope.value,
        )

    return registry.seal()


def bootstrap(
    clients: Union[Mapping[str, QueueClient], Iterable[QueueClient]],
    settings: Optional[Settings] = None,
    *,
    setup_logging: bool = False,
    **options: Any,
) -> ClientRegistry:
    """
    Build the registry from settings.

    When ENQUEUE_ENABLED is off, nothing is decorated and an empty sealed
    registry is returned. Without an explicit ENQUEUE_CLIENTS list every
    given client is decorated. With `setup_logging` the process-wide
    structlog configuration is applied first, from APP_ENV and LOG_LEVEL.
    """
    settings = settings or default_settings
    if setup_logging:
        configure_logging(settings.APP_ENV, settings.LOG_LEVEL)
    if not isinstance(clients, Mapping):
        clients = {client.name: client for client in clients}

    if not settings.ENQUEUE_ENABLED:
        logger.info("fault_tolerance_disabled", available=sorted(clients))
        return ClientRegistry().seal()

    options.setdefault(
        "breaker_factory", lambda name: CircuitBreaker.from_settings(name, settings)
    )
    options.setdefault("retry_policy", RetryPolicy.from_settings(settings))
    return build_registry(
        settings.client_configs(clients),
        clients,
        breaker_scope=settings.CIRCUIT_BREAKER_SCOPE,
        **options,
    )
