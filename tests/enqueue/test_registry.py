import pytest

from fault_tolerance.core.config import BreakerScope, ClientConfig, Settings
from fault_tolerance.enqueue import (
    ClientRegistry,
    FaultTolerantConsumer,
    FaultTolerantProducer,
    FaultTolerantRouterProcessor,
    bootstrap,
    build_registry,
)
from fault_tolerance.transport import InMemoryQueueClient, Message
from fault_tolerance.utils.error_handler import (
    ConfigurationError,
    NotFoundError,
    RegistryError,
)
from fault_tolerance.utils.resilience.circuit_breaker import CircuitBreaker


@pytest.fixture
def clients():
    return {
        "clientA": InMemoryQueueClient("clientA"),
        "clientB": InMemoryQueueClient("clientB"),
    }


@pytest.fixture
def configs():
    return [
        ClientConfig(name="clientA", retry_timeout=1.0),
        ClientConfig(name="clientB", retry_timeout=2.0, retry_attempts=3),
    ]


def test_resolve_returns_decorator_bound_to_client(clients, configs):
    registry = build_registry(configs, clients, breaker=CircuitBreaker(name="shared"))

    producer = registry.resolve("clientA.producer")

    assert isinstance(producer, FaultTolerantProducer)
    assert producer.endpoint is clients["clientA"].producer
    assert producer.config.name == "clientA"
    assert isinstance(registry.resolve("clientB.consumer"), FaultTolerantConsumer)
    assert isinstance(
        registry.resolve("clientB.router_processor"), FaultTolerantRouterProcessor
    )


def test_unknown_key_raises_not_found(clients, configs):
    registry = build_registry(configs, clients, breaker=CircuitBreaker(name="shared"))

    with pytest.raises(NotFoundError) as exc_info:
        registry.resolve("unknown.consumer")

    assert exc_info.value.key == "unknown.consumer"
    assert isinstance(exc_info.value, KeyError)


def test_one_entry_per_client_and_kind(clients, configs):
    registry = build_registry(configs, clients, breaker=CircuitBreaker(name="shared"))

    assert sorted(registry.keys()) == [
        "clientA.consumer",
        "clientA.producer",
        "clientA.router_processor",
        "clientB.consumer",
        "clientB.producer",
        "clientB.router_processor",
    ]
    assert len(registry) == 6
    assert "clientA.consumer" in registry
    assert registry.sealed
    assert registry.producer("clientB") is registry.resolve("clientB.producer")
    assert registry.consumer("clientB") is registry.resolve("clientB.consumer")
    assert registry.router_processor("clientA") is registry.resolve("clientA.router_processor")


def test_shared_scope_uses_one_breaker(clients, configs):
    shared = CircuitBreaker(name="shared")
    registry = build_registry(configs, clients, breaker=shared)

    assert {id(endpoint.breaker) for _, endpoint in registry.items()} == {id(shared)}


def test_shared_scope_creates_breaker_once(clients, configs):
    created = []

    def factory(name):
        created.append(name)
        return CircuitBreaker(name=name)

    build_registry(configs, clients, breaker_factory=factory)

    assert created == ["enqueue"]


def test_per_client_scope(clients, configs):
    registry = build_registry(
        configs,
        clients,
        breaker_scope=BreakerScope.PER_CLIENT,
        breaker_factory=lambda name: CircuitBreaker(name=name),
    )

    a = {id(registry.resolve(f"clientA.{kind}").breaker) for kind in ("consumer", "producer", "router_processor")}
    b = {id(registry.resolve(f"clientB.{kind}").breaker) for kind in ("consumer", "producer", "router_processor")}
    assert len(a) == 1 and len(b) == 1
    assert a != b
    assert registry.consumer("clientA").breaker.name == "clientA"


def test_per_client_scope_rejects_shared_instance(clients, configs):
    with pytest.raises(ConfigurationError):
        build_registry(
            configs,
            clients,
            breaker_scope="per_client",
            breaker=CircuitBreaker(name="shared"),
        )


def test_unknown_client_in_config(clients):
    with pytest.raises(ConfigurationError):
        build_registry(
            [ClientConfig(name="missing", retry_timeout=1.0)],
            clients,
            breaker=CircuitBreaker(name="shared"),
        )


def test_registration_rules(clients, breaker, orders_config):
    registry = ClientRegistry()
    consumer = FaultTolerantConsumer(clients["clientA"].consumer, breaker, orders_config)
    registry.register("orders.consumer", consumer)

    with pytest.raises(RegistryError):
        registry.register("orders.consumer", FaultTolerantConsumer(clients["clientB"].consumer, breaker, orders_config))

    # Same underlying endpoint wrapped a second time
    with pytest.raises(RegistryError):
        registry.register(
            "other.consumer",
            FaultTolerantConsumer(clients["clientA"].consumer, breaker, orders_config),
        )

    registry.seal()
    with pytest.raises(RegistryError):
        registry.register(
            "late.producer",
            FaultTolerantProducer(clients["clientB"].producer, breaker, orders_config),
        )
    assert registry.resolve("orders.consumer") is consumer


def test_bootstrap_disabled_returns_empty_registry(clients):
    registry = bootstrap(clients, Settings(_env_file=None, ENQUEUE_ENABLED=False))

    assert len(registry) == 0
    assert registry.sealed


def test_bootstrap_decorates_every_client_by_default(clients):
    s = Settings(_env_file=None, ENQUEUE_RETRY_TIMEOUT_SECONDS=3.0, ENQUEUE_RETRY_ATTEMPTS=4)
    registry = bootstrap(list(clients.values()), s)

    assert len(registry) == 6
    producer = registry.producer("clientB")
    assert producer.config.retry_timeout == 3.0
    assert producer.config.retry_attempts == 4


def test_bootstrap_honours_client_list_and_scope(clients):
    s = Settings(
        _env_file=None,
        ENQUEUE_CLIENTS=["clientB"],
        CIRCUIT_BREAKER_SCOPE="per_client",
        CIRCUIT_BREAKER_FAILURE_THRESHOLD=9,
    )
    registry = bootstrap(clients, s)

    assert sorted(registry.keys()) == [
        "clientB.consumer",
        "clientB.producer",
        "clientB.router_processor",
    ]
    breaker = registry.consumer("clientB").breaker
    assert breaker.name == "clientB"
    assert breaker.policy.threshold == 9


def test_bootstrap_configures_logging_only_when_asked(clients, monkeypatch):
    calls = []
    monkeypatch.setattr(
        "fault_tolerance.enqueue.registry.configure_logging",
        lambda app_env, level: calls.append((app_env, level)),
    )
    s = Settings(_env_file=None, APP_ENV="production", LOG_LEVEL="WARNING")

    bootstrap(clients, s)
    assert calls == []

    bootstrap(clients, s, setup_logging=True)
    assert calls == [("production", "WARNING")]


@pytest.mark.asyncio
async def test_bootstrapped_endpoints_move_messages(clients):
    registry = bootstrap(clients, Settings(_env_file=None))
    received = []

    await registry.producer("clientA").send(Message(body={"n": 1}))
    result = await registry.consumer("clientA").consume(
        lambda message: received.append(message.body) or "acked"
    )

    assert result == "acked"
    assert received == [{"n": 1}]
    assert await registry.consumer("clientB").consume_once() is None
