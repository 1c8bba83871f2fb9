import threading

from prometheus_client import REGISTRY

from fault_tolerance.utils.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitState,
    ErrorWindowPolicy,
    FailureThresholdPolicy,
    SupportsCircuitBreaker,
)


def _breaker(clock, **kwargs):
    kwargs.setdefault("policy", FailureThresholdPolicy(threshold=2))
    return CircuitBreaker(
        name=kwargs.pop("name", "test"),
        recovery_timeout=kwargs.pop("recovery_timeout", 10.0),
        half_open_success_threshold=kwargs.pop("half_open_success_threshold", 2),
        half_open_max_calls=kwargs.pop("half_open_max_calls", 1),
        clock=clock,
        **kwargs,
    )


def test_satisfies_capability_protocol(clock):
    assert isinstance(_breaker(clock), SupportsCircuitBreaker)


def test_opens_after_consecutive_failures(clock):
    cb = _breaker(clock)

    assert cb.allow()
    cb.on_failure()
    assert cb.state == CircuitState.CLOSED

    cb.on_failure()
    assert cb.state == CircuitState.OPEN
    assert cb.allow() is False


def test_success_resets_consecutive_failures(clock):
    cb = _breaker(clock)

    cb.on_failure()
    cb.on_success()
    cb.on_failure()

    assert cb.state == CircuitState.CLOSED


def test_circuit_closes_after_half_open_successes(clock):
    cb = _breaker(clock)
    cb.on_failure()
    cb.on_failure()
    assert cb.state == CircuitState.OPEN

    # Still cooling down
    clock.advance(9.9)
    assert cb.allow() is False

    clock.advance(0.1)
    assert cb.allow() is True
    assert cb.state == CircuitState.HALF_OPEN

    # Only one trial call in flight at a time
    assert cb.allow() is False

    cb.on_success()
    assert cb.state == CircuitState.HALF_OPEN
    assert cb.allow() is True
    cb.on_success()
    assert cb.state == CircuitState.CLOSED
    assert cb.allow() is True


def test_half_open_failure_reopens(clock):
    cb = _breaker(clock)
    cb.on_failure()
    cb.on_failure()
    clock.advance(10)

    assert cb.allow() is True
    cb.on_failure()

    assert cb.state == CircuitState.OPEN
    assert cb.allow() is False
    # Cool-down restarts from the reopen
    clock.advance(10)
    assert cb.allow() is True


def test_error_window_policy_opens_on_failures_in_window(clock):
    cb = _breaker(clock, policy=ErrorWindowPolicy(window_seconds=5, max_failures=3, clock=clock))

    cb.on_failure()
    cb.on_failure()
    clock.advance(6)  # first two fall out of the window
    cb.on_failure()
    assert cb.state == CircuitState.CLOSED

    cb.on_failure()
    cb.on_failure()
    assert cb.state == CircuitState.OPEN


def test_reset_closes_circuit(clock):
    cb = _breaker(clock)
    cb.on_failure()
    cb.on_failure()

    cb.reset()

    assert cb.state == CircuitState.CLOSED
    assert cb.stats()["opened_at"] is None
    assert cb.allow()


def test_concurrent_reports_are_all_counted(clock):
    policy = ErrorWindowPolicy(window_seconds=60, max_failures=800, clock=clock)
    cb = _breaker(clock, policy=policy)

    def worker():
        for _ in range(100):
            cb.allow()
            cb.on_failure()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert cb.state == CircuitState.OPEN


def test_from_settings_uses_configured_thresholds():
    from fault_tolerance.core.config import Settings

    s = Settings(
        _env_file=None,
        CIRCUIT_BREAKER_FAILURE_THRESHOLD=3,
        CIRCUIT_BREAKER_RECOVERY_TIMEOUT_SECONDS=7.5,
        CIRCUIT_BREAKER_HALF_OPEN_SUCCESS_THRESHOLD=4,
    )
    cb = CircuitBreaker.from_settings("orders", s)

    assert cb.name == "orders"
    assert cb.recovery_timeout == 7.5
    assert cb.half_open_success_threshold == 4
    assert cb.policy.threshold == 3


def _sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_metrics_follow_state_and_reports(clock):
    cb = _breaker(clock, name="metrics_circuit", half_open_success_threshold=1)

    assert _sample("fault_tolerance_circuit_state", circuit="metrics_circuit", fault_tolerance_circuit_state="closed") == 1

    cb.on_failure()
    cb.on_failure()
    cb.allow()
    clock.advance(10)
    cb.allow()

    assert _sample("fault_tolerance_circuit_state", circuit="metrics_circuit", fault_tolerance_circuit_state="half_open") == 1
    assert _sample("fault_tolerance_circuit_half_open_in_flight", circuit="metrics_circuit") == 1
    assert _sample("fault_tolerance_circuit_reports_total", circuit="metrics_circuit", outcome="failure") == 2
    assert _sample("fault_tolerance_circuit_reports_total", circuit="metrics_circuit", outcome="blocked") == 1

    cb.on_success()

    assert _sample("fault_tolerance_circuit_state", circuit="metrics_circuit", fault_tolerance_circuit_state="closed") == 1
    assert _sample("fault_tolerance_circuit_half_open_in_flight", circuit="metrics_circuit") == 0
    assert _sample(
        "fault_tolerance_circuit_transitions_total",
        circuit="metrics_circuit",
        from_state="open",
        to_state="half_open",
    ) == 1
