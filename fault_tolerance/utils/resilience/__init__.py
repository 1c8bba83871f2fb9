"""
Resilience utilities: circuit breakers, retry policies and health snapshots.

These are the building blocks of the fault tolerant queue endpoints. The
circuit breaker is consumed only through `allow()`, `on_success()` and
`on_failure()`, so any implementation with those three calls can replace it.

Defaults are configuration-driven via `fault_tolerance.core.config`.
"""

from .circuit_breaker.breaker import (
    CircuitBreaker,
    CircuitState,
    SupportsCircuitBreaker,
)
from .circuit_breaker.policies import ErrorWindowPolicy, FailureThresholdPolicy
from .monitoring.health import ResilienceHealthChecker
from .retry.backoff import ExponentialBackoffStrategy, FixedBackoffStrategy
from .retry.policy import RetryPolicy, should_retry

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "SupportsCircuitBreaker",
    "FailureThresholdPolicy",
    "ErrorWindowPolicy",
    "RetryPolicy",
    "should_retry",
    "ExponentialBackoffStrategy",
    "FixedBackoffStrategy",
    "ResilienceHealthChecker",
]
