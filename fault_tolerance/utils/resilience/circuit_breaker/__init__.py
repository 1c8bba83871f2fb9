from .breaker import CircuitBreaker, CircuitState, SupportsCircuitBreaker
from .monitoring import CircuitMetrics
from .policies import ErrorWindowPolicy, FailureThresholdPolicy, OpeningPolicy

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "SupportsCircuitBreaker",
    "OpeningPolicy",
    "FailureThresholdPolicy",
    "ErrorWindowPolicy",
    "CircuitMetrics",
]
