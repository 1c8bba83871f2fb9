from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Protocol, runtime_checkable

from fault_tolerance.utils.logger import get_logger

from .monitoring import CircuitMetrics
from .policies import FailureThresholdPolicy, OpeningPolicy

if TYPE_CHECKING:
    from fault_tolerance.core.config import Settings

logger = get_logger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@runtime_checkable
class SupportsCircuitBreaker(Protocol):
    """The three calls a decorated endpoint makes on its breaker.

    Implementations must be safe under concurrent use.
    """

    def allow(self) -> bool: ...

    def on_success(self) -> None: ...

    def on_failure(self) -> None: ...


@dataclass
class CircuitBreaker:
    """
    Thread-safe circuit breaker with a HALF-OPEN trial window and metrics.

    - CLOSED: calls pass through; failures feed the opening policy.
    - OPEN: `allow()` is False until `recovery_timeout` elapses.
    - HALF_OPEN: up to `half_open_max_calls` trial calls in flight; after
      `half_open_success_threshold` successes -> CLOSED; on any failure -> OPEN.

    The breaker never runs the protected call itself. Callers ask `allow()`
    and report the outcome with `on_success()` / `on_failure()`.
    """

    name: str = "default"
    recovery_timeout: float = 30.0
    half_open_success_threshold: int = 2
    half_open_max_calls: int = 1
    policy: OpeningPolicy = field(default_factory=FailureThresholdPolicy)
    clock: Callable[[], float] = time.monotonic

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _opened_at: Optional[float] = field(default=None, init=False)
    _half_open_successes: int = field(default=0, init=False)
    _half_open_in_flight: int = field(default=0, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _metrics: CircuitMetrics = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._metrics = CircuitMetrics(self.name)

    @classmethod
    def from_settings(cls, name: str, settings: "Settings") -> "CircuitBreaker":
        return cls(
            name=name,
            recovery_timeout=settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT_SECONDS,
            half_open_success_threshold=settings.CIRCUIT_BREAKER_HALF_OPEN_SUCCESS_THRESHOLD,
            half_open_max_calls=settings.CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS,
            policy=FailureThresholdPolicy(
                threshold=settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD
            ),
        )

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def _transition(self, new_state: CircuitState) -> None:
        if self._state == new_state:
            return
        prev = self._state
        self._state = new_state
        if new_state == CircuitState.OPEN:
            self._opened_at = self.clock()
        if new_state != CircuitState.HALF_OPEN:
            self._half_open_successes = 0
            self._half_open_in_flight = 0
        logger.warning(
            "circuit_state_change",
            circuit=self.name,
            from_state=prev.value,
            to_state=new_state.value,
        )
        self._metrics.transition(prev.value, new_state.value)
        self._metrics.trial_calls(self._half_open_in_flight)

    def _should_attempt_reset(self) -> bool:
        if self._opened_at is None:
            return True
        return (self.clock() - self._opened_at) >= self.recovery_timeout

    def allow(self) -> bool:
        """Return True if a call may proceed now."""
        with self._lock:
            if self._state == CircuitState.OPEN:
                if not self._should_attempt_reset():
                    self._metrics.report("blocked")
                    return False
                self._transition(CircuitState.HALF_OPEN)

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_in_flight >= self.half_open_max_calls:
                    self._metrics.report("blocked")
                    return False
                self._half_open_in_flight += 1
                self._metrics.trial_calls(self._half_open_in_flight)

            return True

    def on_success(self) -> None:
        with self._lock:
            self._metrics.report("success")
            if self._state == CircuitState.HALF_OPEN:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)
                self._metrics.trial_calls(self._half_open_in_flight)
                self._half_open_successes += 1
                if self._half_open_successes >= self.half_open_success_threshold:
                    self.policy.reset()
                    self._opened_at = None
                    self._transition(CircuitState.CLOSED)
            elif self._state == CircuitState.CLOSED:
                self.policy.record_success()

    def on_failure(self) -> None:
        with self._lock:
            self._metrics.report("failure")
            if self._state == CircuitState.HALF_OPEN:
                # Any failure in HALF_OPEN flips back to OPEN immediately
                self._transition(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED:
                self.policy.record_failure()
                if self.policy.should_open():
                    self._transition(CircuitState.OPEN)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "opened_at": self._opened_at,
                "half_open_successes": self._half_open_successes,
                "half_open_in_flight": self._half_open_in_flight,
            }

    def reset(self) -> None:
        """Force the circuit back to CLOSED (tests or manual recovery)."""
        with self._lock:
            self.policy.reset()
            self._opened_at = None
            self._transition(CircuitState.CLOSED)
