"""
Shared control loop of the fault tolerant queue endpoints.

Every operation asks the circuit breaker for permission, runs the wrapped
call, reports the outcome back to the breaker and, on failure, lets the retry
policy decide whether another attempt may start. Only the terminal outcome
leaves the loop: a result, a CircuitOpenError, or the endpoint's
RetryExhaustedError subclass.
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

from fault_tolerance.core.config import ClientConfig
from fault_tolerance.utils.error_handler import CircuitOpenError, RetryExhaustedError
from fault_tolerance.utils.logger import add_endpoint_context, get_logger
from fault_tolerance.utils.resilience.circuit_breaker import SupportsCircuitBreaker
from fault_tolerance.utils.resilience.retry import RetryPolicy

from .monitoring import endpoint_metrics

logger = get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[Any]]


class EndpointKind(str, Enum):
    CONSUMER = "consumer"
    PRODUCER = "producer"
    ROUTER_PROCESSOR = "router_processor"


def endpoint_key(client: str, kind: EndpointKind | str) -> str:
    """Registry key of a decorated endpoint: `{client}.{kind}`."""
    return f"{client}.{EndpointKind(kind).value}"


def _ensure_not_cancelled() -> None:
    task = asyncio.current_task()
    if task is not None and task.cancelling():
        raise asyncio.CancelledError()


class FaultTolerantEndpoint:
    """
    Base class of the three decorators.

    Binds one underlying endpoint, one breaker and one client config; none of
    them change after construction.
    """

    kind: EndpointKind
    channel: str
    failed_error: Type[RetryExhaustedError] = RetryExhaustedError

    def __init__(
        self,
        endpoint: Any,
        breaker: SupportsCircuitBreaker,
        config: ClientConfig,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self._endpoint = endpoint
        self._breaker = breaker
        self._config = config
        self._retry_policy = retry_policy or RetryPolicy()
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._log = logger.bind(
            **add_endpoint_context(config.name, self.kind.value, self.channel)
        )

    @property
    def endpoint(self) -> Any:
        return self._endpoint

    @property
    def breaker(self) -> SupportsCircuitBreaker:
        return self._breaker

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def key(self) -> str:
        return endpoint_key(self._config.name, self.kind)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.key}>"

    def _is_retryable(self, exc: Exception) -> bool:
        return True

    def _not_retryable(self, exc: Exception, attempts: int, elapsed: float) -> Exception:
        """Terminal error for a failure the policy must not retry."""
        return self._exhausted(exc, attempts, elapsed)

    def _exhausted(
        self, last_error: Optional[BaseException], attempts: int, elapsed: float
    ) -> RetryExhaustedError:
        self._log.error(
            "endpoint_retry_exhausted",
            attempts=attempts,
            elapsed_s=round(elapsed, 3),
            retry_timeout_s=self._config.retry_timeout,
            retry_attempts=self._config.retry_attempts,
            error=str(last_error),
        )
        endpoint_metrics.inc_outcome(self._config.name, self.kind.value, "exhausted")
        return self.failed_error(
            client=self._config.name,
            endpoint=self.kind.value,
            attempts=attempts,
            elapsed=elapsed,
            last_error=last_error,
        )

    def _denied(self, attempts: int, last_error: Optional[BaseException]) -> CircuitOpenError:
        self._log.warning(
            "endpoint_circuit_open",
            attempts=attempts,
            last_error=str(last_error) if last_error else None,
        )
        endpoint_metrics.inc_outcome(self._config.name, self.kind.value, "circuit_open")
        return CircuitOpenError(
            client=self._config.name, endpoint=self.kind.value, attempts=attempts
        )

    async def _execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run `operation` under the breaker and retry policy."""
        client, kind = self._config.name, self.kind.value
        timeout = self._config.retry_timeout
        max_attempts = self._config.retry_attempts
        delays = self._retry_policy.delays()

        started = self._clock()
        attempt = 0
        last_error: Optional[Exception] = None

        while True:
            if attempt:
                elapsed = self._clock() - started
                if not self._retry_policy.should_retry(attempt, elapsed, timeout, max_attempts):
                    raise self._exhausted(last_error, attempt, elapsed) from last_error

            _ensure_not_cancelled()
            if not self._breaker.allow():
                error = self._denied(attempt, last_error)
                if last_error is not None:
                    raise error from last_error
                raise error

            attempt += 1
            endpoint_metrics.inc_attempt(client, kind)
            try:
                result = await operation()
            except asyncio.CancelledError:
                # The attempt never finished; report it so a half-open trial slot is released
                self._breaker.on_failure()
                self._log.warning("endpoint_attempt_cancelled", attempt=attempt)
                endpoint_metrics.inc_outcome(client, kind, "cancelled")
                raise
            except Exception as exc:
                last_error = exc
                self._breaker.on_failure()
                endpoint_metrics.inc_failure(client, kind)
                elapsed = self._clock() - started

                if not self._is_retryable(exc):
                    raise self._not_retryable(exc, attempt, elapsed) from exc

                delay = None
                if self._retry_policy.should_retry(attempt, elapsed, timeout, max_attempts):
                    delay = min(next(delays, 0.0), max(0.0, timeout - elapsed))
                self._log.warning(
                    "endpoint_attempt_failed",
                    attempt=attempt,
                    elapsed_s=round(elapsed, 3),
                    next_delay_s=round(delay, 3) if delay is not None else None,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                if delay is not None:
                    await self._sleep(delay)
                continue

            self._breaker.on_success()
            endpoint_metrics.inc_outcome(client, kind, "success")
            return result
