"""
Shared pytest fixtures: a fake clock, a recording circuit breaker and
scripted queue endpoints.
"""

import os
import sys
from typing import Any, Callable, List, Optional

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

os.environ.setdefault("APP_ENV", "test")

from fault_tolerance.core.config import ClientConfig  # noqa: E402
from fault_tolerance.transport.base import RouteResult  # noqa: E402
from fault_tolerance.utils.resilience.retry import (  # noqa: E402
    FixedBackoffStrategy,
    RetryPolicy,
)


class FakeClock:
    """Monotonic clock that only moves when told to (or when slept on)."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingBreaker:
    """Breaker capability that records calls; `decisions` scripts allow()."""

    def __init__(self, decisions: Optional[List[bool]] = None) -> None:
        self.decisions = list(decisions or [])
        self.allow_calls = 0
        self.successes = 0
        self.failures = 0

    def allow(self) -> bool:
        self.allow_calls += 1
        if self.decisions:
            return self.decisions.pop(0)
        return True

    def on_success(self) -> None:
        self.successes += 1

    def on_failure(self) -> None:
        self.failures += 1


class ScriptedEndpoint:
    """
    Underlying endpoint that plays a script of outcomes.

    Each step is an exception instance (raised) or a value (returned). Every
    call advances the clock by `duration` and records its arguments.
    """

    def __init__(
        self,
        script: List[Any],
        clock: Optional[FakeClock] = None,
        duration: float = 0.0,
        on_call: Optional[Callable[..., None]] = None,
    ) -> None:
        self.script = list(script)
        self.clock = clock
        self.duration = duration
        self.on_call = on_call
        self.calls: List[tuple] = []
        self.started_at: List[float] = []

    async def _play(self, *args: Any) -> Any:
        if self.clock is not None:
            self.started_at.append(self.clock())
        self.calls.append(args)
        if self.on_call is not None:
            self.on_call(*args)
        if self.clock is not None:
            self.clock.advance(self.duration)
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, BaseException):
            raise step
        return step

    async def consume(self, handler=None):
        return await self._play(handler)

    async def send(self, message):
        return await self._play(message)

    async def route(self, message):
        result = await self._play(message)
        if isinstance(result, RouteResult):
            return result
        return RouteResult(topic=message.topic, destination="scripted", result=result)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def breaker() -> RecordingBreaker:
    return RecordingBreaker()


@pytest.fixture
def make_breaker() -> Callable[..., RecordingBreaker]:
    return RecordingBreaker


@pytest.fixture
def scripted(clock: FakeClock) -> Callable[..., ScriptedEndpoint]:
    def factory(script: List[Any], duration: float = 0.0, **kwargs: Any) -> ScriptedEndpoint:
        return ScriptedEndpoint(script, clock=clock, duration=duration, **kwargs)

    return factory


@pytest.fixture
def orders_config() -> ClientConfig:
    return ClientConfig(name="orders", retry_timeout=2.0)


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(backoff_strategy=FixedBackoffStrategy(0.25), use_jitter=False)
