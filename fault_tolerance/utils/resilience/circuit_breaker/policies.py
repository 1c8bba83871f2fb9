from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Protocol


class OpeningPolicy(Protocol):
    """Decides when a CLOSED circuit should OPEN. Called under the breaker lock."""

    def record_failure(self) -> None: ...

    def record_success(self) -> None: ...

    def should_open(self) -> bool: ...

    def reset(self) -> None: ...


@dataclass
class FailureThresholdPolicy:
    """
    Simple consecutive-failure threshold policy.

    When the consecutive failure count reaches `threshold`, the circuit should OPEN.
    A success resets the count.
    """

    threshold: int = 5
    consecutive_failures: int = field(default=0, init=False)

    def record_failure(self) -> None:
        self.consecutive_failures += 1

    def record_success(self) -> None:
        self.consecutive_failures = 0

    def should_open(self) -> bool:
        return self.consecutive_failures >= self.threshold

    def reset(self) -> None:
        self.consecutive_failures = 0


@dataclass
class ErrorWindowPolicy:
    """
    Time-window error count policy.

    If failures in the past `window_seconds` reach `max_failures`, the circuit should OPEN.
    Successes do not clear the window.
    """

    window_seconds: float = 60.0
    max_failures: int = 10
    clock: Callable[[], float] = time.monotonic
    _failures: Deque[float] = field(default_factory=deque, init=False)

    def record_failure(self) -> None:
        now = self.clock()
        self._failures.append(now)
        self._prune(now)

    def record_success(self) -> None:
        self._prune(self.clock())

    def should_open(self) -> bool:
        self._prune(self.clock())
        return len(self._failures) >= self.max_failures

    def reset(self) -> None:
        self._failures.clear()

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._failures and self._failures[0] < cutoff:
            self._failures.popleft()
