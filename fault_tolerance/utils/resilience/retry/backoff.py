from __future__ import annotations

import itertools
import random
from dataclasses import dataclass
from typing import Iterable, Iterator, Protocol


class BackoffStrategy(Protocol):
    def delays(self) -> Iterator[float]:
        """Yield the pause before each retry, forever."""
        ...


@dataclass(frozen=True)
class FixedBackoffStrategy:
    """Yields a constant delay in seconds between attempts."""

    delay_seconds: float = 0.5

    def delays(self) -> Iterator[float]:
        return itertools.repeat(max(0.0, self.delay_seconds))


@dataclass(frozen=True)
class ExponentialBackoffStrategy:
    """Exponential backoff with a cap and multiplier."""

    base_delay_seconds: float = 0.2
    multiplier: float = 2.0
    max_delay_seconds: float = 5.0

    def delays(self) -> Iterator[float]:
        delay = self.base_delay_seconds
        while True:
            yield min(delay, self.max_delay_seconds)
            delay *= self.multiplier


def full_jitter(delays: Iterable[float]) -> Iterator[float]:
    """
    Apply 'full jitter' to a sequence of base delays.

    For each base delay d, yield a random value in [0, d].
    """
    for d in delays:
        yield random.random() * max(0.0, d)
