"""
Retry decisions for decorated queue endpoints.

The decision itself is a pure function of the attempt count, the time spent
since the first attempt, the retry window and an optional attempt bound.
Breaker denials are not part of it: endpoints ask the breaker before every
attempt and stop as soon as it says no.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, Optional

from .backoff import BackoffStrategy, ExponentialBackoffStrategy, full_jitter

if TYPE_CHECKING:
    from fault_tolerance.core.config import Settings


def should_retry(
    attempt: int,
    elapsed: float,
    timeout: float,
    max_attempts: Optional[int] = None,
) -> bool:
    """
    Decide whether another attempt may start.

    Args:
        attempt: Number of the attempt that just failed (1-based).
        elapsed: Seconds since the first attempt started.
        timeout: Retry window in seconds.
        max_attempts: Optional hard cap on the number of attempts.

    Returns:
        True while the window is open and the cap (if any) is not reached.
    """
    if attempt < 1:
        raise ValueError("attempt is 1-based")
    if elapsed >= timeout:
        return False
    if max_attempts is not None and attempt >= max_attempts:
        return False
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """Retry decision plus the pauses taken between attempts."""

    backoff_strategy: BackoffStrategy = field(default_factory=ExponentialBackoffStrategy)
    use_jitter: bool = True

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RetryPolicy":
        return cls(
            backoff_strategy=ExponentialBackoffStrategy(
                base_delay_seconds=settings.RETRY_BACKOFF_BASE_SECONDS,
                multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
                max_delay_seconds=settings.RETRY_BACKOFF_MAX_SECONDS,
            ),
            use_jitter=settings.RETRY_USE_JITTER,
        )

    def should_retry(
        self,
        attempt: int,
        elapsed: float,
        timeout: float,
        max_attempts: Optional[int] = None,
    ) -> bool:
        return should_retry(attempt, elapsed, timeout, max_attempts)

    def delays(self) -> Iterator[float]:
        """Fresh delay sequence for one operation call."""
        delays = self.backoff_strategy.delays()
        return full_jitter(delays) if self.use_jitter else delays
