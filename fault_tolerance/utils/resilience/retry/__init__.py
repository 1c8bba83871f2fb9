from .backoff import (
    BackoffStrategy,
    ExponentialBackoffStrategy,
    FixedBackoffStrategy,
    full_jitter,
)
from .policy import RetryPolicy, should_retry

__all__ = [
    "RetryPolicy",
    "should_retry",
    "BackoffStrategy",
    "ExponentialBackoffStrategy",
    "FixedBackoffStrategy",
    "full_jitter",
]
