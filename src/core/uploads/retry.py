"""
Retry policies for the webhook relay.

The relay asks its policy after every failed attempt whether to try
again and how long to wait. The default is a single attempt; a backoff
policy can be swapped in through settings without the orchestrator
knowing.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from .errors import RelayError


class RetryPolicy(Protocol):
    """Decides whether a failed relay attempt should be repeated."""

    @property
    def max_attempts(self) -> int:
        ...

    def next_delay(self, error: RelayError, attempt: int) -> Optional[float]:
        """
        Seconds to wait before the next attempt, or None to give up.

        `attempt` is the 1-based number of the attempt that just failed.
        """
        ...


class NoRetry:
    """One attempt, whatever happens."""

    max_attempts = 1

    def next_delay(self, error: RelayError, attempt: int) -> Optional[float]:
        return None


@dataclass(frozen=True)
class ExponentialBackoff:
    """
    Bounded exponential backoff for transient failures.

    Only unreachable endpoints and upstream 5xx answers are retried;
    a 4xx means the workflow refused the request and will refuse it
    again.
    """
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays cannot be negative")

    def next_delay(self, error: RelayError, attempt: int) -> Optional[float]:
        if attempt >= self.max_attempts or not error.retryable:
            return None
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


def create_retry_policy(
    max_attempts: int,
    base_delay: float = 0.5,
    max_delay: float = 8.0,
) -> RetryPolicy:
    if max_attempts <= 1:
        return NoRetry()
    return ExponentialBackoff(
        max_attempts=max_attempts,
        base_delay=base_delay,
        max_delay=max_delay,
    )
