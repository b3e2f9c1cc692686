"""
Retry policy for transient D365 failures.

Exponential backoff with jitter; a server-provided Retry-After wins over the
computed delay. The policy is pure: the executor owns the sleeping.
"""

import random
import time
from dataclasses import dataclass, field
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Optional


def is_transient_status(status_code: int) -> bool:
    """429 and every 5xx are worth retrying; other statuses are final"""
    return status_code == 429 or 500 <= status_code <= 599


def parse_retry_after(value: Optional[str], now: Optional[float] = None) -> Optional[float]:
    """
    Parse a Retry-After header.

    Accepts delta-seconds ("5") or an HTTP-date. Returns seconds to wait,
    or None if the header is absent or unparseable.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    current = time.time() if now is None else now
    return max(0.0, when.timestamp() - current)


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    # Fraction of the backoff delay added as random jitter
    jitter: float = 0.1
    # Ceiling for server-provided Retry-After delays
    max_retry_after: float = 120.0
    random_fn: Callable[[float, float], float] = field(default=random.uniform, repr=False, compare=False)

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay <= 0 or self.max_delay <= 0:
            raise ValueError("delays must be positive")
        if self.jitter < 0:
            raise ValueError("jitter must be >= 0")
        if self.max_retry_after < 0:
            raise ValueError("max_retry_after must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def backoff(self, retry_number: int) -> float:
        """Delay before retry `retry_number` (1-based), capped, without jitter"""
        return min(self.base_delay * (2 ** (max(retry_number, 1) - 1)), self.max_delay)

    def compute_delay(self, retry_number: int, retry_after: Optional[float] = None) -> float:
        """
        Calculate the delay before a retry.

        Args:
            retry_number: 1-based retry count
            retry_after: Seconds from a Retry-After header, if any; capped at max_retry_after

        Returns:
            Delay in seconds
        """
        if retry_after is not None:
            return min(retry_after, self.max_retry_after)
        delay = self.backoff(retry_number)
        return delay + self.random_fn(0.0, delay * self.jitter)

    def should_retry(self, retry_number: int) -> bool:
        """Whether retry `retry_number` (1-based) is within budget"""
        return retry_number <= self.max_retries


DEFAULT_RETRY = RetryPolicy()
