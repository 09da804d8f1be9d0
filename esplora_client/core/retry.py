"""
Retry policy and error classification.

One `RetryPolicy` drives both the blocking and the async client. The policy
itself is immutable; every call gets a fresh `RetryState` that counts
attempts and picks the next delay, so cancelling an async call leaves
nothing behind.

Classification:
    connection failure, timeout, 5xx   -> TRANSIENT     (backoff + jitter)
    429                                -> RATE_LIMITED  (Retry-After, else backoff)
    other 4xx, decode failures         -> PERMANENT     (raised immediately)
"""

import random
import time
from dataclasses import dataclass, field
from datetime import timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Callable, Optional

import structlog

from esplora_client.core.errors import (
    DecodeError,
    EsploraError,
    ExhaustedRetries,
    HttpStatusError,
    NetworkError,
)

logger = structlog.get_logger(__name__)

TOO_MANY_REQUESTS = 429

# 2**64 times any base delay is far past every max_delay
MAX_BACKOFF_EXPONENT = 64


class ErrorClass(str, Enum):
    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    PERMANENT = "permanent"


def classify(error: BaseException) -> ErrorClass:
    """Decide how a failed attempt should be handled."""
    if isinstance(error, NetworkError):
        return ErrorClass.TRANSIENT
    if isinstance(error, HttpStatusError):
        if error.status == TOO_MANY_REQUESTS:
            return ErrorClass.RATE_LIMITED
        if 500 <= error.status < 600:
            return ErrorClass.TRANSIENT
        return ErrorClass.PERMANENT
    if isinstance(error, DecodeError):
        # same bytes decode the same way every time
        return ErrorClass.PERMANENT
    return ErrorClass.PERMANENT


def parse_retry_after(value: Optional[str], now: Optional[float] = None) -> Optional[float]:
    """
    Parse a Retry-After header into seconds.

    Accepts delta-seconds (integer or decimal) or an HTTP date. Returns None
    when the header is absent or cannot be parsed.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    try:
        seconds = float(value)
    except ValueError:
        seconds = None

    if seconds is None:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            return None
        if when is None:
            return None
        if when.tzinfo is None:
            # "-0000" dates come back naive; HTTP dates are always UTC
            when = when.replace(tzinfo=timezone.utc)
        current = time.time() if now is None else now
        seconds = when.timestamp() - current

    if seconds != seconds or seconds == float("inf"):
        return None
    return max(0.0, seconds)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry limits shared by every call of a client.

    Attributes:
        max_attempts: Total attempts per call, the first one included
        base_delay: Backoff before the first retry, in seconds
        max_delay: Ceiling for computed backoff delays
        max_retry_after: Ceiling for server-provided Retry-After hints
        rng: Source of jitter in [0, 1)
    """
    max_attempts: int = 7
    base_delay: float = 0.256
    max_delay: float = 30.0
    max_retry_after: float = 300.0
    rng: Callable[[], float] = field(default=random.random, compare=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0 or self.max_retry_after < 0:
            raise ValueError("delays must not be negative")

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
            max_retry_after=config.max_retry_after,
        )

    def backoff(self, retry_index: int) -> float:
        """
        Delay before retry number `retry_index` (0-based).

        The exponential delay is jittered into [d, 1.5 d] and capped, so
        successive delays never decrease.
        """
        delay = self.base_delay * (2 ** min(retry_index, MAX_BACKOFF_EXPONENT))
        delay += delay * 0.5 * self.rng()
        return min(delay, self.max_delay)

    def delay_for(self, error: BaseException, retry_index: int) -> Optional[float]:
        """Delay before the next attempt, or None if `error` is not retryable."""
        error_class = classify(error)
        if error_class is ErrorClass.PERMANENT:
            return None
        if error_class is ErrorClass.RATE_LIMITED:
            hint = parse_retry_after(getattr(error, "retry_after", None))
            if hint is not None:
                return min(hint, self.max_retry_after)
        return self.backoff(retry_index)

    def start(self, path: str = "") -> "RetryState":
        """Fresh per-call retry state."""
        return RetryState(self, path)


class RetryState:
    """Attempt bookkeeping for a single call."""

    def __init__(self, policy: RetryPolicy, path: str = ""):
        self.policy = policy
        self.path = path
        self.attempts = 0
        self.delays = []

    def on_failure(self, error: EsploraError) -> float:
        """
        Record a failed attempt and return how long to wait before the next.

        Raises `error` itself when it is not retryable and `ExhaustedRetries`
        once every allowed attempt has been used.
        """
        self.attempts += 1
        delay = self.policy.delay_for(error, len(self.delays))

        if delay is None:
            logger.debug("Request failed permanently",
                         path=self.path,
                         attempt=self.attempts,
                         error=str(error))
            raise error

        if self.attempts >= self.policy.max_attempts:
            logger.warning("Retries exhausted",
                           path=self.path,
                           attempts=self.attempts,
                           error=str(error))
            raise ExhaustedRetries(error, self.attempts) from error

        self.delays.append(delay)
        logger.warning("Request failed, retrying",
                       path=self.path,
                       attempt=self.attempts,
                       delay=round(delay, 3),
                       error_class=classify(error).value,
                       error=str(error))
        return delay
