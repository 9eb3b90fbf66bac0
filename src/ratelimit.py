"""Rate limiting for work queue re-queues.

A rate limiter answers one question for the work queue: how long should
this key wait before it is handed out again? Failures of a single key are
spread out with exponential backoff, and an overall token bucket keeps a
burst of failing keys from hammering the JetStream server.
"""

import logging
import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    def when(self, item: Hashable) -> float:
        """Return the delay in seconds before the item may be retried."""
        ...

    def forget(self, item: Hashable) -> None:
        """Stop tracking the item (it succeeded or was given up)."""
        ...

    def num_requeues(self, item: Hashable) -> int:
        """Return how many times the item has been rate limited."""
        ...


@dataclass
class Backoff:
    """Per-item retry state."""

    attempts: int = 0
    next_eligible: float = 0.0


class ItemExponentialBackoff:
    """Per-item exponential backoff: base_delay * 2**attempts, capped."""

    def __init__(
        self,
        base_delay: float = 0.005,
        max_delay: float = 1000.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._clock = clock
        self._lock = threading.Lock()
        self._items: dict[Hashable, Backoff] = {}

    def when(self, item: Hashable) -> float:
        with self._lock:
            backoff = self._items.setdefault(item, Backoff())
            exponent = backoff.attempts
            backoff.attempts += 1

            # Avoid float overflow on very large attempt counts
            if exponent > 64:
                delay = self._max_delay
            else:
                delay = min(self._base_delay * (2**exponent), self._max_delay)

            backoff.next_eligible = self._clock() + delay
            return delay

    def forget(self, item: Hashable) -> None:
        with self._lock:
            self._items.pop(item, None)

    def num_requeues(self, item: Hashable) -> int:
        with self._lock:
            backoff = self._items.get(item)
            return backoff.attempts if backoff else 0

    def __repr__(self) -> str:
        return (
            f"ItemExponentialBackoff(base_delay={self._base_delay}, "
            f"max_delay={self._max_delay})"
        )


class BucketRateLimiter:
    """Overall token bucket shared by all items.

    Tokens refill at `qps` per second up to `burst`. Every call reserves one
    token; when the bucket is empty the returned delay is the time until
    the reserved token becomes available.
    """

    def __init__(
        self,
        qps: float = 10.0,
        burst: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._qps = qps
        self._burst = burst
        self._clock = clock
        self._lock = threading.Lock()
        self._tokens = float(burst)
        self._last = clock()

    def when(self, item: Hashable) -> float:
        if self._qps <= 0:
            return 0.0

        with self._lock:
            now = self._clock()
            elapsed = now - self._last
            self._last = now
            self._tokens = min(float(self._burst), self._tokens + elapsed * self._qps)
            self._tokens -= 1.0

            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self._qps

    def forget(self, item: Hashable) -> None:
        pass

    def num_requeues(self, item: Hashable) -> int:
        return 0

    def __repr__(self) -> str:
        return f"BucketRateLimiter(qps={self._qps}, burst={self._burst})"


class MaxOfRateLimiter:
    """Combine limiters: the longest delay and the highest requeue count win."""

    def __init__(self, *limiters: RateLimiter) -> None:
        self._limiters = limiters

    def when(self, item: Hashable) -> float:
        return max((limiter.when(item) for limiter in self._limiters), default=0.0)

    def forget(self, item: Hashable) -> None:
        for limiter in self._limiters:
            limiter.forget(item)

    def num_requeues(self, item: Hashable) -> int:
        return max(
            (limiter.num_requeues(item) for limiter in self._limiters), default=0
        )

    def __repr__(self) -> str:
        return f"MaxOfRateLimiter({', '.join(repr(lim) for lim in self._limiters)})"


def default_controller_rate_limiter(
    base_delay: float = 0.005,
    max_delay: float = 1000.0,
    qps: float = 10.0,
    burst: int = 100,
) -> MaxOfRateLimiter:
    """Build the rate limiter used by the Stream work queue.

    Args:
        base_delay: First retry delay of a key, in seconds
        max_delay: Upper bound of the per-key backoff, in seconds
        qps: Overall re-queue rate across all keys
        burst: Overall re-queue burst across all keys
    """
    limiter = MaxOfRateLimiter(
        ItemExponentialBackoff(base_delay=base_delay, max_delay=max_delay),
        BucketRateLimiter(qps=qps, burst=burst),
    )
    logger.info("Work queue rate limiter initialized: %r", limiter)
    return limiter
