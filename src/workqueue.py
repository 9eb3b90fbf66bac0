"""Deduplicating, rate-limited work queue of Stream keys.

Guarantees:
- A key that is already waiting is not queued twice.
- A key that is being processed is never handed to a second worker. If it
  is added meanwhile, it is marked dirty and queued again once the current
  worker calls `done()`.
- Delayed adds (`add_after`, `add_rate_limited`) are held back by a single
  background thread until their time comes.

After `shut_down()` no new keys are accepted and `get()` returns a
shutdown signal, so workers exit after finishing their current key.
"""

import heapq
import itertools
import logging
import threading
import time
from collections import deque
from collections.abc import Callable

from metrics import QUEUE_DEPTH, RATE_LIMIT_WAIT_SECONDS
from ratelimit import RateLimiter

logger = logging.getLogger(__name__)


class WorkQueue:
    """Thread-safe work queue with at most one in-flight entry per key."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: deque[str] = deque()
        self._dirty: set[str] = set()
        self._processing: set[str] = set()
        self._shutting_down = False

        # Delayed keys: heap of (ready_at, seq, key) plus the earliest time per key
        self._waiting: list[tuple[float, int, str]] = []
        self._waiting_until: dict[str, float] = {}
        self._seq = itertools.count()
        self._waiting_cond = threading.Condition()
        self._waiting_thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Basic queue
    # -------------------------------------------------------------------------

    def add(self, key: str) -> None:
        """Queue a key unless it is already waiting."""
        with self._cond:
            if self._shutting_down:
                return
            if key in self._dirty:
                return
            self._dirty.add(key)
            if key in self._processing:
                return
            self._queue.append(key)
            QUEUE_DEPTH.set(len(self._queue))
            self._cond.notify()

    def get(self, timeout: float | None = None) -> tuple[str | None, bool]:
        """Take the next key, blocking while the queue is empty.

        Returns (key, False) on success and (None, True) once the queue is
        shut down. With a timeout, returns (None, False) if nothing arrived.
        """
        with self._cond:
            deadline = None if timeout is None else self._clock() + timeout
            while not self._queue and not self._shutting_down:
                remaining = None if deadline is None else deadline - self._clock()
                if remaining is not None and remaining <= 0:
                    return None, False
                self._cond.wait(remaining)

            if self._shutting_down:
                return None, True

            key = self._queue.popleft()
            self._processing.add(key)
            self._dirty.discard(key)
            QUEUE_DEPTH.set(len(self._queue))
            return key, False

    def done(self, key: str) -> None:
        """Mark a key as processed, re-queueing it if it was added meanwhile."""
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty and not self._shutting_down:
                self._queue.append(key)
                QUEUE_DEPTH.set(len(self._queue))
                self._cond.notify()

    def shut_down(self) -> None:
        """Stop accepting keys and wake up every blocked worker."""
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()
        with self._waiting_cond:
            self._waiting_cond.notify_all()
        if self._waiting_thread is not None:
            self._waiting_thread.join(timeout=5)

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    # -------------------------------------------------------------------------
    # Delayed adds
    # -------------------------------------------------------------------------

    def add_after(self, key: str, delay: float) -> None:
        """Queue a key once `delay` seconds have passed."""
        if self.shutting_down:
            return
        if delay <= 0:
            self.add(key)
            return

        ready_at = self._clock() + delay
        with self._waiting_cond:
            current = self._waiting_until.get(key)
            if current is not None and current <= ready_at:
                return
            self._waiting_until[key] = ready_at
            heapq.heappush(self._waiting, (ready_at, next(self._seq), key))
            self._ensure_waiting_thread()
            self._waiting_cond.notify()

    def _ensure_waiting_thread(self) -> None:
        """Start the delayed-add thread (must hold _waiting_cond)."""
        if self._waiting_thread is None:
            self._waiting_thread = threading.Thread(
                target=self._waiting_loop, name="workqueue-delays", daemon=True
            )
            self._waiting_thread.start()

    def _waiting_loop(self) -> None:
        while True:
            ready: list[str] = []
            with self._waiting_cond:
                if self._shutting_down:
                    return
                now = self._clock()
                while self._waiting and self._waiting[0][0] <= now:
                    ready_at, _, key = heapq.heappop(self._waiting)
                    # Skip stale entries superseded by an earlier time
                    if self._waiting_until.get(key) == ready_at:
                        del self._waiting_until[key]
                        ready.append(key)

                if not ready:
                    timeout = self._waiting[0][0] - now if self._waiting else None
                    self._waiting_cond.wait(timeout)
                    continue

            for key in ready:
                self.add(key)

    # -------------------------------------------------------------------------
    # Rate limiting
    # -------------------------------------------------------------------------

    def add_rate_limited(self, key: str) -> None:
        """Queue a key after the delay chosen by the rate limiter."""
        delay = self._rate_limiter.when(key)
        RATE_LIMIT_WAIT_SECONDS.observe(delay)
        logger.debug("Re-queueing %s in %.3fs", key, delay)
        self.add_after(key, delay)

    def forget(self, key: str) -> None:
        """Reset the retry history of a key."""
        self._rate_limiter.forget(key)

    def num_requeues(self, key: str) -> int:
        return self._rate_limiter.num_requeues(key)
