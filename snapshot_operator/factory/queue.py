"""Deduplicating work queue feeding the controller workers.

The queue is level triggered: it holds keys, not events. Adding a key that is
already waiting is a no-op, and adding a key that is being processed marks it
dirty so it runs exactly once more after the current run is done. A key is
therefore never processed by two workers at the same time.
"""

import asyncio
from collections import deque
import logging
from typing import Generic, TypeVar

__all__ = ["WorkQueue", "ExponentialRateLimiter"]

_LOGGER = logging.getLogger(__name__)

K = TypeVar("K")

# Defaults of the per-item rate limiter used for failed syncs.
BASE_DELAY = 0.005
MAX_DELAY = 1000.0


class ExponentialRateLimiter(Generic[K]):
    """Per key exponential backoff for requeueing failed keys."""

    def __init__(self, base_delay: float = BASE_DELAY, max_delay: float = MAX_DELAY):
        """Initialize ExponentialRateLimiter."""
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._failures: dict[K, int] = {}

    def when(self, key: K) -> float:
        """Record a failure and return how long to wait before a retry."""
        failures = self._failures.get(key, 0)
        self._failures[key] = failures + 1
        return min(self._base_delay * 2**failures, self._max_delay)

    def forget(self, key: K) -> None:
        """Reset the failure count of the key."""
        self._failures.pop(key, None)

    def num_requeues(self, key: K) -> int:
        """Number of failures recorded for the key."""
        return self._failures.get(key, 0)


class WorkQueue(Generic[K]):
    """Queue of keys with at most one pending and one in flight run per key."""

    def __init__(
        self, name: str, rate_limiter: ExponentialRateLimiter[K] | None = None
    ) -> None:
        """Initialize WorkQueue."""
        self._name = name
        self._rate_limiter = rate_limiter or ExponentialRateLimiter()
        self._queue: deque[K] = deque()
        self._dirty: set[K] = set()
        self._processing: set[K] = set()
        self._timers: dict[K, asyncio.TimerHandle] = {}
        self._wakeup = asyncio.Event()
        self._shutting_down = False

    def __len__(self) -> int:
        """Number of keys waiting to be processed."""
        return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        """Return True once shutdown was called."""
        return self._shutting_down

    def add(self, key: K) -> None:
        """Mark the key as needing processing."""
        if self._shutting_down:
            return
        if key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            _LOGGER.debug("%s: %s is in flight, will run again", self._name, key)
            return
        self._queue.append(key)
        self._wakeup.set()

    async def get(self) -> K | None:
        """Wait for the next key, or return None once the queue is shut down.

        Keys still waiting when the queue is shut down are dropped.
        """
        while not self._shutting_down:
            if self._queue:
                key = self._queue.popleft()
                self._processing.add(key)
                self._dirty.discard(key)
                return key
            self._wakeup.clear()
            await self._wakeup.wait()
        return None

    def done(self, key: K) -> None:
        """Mark the key as processed, requeueing it if it was added meanwhile."""
        self._processing.discard(key)
        if key in self._dirty:
            self._queue.append(key)
            self._wakeup.set()

    def add_after(self, key: K, delay: float) -> None:
        """Add the key once the delay has passed."""
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(key)
            return
        loop = asyncio.get_running_loop()
        if (existing := self._timers.get(key)) is not None:
            if existing.when() <= loop.time() + delay:
                return
            existing.cancel()
        self._timers[key] = loop.call_later(delay, self._timer_fired, key)

    def _timer_fired(self, key: K) -> None:
        self._timers.pop(key, None)
        self.add(key)

    def add_rate_limited(self, key: K) -> None:
        """Add the key after its backoff delay."""
        delay = self._rate_limiter.when(key)
        _LOGGER.debug("%s: requeueing %s in %0.3fs", self._name, key, delay)
        self.add_after(key, delay)

    def forget(self, key: K) -> None:
        """Stop tracking failures of the key."""
        self._rate_limiter.forget(key)

    def num_requeues(self, key: K) -> int:
        """Number of times the key was requeued since it was last forgotten."""
        return self._rate_limiter.num_requeues(key)

    def shutdown(self) -> None:
        """Stop accepting keys and wake up every waiting consumer."""
        self._shutting_down = True
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._wakeup.set()
