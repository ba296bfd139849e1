"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from limiter.adapters.store.base import CounterStore


@dataclass
class _CounterState:
    count: int
    expires_at: float


class InMemoryCounterStore(CounterStore):
    """Counter store backed by a dict with lazy TTL expiry.

    Increments are atomic within one process, which makes this store a
    faithful stand-in for Redis in tests and single-worker deployments.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker counts
        independently.
    """

    atomic = True

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        purge_every: int = 1024,
    ) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source function returning UNIX time in seconds.
            purge_every: Sweep expired counters after this many increments.
        """
        if purge_every < 1:
            raise ValueError("purge_every must be >= 1")
        self._clock = clock
        self._purge_every = purge_every
        self._increments = 0
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _CounterState] = {}

    async def check_and_increment(self, key: str, window_seconds: int) -> int:
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        now = self._clock()
        with self._lock:
            state = self._state_by_key.get(key)
            if state is None or state.expires_at <= now:
                state = _CounterState(count=0, expires_at=now)
                self._state_by_key[key] = state
            state.count += 1
            state.expires_at = now + window_seconds
            count = state.count

            self._increments += 1
            if self._increments % self._purge_every == 0:
                self._purge_locked(now)
            return count

    def get(self, key: str) -> int:
        """Return the live count for ``key`` without touching its expiry."""
        now = self._clock()
        with self._lock:
            state = self._state_by_key.get(key)
            if state is None or state.expires_at <= now:
                return 0
            return state.count

    def purge_expired(self) -> int:
        """Drop expired counters and return how many were removed."""
        with self._lock:
            return self._purge_locked(self._clock())

    def _purge_locked(self, now: float) -> int:
        expired = [k for k, s in self._state_by_key.items() if s.expires_at <= now]
        for key in expired:
            del self._state_by_key[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)
