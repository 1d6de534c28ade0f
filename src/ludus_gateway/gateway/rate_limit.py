"""Fixed-window request rate limiting keyed by client address.

Counters live behind a small store interface. The in-memory store suits a
single process; a multi-instance deployment needs a shared store that
implements the same ``hit`` contract atomically.
"""
from __future__ import annotations
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Protocol


@dataclass(frozen=True)
class WindowState:
    """Counter state for one key after a hit."""
    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int
    count: int


class CounterStore(Protocol):
    """Storage for fixed-window counters."""

    def hit(self, key: str, window_seconds: float, now: float) -> WindowState:
        """Atomically count one request for ``key`` and return the window state.

        A window that has elapsed is reset before counting.
        """


class InMemoryCounterStore:
    """Process-local counter store guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._windows: dict[str, WindowState] = {}

    def hit(self, key: str, window_seconds: float, now: float) -> WindowState:
        with self._lock:
            current = self._windows.get(key)
            if current is None or now >= current.window_start + window_seconds:
                state = WindowState(count=1, window_start=now)
            else:
                state = WindowState(count=current.count + 1, window_start=current.window_start)
            self._windows[key] = state
            return state

    def purge(self, window_seconds: float, now: float, prefix: str = "") -> int:
        """Drop elapsed windows whose key starts with ``prefix``; returns how many were removed."""
        with self._lock:
            stale = [
                k for k, s in self._windows.items()
                if k.startswith(prefix) and now >= s.window_start + window_seconds
            ]
            for key in stale:
                del self._windows[key]
            return len(stale)

    def __len__(self) -> int:
        return len(self._windows)


class FixedWindowLimiter:
    """
    Allow ``limit`` requests per key in each window of ``window_seconds``.

    Args:
        limit: Maximum requests per window.
        window_seconds: Window length.
        store: Counter store; a fresh in-memory store when omitted.
        clock: Time source in seconds, monotonic by default.
        name: Namespace so several limiters can share one store.
    """

    PURGE_EVERY = 1000

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        store: CounterStore | None = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "default",
    ) -> None:
        if limit < 1 or window_seconds <= 0:
            raise ValueError("limit and window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self.store = store if store is not None else InMemoryCounterStore()
        self.clock = clock
        self.name = name
        self._hits = 0

    def check(self, client_key: str) -> RateLimitDecision:
        """Count one request for ``client_key`` and decide whether it may proceed."""
        now = self.clock()
        state = self.store.hit(f"{self.name}:{client_key}", self.window_seconds, now)
        self._maybe_purge(now)
        remaining_time = state.window_start + self.window_seconds - now
        return RateLimitDecision(
            allowed=state.count <= self.limit,
            limit=self.limit,
            remaining=max(0, self.limit - state.count),
            retry_after=max(1, math.ceil(remaining_time)),
            count=state.count,
        )

    def _maybe_purge(self, now: float) -> None:
        self._hits += 1
        purge = getattr(self.store, "purge", None)
        if purge is not None and self._hits % self.PURGE_EVERY == 0:
            purge(self.window_seconds, now, prefix=f"{self.name}:")
