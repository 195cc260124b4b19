"""Shared concurrency primitives for the ingestion worker pool.

The worker pool bounds two different things:

1. **How many jobs run at once** -- a fixed number of worker tasks, so at
   most ``concurrency`` jobs are in flight.
2. **How many jobs start per unit time** -- a sliding-window
   :class:`RateLimiter`, so a burst of short jobs cannot flood the shared
   LLM endpoint even when worker slots are free.

The limiter takes an injectable clock and sleep function so tests can
drive it without real waiting.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

from semantic_archive.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimit:
    """At most ``max`` acquisitions within any ``window`` seconds."""

    max: int
    window: float

    def __post_init__(self) -> None:
        if self.max < 1:
            raise ValueError(f"RateLimit.max must be >= 1, got {self.max}")
        if self.window <= 0:
            raise ValueError(f"RateLimit.window must be > 0, got {self.window}")


class RateLimiter:
    """Sliding-window limiter shared by every worker of a pool.

    Keeps the timestamps of the most recent ``limit.max`` acquisitions.
    A new acquisition is admitted only when the oldest of those is at
    least ``limit.window`` seconds old.

    Parameters
    ----------
    limit:
        The admission budget.
    clock:
        Monotonic time source, ``time.monotonic`` by default.
    sleep:
        Async sleep used while waiting for the window to slide.
    """

    def __init__(
        self,
        limit: RateLimit,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._limit = limit
        self._clock = clock
        self._sleep = sleep
        self._starts: deque[float] = deque()
        # Serialises admissions so two workers cannot take the same slot.
        self._lock = asyncio.Lock()

    @property
    def limit(self) -> RateLimit:
        return self._limit

    async def acquire(self) -> float:
        """Wait until a start is allowed, then record it.

        Returns
        -------
        float
            Seconds spent waiting (0.0 when admitted immediately).
        """
        waited = 0.0
        async with self._lock:
            while True:
                now = self._clock()
                while self._starts and now - self._starts[0] >= self._limit.window:
                    self._starts.popleft()
                if len(self._starts) < self._limit.max:
                    self._starts.append(now)
                    if waited:
                        _logger.debug("rate_limit_released", waited_s=round(waited, 3))
                    return waited
                delay = self._limit.window - (now - self._starts[0])
                _logger.debug(
                    "rate_limit_wait",
                    delay_s=round(delay, 3),
                    max=self._limit.max,
                    window_s=self._limit.window,
                )
                await self._sleep(delay)
                waited += delay

    def recent_starts(self) -> int:
        """Number of starts still inside the current window."""
        now = self._clock()
        return sum(1 for t in self._starts if now - t < self._limit.window)
