"""
Token bucket throttle for outbound upstream calls.

Every call to one upstream, including each branch of a fan-out, passes
through that upstream's throttle so bursts are paced by a shared bucket
instead of fixed startup delays.
"""

import asyncio
import time
from typing import Awaitable, Callable

from shared.logging import get_logger


class TokenBucket:
    """Refills ``rate`` tokens per second up to ``capacity``."""

    def __init__(
        self,
        rate: float,
        capacity: int,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated_at = clock()
        self._lock = asyncio.Lock()

    @property
    def tokens(self) -> float:
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.rate)
        self._updated_at = now

    async def acquire(self) -> float:
        """Take one token, waiting for a refill if necessary.

        Returns the total time spent waiting. Waiters are served in arrival
        order because the lock is held while sleeping.
        """
        waited = 0.0
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return waited
                delay = (1 - self._tokens) / self.rate
                waited += delay
                await self._sleep(delay)


class UpstreamThrottle:
    """Token bucket plus an in-flight cap, used as an async context manager."""

    def __init__(
        self,
        name: str,
        rate: float,
        burst: int,
        max_concurrency: int,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.name = name
        self.bucket = TokenBucket(rate, burst, clock=clock, sleep=sleep)
        self.max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self.logger = get_logger(f"catalog.throttle.{name}")

    async def __aenter__(self) -> "UpstreamThrottle":
        await self._semaphore.acquire()
        try:
            waited = await self.bucket.acquire()
        except BaseException:
            self._semaphore.release()
            raise
        if waited:
            self.logger.debug("Upstream call throttled", upstream=self.name, waited_seconds=round(waited, 3))
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self._semaphore.release()
        return False
