"""
Fixed-window rate limiter for inbound gateway requests.

Each upstream dependency carries a policy of one or more stacked windows
(for example a 1 second burst ceiling and a 60 second sustained ceiling).
A request is admitted only when every window of the policy has capacity,
and only admitted requests are counted.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

import redis.asyncio as redis
from fastapi import Request

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import BaseConfig
    from shared.metrics import MetricsCollector


TMDB = "tmdb"
JIKAN = "jikan"

# (count, seconds until the window resets) for each window of a policy
WindowState = Tuple[int, float]


@dataclass(frozen=True)
class RateLimitWindow:
    """A fixed window: at most ``max_requests`` per ``seconds``."""

    seconds: int
    max_requests: int


@dataclass(frozen=True)
class RateLimitPolicy:
    """Stacked windows guarding one upstream dependency."""

    dependency: str
    windows: Tuple[RateLimitWindow, ...]
    message: str


@dataclass(frozen=True)
class Admission:
    """Outcome of an admission check."""

    allowed: bool
    limit: int
    remaining: int
    reset_in_seconds: int
    retry_after: Optional[int] = None


def default_policies(config: "BaseConfig") -> Dict[str, RateLimitPolicy]:
    """Build the per-dependency policies from configuration."""
    return {
        TMDB: RateLimitPolicy(
            dependency=TMDB,
            windows=(RateLimitWindow(1, config.tmdb_rate_limit_per_second),),
            message="Too many requests to TMDB (/movies, /tv endpoints), please try again later.",
        ),
        JIKAN: RateLimitPolicy(
            dependency=JIKAN,
            windows=(
                RateLimitWindow(1, config.jikan_rate_limit_per_second),
                RateLimitWindow(60, config.jikan_rate_limit_per_minute),
            ),
            message="Too many requests to Jikan (/anime endpoints), please try again later.",
        ),
    }


class InMemoryWindowStore:
    """Process-local window counters.

    A window starts at the first admitted hit for its key and resets once
    its duration has elapsed. Check and increment happen under one lock so
    concurrent bursts from the same caller cannot undercount.
    """

    MAX_KEYS = 10000

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = asyncio.Lock()
        self._windows: Dict[str, Tuple[float, int]] = {}

    async def try_acquire(
        self, key: str, windows: Sequence[RateLimitWindow]
    ) -> Tuple[bool, List[WindowState]]:
        async with self._lock:
            now = self._clock()
            if len(self._windows) > self.MAX_KEYS:
                self._prune(now)

            current = []
            for window in windows:
                window_key = f"{key}:{window.seconds}"
                started_at, count = self._windows.get(window_key, (now, 0))
                if now - started_at >= window.seconds:
                    started_at, count = now, 0
                current.append((window_key, started_at, count))

            allowed = all(
                count < window.max_requests
                for (_, _, count), window in zip(current, windows)
            )

            states: List[WindowState] = []
            for (window_key, started_at, count), window in zip(current, windows):
                if allowed:
                    count += 1
                    self._windows[window_key] = (started_at, count)
                states.append((count, max(0.0, started_at + window.seconds - now)))
            return allowed, states

    def _prune(self, now: float) -> None:
        expired = [
            window_key
            for window_key, (started_at, _) in self._windows.items()
            if now - started_at >= int(window_key.rsplit(":", 1)[1])
        ]
        for window_key in expired:
            del self._windows[window_key]


class RedisWindowStore:
    """Window counters shared across gateway replicas through Redis."""

    # KEYS: one per window. ARGV: max_requests, window_ms pairs.
    # Returns {allowed, count_1, pttl_1, count_2, pttl_2, ...}
    ACQUIRE_SCRIPT = """
local allowed = 1
local counts = {}
local ttls = {}
for i = 1, #KEYS do
  counts[i] = tonumber(redis.call('GET', KEYS[i]) or '0')
  ttls[i] = redis.call('PTTL', KEYS[i])
  if counts[i] >= tonumber(ARGV[2 * i - 1]) then
    allowed = 0
  end
end
local result = {allowed}
for i = 1, #KEYS do
  if allowed == 1 then
    counts[i] = redis.call('INCR', KEYS[i])
    if counts[i] == 1 or ttls[i] < 0 then
      redis.call('PEXPIRE', KEYS[i], ARGV[2 * i])
      ttls[i] = tonumber(ARGV[2 * i])
    end
  end
  table.insert(result, counts[i])
  table.insert(result, ttls[i])
end
return result
"""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._redis: Optional[redis.Redis] = None
        self._script = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
            self._script = self._redis.register_script(self.ACQUIRE_SCRIPT)
        return self._redis

    async def try_acquire(
        self, key: str, windows: Sequence[RateLimitWindow]
    ) -> Tuple[bool, List[WindowState]]:
        await self._get_redis()
        keys = [f"{key}:{window.seconds}" for window in windows]
        args: List[int] = []
        for window in windows:
            args.extend([window.max_requests, window.seconds * 1000])

        raw = await self._script(keys=keys, args=args)

        states: List[WindowState] = []
        for index, window in enumerate(windows):
            count = int(raw[1 + index * 2])
            pttl = int(raw[2 + index * 2])
            seconds_left = pttl / 1000.0 if pttl >= 0 else float(window.seconds)
            states.append((count, seconds_left))
        return bool(int(raw[0])), states

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class WindowRateLimiter:
    """Admission gate applying a policy per upstream dependency."""

    def __init__(
        self,
        policies: Dict[str, RateLimitPolicy],
        store,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.policies = policies
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("catalog.rate_limiter")

    def _make_key(self, dependency: str, caller: str) -> str:
        """Generate rate limit key."""
        return f"ratelimit:{dependency}:{caller}"

    async def admit(self, dependency: str, caller: str) -> Admission:
        """Admit or reject one request from ``caller`` to ``dependency``."""
        policy = self.policies[dependency]
        key = self._make_key(dependency, caller)

        try:
            allowed, states = await self.store.try_acquire(key, policy.windows)
        except Exception as e:
            # Fail open: the limiter protects upstream quota, not availability
            self.logger.error("Rate limit check error", dependency=dependency, error=str(e))
            tightest = min(policy.windows, key=lambda window: window.max_requests)
            return Admission(
                allowed=True,
                limit=tightest.max_requests,
                remaining=tightest.max_requests,
                reset_in_seconds=tightest.seconds,
            )

        remaining_by_window = [
            (max(0, window.max_requests - count), seconds_left, window)
            for (count, seconds_left), window in zip(states, policy.windows)
        ]
        remaining, seconds_left, window = min(remaining_by_window, key=lambda item: item[0])
        reset_in_seconds = max(1, math.ceil(seconds_left))

        if allowed:
            return Admission(
                allowed=True,
                limit=window.max_requests,
                remaining=remaining,
                reset_in_seconds=reset_in_seconds,
            )

        retry_after = max(
            max(1, math.ceil(left))
            for (count, left), exhausted in zip(states, policy.windows)
            if count >= exhausted.max_requests
        )
        self.logger.warning(
            "Rate limit exceeded",
            dependency=dependency,
            caller=caller,
            retry_after=retry_after,
        )
        if self.metrics:
            self.metrics.increment_counter("rate_limit_rejections_total", dependency=dependency)
        return Admission(
            allowed=False,
            limit=window.max_requests,
            remaining=0,
            reset_in_seconds=retry_after,
            retry_after=retry_after,
        )

    async def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            await close()


class RateLimitMiddleware:
    """Resolves the caller identity for a request and applies the limiter."""

    def __init__(self, rate_limiter: WindowRateLimiter):
        self.rate_limiter = rate_limiter
        self.logger = get_logger("catalog.rate_limit_middleware")

    async def check_request(self, request: Request, dependency: str) -> Admission:
        """Check rate limit for request."""
        client_id = self._get_client_id(request)
        return await self.rate_limiter.admit(dependency, client_id)

    def message_for(self, dependency: str) -> str:
        return self.rate_limiter.policies[dependency].message

    def _get_client_id(self, request: Request) -> str:
        """Extract client ID from request."""
        forwarded_for = request.headers.get('X-Forwarded-For')
        if isinstance(forwarded_for, str) and forwarded_for:
            return forwarded_for.split(',')[0].strip()

        real_ip = request.headers.get('X-Real-IP')
        if isinstance(real_ip, str) and real_ip:
            return real_ip

        return request.client.host if request.client else 'unknown'
