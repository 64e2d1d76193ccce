"""Sliding-window rate limiting with a pluggable counter store.

Limiters are built per app and attached to `app.state.rate_limiters`; nothing
here is a module-level singleton. Each category (auth, payment, general) keeps
its own window, keyed by a caller-supplied identifier such as an email.
"""

import threading
import time
from collections import deque
from typing import Callable, Protocol
from uuid import uuid4

import redis

from payportal.common.config import CommonSettings
from payportal.common.errors import RateLimited
from payportal.common.metrics import rate_limited_total


class RateLimitStore(Protocol):
    def hit(self, key: str, window_seconds: float, limit: int) -> tuple[bool, float]:
        """Record one request if under `limit`; return (allowed, seconds until a slot frees)."""
        ...

    def clear(self, key: str) -> None: ...


class InMemoryRateLimitStore:
    """Per-process store: one deque of request timestamps per key.

    Keys whose newest request has left its window are swept at most once per
    `sweep_interval` seconds, so idle identifiers do not accumulate.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0) -> None:
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._requests: dict[str, deque[float]] = {}
        self._expires_at: dict[str, float] = {}
        self._last_sweep: float | None = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)

    def _sweep(self, now: float) -> None:
        expired = [key for key, expires_at in self._expires_at.items() if expires_at <= now]
        for key in expired:
            self._requests.pop(key, None)
            self._expires_at.pop(key, None)
        self._last_sweep = now

    def hit(self, key: str, window_seconds: float, limit: int) -> tuple[bool, float]:
        with self._lock:
            now = self._clock()
            if self._last_sweep is None or now - self._last_sweep >= self._sweep_interval:
                self._sweep(now)
            request_times = self._requests.setdefault(key, deque())
            while request_times and now - request_times[0] >= window_seconds:
                request_times.popleft()
            if len(request_times) < limit:
                request_times.append(now)
                self._expires_at[key] = now + window_seconds
                return True, 0.0
            if not request_times:
                del self._requests[key]
                return False, window_seconds
            return False, max(0.0, request_times[0] + window_seconds - now)

    def clear(self, key: str) -> None:
        with self._lock:
            self._requests.pop(key, None)
            self._expires_at.pop(key, None)


# Prune, count and record atomically. The retry delay comes back as a string
# because Redis truncates Lua numbers to integers.
SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
if redis.call('ZCARD', key) >= limit then
    local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
    local retry_after = window
    if oldest[2] then
        retry_after = tonumber(oldest[2]) + window - now
    end
    return {0, tostring(retry_after)}
end
redis.call('ZADD', key, now, ARGV[4])
redis.call('EXPIRE', key, math.ceil(window) + 1)
return {1, '0'}
"""


class RedisRateLimitStore:
    """Shared store: one sorted set of request timestamps per key, updated by a Lua script."""

    def __init__(self, client: redis.Redis, prefix: str = "ratelimit") -> None:
        self.client = client
        self.prefix = prefix
        self._script = client.register_script(SLIDING_WINDOW_SCRIPT)

    def hit(self, key: str, window_seconds: float, limit: int) -> tuple[bool, float]:
        now = time.time()
        allowed, retry_after = self._script(
            keys=[f"{self.prefix}:{key}"],
            args=[now, window_seconds, limit, f"{now}:{uuid4().hex}"],
        )
        return int(allowed) == 1, max(0.0, float(retry_after))

    def clear(self, key: str) -> None:
        self.client.delete(f"{self.prefix}:{key}")


class SlidingWindowRateLimiter:
    """Allow at most `limit` requests per `window_seconds` for each identifier."""

    def __init__(
        self,
        store: RateLimitStore,
        category: str,
        limit: int,
        window_seconds: float,
        service_name: str = "unknown-service",
    ) -> None:
        self.store = store
        self.category = category
        self.limit = limit
        self.window_seconds = window_seconds
        self.service_name = service_name

    def check(self, identifier: str) -> None:
        allowed, retry_after = self.store.hit(f"{self.category}:{identifier}", self.window_seconds, self.limit)
        if not allowed:
            rate_limited_total.labels(service=self.service_name, category=self.category).inc()
            raise RateLimited(retry_after=int(retry_after) + 1)

    def reset(self, identifier: str) -> None:
        self.store.clear(f"{self.category}:{identifier}")


def build_store(config: CommonSettings) -> RateLimitStore:
    if config.rate_limit_backend == "redis":
        return RedisRateLimitStore(redis.Redis.from_url(config.redis_url, decode_responses=True))
    return InMemoryRateLimitStore()


def build_rate_limiters(config: CommonSettings, store: RateLimitStore | None = None) -> dict[str, SlidingWindowRateLimiter]:
    """Create the auth/payment/general limiters sharing one store."""

    store = store or build_store(config)
    return {
        "auth": SlidingWindowRateLimiter(
            store, "auth", config.auth_rate_limit_max, config.auth_rate_limit_window_seconds, config.service_name
        ),
        "payment": SlidingWindowRateLimiter(
            store,
            "payment",
            config.payment_rate_limit_max,
            config.payment_rate_limit_window_seconds,
            config.service_name,
        ),
        "general": SlidingWindowRateLimiter(
            store,
            "general",
            config.general_rate_limit_max,
            config.general_rate_limit_window_seconds,
            config.service_name,
        ),
    }
