"""Fixed-window request buckets keyed by ``(limiter name, identity)``.

The in-process limiter is per worker: counts are not shared between
replicas. Setting ``RATE_LIMIT_REDIS_URL`` moves the buckets into Redis so
every instance sees the same counters. Neither backend is linearizable;
concurrent hits from one identity may overshoot a limit by a request or two.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from functools import lru_cache
from threading import Lock
from typing import Any, Protocol

import redis

from nosedive.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one bucket hit."""

    ok: bool
    remaining: int = 0
    retry_after: int | None = None


class RateLimiter(Protocol):
    def hit(
        self,
        name: str,
        identity_key: str,
        *,
        limit: int,
        window_seconds: int,
        now: float | None = None,
    ) -> RateLimitDecision:
        ...


def bucket_key(name: str, identity_key: str) -> str:
    return f"rl:{name}:{identity_key}"


class FixedWindowRateLimiter:
    """In-memory ``{key -> [count, window_end]}`` counter."""

    def __init__(self) -> None:
        self._buckets: dict[str, list[float]] = {}
        self._lock = Lock()

    def hit(
        self,
        name: str,
        identity_key: str,
        *,
        limit: int,
        window_seconds: int,
        now: float | None = None,
    ) -> RateLimitDecision:
        """Count one request; refuse it once ``limit`` is spent in the window."""
        if limit <= 0 or window_seconds <= 0:
            return RateLimitDecision(ok=True)
        current = time.time() if now is None else now
        key = bucket_key(name, identity_key)
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or current >= bucket[1]:
                self._buckets[key] = [1, current + window_seconds]
                return RateLimitDecision(ok=True, remaining=limit - 1)
            if bucket[0] < limit:
                bucket[0] += 1
                return RateLimitDecision(ok=True, remaining=int(limit - bucket[0]))
            retry_after = max(1, math.ceil(bucket[1] - current))
            return RateLimitDecision(ok=False, retry_after=retry_after)

    def prune(self, now: float | None = None) -> int:
        """Drop expired buckets; returns how many were removed."""
        current = time.time() if now is None else now
        with self._lock:
            expired = [key for key, (_, end) in self._buckets.items() if end <= current]
            for key in expired:
                del self._buckets[key]
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


class RedisRateLimiter:
    """Shared-store variant using ``INCR`` + ``EXPIRE`` per window.

    Falls back to an in-process limiter if Redis becomes unreachable.
    """

    def __init__(self, client: Any, fallback: FixedWindowRateLimiter | None = None) -> None:
        self._redis = client
        self._fallback = fallback or FixedWindowRateLimiter()

    def hit(
        self,
        name: str,
        identity_key: str,
        *,
        limit: int,
        window_seconds: int,
        now: float | None = None,
    ) -> RateLimitDecision:
        if limit <= 0 or window_seconds <= 0:
            return RateLimitDecision(ok=True)
        if self._redis is not None:
            key = bucket_key(name, identity_key)
            try:
                pipe = self._redis.pipeline()
                pipe.incr(key)
                pipe.ttl(key)
                count, ttl = pipe.execute()
                if int(count) == 1 or int(ttl) < 0:
                    self._redis.expire(key, int(window_seconds))
                    ttl = window_seconds
                if int(count) <= limit:
                    return RateLimitDecision(ok=True, remaining=limit - int(count))
                return RateLimitDecision(ok=False, retry_after=max(1, int(ttl)))
            except redis.RedisError as exc:
                logger.warning("Redis rate limiter unavailable, using in-process buckets: %s", exc)
                self._redis = None
        return self._fallback.hit(
            name, identity_key, limit=limit, window_seconds=window_seconds, now=now
        )


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    """Return the process-wide limiter, built once from settings."""
    if settings.rate_limit_redis_url:
        client = redis.Redis.from_url(settings.rate_limit_redis_url)
        return RedisRateLimiter(client)
    return FixedWindowRateLimiter()
