"""
Fixed-window rate limiting for the ingestion endpoint, keyed by API key id.
"""

from typing import Callable, Dict, Optional, Tuple
from dataclasses import dataclass
import time

from lifesync.core.config import settings


@dataclass
class RateLimitRule:
    """Rate limit rule configuration."""
    max_requests: int
    window_seconds: int


@dataclass
class RateLimitResult:
    """Outcome of one rate limit check."""
    allowed: bool
    remaining: int
    retry_after: int = 0  # Seconds until the window resets, when not allowed


class RateLimitExceeded(Exception):
    """Exception raised when rate limit is exceeded."""

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded. Try again in {retry_after} seconds")


class InMemoryRateLimiter:
    """
    In-memory rate limiter for development/testing and single-instance deployments.
    In production with several instances, use Redis.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        # Track windows: key -> (window_start, count)
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._clock = clock

    def check(self, key: str, rule: RateLimitRule) -> RateLimitResult:
        """
        Count one request for ``key`` and tell whether it is allowed.

        The first request opens a window of ``rule.window_seconds``; once
        ``rule.max_requests`` were counted in it, further requests are
        refused until it expires.
        """
        now = self._clock()
        self._cleanup(now, rule)

        window_start, count = self._windows.get(key, (None, 0))
        if window_start is None or now - window_start > rule.window_seconds:
            # New window
            self._windows[key] = (now, 1)
            return RateLimitResult(allowed=True, remaining=rule.max_requests - 1)

        if count >= rule.max_requests:
            retry_after = rule.window_seconds - (now - window_start)
            return RateLimitResult(allowed=False, remaining=0, retry_after=max(int(retry_after + 0.999), 1))

        self._windows[key] = (window_start, count + 1)
        return RateLimitResult(allowed=True, remaining=rule.max_requests - count - 1)

    def check_rate_limit(self, key: str, rule: RateLimitRule) -> RateLimitResult:
        """
        Like ``check`` but raising when the request is refused.

        Raises:
            RateLimitExceeded: If rate limit is exceeded
        """
        result = self.check(key, rule)
        if not result.allowed:
            raise RateLimitExceeded(result.retry_after)
        return result

    def reset(self, key: str) -> None:
        """Reset rate limit for a key."""
        self._windows.pop(key, None)

    def _cleanup(self, now: float, rule: RateLimitRule) -> None:
        # Drop windows that expired long ago
        expired = [
            key for key, (window_start, _) in self._windows.items()
            if now - window_start > rule.window_seconds * 2
        ]
        for key in expired:
            del self._windows[key]


class RedisRateLimiter:
    """
    Redis-based rate limiter for production use.
    Provides distributed rate limiting across multiple servers.
    """

    def __init__(self, redis_client):
        """
        Initialize with a Redis client.

        Args:
            redis_client: Redis client instance
        """
        self.redis = redis_client
        self._prefix = "ratelimit:ingest:"

    def check(self, key: str, rule: RateLimitRule) -> RateLimitResult:
        redis_key = f"{self._prefix}{key}"

        # Counter expires with the window it belongs to
        pipe = self.redis.pipeline()
        pipe.incr(redis_key)
        pipe.ttl(redis_key)
        count, ttl = pipe.execute()

        if ttl is None or ttl < 0:
            self.redis.expire(redis_key, rule.window_seconds)
            ttl = rule.window_seconds

        if count > rule.max_requests:
            return RateLimitResult(allowed=False, remaining=0, retry_after=max(int(ttl), 1))
        return RateLimitResult(allowed=True, remaining=rule.max_requests - count)

    def check_rate_limit(self, key: str, rule: RateLimitRule) -> RateLimitResult:
        result = self.check(key, rule)
        if not result.allowed:
            raise RateLimitExceeded(result.retry_after)
        return result

    def reset(self, key: str) -> None:
        """Reset rate limit for a key."""
        self.redis.delete(f"{self._prefix}{key}")


def ingest_rule() -> RateLimitRule:
    return RateLimitRule(
        max_requests=settings.INGEST_RATE_LIMIT_REQUESTS,
        window_seconds=settings.INGEST_RATE_LIMIT_WINDOW_SECONDS,
    )


# Global rate limiter instance
_rate_limiter: Optional[InMemoryRateLimiter] = None


def get_rate_limiter() -> InMemoryRateLimiter:
    """Get or create the rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = InMemoryRateLimiter()
    return _rate_limiter


def initialize_redis_rate_limiter(redis_client):
    """
    Initialize the Redis-based rate limiter.
    Call this during application startup if using Redis.
    """
    global _rate_limiter
    _rate_limiter = RedisRateLimiter(redis_client)
