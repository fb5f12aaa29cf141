"""
In-memory, fixed-window rate limiting for identity and linking actions.

Counting is per (action, client) bucket. A bucket's count resets the first
time it is touched after its window ends. Fixed windows allow a burst of up
to twice the limit straddling a window boundary; that is acceptable for abuse
mitigation and not meant for fair scheduling.

Buckets are process-local. The map is capped at max_keys: stale windows are
swept periodically (see main.cleanup_task) and on demand when the cap is hit.
For a multi-process deployment, move buckets to a shared key-value store.
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from fastapi import Request

from dislink import config
from dislink.errors import Throttled


class RateLimitAction(str, Enum):
    """Every rate-limited action. Closed set."""

    LOGIN = "login"
    SIGNUP = "signup"
    RESET_PASSWORD = "reset_password"
    VERIFY_EMAIL = "verify_email"
    VALIDATE_CODE = "validate_code"
    REQUEST_LINK = "request_link"
    REDEEM_LINK = "redeem_link"


@dataclass(frozen=True)
class RateLimit:
    max_requests: int
    window_seconds: float


DEFAULT_LIMITS: dict[RateLimitAction, RateLimit] = {
    RateLimitAction.LOGIN: RateLimit(5, 60),
    RateLimitAction.SIGNUP: RateLimit(3, 60),
    RateLimitAction.RESET_PASSWORD: RateLimit(2, 60),
    RateLimitAction.VERIFY_EMAIL: RateLimit(3, 60),
    RateLimitAction.VALIDATE_CODE: RateLimit(30, 60),
    RateLimitAction.REQUEST_LINK: RateLimit(5, 3600),
    RateLimitAction.REDEEM_LINK: RateLimit(10, 60),
}


@dataclass
class _Bucket:
    count: int
    window_reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: float = 0.0


class RateLimiter:
    """
    Fixed-window rate limiter with a bounded bucket map.

    Check-and-increment runs under a single lock, so concurrent requests for
    the same key can never push a bucket past its limit.
    """

    def __init__(
        self,
        limits: dict[RateLimitAction, RateLimit] | None = None,
        max_keys: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._limits = dict(limits or DEFAULT_LIMITS)
        self._max_keys = max_keys
        self._clock = clock
        self._buckets: dict[tuple[RateLimitAction, str], _Bucket] = {}
        self._lock = threading.Lock()

    def limit_for(self, action: RateLimitAction) -> RateLimit:
        return self._limits[action]

    def check(self, action: RateLimitAction, client: str) -> RateLimitDecision:
        """
        Count one request for (action, client) if it fits in the window.

        Args:
            action: Rate-limited action
            client: Client identity (IP address, email, user ID)

        Returns:
            RateLimitDecision; when not allowed, retry_after is the time left
            in the current window, in seconds
        """
        limit = self._limits[action]
        key = (action, client)

        with self._lock:
            now = self._clock()
            bucket = self._buckets.get(key)

            if bucket is None:
                self._make_room(now)
                bucket = _Bucket(count=0, window_reset_at=now + limit.window_seconds)
                self._buckets[key] = bucket
            elif now >= bucket.window_reset_at:
                bucket.count = 0
                bucket.window_reset_at = now + limit.window_seconds

            if bucket.count >= limit.max_requests:
                return RateLimitDecision(allowed=False, retry_after=bucket.window_reset_at - now)

            bucket.count += 1
            return RateLimitDecision(allowed=True)

    def allow(self, action: RateLimitAction, client: str) -> bool:
        """True if the request is within the limit (and counts it)."""
        return self.check(action, client).allowed

    def enforce(self, action: RateLimitAction, client: str) -> None:
        """
        Count one request, raising when over the limit.

        Raises:
            Throttled: With retry_after set to the remaining window time
        """
        decision = self.check(action, client)
        if not decision.allowed:
            raise Throttled(
                retry_after=decision.retry_after,
                detail=f"Too many {action.value.replace('_', ' ')} attempts. "
                f"Please try again in {max(1, math.ceil(decision.retry_after))} seconds.",
            )

    def sweep(self) -> int:
        """
        Drop buckets whose window has ended.

        Returns:
            Number of buckets removed
        """
        with self._lock:
            return self._sweep(self._clock())

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()

    def __len__(self) -> int:
        return len(self._buckets)

    def _sweep(self, now: float) -> int:
        stale = [k for k, b in self._buckets.items() if now >= b.window_reset_at]
        for key in stale:
            del self._buckets[key]
        return len(stale)

    def _make_room(self, now: float) -> None:
        # Caller holds the lock
        if len(self._buckets) < self._max_keys:
            return
        self._sweep(now)
        while len(self._buckets) >= self._max_keys:
            # Evict the bucket closest to resetting; it loses the least state
            oldest = min(self._buckets, key=lambda k: self._buckets[k].window_reset_at)
            del self._buckets[oldest]


def client_ip(request: Request) -> str:
    """Rate-limit key for anonymous callers."""
    return request.client.host if request.client else "unknown"


# Global rate limiter instance
rate_limiter = RateLimiter(max_keys=config.settings.RATE_LIMIT_MAX_KEYS)
