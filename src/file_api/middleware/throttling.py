"""Token-bucket store and the RateLimit middleware."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass

from file_api._types import Clock, Handler, KeyFunc, SkipPredicate
from file_api.component import Component
from file_api.context import RequestContext
from file_api.exceptions import RateLimitExceeded
from file_api.logging_config import get_logger
from file_api.response import Response, error_response_for

logger = get_logger(__name__)

DEFAULT_IDLE_SECONDS = 60 * 60


@dataclass
class TokenBucket:
    tokens: float
    last_refill: float
    request_count: int = 0


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int
    remaining: int


class TokenBucketStore:
    """Per-key continuous-refill token buckets guarded by a single lock.

    A bucket starts full (``max_requests`` tokens) and refills at
    ``max_requests / window_seconds`` tokens per second, so bursts up to the
    capacity are admitted and then throughput smooths out.
    """

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    def check(self, key: str, max_requests: int, window_seconds: int) -> RateLimitDecision:
        """Refill, then take one token if available."""
        if max_requests < 1 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")

        with self._lock:
            now = self._clock()
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(tokens=float(max_requests), last_refill=now)
                self._buckets[key] = bucket

            refill_rate = max_requests / window_seconds
            elapsed = max(0.0, now - bucket.last_refill)
            bucket.tokens = min(float(max_requests), bucket.tokens + elapsed * refill_rate)
            bucket.last_refill = now

            if bucket.tokens >= 1:
                bucket.tokens -= 1
                bucket.request_count += 1
                return RateLimitDecision(
                    allowed=True, retry_after=0, remaining=math.floor(bucket.tokens)
                )

            # (1 - tokens) / refill_rate, kept in integer-friendly form
            retry_after = math.ceil((1 - bucket.tokens) * window_seconds / max_requests)
            return RateLimitDecision(allowed=False, retry_after=retry_after, remaining=0)

    def remaining(self, key: str) -> int:
        with self._lock:
            bucket = self._buckets.get(key)
            return math.floor(bucket.tokens) if bucket is not None else 0

    def get(self, key: str) -> TokenBucket | None:
        """Snapshot of a bucket, for monitoring and tests."""
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                return None
            return TokenBucket(bucket.tokens, bucket.last_refill, bucket.request_count)

    def sweep(self, max_idle_seconds: float = DEFAULT_IDLE_SECONDS) -> int:
        """Drop buckets whose last refill is older than ``max_idle_seconds``."""
        with self._lock:
            cutoff = self._clock() - max_idle_seconds
            stale = [k for k, b in self._buckets.items() if b.last_refill < cutoff]
            for key in stale:
                del self._buckets[key]
        return len(stale)

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._buckets)

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()


def default_key_func(ctx: RequestContext) -> str:
    """Source IP plus path."""
    return f"{ctx.source_ip}:{ctx.path}"


def user_key_func(ctx: RequestContext) -> str:
    """Per-user key when an identity is attached, falling back to IP and path."""
    if ctx.identity is not None:
        return f"user:{ctx.identity.user_id}"
    return default_key_func(ctx)


def ip_key_func(ctx: RequestContext) -> str:
    """Source IP alone, shared by every path."""
    return f"ip:{ctx.source_ip}"


class RateLimit(Component):
    """Admits or rejects requests using a shared TokenBucketStore.

    When limiters are stacked, the innermost one that answers owns the
    ``X-RateLimit-*`` headers; outer limiters leave them untouched.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int = 60,
        *,
        store: TokenBucketStore,
        key_func: KeyFunc | None = None,
        skip: SkipPredicate | None = None,
    ) -> None:
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._store = store
        self._key_func = key_func or default_key_func
        self._skip = skip

    async def dispatch(self, ctx: RequestContext, call_next: Handler) -> Response:
        if self._skip is not None and self._skip(ctx):
            return await call_next(ctx)

        key = self._key_func(ctx)
        decision = self._store.check(key, self._max_requests, self._window_seconds)

        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={
                    "key": key,
                    "path": ctx.path,
                    "method": ctx.method,
                    "retry_after": decision.retry_after,
                },
            )
            reset_ms = int(time.time() * 1000) + decision.retry_after * 1000
            return error_response_for(
                RateLimitExceeded(decision.retry_after),
                headers={
                    "Retry-After": str(decision.retry_after),
                    "X-RateLimit-Limit": str(self._max_requests),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(reset_ms),
                },
            )

        response = await call_next(ctx)
        if "X-RateLimit-Limit" in response.headers:
            return response
        return response.with_headers(
            {
                "X-RateLimit-Limit": str(self._max_requests),
                "X-RateLimit-Remaining": str(self._store.remaining(key)),
            }
        )
