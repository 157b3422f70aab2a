"""In-memory TTL response cache and the ResponseCache middleware."""

from __future__ import annotations

import re
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from file_api._types import Clock, Handler, KeyFunc, SkipPredicate
from file_api.component import Component
from file_api.context import RequestContext
from file_api.logging_config import get_logger
from file_api.response import Response

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    response: Response
    stored_at: float
    ttl_seconds: float
    hits: int = 0

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl_seconds


class ResponseCacheStore:
    """Keyed response store with lazy and swept expiry.

    Responses are immutable values, so handing out ``with_headers`` copies
    never touches the stored entry.
    """

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Response | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            entry.hits += 1
            return entry.response.with_headers()

    def set(self, key: str, response: Response, ttl_seconds: float) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(
                response=response, stored_at=self._clock(), ttl_seconds=ttl_seconds
            )

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_matching(self, pattern: str) -> int:
        """Delete every key matched by the regular expression ``pattern``."""
        regex = re.compile(pattern)
        with self._lock:
            doomed = [key for key in self._entries if regex.search(key)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            now = self._clock()
            return {
                "size": len(self._entries),
                "entries": [
                    {
                        "key": key,
                        "hits": entry.hits,
                        "ageSeconds": int(now - entry.stored_at),
                    }
                    for key, entry in self._entries.items()
                ],
            }

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)


def build_cache_key(
    ctx: RequestContext,
    *,
    include_query_params: bool = True,
    include_headers: Iterable[str] = (),
) -> str:
    """``METHOD|path|k=v&...|Header:value`` with query keys sorted."""
    parts = [ctx.method, ctx.path]

    if include_query_params and ctx.query_params:
        query = "&".join(f"{k}={v}" for k, v in sorted(ctx.query_params.items()))
        parts.append(query)

    for name in include_headers:
        value = ctx.header(name)
        if value:
            parts.append(f"{name}:{value}")

    return "|".join(parts)


class ResponseCache(Component):
    """Serves repeated requests from a ResponseCacheStore within ``ttl_seconds``."""

    def __init__(
        self,
        ttl_seconds: int = 60,
        *,
        store: ResponseCacheStore,
        methods: Iterable[str] = ("GET",),
        status_codes: Iterable[int] = (200,),
        include_query_params: bool = True,
        include_headers: Iterable[str] = (),
        key_func: KeyFunc | None = None,
        skip: SkipPredicate | None = None,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._store = store
        self._methods = frozenset(m.upper() for m in methods)
        self._status_codes = frozenset(status_codes)
        self._include_query_params = include_query_params
        self._include_headers = tuple(include_headers)
        self._key_func = key_func
        self._skip = skip

    def key_for(self, ctx: RequestContext) -> str:
        if self._key_func is not None:
            return self._key_func(ctx)
        return build_cache_key(
            ctx,
            include_query_params=self._include_query_params,
            include_headers=self._include_headers,
        )

    async def dispatch(self, ctx: RequestContext, call_next: Handler) -> Response:
        if ctx.method not in self._methods:
            return await call_next(ctx)
        if self._skip is not None and self._skip(ctx):
            return await call_next(ctx)

        key = self.key_for(ctx)
        cached = self._store.get(key)
        if cached is not None:
            logger.debug("Cache hit", extra={"cache_key": key})
            return cached.with_headers({"X-Cache": "HIT"})

        response = await call_next(ctx)
        response = response.with_headers(
            {"Cache-Control": f"public, max-age={self._ttl_seconds}"}
        )
        if response.status_code in self._status_codes:
            self._store.set(key, response, self._ttl_seconds)
        logger.debug("Cache miss", extra={"cache_key": key, "status_code": response.status_code})
        return response.with_headers({"X-Cache": "MISS"})
