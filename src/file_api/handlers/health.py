"""Health, readiness and metrics endpoints."""

from __future__ import annotations

import os
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from file_api.context import RequestContext
from file_api.logging_config import get_logger
from file_api.middleware.caching import ResponseCacheStore
from file_api.middleware.metrics import MetricsRegistry
from file_api.middleware.throttling import TokenBucketStore
from file_api.response import Response, json_response, no_cache
from file_api.services.repository import FileRepository

logger = get_logger(__name__)

# A database probe slower than this reports "degraded".
SLOW_PROBE_MS = 1000.0


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class HealthHandlers:
    def __init__(
        self,
        repository: FileRepository,
        *,
        registry: MetricsRegistry,
        cache_store: ResponseCacheStore,
        bucket_store: TokenBucketStore,
        version: str = "1.0.0",
    ) -> None:
        self.repository = repository
        self.registry = registry
        self.cache_store = cache_store
        self.bucket_store = bucket_store
        self.version = version
        self._started = time.monotonic()

    def uptime_seconds(self) -> float:
        return round(time.monotonic() - self._started, 3)

    async def check_database(self) -> dict[str, Any]:
        start = time.perf_counter()
        try:
            await self.repository.ping()
        except Exception as exc:
            elapsed = round((time.perf_counter() - start) * 1000, 2)
            logger.warning("Database probe failed", extra={"error": str(exc)})
            return {
                "status": HealthStatus.UNHEALTHY.value,
                "message": "Database connection failed",
                "responseTime": elapsed,
            }

        elapsed = round((time.perf_counter() - start) * 1000, 2)
        if elapsed > SLOW_PROBE_MS:
            return {
                "status": HealthStatus.DEGRADED.value,
                "message": "Database responding slowly",
                "responseTime": elapsed,
            }
        return {
            "status": HealthStatus.HEALTHY.value,
            "message": "Database connection successful",
            "responseTime": elapsed,
        }

    async def health(self, ctx: RequestContext) -> Response:
        database = await self.check_database()
        status = HealthStatus(database["status"])
        status_code = 503 if status is HealthStatus.UNHEALTHY else 200
        logger.info("Health check completed", extra={"status": status.value})
        return no_cache(
            json_response(
                {
                    "status": status.value,
                    "timestamp": _now_iso(),
                    "uptime": self.uptime_seconds(),
                    "version": self.version,
                    "components": {"database": database},
                },
                status_code,
            )
        )

    async def readiness(self, ctx: RequestContext) -> Response:
        return no_cache(json_response({"ready": True, "timestamp": _now_iso()}))

    async def metrics(self, ctx: RequestContext) -> Response:
        return no_cache(
            json_response(
                {
                    "timestamp": _now_iso(),
                    "system": {"uptime": self.uptime_seconds(), "pid": os.getpid()},
                    "metrics": self.registry.summary(),
                    "cache": self.cache_store.stats(),
                    "rateLimit": {"buckets": self.bucket_store.size},
                }
            )
        )
