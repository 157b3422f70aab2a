"""
Rate limiting, response caching and metrics.

Demonstrates:
- Sharing one TokenBucketStore / ResponseCacheStore across routes
- X-RateLimit-* and X-Cache headers
- Periodic sweeping of idle buckets and expired cache entries
- Reading the MetricsRegistry summary
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from file_api import PeriodicSweeper, RequestContext, Response, as_endpoint, success_response
from file_api.composition import create_handler
from file_api.middleware import (
    MetricsRegistry,
    RateLimit,
    RequestMetrics,
    ResponseCache,
    ResponseCacheStore,
    TokenBucketStore,
)

buckets = TokenBucketStore()
cache = ResponseCacheStore()
registry = MetricsRegistry()

sweepers = [
    PeriodicSweeper("rate-limit", buckets.sweep, 60),
    PeriodicSweeper("response-cache", cache.sweep, 30),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    for sweeper in sweepers:
        await sweeper.start()
    yield
    for sweeper in sweepers:
        await sweeper.stop()


app = FastAPI(title="Rate Limiting and Caching Example", lifespan=lifespan)


async def server_time(ctx: RequestContext) -> Response:
    return success_response({"time": datetime.now(timezone.utc).isoformat()})


async def metrics(ctx: RequestContext) -> Response:
    return success_response(registry.summary())


# 5 requests per 10 seconds per client IP; responses reused for 15 seconds.
time_handler = create_handler(
    server_time,
    extra=(
        RequestMetrics(registry),
        RateLimit(5, 10, store=buckets),
        ResponseCache(15, store=cache),
    ),
)

app.add_api_route("/time", as_endpoint(time_handler), methods=["GET"])
app.add_api_route("/metrics", as_endpoint(create_handler(metrics)), methods=["GET"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

    # Test with:
    # for i in $(seq 1 7); do curl -si http://localhost:8000/time | grep -i -E "HTTP|x-cache|x-ratelimit"; done
    # curl http://localhost:8000/metrics
