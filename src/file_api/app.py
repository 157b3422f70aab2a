"""FastAPI application wiring."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI

from file_api._types import Handler, Middleware, TokenVerifier
from file_api.adapters import as_endpoint
from file_api.composition import compose, create_handler, standard_pipeline
from file_api.config import Settings, get_settings
from file_api.exceptions import DatabaseError
from file_api.handlers.auth import validate_token
from file_api.handlers.files import FileHandlers
from file_api.handlers.health import HealthHandlers
from file_api.logging_config import get_logger, setup_logging
from file_api.middleware.authentication import Authenticate
from file_api.middleware.caching import ResponseCache, ResponseCacheStore
from file_api.middleware.cors import Cors, CorsConfig
from file_api.middleware.metrics import MetricsRegistry, RequestMetrics
from file_api.middleware.throttling import (
    RateLimit,
    TokenBucketStore,
    ip_key_func,
    user_key_func,
)
from file_api.services.auth import CognitoTokenVerifier
from file_api.services.database import PostgresDatabase
from file_api.services.repository import Database, FileRepository, SqlFileRepository
from file_api.services.storage import ObjectStore, S3ObjectStore
from file_api.sweeper import PeriodicSweeper

logger = get_logger("app")


@dataclass
class Stores:
    """Process-wide state shared by every request."""

    buckets: TokenBucketStore
    cache: ResponseCacheStore
    metrics: MetricsRegistry


def create_app(
    settings: Settings | None = None,
    *,
    repository: FileRepository | None = None,
    database: Database | None = None,
    verifier: TokenVerifier | None = None,
    storage: ObjectStore | None = None,
    stores: Stores | None = None,
) -> FastAPI:
    """Build the application.

    Without an injected ``repository`` the files table is reached through
    ``database``, by default a ``PostgresDatabase`` configured from
    ``settings``. That connection is opened and closed with the lifespan.
    """
    settings = settings or get_settings()
    setup_logging(settings)

    if repository is None:
        database = database or PostgresDatabase.from_settings(settings)
        repository = SqlFileRepository(database)
    if verifier is None:
        verifier = CognitoTokenVerifier(
            settings.COGNITO_USER_POOL_ID, settings.AWS_REGION, settings.COGNITO_CLIENT_ID
        )
    if storage is None:
        storage = S3ObjectStore(settings.S3_BUCKET_NAME, settings.AWS_REGION)
    stores = stores or Stores(
        buckets=TokenBucketStore(), cache=ResponseCacheStore(), metrics=MetricsRegistry()
    )

    sweepers = [
        PeriodicSweeper(
            "rate-limit",
            lambda: stores.buckets.sweep(settings.RATE_LIMIT_IDLE_SECONDS),
            settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS,
        ),
        PeriodicSweeper(
            "response-cache",
            stores.cache.sweep,
            settings.CACHE_SWEEP_INTERVAL_SECONDS,
        ),
    ]

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if database is not None:
            try:
                await database.connect()
            except DatabaseError:
                # Queries reconnect lazily; /health reports the outage meanwhile.
                logger.exception("Database unavailable at startup")
        for sweeper in sweepers:
            await sweeper.start()
        logger.info("Application started", extra={"version": settings.APP_VERSION})
        try:
            yield
        finally:
            for sweeper in sweepers:
                await sweeper.stop()
            if database is not None:
                await database.disconnect()

    app = FastAPI(title="File API", version=settings.APP_VERSION, lifespan=lifespan)
    app.state.stores = stores
    app.state.sweepers = sweepers

    cors = CorsConfig(allow_origin=list(settings.CORS_ALLOW_ORIGINS))
    request_metrics = RequestMetrics(stores.metrics)
    # Per source IP ahead of token verification, so bad tokens are throttled too.
    ip_rate_limit = RateLimit(
        settings.IP_RATE_LIMIT_MAX_REQUESTS,
        settings.RATE_LIMIT_WINDOW_SECONDS,
        store=stores.buckets,
        key_func=ip_key_func,
    )
    rate_limit = RateLimit(
        settings.RATE_LIMIT_MAX_REQUESTS,
        settings.RATE_LIMIT_WINDOW_SECONDS,
        store=stores.buckets,
        key_func=user_key_func,
    )
    # Cached responses vary by caller.
    cache = ResponseCache(
        settings.CACHE_TTL_SECONDS, store=stores.cache, include_headers=("Authorization",)
    )

    def public(handler: Handler) -> Handler:
        return create_handler(handler, cors=cors, extra=(request_metrics,))

    def authenticated(handler: Handler, *extra: Middleware) -> Handler:
        return compose(
            *standard_pipeline(cors=cors),
            request_metrics,
            ip_rate_limit,
            Authenticate(verifier),
            rate_limit,
            *extra,
        )(handler)

    health = HealthHandlers(
        repository,
        registry=stores.metrics,
        cache_store=stores.cache,
        bucket_store=stores.buckets,
        version=settings.APP_VERSION,
    )
    files = FileHandlers(repository, storage, settings)

    routes: list[tuple[str, str, Handler, str]] = [
        ("/health", "GET", public(health.health), "health"),
        ("/ready", "GET", public(health.readiness), "readiness"),
        ("/metrics", "GET", public(health.metrics), "metrics"),
        ("/auth/validate", "GET", authenticated(validate_token), "validate_token"),
        ("/files", "GET", authenticated(files.list_files, cache), "list_files"),
        ("/files", "POST", authenticated(files.upload), "upload_file"),
        ("/files/{fileId}", "GET", authenticated(files.get_metadata, cache), "get_file"),
        (
            "/files/{fileId}/download-url",
            "GET",
            authenticated(files.presigned_url),
            "get_download_url",
        ),
    ]
    preflight = as_endpoint(Cors(cors)(health.readiness))
    for path, method, handler, name in routes:
        app.add_api_route(path, as_endpoint(handler), methods=[method], name=name)
    # Cors answers OPTIONS before the handler runs.
    for path in sorted({path for path, *_ in routes}):
        app.add_api_route(
            path, preflight, methods=["OPTIONS"], name=f"preflight:{path}", include_in_schema=False
        )

    return app
