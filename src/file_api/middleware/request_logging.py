"""Structured per-request logging."""

from __future__ import annotations

import time

from file_api._types import Handler
from file_api.component import Component
from file_api.context import RequestContext
from file_api.exceptions import AppError
from file_api.logging_config import ContextLogger, get_logger, reset_request_id, set_request_id
from file_api.response import Response


class RequestLogging(Component):
    """Logs request start and outcome with the request id bound to the context.

    The Authorization header is never logged.
    """

    def __init__(self, logger: ContextLogger | None = None) -> None:
        self._logger = logger or get_logger("request")

    async def dispatch(self, ctx: RequestContext, call_next: Handler) -> Response:
        token = set_request_id(ctx.request_id)
        log = self._logger.bind(method=ctx.method, path=ctx.path)
        start = time.perf_counter()
        try:
            log.info(
                "Incoming request",
                extra={
                    "query_params": ctx.query_params or None,
                    "source_ip": ctx.source_ip,
                    "user_agent": ctx.header("user-agent"),
                },
            )
            try:
                response = await call_next(ctx)
            except AppError as exc:
                extra = {
                    "error": exc.code,
                    "status_code": exc.status_code,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                }
                if exc.status_code >= 500:
                    log.error("Request failed", exc_info=True, extra=extra)
                else:
                    # Expected client errors: no traceback.
                    log.warning("Request rejected", extra=extra)
                raise
            except Exception as exc:
                log.error(
                    "Request failed",
                    exc_info=True,
                    extra={
                        "error": str(exc),
                        "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                    },
                )
                raise

            log.info(
                "Request completed",
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            return response
        finally:
            reset_request_id(token)
