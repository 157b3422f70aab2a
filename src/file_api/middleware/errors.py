"""Outermost error boundary."""

from __future__ import annotations

from file_api._types import Handler
from file_api.component import Component
from file_api.context import RequestContext
from file_api.exceptions import AppError, InternalError
from file_api.logging_config import get_logger
from file_api.middleware.cors import CorsConfig
from file_api.response import Response, error_response_for

logger = get_logger(__name__)


def format_error(exc: Exception) -> Response:
    """Structured response for ``exc``; unknown exceptions become INTERNAL_ERROR."""
    if isinstance(exc, AppError):
        return error_response_for(exc)
    return error_response_for(InternalError())


class HandleErrors(Component):
    """Turns escaping exceptions into the JSON error envelope.

    Known ``AppError`` kinds keep their code and message. Anything else is
    logged with its traceback and reported without internal detail. With a
    ``cors`` config the error response carries the same CORS headers as a
    regular one.
    """

    def __init__(self, cors: CorsConfig | None = None) -> None:
        self._cors = cors

    def _finish(self, ctx: RequestContext, response: Response) -> Response:
        if self._cors is None:
            return response
        return response.with_headers(self._cors.headers_for(ctx))

    async def dispatch(self, ctx: RequestContext, call_next: Handler) -> Response:
        try:
            return await call_next(ctx)
        except AppError as exc:
            if exc.status_code >= 500:
                logger.error(
                    "Request error",
                    exc_info=True,
                    extra={"error_code": exc.code, "path": ctx.path},
                )
            else:
                logger.info(
                    "Request rejected",
                    extra={"error_code": exc.code, "error": exc.message, "path": ctx.path},
                )
            return self._finish(ctx, format_error(exc))
        except Exception as exc:
            logger.exception(
                "Unexpected error",
                extra={"error_type": type(exc).__name__, "path": ctx.path},
            )
            return self._finish(ctx, format_error(exc))
