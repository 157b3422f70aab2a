"""CORS headers and preflight handling."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from file_api._types import Handler
from file_api.component import Component
from file_api.context import RequestContext
from file_api.response import Response

DEFAULT_ALLOW_METHODS = ("GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH")
DEFAULT_ALLOW_HEADERS = (
    "Content-Type",
    "Authorization",
    "X-Amz-Date",
    "X-Api-Key",
    "X-Amz-Security-Token",
    "X-File-Name",
    "X-Mime-Type",
    "X-Metadata",
)
DEFAULT_EXPOSE_HEADERS = ("Content-Length", "Content-Type")


@dataclass(frozen=True)
class CorsConfig:
    allow_origin: str | Sequence[str] = "*"
    allow_methods: Sequence[str] = DEFAULT_ALLOW_METHODS
    allow_headers: Sequence[str] = DEFAULT_ALLOW_HEADERS
    expose_headers: Sequence[str] = field(default=DEFAULT_EXPOSE_HEADERS)
    max_age: int | None = 86400
    allow_credentials: bool = False

    def allowed_origin(self, request_origin: str | None) -> str:
        """Echo an allowed request origin, else fall back to the first one."""
        if isinstance(self.allow_origin, str):
            return self.allow_origin or "*"
        origins = list(self.allow_origin)
        if "*" in origins:
            return "*"
        if request_origin and request_origin in origins:
            return request_origin
        return origins[0] if origins else "*"

    def headers_for(self, ctx: RequestContext) -> dict[str, str]:
        headers = {"Access-Control-Allow-Origin": self.allowed_origin(ctx.header("origin"))}
        if self.allow_methods:
            headers["Access-Control-Allow-Methods"] = ", ".join(self.allow_methods)
        if self.allow_headers:
            headers["Access-Control-Allow-Headers"] = ", ".join(self.allow_headers)
        if self.expose_headers:
            headers["Access-Control-Expose-Headers"] = ", ".join(self.expose_headers)
        if self.max_age is not None:
            headers["Access-Control-Max-Age"] = str(self.max_age)
        if self.allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"
        return headers


class Cors(Component):
    """Answers OPTIONS preflights and adds CORS headers to every response."""

    def __init__(self, config: CorsConfig | None = None) -> None:
        self.config = config or CorsConfig()

    async def dispatch(self, ctx: RequestContext, call_next: Handler) -> Response:
        cors_headers = self.config.headers_for(ctx)
        if ctx.method == "OPTIONS":
            return Response(status_code=200, headers=cors_headers, body="")

        response = await call_next(ctx)
        return response.with_headers(cors_headers)
