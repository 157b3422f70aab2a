"""Response value and the JSON envelope builders."""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from starlette.responses import Response as StarletteResponse

from file_api.exceptions import AppError, ErrorKind

DEFAULT_HEADERS: dict[str, str] = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}

NO_CACHE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@dataclass(frozen=True)
class Response:
    """Outbound response: status code, header map, text body."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    def with_headers(
        self, headers: Mapping[str, str] | None = None, **extra: str
    ) -> Response:
        """Return a copy with ``headers`` merged over the current ones."""
        merged = {**self.headers, **(headers or {}), **extra}
        return replace(self, headers=merged)

    def json(self) -> Any:
        return json.loads(self.body) if self.body else None

    def to_starlette(self) -> StarletteResponse:
        return StarletteResponse(
            content=self.body,
            status_code=self.status_code,
            headers=self.headers,
        )

    def to_event(self) -> dict[str, Any]:
        """API Gateway proxy result shape."""
        return {
            "statusCode": self.status_code,
            "headers": dict(self.headers),
            "body": self.body,
        }


def json_response(
    payload: Any,
    status_code: int = 200,
    headers: Mapping[str, str] | None = None,
) -> Response:
    return Response(
        status_code=status_code,
        headers={**DEFAULT_HEADERS, **(headers or {})},
        body=json.dumps(payload, default=str),
    )


def success_response(
    data: Any,
    status_code: int = 200,
    headers: Mapping[str, str] | None = None,
) -> Response:
    return json_response({"success": True, "data": data}, status_code, headers)


def created_response(data: Any, headers: Mapping[str, str] | None = None) -> Response:
    return success_response(data, 201, headers)


def no_content_response(headers: Mapping[str, str] | None = None) -> Response:
    return Response(status_code=204, headers={**DEFAULT_HEADERS, **(headers or {})})


def error_response(
    code: str,
    message: str,
    status_code: int,
    details: Any | None = None,
    headers: Mapping[str, str] | None = None,
) -> Response:
    payload: dict[str, Any] = {"error": code, "message": message}
    if details is not None:
        payload["details"] = details
    return json_response(payload, status_code, headers)


def kind_response(
    kind: ErrorKind,
    message: str,
    details: Any | None = None,
    headers: Mapping[str, str] | None = None,
) -> Response:
    return error_response(kind.code, message, kind.status_code, details, headers)


def error_response_for(
    exc: AppError, headers: Mapping[str, str] | None = None
) -> Response:
    return kind_response(exc.kind, exc.message, exc.details, headers)


def paginated_response(
    items: list[Any],
    *,
    page: int,
    limit: int,
    total: int,
    headers: Mapping[str, str] | None = None,
) -> Response:
    total_pages = math.ceil(total / limit) if limit else 0
    return success_response(
        {
            "items": items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": total_pages,
                "hasNext": page < total_pages,
                "hasPrev": page > 1,
            },
        },
        headers=headers,
    )


def no_cache(response: Response) -> Response:
    return response.with_headers(NO_CACHE_HEADERS)
