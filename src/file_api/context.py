"""Immutable per-request value threaded through the pipeline."""

from __future__ import annotations

import base64
import binascii
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from starlette.datastructures import Headers
from starlette.requests import Request


@dataclass(frozen=True)
class Identity:
    """Authenticated caller attached by the auth middleware."""

    user_id: str
    email: str | None = None


@dataclass(frozen=True)
class RequestContext:
    """Inbound request as seen by middleware and handlers.

    Stages that enrich the request return a new context instead of
    mutating this one; ``state`` is the only mutable slot and is meant for
    per-request scratch values such as a validated body.
    """

    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    query_params: dict[str, str] = field(default_factory=dict)
    path_params: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    source_ip: str = "unknown"
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    identity: Identity | None = None
    state: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        method: str = "GET",
        path: str = "/",
        *,
        headers: Mapping[str, str] | None = None,
        query_params: Mapping[str, str] | None = None,
        path_params: Mapping[str, str] | None = None,
        body: bytes | str = b"",
        source_ip: str = "unknown",
        request_id: str | None = None,
    ) -> RequestContext:
        """Convenience constructor accepting plain dicts and text bodies."""
        if isinstance(body, str):
            body = body.encode("utf-8")
        return cls(
            method=method.upper(),
            path=path,
            headers=Headers(headers=dict(headers or {})),
            query_params=dict(query_params or {}),
            path_params=dict(path_params or {}),
            body=body,
            source_ip=source_ip,
            request_id=request_id or str(uuid.uuid4()),
        )

    @classmethod
    async def from_request(cls, request: Request) -> RequestContext:
        """Build a context from a Starlette request, reading the full body."""
        body = await request.body()
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            source_ip = forwarded.split(",")[0].strip()
        elif request.client is not None:
            source_ip = request.client.host
        else:
            source_ip = "unknown"
        return cls(
            method=request.method.upper(),
            path=request.url.path,
            headers=Headers(raw=list(request.headers.raw)),
            query_params=dict(request.query_params),
            path_params={k: str(v) for k, v in request.path_params.items()},
            body=body,
            source_ip=source_ip,
            request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        )

    @classmethod
    def from_event(cls, event: Mapping[str, Any]) -> RequestContext:
        """Build a context from an API Gateway (REST, v1) proxy event."""
        request_context = event.get("requestContext") or {}
        identity = request_context.get("identity") or {}

        raw_body = event.get("body")
        if raw_body is None:
            body = b""
        elif event.get("isBase64Encoded"):
            try:
                body = base64.b64decode(raw_body)
            except (binascii.Error, ValueError):
                body = b""
        else:
            body = raw_body.encode("utf-8")

        return cls(
            method=str(event.get("httpMethod") or "GET").upper(),
            path=event.get("path") or "/",
            headers=Headers(headers=dict(event.get("headers") or {})),
            query_params=dict(event.get("queryStringParameters") or {}),
            path_params=dict(event.get("pathParameters") or {}),
            body=body,
            source_ip=identity.get("sourceIp") or "unknown",
            request_id=request_context.get("requestId") or str(uuid.uuid4()),
        )

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name, default)

    def with_identity(self, identity: Identity | None) -> RequestContext:
        return replace(self, identity=identity)

    def with_state(self, **values: Any) -> RequestContext:
        return replace(self, state={**self.state, **values})
