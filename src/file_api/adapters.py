"""Adapters exposing pipeline handlers to Starlette/FastAPI and API Gateway."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

from starlette.requests import Request
from starlette.responses import Response as StarletteResponse

from file_api._types import Handler
from file_api.context import RequestContext


def as_endpoint(handler: Handler) -> Callable[[Request], Any]:
    """Return a Starlette/FastAPI endpoint that runs ``handler``."""

    async def endpoint(request: Request) -> StarletteResponse:
        ctx = await RequestContext.from_request(request)
        response = await handler(ctx)
        return response.to_starlette()

    endpoint.__name__ = getattr(handler, "__name__", "endpoint")
    return endpoint


def as_lambda_handler(handler: Handler) -> Callable[[Mapping[str, Any], Any], dict[str, Any]]:
    """Return an AWS Lambda entry point for API Gateway proxy events."""

    def lambda_handler(event: Mapping[str, Any], context: Any = None) -> dict[str, Any]:
        ctx = RequestContext.from_event(event)
        response = asyncio.run(handler(ctx))
        return response.to_event()

    return lambda_handler
