"""Middleware composition and the standard pipeline presets."""

from __future__ import annotations

from dataclasses import dataclass

from file_api._types import Handler, Middleware, TokenVerifier
from file_api.middleware.authentication import Authenticate
from file_api.middleware.cors import Cors, CorsConfig
from file_api.middleware.errors import HandleErrors
from file_api.middleware.request_logging import RequestLogging


def compose(*middlewares: Middleware) -> Middleware:
    """Compose middleware so the first argument is the outermost layer.

    ``compose(A, B)(h)`` runs A's pre-logic, then B's, then ``h``, and
    unwinds in reverse. Exceptions pass through untouched.
    """

    def apply(handler: Handler) -> Handler:
        for middleware in reversed(middlewares):
            handler = middleware(handler)
        return handler

    return apply


@dataclass(frozen=True)
class PipelineOptions:
    """Toggles for the preset layers."""

    error_handler: bool = True
    logging: bool = True
    cors: bool = True
    auth: bool = False


def standard_pipeline(
    options: PipelineOptions | None = None,
    *,
    verify: TokenVerifier | None = None,
    cors: CorsConfig | None = None,
) -> list[Middleware]:
    """Preset layers in order: errors, logging, CORS, then auth when enabled."""
    options = options or PipelineOptions()
    cors = cors or CorsConfig()
    layers: list[Middleware] = []

    if options.error_handler:
        layers.append(HandleErrors(cors if options.cors else None))
    if options.logging:
        layers.append(RequestLogging())
    if options.cors:
        layers.append(Cors(cors))
    if options.auth:
        if verify is None:
            raise ValueError("auth requires a token verifier")
        layers.append(Authenticate(verify))

    return layers


def authenticated_pipeline(
    verify: TokenVerifier, *, cors: CorsConfig | None = None
) -> list[Middleware]:
    return standard_pipeline(PipelineOptions(auth=True), verify=verify, cors=cors)


def create_handler(
    handler: Handler,
    options: PipelineOptions | None = None,
    *,
    verify: TokenVerifier | None = None,
    cors: CorsConfig | None = None,
    extra: tuple[Middleware, ...] = (),
) -> Handler:
    """Wrap ``handler`` in the preset layers, with ``extra`` innermost."""
    layers = standard_pipeline(options, verify=verify, cors=cors)
    return compose(*layers, *extra)(handler)


def create_authenticated_handler(
    handler: Handler,
    verify: TokenVerifier,
    *,
    cors: CorsConfig | None = None,
    extra: tuple[Middleware, ...] = (),
) -> Handler:
    return create_handler(
        handler, PipelineOptions(auth=True), verify=verify, cors=cors, extra=extra
    )
