"""Bearer-token authentication and resource-ownership middleware."""

from __future__ import annotations

import re
from dataclasses import dataclass

from file_api._types import Handler, OwnerExtractor, TokenVerifier
from file_api.component import Component
from file_api.context import Identity, RequestContext
from file_api.exceptions import AppError, ErrorKind
from file_api.logging_config import get_logger
from file_api.response import Response, kind_response

logger = get_logger(__name__)

_BEARER_RE = re.compile(r"^Bearer\s+", re.IGNORECASE)


@dataclass(frozen=True)
class TokenValidation:
    """Outcome of verifying a bearer token."""

    is_valid: bool
    user_id: str | None = None
    email: str | None = None
    error: str | None = None


def extract_bearer_token(ctx: RequestContext) -> str | None:
    """Authorization header value with any ``Bearer`` prefix removed."""
    value = ctx.header("authorization")
    if not value:
        return None
    token = _BEARER_RE.sub("", value).strip()
    return token or None


class Authenticate(Component):
    """Verifies the bearer token and attaches the caller's identity.

    With ``required=False`` a request without a token goes through
    anonymously; a token that is present must still be valid.
    """

    def __init__(self, verify: TokenVerifier, *, required: bool = True) -> None:
        self._verify = verify
        self._required = required

    async def authenticate(self, ctx: RequestContext) -> RequestContext | Response:
        """Return the enriched context, or the rejection response."""
        token = extract_bearer_token(ctx)
        if token is None:
            if self._required:
                return kind_response(
                    ErrorKind.AUTHENTICATION_REQUIRED, "Authorization header is required"
                )
            return ctx.with_identity(None)

        try:
            result = await self._verify(token)
        except AppError as exc:
            if exc.kind.is_authentication:
                return kind_response(exc.kind, exc.message)
            logger.exception("Token verification failed", extra={"error_code": exc.code})
            return self._internal_error()
        except Exception:
            logger.exception("Token verification failed")
            return self._internal_error()

        if not result.is_valid or not result.user_id:
            return kind_response(
                ErrorKind.INVALID_TOKEN, result.error or "Token validation failed"
            )

        return ctx.with_identity(Identity(user_id=result.user_id, email=result.email))

    @staticmethod
    def _internal_error() -> Response:
        return kind_response(
            ErrorKind.INTERNAL_ERROR,
            "An unexpected error occurred during authentication",
        )

    async def dispatch(self, ctx: RequestContext, call_next: Handler) -> Response:
        outcome = await self.authenticate(ctx)
        if isinstance(outcome, Response):
            return outcome
        return await call_next(outcome)

    def __repr__(self) -> str:
        return f"Authenticate(required={self._required})"


class RequireOwner(Authenticate):
    """Authenticates, then requires the caller to own the addressed resource."""

    def __init__(self, verify: TokenVerifier, owner_from: OwnerExtractor) -> None:
        super().__init__(verify, required=True)
        self._owner_from = owner_from

    async def dispatch(self, ctx: RequestContext, call_next: Handler) -> Response:
        outcome = await self.authenticate(ctx)
        if isinstance(outcome, Response):
            return outcome

        owner_id = self._owner_from(outcome)
        if not owner_id:
            return kind_response(ErrorKind.INVALID_REQUEST, "User ID is required")

        if outcome.identity is None or outcome.identity.user_id != owner_id:
            return kind_response(
                ErrorKind.FORBIDDEN, "You do not have permission to access this resource"
            )

        return await call_next(outcome)

    def __repr__(self) -> str:
        return "RequireOwner()"


def optional_auth(verify: TokenVerifier) -> Authenticate:
    return Authenticate(verify, required=False)


def path_param(name: str) -> OwnerExtractor:
    """Owner extractor reading a path parameter."""

    def extract(ctx: RequestContext) -> str | None:
        return ctx.path_params.get(name)

    return extract
