"""Cognito bearer-token verification with PyJWT."""

from __future__ import annotations

import asyncio
from typing import Any

import jwt

from file_api.exceptions import AuthenticationError, ErrorKind
from file_api.logging_config import get_logger
from file_api.middleware.authentication import TokenValidation

logger = get_logger(__name__)

_TOKEN_USES = frozenset({"access", "id"})


class CognitoTokenVerifier:
    """Verifies RS256 tokens issued by a Cognito user pool.

    Instances are async callables usable as the ``verify`` callback of the
    auth middleware. Bad tokens yield ``TokenValidation(is_valid=False)``;
    nothing is raised for them.
    """

    def __init__(
        self,
        user_pool_id: str,
        region: str = "us-east-1",
        client_id: str | None = None,
        *,
        jwk_client: jwt.PyJWKClient | None = None,
    ) -> None:
        if not user_pool_id:
            raise ValueError("COGNITO_USER_POOL_ID is required")
        self.issuer = f"https://cognito-idp.{region}.amazonaws.com/{user_pool_id}"
        self.client_id = client_id or None
        self._jwk_client = jwk_client or jwt.PyJWKClient(
            f"{self.issuer}/.well-known/jwks.json", cache_keys=True, lifespan=600
        )

    async def __call__(self, token: str) -> TokenValidation:
        if not token:
            return TokenValidation(is_valid=False, error="Token is required")
        try:
            # The JWKS fetch is blocking I/O.
            claims = await asyncio.to_thread(self.verify_and_decode, token)
        except AuthenticationError as exc:
            logger.info("Token rejected", extra={"reason": exc.message})
            return TokenValidation(is_valid=False, error=exc.message)

        return TokenValidation(
            is_valid=True, user_id=claims.get("sub"), email=claims.get("email")
        )

    def verify_and_decode(self, token: str) -> dict[str, Any]:
        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as exc:
            raise AuthenticationError("Invalid token format", kind=ErrorKind.INVALID_TOKEN) from exc
        if not header.get("kid"):
            raise AuthenticationError("Invalid token format", kind=ErrorKind.INVALID_TOKEN)

        try:
            signing_key = self._jwk_client.get_signing_key_from_jwt(token)
        except jwt.PyJWKClientError as exc:
            raise AuthenticationError(
                "Failed to get signing key", kind=ErrorKind.INVALID_TOKEN
            ) from exc

        try:
            claims: dict[str, Any] = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                issuer=self.issuer,
                options={"verify_aud": False, "require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationError("Token has expired", kind=ErrorKind.INVALID_TOKEN) from exc
        except jwt.PyJWTError as exc:
            raise AuthenticationError(
                "Token verification failed", kind=ErrorKind.INVALID_TOKEN
            ) from exc

        token_use = claims.get("token_use")
        if token_use not in _TOKEN_USES:
            raise AuthenticationError("Invalid token use", kind=ErrorKind.INVALID_TOKEN)

        if self.client_id is not None:
            # ID tokens carry ``aud``; access tokens carry ``client_id``.
            audience = claims.get("aud") if token_use == "id" else claims.get("client_id")
            if audience != self.client_id:
                raise AuthenticationError(
                    "Token audience mismatch", kind=ErrorKind.INVALID_TOKEN
                )

        return claims
