"""Token validation endpoint."""

from __future__ import annotations

from file_api.context import RequestContext
from file_api.exceptions import AuthenticationError, ErrorKind
from file_api.response import Response, success_response


async def validate_token(ctx: RequestContext) -> Response:
    """Echo the identity attached by the auth middleware."""
    if ctx.identity is None:
        raise AuthenticationError("User not authenticated", kind=ErrorKind.AUTHENTICATION_REQUIRED)
    return success_response(
        {
            "userId": ctx.identity.user_id,
            "email": ctx.identity.email,
            "message": "Token is valid",
        }
    )
