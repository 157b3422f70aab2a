"""
Authentication examples.

Demonstrates:
- Required bearer-token auth with a custom verifier
- Optional auth (anonymous callers allowed)
- Ownership checks with RequireOwner
"""

from fastapi import FastAPI

from file_api import RequestContext, Response, as_endpoint, compose, success_response
from file_api.composition import standard_pipeline
from file_api.middleware import (
    Authenticate,
    RequireOwner,
    TokenValidation,
    optional_auth,
    path_param,
)

app = FastAPI(title="Authentication Examples")


# Mock verifier (production code uses file_api.services.auth.CognitoTokenVerifier)
async def verify(token: str) -> TokenValidation:
    if token == "alice-token":
        return TokenValidation(is_valid=True, user_id="alice", email="alice@example.com")
    if token == "bob-token":
        return TokenValidation(is_valid=True, user_id="bob", email="bob@example.com")
    return TokenValidation(is_valid=False, error="Unknown token")


async def whoami(ctx: RequestContext) -> Response:
    user = ctx.identity.user_id if ctx.identity else None
    return success_response({"userId": user})


async def profile(ctx: RequestContext) -> Response:
    return success_response({"profileOf": ctx.path_params["userId"]})


layers = standard_pipeline()

app.add_api_route(
    "/me", as_endpoint(compose(*layers, Authenticate(verify))(whoami)), methods=["GET"]
)
app.add_api_route(
    "/maybe-me", as_endpoint(compose(*layers, optional_auth(verify))(whoami)), methods=["GET"]
)
app.add_api_route(
    "/users/{userId}/profile",
    as_endpoint(compose(*layers, RequireOwner(verify, path_param("userId")))(profile)),
    methods=["GET"],
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

    # Test with:
    # curl http://localhost:8000/me                                          -> 401
    # curl -H "Authorization: Bearer alice-token" http://localhost:8000/me
    # curl http://localhost:8000/maybe-me                                    -> userId null
    # curl -H "Authorization: Bearer bob-token" http://localhost:8000/users/alice/profile  -> 403
