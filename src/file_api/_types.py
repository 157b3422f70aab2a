"""Shared type aliases and protocols."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from file_api.context import RequestContext
    from file_api.middleware.authentication import TokenValidation
    from file_api.response import Response

# The unit every middleware wraps and returns
Handler = Callable[["RequestContext"], Awaitable["Response"]]
Middleware = Callable[[Handler], Handler]

# Callback types used by middleware configuration
TokenVerifier = Callable[[str], Awaitable["TokenValidation"]]
KeyFunc = Callable[["RequestContext"], str]
SkipPredicate = Callable[["RequestContext"], bool]
OwnerExtractor = Callable[["RequestContext"], "str | None"]
Clock = Callable[[], float]
