"""Component abstract base class for class-based middleware."""

from __future__ import annotations

from abc import ABC, abstractmethod

from file_api._types import Handler
from file_api.context import RequestContext
from file_api.response import Response


class Component(ABC):
    """Base abstraction for middleware that keeps configuration or state.

    An instance is itself a middleware: calling it with a handler returns a
    new handler that runs ``dispatch`` with the wrapped handler as
    ``call_next``.
    """

    @abstractmethod
    async def dispatch(self, ctx: RequestContext, call_next: Handler) -> Response: ...

    def __call__(self, handler: Handler) -> Handler:
        async def wrapped(ctx: RequestContext) -> Response:
            return await self.dispatch(ctx, handler)

        return wrapped

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
