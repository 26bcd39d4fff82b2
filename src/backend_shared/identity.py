"""
Request-scoped caller identity.

The owner id of the current caller travels in an explicit RequestContext
rather than in ambient state. In FastAPI services IdentityMiddleware
builds the context for every request and route handlers receive it
through the get_request_context / require_owner dependencies.
"""

import inspect
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from backend_shared.errors import UnauthenticatedError

logger = logging.getLogger(__name__)

OwnerResolver = Callable[[Request], str | None | Awaitable[str | None]]


@dataclass(frozen=True)
class RequestContext:
    """Per-request values shared with nested service code."""

    owner_id: str | None = None

    def with_owner_id(self, owner_id: str) -> "RequestContext":
        return replace(self, owner_id=owner_id)

    def get_owner_id(self) -> str | None:
        """Return the owner id, or None when the caller is anonymous."""
        return self.owner_id

    def require_owner_id(self) -> str:
        if self.owner_id is None:
            raise UnauthenticatedError()
        return self.owner_id


def set_owner_id(ctx: RequestContext, owner_id: str) -> RequestContext:
    return ctx.with_owner_id(owner_id)


def owner_id(ctx: RequestContext) -> str | None:
    return ctx.get_owner_id()


def require(ctx: RequestContext) -> str:
    """Return the owner id or raise UnauthenticatedError."""
    return ctx.require_owner_id()


class IdentityMiddleware(BaseHTTPMiddleware):
    """
    Attach a RequestContext to every request.

    The resolver maps a request to its owner id (for example by checking
    a bearer token) and returns None for anonymous callers. It may be
    sync or async. Rejecting anonymous callers is left to routes, via
    require_owner.
    """

    def __init__(self, app: ASGIApp, resolver: OwnerResolver) -> None:
        super().__init__(app)
        self.resolver = resolver

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        resolved = self.resolver(request)
        if inspect.isawaitable(resolved):
            resolved = await resolved

        if resolved is None:
            logger.debug(f"Anonymous request for {request.url.path}")
            request.state.context = RequestContext()
        else:
            request.state.context = RequestContext(owner_id=resolved)

        return await call_next(request)


def get_request_context(request: Request) -> RequestContext:
    """FastAPI dependency returning the current RequestContext."""
    return getattr(request.state, "context", None) or RequestContext()


def require_owner(request: Request) -> str:
    """FastAPI dependency returning the owner id or raising 401."""
    return get_request_context(request).require_owner_id()
