"""
Users - route table.

    POST   /api/users            create
    GET    /api/users            list
    GET    /api/users/:userId    read
    PUT    /api/users/:userId    update
    DELETE /api/users/:userId    remove

``:userId`` routes resolve the user first; an optional ``guard`` runs
after that, before the handler.
"""

from __future__ import annotations

from typing import Awaitable, Callable, List, Optional

from routina.context import RequestCtx
from routina.middleware import Handler
from routina.request import Request
from routina.response import Response
from routina.routing import Router

from .controllers import UserHandlers
from .middleware import make_user_by_id

Guard = Callable[[Request, RequestCtx], Awaitable[None]]


def guard_middleware(guard: Guard):
    """Adapt a ``(request, ctx) -> None`` guard to a route middleware."""

    async def guarded(request: Request, ctx: RequestCtx, next: Handler) -> Response:
        await guard(request, ctx)
        return await next(request, ctx)

    guarded.__name__ = getattr(guard, "__name__", "guard")
    return guarded


def build_user_router(handlers: UserHandlers, guard: Optional[Guard] = None) -> Router:
    router = Router(name="users")
    router.param("userId", make_user_by_id(handlers.repository))

    protected: List = [guard_middleware(guard)] if guard is not None else []

    router.post("/api/users", handlers.create)
    router.get("/api/users", handlers.list)
    router.get("/api/users/:userId", *protected, handlers.read)
    router.put("/api/users/:userId", *protected, handlers.update)
    router.delete("/api/users/:userId", *protected, handlers.remove)
    return router
