"""
Router - Pattern-based routing as a pipeline stage.

A ``Router`` is itself a middleware: when a request matches one of its
routes it runs that route, otherwise it hands the request to the next
stage. Mounting several routers one after another therefore gives
first-match-wins dispatch in mount order, and a router registered last
with a ``*`` pattern acts as a catch-all.

Patterns use ``:name`` segments (``/api/users/:userId``) or ``*``.
Param resolvers registered with :meth:`Router.param` run before any
route handler whose pattern declares that param.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
import re

from .context import RequestCtx
from .middleware import Handler, Middleware
from .request import Request
from .response import Response

ParamResolver = Callable[[Request, RequestCtx, Handler, str], Awaitable[Response]]

_PARAM_RE = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def compile_pattern(pattern: str) -> Tuple[re.Pattern, List[str]]:
    """
    Compile a route pattern to a regex.

    ``*`` matches any path; ``:name`` matches one non-empty segment.
    A trailing slash on the request path is tolerated.
    """
    if pattern == "*":
        return re.compile(r"^.*$"), []

    names: List[str] = []
    parts = []
    last = 0
    for m in _PARAM_RE.finditer(pattern):
        parts.append(re.escape(pattern[last:m.start()]))
        parts.append(f"(?P<{m.group(1)}>[^/]+)")
        names.append(m.group(1))
        last = m.end()
    parts.append(re.escape(pattern[last:].rstrip("/")))
    return re.compile("^" + "".join(parts) + "/?$"), names


@dataclass
class Route:
    """A single method + pattern with its handler chain."""
    method: str
    pattern: str
    handler: Handler
    middleware: List[Middleware] = field(default_factory=list)
    regex: re.Pattern = field(init=False, repr=False)
    param_names: List[str] = field(init=False)

    def __post_init__(self):
        self.method = self.method.upper()
        self.regex, self.param_names = compile_pattern(self.pattern)

    def matches_method(self, method: str) -> bool:
        return self.method == method or (self.method == "GET" and method == "HEAD")


@dataclass
class RouteMatch:
    """Result of a successful route match."""
    route: Route
    params: Dict[str, str]


class Router:
    """
    Ordered route table usable as a middleware stage.

    Example:
        router = Router(name="users")
        router.param("userId", user_by_id)
        router.get("/api/users/:userId", handlers.read)
    """

    def __init__(self, name: str = "router"):
        self.name = name
        self.routes: List[Route] = []
        self._params: Dict[str, ParamResolver] = {}

    # ── Registration ─────────────────────────────────────────────────────

    def param(self, name: str, resolver: ParamResolver) -> "Router":
        """Register a resolver run for every route that declares ``:name``."""
        self._params[name] = resolver
        return self

    def route(self, method: str, pattern: str, *handlers: Callable) -> "Router":
        """
        Register a route.

        All but the last handler are middleware ``(request, ctx, next)``;
        the last one is the endpoint ``(request, ctx)``.
        """
        if not handlers:
            raise ValueError(f"Route {method} {pattern} needs a handler")
        *middleware, endpoint = handlers
        self.routes.append(Route(method, pattern, endpoint, list(middleware)))
        return self

    def get(self, pattern: str, *handlers: Callable) -> "Router":
        return self.route("GET", pattern, *handlers)

    def post(self, pattern: str, *handlers: Callable) -> "Router":
        return self.route("POST", pattern, *handlers)

    def put(self, pattern: str, *handlers: Callable) -> "Router":
        return self.route("PUT", pattern, *handlers)

    def delete(self, pattern: str, *handlers: Callable) -> "Router":
        return self.route("DELETE", pattern, *handlers)

    # ── Matching ─────────────────────────────────────────────────────────

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        for route in self.routes:
            if not route.matches_method(method):
                continue
            m = route.regex.match(path)
            if m is not None:
                return RouteMatch(route=route, params=m.groupdict())
        return None

    # ── Dispatch ─────────────────────────────────────────────────────────

    async def __call__(self, request: Request, ctx: RequestCtx, next: Handler) -> Response:
        match = self.match(request.method, request.path)
        if match is None:
            return await next(request, ctx)

        request.state["path_params"] = match.params
        request.state["route_pattern"] = match.route.pattern
        return await self._build_chain(match)(request, ctx)

    def _build_chain(self, match: RouteMatch) -> Handler:
        route = match.route
        chain = route.handler

        for middleware in reversed(route.middleware):
            chain = _bind_middleware(middleware, chain)

        for name in reversed(route.param_names):
            resolver = self._params.get(name)
            if resolver is not None:
                chain = _bind_param(resolver, match.params[name], chain)

        return chain

    def describe(self) -> List[str]:
        """``METHOD pattern`` lines in registration order."""
        return [f"{r.method} {r.pattern}" for r in self.routes]

    def __repr__(self) -> str:
        return f"<Router {self.name} routes={len(self.routes)}>"


def _bind_middleware(middleware: Middleware, next_handler: Handler) -> Handler:
    async def bound(request: Request, ctx: RequestCtx) -> Response:
        return await middleware(request, ctx, next_handler)

    return bound


def _bind_param(resolver: ParamResolver, value: str, next_handler: Handler) -> Handler:
    async def bound(request: Request, ctx: RequestCtx) -> Response:
        return await resolver(request, ctx, next_handler, value)

    return bound
