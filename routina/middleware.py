"""
Middleware system - Ordered, async-first middleware with terminal error stages.
"""

from __future__ import annotations

from typing import Callable, Awaitable, Optional, List
from dataclasses import dataclass
import gzip
import logging
import os
import time

from .context import RequestCtx
from .request import Request
from .response import Response

Handler = Callable[[Request, RequestCtx], Awaitable[Response]]
Middleware = Callable[[Request, RequestCtx, Handler], Awaitable[Response]]
ErrorHandler = Callable[[Request, RequestCtx, Exception], Awaitable[Optional[Response]]]


@dataclass
class MiddlewareDescriptor:
    """Descriptor for middleware registration."""
    middleware: Callable
    name: str
    kind: str = "middleware"  # or "error"


def _name_of(obj: Callable) -> str:
    if hasattr(obj, "name") and isinstance(obj.name, str):
        return obj.name
    if hasattr(obj, "__name__"):
        return obj.__name__
    return type(obj).__name__


class MiddlewareStack:
    """
    Ordered middleware stack.

    Middleware run in registration order: the first one added is the
    outermost and sees the request first. Error handlers are terminal
    stages; they observe any exception raised by the middleware chain,
    in registration order, and the first one returning a response wins.

    :meth:`mark_error_boundary` moves the error stages inward: they then
    guard only the middleware added after the mark, so the responses they
    produce still flow out through the earlier (header) stages. Errors
    raised by those earlier stages are still handled, outermost.
    """

    def __init__(self):
        self.middlewares: List[MiddlewareDescriptor] = []
        self.error_handlers: List[MiddlewareDescriptor] = []
        self.error_boundary: Optional[int] = None

    def add(self, middleware: Middleware, name: Optional[str] = None) -> "MiddlewareStack":
        """Append middleware to the chain."""
        self.middlewares.append(
            MiddlewareDescriptor(middleware=middleware, name=name or _name_of(middleware))
        )
        return self

    def add_error_handler(self, handler: ErrorHandler, name: Optional[str] = None) -> "MiddlewareStack":
        """Append a terminal error stage."""
        self.error_handlers.append(
            MiddlewareDescriptor(middleware=handler, name=name or _name_of(handler), kind="error")
        )
        return self

    def mark_error_boundary(self) -> "MiddlewareStack":
        """Error stages wrap the middleware added from here on."""
        self.error_boundary = len(self.middlewares)
        return self

    @property
    def names(self) -> List[str]:
        """Stage names in execution order, error stages last."""
        return [d.name for d in self.middlewares] + [d.name for d in self.error_handlers]

    def build_handler(self, final_handler: Handler) -> Handler:
        """Build middleware chain wrapping the final handler."""
        handler = final_handler
        boundary = self.error_boundary or 0
        inner = self.middlewares[boundary:]
        outer = self.middlewares[:boundary]

        # Wrap in reverse order so first middleware is outermost
        for desc in reversed(inner):
            handler = self._wrap_middleware(desc.middleware, handler)

        if self.error_handlers:
            handler = self._wrap_error_handlers(handler)

        if outer:
            for desc in reversed(outer):
                handler = self._wrap_middleware(desc.middleware, handler)
            if self.error_handlers:
                handler = self._wrap_error_handlers(handler)

        return handler

    def _wrap_middleware(self, middleware: Middleware, next_handler: Handler) -> Handler:
        async def wrapped(request: Request, ctx: RequestCtx) -> Response:
            return await middleware(request, ctx, next_handler)

        return wrapped

    def _wrap_error_handlers(self, chain: Handler) -> Handler:
        error_handlers = [d.middleware for d in self.error_handlers]

        async def guarded(request: Request, ctx: RequestCtx) -> Response:
            try:
                return await chain(request, ctx)
            except Exception as exc:
                for error_handler in error_handlers:
                    response = await error_handler(request, ctx, exc)
                    if response is not None:
                        return response
                raise

        return guarded


# Default middleware implementations

class RequestIdMiddleware:
    """Adds unique request ID to each request."""

    def __init__(self, header_name: str = "X-Request-ID"):
        self.header_name = header_name

    async def __call__(self, request: Request, ctx: RequestCtx, next: Handler) -> Response:
        request_id = request.header(self.header_name) or os.urandom(16).hex()
        request.state["request_id"] = request_id
        ctx.request_id = request_id

        response = await next(request, ctx)
        response.headers[self.header_name.lower()] = request_id
        return response


class LoggingMiddleware:
    """Logs request/response with timing."""

    def __init__(self, slow_threshold_ms: float = 1000.0):
        self.logger = logging.getLogger("routina.requests")
        self.slow_threshold_ms = slow_threshold_ms

    async def __call__(self, request: Request, ctx: RequestCtx, next: Handler) -> Response:
        if not self.logger.isEnabledFor(logging.INFO):
            return await next(request, ctx)

        start = time.monotonic()
        response = await next(request, ctx)
        elapsed_ms = (time.monotonic() - start) * 1000.0

        self.logger.info(
            "%s %s - %d (%.1fms)",
            request.method, request.path, response.status, elapsed_ms,
        )

        if elapsed_ms > self.slow_threshold_ms:
            self.logger.warning(
                "Slow request: %s %s took %.1fms",
                request.method, request.path, elapsed_ms,
            )

        return response


class CompressionMiddleware:
    """
    Gzip-compresses response bodies.

    Skips bodies under ``minimum_size``, responses that already carry a
    Content-Encoding, and clients that do not accept gzip.
    """

    name = "compression"

    def __init__(self, minimum_size: int = 500, level: int = 6):
        self.minimum_size = minimum_size
        self.level = level

    async def __call__(self, request: Request, ctx: RequestCtx, next: Handler) -> Response:
        response = await next(request, ctx)

        vary = response.headers.get("vary")
        if not vary:
            response.headers["vary"] = "Accept-Encoding"
        elif "accept-encoding" not in str(vary).lower():
            response.headers["vary"] = f"{vary}, Accept-Encoding"

        accept_encoding = request.header("accept-encoding", "")
        if "gzip" not in accept_encoding.lower():
            return response

        if "content-encoding" in response.headers:
            return response

        body = response.body
        if len(body) < self.minimum_size:
            return response

        response.body = gzip.compress(body, compresslevel=self.level)
        response.headers["content-encoding"] = "gzip"
        return response
