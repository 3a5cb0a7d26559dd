"""
ASGI adapter - Bridges the ASGI protocol to routina's request pipeline.

- The middleware chain is built once, on first use.
- Lifespan startup/shutdown open and close the user store.
- HEAD responses keep their headers but send no body.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, List, Optional

from .context import RequestCtx
from .middleware import Handler, MiddlewareStack
from .request import Request
from .response import Response


async def not_found(request: Request, ctx: RequestCtx) -> Response:
    """Final handler: nothing in the pipeline answered."""
    return Response.json({"error": "Not found"}, status=404)


class ASGIAdapter:
    """
    ASGI application.

    Args:
        middleware_stack: The assembled pipeline
        on_startup: Coroutines run on lifespan startup, in order
        on_shutdown: Coroutines run on lifespan shutdown, in order
        max_body_size: Request body limit handed to each :class:`Request`
    """

    def __init__(
        self,
        middleware_stack: MiddlewareStack,
        on_startup: Optional[List[Callable[[], Awaitable[Any]]]] = None,
        on_shutdown: Optional[List[Callable[[], Awaitable[Any]]]] = None,
        max_body_size: int = 100 * 1024,
    ):
        self.middleware_stack = middleware_stack
        self.on_startup = list(on_startup or [])
        self.on_shutdown = list(on_shutdown or [])
        self.max_body_size = max_body_size
        self.logger = logging.getLogger("routina.asgi")
        self._cached_middleware_chain: Optional[Handler] = None

    @property
    def stage_names(self) -> List[str]:
        """Pipeline stage names in execution order."""
        return self.middleware_stack.names

    async def __call__(self, scope: dict, receive: Callable, send: Callable):
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        else:
            self.logger.warning("Unsupported ASGI scope type: %s", scope_type)

    async def handle_http(self, scope: dict, receive: Callable, send: Callable):
        if self._cached_middleware_chain is None:
            self._cached_middleware_chain = self.middleware_stack.build_handler(not_found)

        request = Request(scope, receive, max_body_size=self.max_body_size)
        ctx = RequestCtx(request=request)

        try:
            response = await self._cached_middleware_chain(request, ctx)
        except Exception as e:
            self.logger.error("Critical error in request pipeline: %s", e, exc_info=True)
            response = Response.json({"error": "Internal server error"}, status=500)

        await response.send_asgi(send, head=request.method == "HEAD")

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable):
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    for hook in self.on_startup:
                        await hook()
                    self.logger.debug("Server startup complete")
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    self.logger.error("Startup error: %s", e, exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise

            elif message["type"] == "lifespan.shutdown":
                try:
                    for hook in self.on_shutdown:
                        await hook()
                    self.logger.debug("Server shutdown complete")
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    self.logger.error("Shutdown error: %s", e, exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break
