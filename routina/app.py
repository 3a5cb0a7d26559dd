"""
Application assembly.

``create_app`` wires the fixed-order pipeline:

    logging → request id → JSON body → url-encoded body → cookies →
    compression → security headers → CORS → static /dist → static /assets →
    static / → users router → extra routers → catch-all render
    ⤷ unauthorized-error interceptor, guarding everything after CORS so its
      responses still get the header stages

With no arguments it loads configuration from the environment, which is
how ``uvicorn --factory routina.app:create_app`` runs it.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .asgi import ASGIAdapter
from .config import ConfigLoader, ServerConfig
from .middleware import (
    CompressionMiddleware,
    LoggingMiddleware,
    Middleware,
    MiddlewareStack,
    RequestIdMiddleware,
)
from .middleware_ext import (
    CookieMiddleware,
    CORSMiddleware,
    JSONBodyMiddleware,
    SecurityHeadersMiddleware,
    StaticMiddleware,
    UnauthorizedErrorInterceptor,
    URLEncodedBodyMiddleware,
)
from .routing import Router
from .ssr import Renderer, ServerRenderHandler, main_router
from .users import (
    PasswordHasher,
    SQLiteUserRepository,
    UserHandlers,
    UserRepository,
    build_user_router,
)
from .users.routes import Guard

logger = logging.getLogger("routina.app")


def build_render_router(renderer: Renderer) -> Router:
    """Catch-all GET route; mounted after every other router."""
    router = Router(name="render")
    router.get("*", ServerRenderHandler(renderer))
    return router


def create_app(
    config: Optional[ServerConfig] = None,
    repository: Optional[UserRepository] = None,
    renderer: Optional[Renderer] = None,
    extra_routers: Optional[Iterable[Middleware]] = None,
    guard: Optional[Guard] = None,
) -> ASGIAdapter:
    """
    Assemble the ASGI application.

    Args:
        config: Server settings; loaded with :class:`ConfigLoader` when omitted
        repository: User store; an :class:`SQLiteUserRepository` on
            ``config.database_url`` when omitted
        renderer: Page tree for the catch-all route; the default pages
            when omitted
        extra_routers: Further routers (auth, domain), mounted in order
            after the users router
        guard: Optional ``(request, ctx) -> None`` check run on the
            ``/api/users/:userId`` routes
    """
    config = config or ConfigLoader.load()

    if repository is None:
        repository = SQLiteUserRepository(
            config.database_url,
            hasher=PasswordHasher(
                time_cost=config.password_time_cost,
                memory_cost=config.password_memory_cost,
            ),
        )

    root = config.root_path
    stack = MiddlewareStack()

    if config.access_log:
        stack.add(LoggingMiddleware(), name="logging")
    stack.add(RequestIdMiddleware(), name="request_id")

    stack.add(JSONBodyMiddleware())
    stack.add(URLEncodedBodyMiddleware())
    stack.add(CookieMiddleware())
    stack.add(CompressionMiddleware(minimum_size=config.compression_min_size))
    stack.add(SecurityHeadersMiddleware())
    stack.add(CORSMiddleware(allow_origins=config.cors_origins))
    stack.mark_error_boundary()

    stack.add(StaticMiddleware("/dist", root / "dist"))
    stack.add(StaticMiddleware("/assets", root / "client" / "assets"))
    stack.add(StaticMiddleware("/", root / "sw"))

    stack.add(build_user_router(UserHandlers(repository), guard=guard))
    for router in extra_routers or ():
        stack.add(router)
    stack.add(build_render_router(renderer or main_router))

    stack.add_error_handler(UnauthorizedErrorInterceptor(debug=config.debug))

    on_startup = [repository.connect] if hasattr(repository, "connect") else []
    on_shutdown = [repository.close] if hasattr(repository, "close") else []

    app = ASGIAdapter(
        stack,
        on_startup=on_startup,
        on_shutdown=on_shutdown,
        max_body_size=config.max_body_size,
    )
    app.repository = repository
    app.config = config
    logger.debug("Pipeline: %s", " -> ".join(app.stage_names))
    return app
