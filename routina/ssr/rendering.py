"""
Server-side rendering - the catch-all page handler.

Per request the handler builds a fresh style registry, theme and
navigation context, runs the page tree, and answers either with a
``303`` redirect or the full HTML document.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from routina.context import RequestCtx
from routina.request import Request
from routina.response import Response

from .styles import StyleSheetRegistry
from .template import DocumentTemplate
from .theme import create_theme

logger = logging.getLogger("routina.ssr")


@dataclass(frozen=True)
class Markup:
    """Rendered page markup."""
    html: str


@dataclass(frozen=True)
class Redirect:
    """The page tree asked to navigate elsewhere instead of rendering."""
    url: str


RenderResult = Union[Markup, Redirect]


@dataclass
class RenderContext:
    """
    Navigation context handed to the page tree.

    A component that must send the client elsewhere calls
    :meth:`redirect`; the renderer turns that into a :class:`Redirect`.
    """
    url: Optional[str] = None

    def redirect(self, url: str) -> None:
        self.url = url


@dataclass
class RenderRequest:
    """
    Everything one render needs.

    ``identity`` is whatever authentication attached to the request
    context; private pages render only when it is set.
    """
    url: str
    theme: Dict[str, Any]
    registry: StyleSheetRegistry
    context: RenderContext = field(default_factory=RenderContext)
    identity: Optional[Any] = None

    @property
    def path(self) -> str:
        return self.url.split("?", 1)[0]


Renderer = Callable[[RenderRequest], Union[RenderResult, Awaitable[RenderResult]]]


class ServerRenderHandler:
    """
    Endpoint ``(request, ctx)`` for the catch-all GET route.

    Args:
        renderer: The page tree; sync or async
        template: Document template; defaults to the bundled one
        theme_factory: Builds a fresh theme per request
    """

    def __init__(
        self,
        renderer: Renderer,
        template: Optional[DocumentTemplate] = None,
        theme_factory: Callable[[], Dict[str, Any]] = create_theme,
    ):
        self.renderer = renderer
        self.template = template or DocumentTemplate()
        self.theme_factory = theme_factory

    async def __call__(self, request: Request, ctx: RequestCtx) -> Response:
        registry = StyleSheetRegistry()
        render_request = RenderRequest(
            url=request.url,
            theme=self.theme_factory(),
            registry=registry,
            identity=ctx.identity,
        )

        result = self.renderer(render_request)
        if inspect.isawaitable(result):
            result = await result

        if isinstance(result, Redirect):
            logger.debug("Render of %s redirected to %s", request.url, result.url)
            return Response.redirect(result.url, status=303)

        if render_request.context.url:
            return Response.redirect(render_request.context.url, status=303)

        markup = result.html if isinstance(result, Markup) else str(result)
        css = registry.to_string()
        document = await self.template.render(markup=markup, css=css)
        return Response.html(document, status=200)
