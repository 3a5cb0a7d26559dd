"""
Server-side rendering: theme, style registry, page tree and the catch-all
handler that turns them into an HTML document.
"""

from .pages import PageRouter, main_router
from .rendering import (
    Markup,
    Redirect,
    RenderContext,
    Renderer,
    RenderRequest,
    RenderResult,
    ServerRenderHandler,
)
from .styles import StyleSheet, StyleSheetRegistry
from .template import DocumentTemplate, render_document
from .theme import create_theme, indigo, pink

__all__ = [
    "PageRouter",
    "main_router",
    "Markup",
    "Redirect",
    "RenderContext",
    "Renderer",
    "RenderRequest",
    "RenderResult",
    "ServerRenderHandler",
    "StyleSheet",
    "StyleSheetRegistry",
    "DocumentTemplate",
    "render_document",
    "create_theme",
    "indigo",
    "pink",
]
