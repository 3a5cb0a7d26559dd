"""
HTML document template for server-rendered pages (Jinja2).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, Template, select_autoescape

TEMPLATE_DIR = Path(__file__).parent / "templates"


class DocumentTemplate:
    """
    Wraps rendered markup and collected CSS into the full HTML document.

    Args:
        template_name: Template file under ``templates/``
        title: Document title
        bundle_url: Client bundle loaded after the markup
        enable_async: Build an async Jinja2 environment (use ``render``);
            otherwise use ``render_sync``
    """

    def __init__(
        self,
        template_name: str = "index.html",
        title: str = "MERN Skeleton",
        bundle_url: str = "/dist/bundle.js",
        enable_async: bool = True,
        template_dir: Optional[Path] = None,
    ):
        self.title = title
        self.bundle_url = bundle_url
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            autoescape=select_autoescape(
                enabled_extensions=["html", "htm", "xml"],
                default_for_string=True,
            ),
            enable_async=enable_async,
        )
        self._template: Template = self.env.get_template(template_name)

    def _context(self, markup: str, css: str) -> dict:
        return {
            "title": self.title,
            "bundle_url": self.bundle_url,
            "markup": markup,
            "css": css,
        }

    async def render(self, markup: str, css: str) -> str:
        """Render the document asynchronously."""
        return await self._template.render_async(**self._context(markup, css))

    def render_sync(self, markup: str, css: str) -> str:
        """
        Render the document synchronously.

        Only valid on a template built with ``enable_async=False``.
        """
        return self._template.render(**self._context(markup, css))


_sync_template: Optional[DocumentTemplate] = None


def render_document(markup: str, css: str) -> str:
    """Render the default document outside of an event loop."""
    global _sync_template
    if _sync_template is None:
        _sync_template = DocumentTemplate(enable_async=False)
    return _sync_template.render_sync(markup, css)
