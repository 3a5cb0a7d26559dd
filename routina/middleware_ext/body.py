"""
Body and cookie parsing middleware.

Each parser only fills ``request.data`` / ``request.cookies``; nothing is
parsed before these stages run, so their position in the pipeline is
observable by later stages.

All middleware follow the async signature:
    async def __call__(self, request, ctx, next) -> Response
"""

from __future__ import annotations

import logging
from http.cookies import CookieError, SimpleCookie
from typing import Dict, TYPE_CHECKING

from routina.faults import RequestFault
from routina.middleware import Handler
from routina.request import Request
from routina.response import Response

if TYPE_CHECKING:
    from routina.context import RequestCtx

logger = logging.getLogger("routina.requests")


def _fault_response(fault: RequestFault) -> Response:
    return Response.json({"error": fault.message}, status=fault.status)


class JSONBodyMiddleware:
    """
    Parse JSON request bodies into ``request.data``.

    Requests without a JSON content type pass through untouched. An empty
    body parses to ``{}``; malformed JSON is answered with 400 and an
    oversized body with 413, both as ``{"error": ...}``.
    """

    name = "json_body"

    async def __call__(
        self, request: Request, ctx: "RequestCtx", next_handler: Handler
    ) -> Response:
        if not request.is_json():
            return await next_handler(request, ctx)

        try:
            request.data = await request.json()
        except RequestFault as fault:
            logger.debug("Rejected JSON body for %s %s: %s", request.method, request.path, fault.message)
            return _fault_response(fault)

        return await next_handler(request, ctx)


class URLEncodedBodyMiddleware:
    """
    Parse ``application/x-www-form-urlencoded`` bodies into ``request.data``.

    Keys are flat: a repeated key becomes a list, brackets are not expanded.
    """

    name = "urlencoded_body"

    async def __call__(
        self, request: Request, ctx: "RequestCtx", next_handler: Handler
    ) -> Response:
        if not request.is_form():
            return await next_handler(request, ctx)

        try:
            form = await request.form()
        except RequestFault as fault:
            logger.debug("Rejected form body for %s %s: %s", request.method, request.path, fault.message)
            return _fault_response(fault)

        request.data = form.to_dict()
        return await next_handler(request, ctx)


class CookieMiddleware:
    """Parse the Cookie header into ``request.cookies``."""

    name = "cookies"

    async def __call__(
        self, request: Request, ctx: "RequestCtx", next_handler: Handler
    ) -> Response:
        cookie_header = request.header("cookie", "")
        request.cookies = self.parse(cookie_header) if cookie_header else {}
        return await next_handler(request, ctx)

    @staticmethod
    def parse(cookie_header: str) -> Dict[str, str]:
        """
        Parse cookie header into dict.

        Falls back to a plain ``name=value`` split when the header is not
        valid RFC 6265 (SimpleCookie rejects it wholesale).
        """
        try:
            cookie = SimpleCookie()
            cookie.load(cookie_header)
        except CookieError:
            cookie = None

        if cookie:
            return {key: morsel.value for key, morsel in cookie.items()}

        cookies: Dict[str, str] = {}
        for part in cookie_header.split(";"):
            part = part.strip()
            if "=" in part:
                name, value = part.split("=", 1)
                cookies[name.strip()] = value.strip().strip('"')
        return cookies
