"""
Security middleware - response hardening headers and cross-origin policy.

Provides:
- SecurityHeadersMiddleware: Helmet-style default security headers
- CORSMiddleware:            cross-origin resource sharing (permissive by default)

All middleware follow the async signature:
    async def __call__(self, request, ctx, next) -> Response
"""

from __future__ import annotations

import re
from collections import OrderedDict
from typing import Dict, List, Optional, Pattern, Set, Union, TYPE_CHECKING

from routina.request import Request
from routina.response import Response
from routina.middleware import Handler

if TYPE_CHECKING:
    from routina.context import RequestCtx


# ═══════════════════════════════════════════════════════════════════════════════
#  Security headers
# ═══════════════════════════════════════════════════════════════════════════════

class SecurityHeadersMiddleware:
    """
    Catch-all security headers middleware (like Helmet for Node).

    Applies to every response, without overriding headers a handler set:
    - X-DNS-Prefetch-Control: off
    - X-Frame-Options: SAMEORIGIN
    - Strict-Transport-Security: max-age=15552000; includeSubDomains
    - X-Download-Options: noopen
    - X-Content-Type-Options: nosniff
    - X-XSS-Protection: 1; mode=block

    and strips ``X-Powered-By`` / ``Server``.

    Args:
        frame_options: "DENY" or "SAMEORIGIN".
        hsts_max_age: HSTS max-age in seconds; 0 disables the header.
        extra_headers: Additional headers to apply.
    """

    name = "security_headers"

    def __init__(
        self,
        frame_options: str = "SAMEORIGIN",
        hsts_max_age: int = 15552000,
        extra_headers: Optional[Dict[str, str]] = None,
    ):
        self._headers: Dict[str, str] = {
            "x-dns-prefetch-control": "off",
            "x-frame-options": frame_options,
            "x-download-options": "noopen",
            "x-content-type-options": "nosniff",
            "x-xss-protection": "1; mode=block",
        }
        if hsts_max_age:
            self._headers["strict-transport-security"] = (
                f"max-age={hsts_max_age}; includeSubDomains"
            )
        for key, value in (extra_headers or {}).items():
            self._headers[key.lower()] = value

    async def __call__(
        self, request: Request, ctx: "RequestCtx", next_handler: Handler
    ) -> Response:
        response = await next_handler(request, ctx)

        for name, value in self._headers.items():
            response.headers.setdefault(name, value)

        response.headers.pop("x-powered-by", None)
        response.headers.pop("server", None)
        return response


# ═══════════════════════════════════════════════════════════════════════════════
#  CORS
# ═══════════════════════════════════════════════════════════════════════════════

class _OriginMatcher:
    """
    Origin matching for exact strings, ``*`` and glob patterns
    (``https://*.example.com``), with a small LRU cache.
    """

    __slots__ = ("_allow_all", "_exact", "_regex_patterns", "_cache", "_cache_limit")

    def __init__(self, origins: List[Union[str, Pattern]], cache_size: int = 256):
        self._allow_all = False
        self._exact: Set[str] = set()
        self._regex_patterns: List[Pattern] = []
        self._cache: OrderedDict[str, bool] = OrderedDict()
        self._cache_limit = cache_size

        for origin in origins:
            if not isinstance(origin, str):
                self._regex_patterns.append(origin)
            elif origin == "*":
                self._allow_all = True
            elif "*" in origin:
                escaped = re.escape(origin).replace(r"\*", "[^.]+")
                self._regex_patterns.append(re.compile(f"^{escaped}$", re.IGNORECASE))
            else:
                self._exact.add(origin.lower())

    @property
    def is_wildcard(self) -> bool:
        return self._allow_all

    def matches(self, origin: str) -> bool:
        if self._allow_all:
            return True

        key = origin.lower()
        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            return cached

        result = key in self._exact or any(p.match(key) for p in self._regex_patterns)
        self._cache[key] = result
        if len(self._cache) > self._cache_limit:
            self._cache.popitem(last=False)
        return result


class CORSMiddleware:
    """
    CORS middleware.

    With no arguments it is fully permissive: every origin is allowed with
    ``Access-Control-Allow-Origin: *`` and preflight requests are answered
    with 204, reflecting the requested headers.

    Args:
        allow_origins: Allowed origins (strings, globs, or compiled regex).
        allow_methods: Methods for Access-Control-Allow-Methods.
        allow_headers: Headers for Access-Control-Allow-Headers; None
            reflects Access-Control-Request-Headers.
        allow_credentials: Allow credentials (cookies, Authorization).
        max_age: Preflight cache duration (seconds); None omits it.
    """

    name = "cors"

    def __init__(
        self,
        allow_origins: Optional[List[Union[str, Pattern]]] = None,
        allow_methods: Optional[List[str]] = None,
        allow_headers: Optional[List[str]] = None,
        allow_credentials: bool = False,
        max_age: Optional[int] = None,
    ):
        self._matcher = _OriginMatcher(list(allow_origins or ["*"]))
        self._methods_str = ", ".join(
            allow_methods or ["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"]
        )
        self._headers_str = ", ".join(allow_headers) if allow_headers else None
        self._allow_credentials = allow_credentials
        self._max_age = max_age

    async def __call__(
        self, request: Request, ctx: "RequestCtx", next_handler: Handler
    ) -> Response:
        origin = request.header("origin")
        allowed = origin is None or self._matcher.matches(origin)

        if request.method == "OPTIONS" and request.header("access-control-request-method"):
            return self._preflight(request, origin, allowed)

        response = await next_handler(request, ctx)
        if allowed:
            self._set_origin_header(response.headers, origin)
            if self._allow_credentials:
                response.headers["access-control-allow-credentials"] = "true"
        return response

    def _preflight(self, request: Request, origin: Optional[str], allowed: bool) -> Response:
        headers: Dict[str, str] = {}

        if allowed:
            self._set_origin_header(headers, origin)
            headers["access-control-allow-methods"] = self._methods_str
            requested = request.header("access-control-request-headers")
            allow_headers = self._headers_str or requested
            if allow_headers:
                headers["access-control-allow-headers"] = allow_headers
            if self._max_age is not None:
                headers["access-control-max-age"] = str(self._max_age)
            if self._allow_credentials:
                headers["access-control-allow-credentials"] = "true"

        headers["vary"] = "Origin, Access-Control-Request-Headers"
        return Response(b"", status=204, headers=headers)

    def _set_origin_header(self, headers: dict, origin: Optional[str]) -> None:
        """Reflect the origin unless the wildcard applies without credentials."""
        if self._matcher.is_wildcard and not self._allow_credentials:
            headers["access-control-allow-origin"] = "*"
        elif origin:
            headers["access-control-allow-origin"] = origin
            vary = headers.get("vary")
            if not vary:
                headers["vary"] = "Origin"
            elif "origin" not in str(vary).lower():
                headers["vary"] = f"{vary}, Origin"
