"""
Extended middleware components for routina.

Parsing:
- JSONBodyMiddleware: JSON request bodies into ``request.data``
- URLEncodedBodyMiddleware: url-encoded form bodies into ``request.data``
- CookieMiddleware: Cookie header into ``request.cookies``

Security:
- SecurityHeadersMiddleware: Helmet-style catch-all security headers
- CORSMiddleware: cross-origin resource sharing, permissive by default

Static Files:
- StaticMiddleware: directory mounted under a URL prefix

Errors:
- UnauthorizedErrorInterceptor: terminal 401/500 error stage
"""

from .body import CookieMiddleware, JSONBodyMiddleware, URLEncodedBodyMiddleware
from .errors import UnauthorizedErrorInterceptor
from .security import CORSMiddleware, SecurityHeadersMiddleware
from .static import StaticMiddleware

__all__ = [
    # Parsing
    "JSONBodyMiddleware",
    "URLEncodedBodyMiddleware",
    "CookieMiddleware",
    # Security
    "SecurityHeadersMiddleware",
    "CORSMiddleware",
    # Static
    "StaticMiddleware",
    # Errors
    "UnauthorizedErrorInterceptor",
]
