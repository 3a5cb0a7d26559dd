"""
routina - async HTTP application server.

A user-account resource API over a document store plus a catch-all
server-rendered page handler, assembled as one ordered middleware
pipeline and served over ASGI.
"""

__version__ = "0.1.0"

from .request import Request
from .response import Response
from .context import RequestCtx
from .faults import Fault, FaultDomain, Severity, UnauthorizedError
from .middleware import MiddlewareStack
from .routing import Router
from .config import ConfigLoader, ServerConfig
from .app import create_app

__all__ = [
    "__version__",
    "Request",
    "Response",
    "RequestCtx",
    "Fault",
    "FaultDomain",
    "Severity",
    "UnauthorizedError",
    "MiddlewareStack",
    "Router",
    "ConfigLoader",
    "ServerConfig",
    "create_app",
]
