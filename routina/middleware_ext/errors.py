"""
Terminal error stage for the request pipeline.

Registered with ``MiddlewareStack.add_error_handler``; it observes every
exception raised by earlier stages and always answers, so a failed
request never hangs.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from routina.request import Request
from routina.response import Response

if TYPE_CHECKING:
    from routina.context import RequestCtx


class UnauthorizedErrorInterceptor:
    """
    Converts authentication failures to 401 responses.

    An error whose ``name`` is ``"UnauthorizedError"`` becomes
    ``401 {"error": "<name>: <message>"}``. Anything else is logged
    with its traceback and answered with
    ``500 {"error": "Internal server error"}``.
    """

    name = "unauthorized_error"

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.logger = logging.getLogger("routina.errors")

    async def __call__(
        self, request: Request, ctx: "RequestCtx", exc: Exception
    ) -> Optional[Response]:
        if getattr(exc, "name", None) == "UnauthorizedError":
            message = getattr(exc, "message", None) or str(exc)
            self.logger.warning(
                "Unauthorized %s %s: %s", request.method, request.path, message
            )
            return Response.json({"error": f"{exc.name}: {message}"}, status=401)

        self.logger.error(
            "Unhandled exception on %s %s: %s",
            request.method, request.path, exc,
            exc_info=exc,
        )
        body = {"error": "Internal server error"}
        if self.debug:
            body["detail"] = f"{type(exc).__name__}: {exc}"
        return Response.json(body, status=500)
