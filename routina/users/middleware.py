"""
Identity resolution for ``:userId`` routes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from routina.faults import StoreFault
from routina.middleware import Handler
from routina.request import Request
from routina.response import Response

if TYPE_CHECKING:
    from routina.context import RequestCtx
    from .repository import UserRepository

logger = logging.getLogger("routina.users")


def make_user_by_id(repository: "UserRepository"):
    """
    Build the ``userId`` param resolver for ``repository``.

    The resolver loads the user, stores it as ``ctx.profile`` and calls
    ``next``. Any lookup failure is answered with
    ``400 {"error": "User not found"}`` and ``next`` is not called.
    """

    async def user_by_id(
        request: Request, ctx: "RequestCtx", next: Handler, user_id: str
    ) -> Response:
        try:
            user = await repository.find_by_id(user_id)
        except StoreFault as fault:
            logger.debug("User lookup failed for %r: %s", user_id, fault.message)
            return Response.json({"error": "User not found"}, status=400)

        ctx.profile = user
        return await next(request, ctx)

    return user_by_id
