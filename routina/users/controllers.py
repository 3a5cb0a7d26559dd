"""
Users - resource handlers.

Every handler takes ``(request, ctx)``. Store failures are caught at the
call site and answered with ``400 {"error": <normalized message>}``; no
response ever carries a password hash or salt.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from routina.context import RequestCtx
from routina.faults import StoreFault
from routina.request import Request
from routina.response import Response

from .errors import get_error_message

if TYPE_CHECKING:
    from .repository import UserRepository

logger = logging.getLogger("routina.users")


def _error(fault: Exception) -> Response:
    return Response.json({"error": get_error_message(fault)}, status=400)


class UserHandlers:
    """
    CRUD handlers over an injected repository.

    ``read``, ``update`` and ``remove`` expect ``ctx.profile`` to have been
    set by identity resolution.
    """

    def __init__(self, repository: "UserRepository"):
        self.repository = repository

    async def create(self, request: Request, ctx: RequestCtx) -> Response:
        """Sign up a new user. The created record is never returned."""
        try:
            user = await self.repository.create(request.data)
        except StoreFault as fault:
            logger.info("Sign-up rejected: %s", fault.message)
            return _error(fault)

        logger.info("User %s signed up", user.id)
        return Response.json({"message": "Successfully signed up!"})

    async def list(self, request: Request, ctx: RequestCtx) -> Response:
        try:
            users = await self.repository.list_all()
        except StoreFault as fault:
            return _error(fault)
        return Response.json(users)

    async def read(self, request: Request, ctx: RequestCtx) -> Response:
        return Response.json(ctx.profile.to_public())

    async def update(self, request: Request, ctx: RequestCtx) -> Response:
        try:
            user = await self.repository.update(ctx.profile, request.data)
        except StoreFault as fault:
            logger.info("Update of user %s rejected: %s", ctx.profile.id, fault.message)
            return _error(fault)

        return Response.json(user.to_public())

    async def remove(self, request: Request, ctx: RequestCtx) -> Response:
        try:
            deleted = await self.repository.remove(ctx.profile)
        except StoreFault as fault:
            return _error(fault)

        logger.info("User %s removed", deleted.id)
        return Response.json(deleted.to_public())
