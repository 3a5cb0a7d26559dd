"""
Request - ASGI request wrapper.

Provides:
- Typed access to the ASGI scope (method, path, query, headers)
- Body reading with idempotent caching and a size limit
- JSON and url-encoded body decoding
- Per-request ``state`` used by middleware to hand values downstream

Parsed bodies and cookies are *not* computed lazily: they appear on
``request.data`` / ``request.cookies`` only after the body and cookie
parsing stages of the pipeline have run.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Mapping, Optional
from urllib.parse import parse_qsl

from ._datastructures import Headers, MultiDict, ParsedContentType
from .faults import (
    BadRequest,
    ClientDisconnect,
    InvalidJSON,
    PayloadTooLarge,
    UnsupportedMediaType,
)


JSON_MEDIA_TYPES = ("application/json", "application/x-json", "text/json")
FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"


class Request:
    """
    Request object handed to every middleware and handler.

    Args:
        scope: ASGI scope dict
        receive: ASGI receive callable
        max_body_size: Maximum request body size in bytes
    """

    def __init__(
        self,
        scope: Mapping[str, Any],
        receive: Callable[..., Awaitable[dict]],
        *,
        max_body_size: int = 102_400,
    ):
        self.scope = scope
        self._receive = receive
        self.max_body_size = max_body_size

        self.state: Dict[str, Any] = {}

        self._body: Optional[bytes] = None
        self._body_consumed = False
        self._headers: Optional[Headers] = None

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        return self.scope.get("method", "GET")

    @property
    def path(self) -> str:
        return self.scope.get("path", "/")

    @property
    def query_string(self) -> str:
        return self.scope.get("query_string", b"").decode("utf-8")

    @property
    def url(self) -> str:
        """Path plus query string, as the client sent it."""
        query = self.query_string
        return f"{self.path}?{query}" if query else self.path

    # ========================================================================
    # Headers
    # ========================================================================

    @property
    def headers(self) -> Headers:
        if self._headers is None:
            self._headers = Headers(raw=list(self.scope.get("headers", [])))
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get single header (case-insensitive)."""
        return self.headers.get(name, default)

    def content_type(self) -> Optional[ParsedContentType]:
        return ParsedContentType.parse(self.header("content-type"))

    def is_json(self) -> bool:
        parsed = self.content_type()
        return bool(parsed) and (
            parsed.media_type in JSON_MEDIA_TYPES or parsed.media_type.endswith("+json")
        )

    def is_form(self) -> bool:
        parsed = self.content_type()
        return bool(parsed) and parsed.media_type == FORM_MEDIA_TYPE

    # ========================================================================
    # Values populated by the pipeline
    # ========================================================================

    @property
    def data(self) -> Dict[str, Any]:
        """Parsed request body (empty until a body parser has run)."""
        return self.state.setdefault("body", {})

    @data.setter
    def data(self, value: Dict[str, Any]) -> None:
        self.state["body"] = value

    @property
    def cookies(self) -> Dict[str, str]:
        """Parsed cookies (empty until the cookie parser has run)."""
        return self.state.setdefault("cookies", {})

    @cookies.setter
    def cookies(self, value: Dict[str, str]) -> None:
        self.state["cookies"] = value

    @property
    def path_params(self) -> Dict[str, str]:
        return self.state.setdefault("path_params", {})

    # ========================================================================
    # Body Reading
    # ========================================================================

    async def _receive_message(self) -> dict:
        message = await self._receive()
        if message["type"] == "http.disconnect":
            raise ClientDisconnect()
        return message

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """
        Stream the request body.

        Raises:
            ClientDisconnect: If the client goes away mid-body
            PayloadTooLarge: If the body exceeds ``max_body_size``
        """
        if self._body is not None:
            yield self._body
            return

        if self._body_consumed:
            return

        total = 0
        while True:
            message = await self._receive_message()
            chunk = message.get("body", b"")
            if chunk:
                total += len(chunk)
                if total > self.max_body_size:
                    raise PayloadTooLarge(
                        "request entity too large",
                        limit=self.max_body_size,
                    )
                yield chunk
            if not message.get("more_body", False):
                break

        self._body_consumed = True

    async def body(self) -> bytes:
        """Read the full request body (idempotent)."""
        if self._body is None:
            self._body = b"".join([chunk async for chunk in self.iter_bytes()])
        return self._body

    async def json(self) -> Any:
        """
        Decode the body as JSON.

        An empty body decodes to an empty dict, as body parsers treat it.

        Raises:
            InvalidJSON: If the payload is not valid UTF-8 JSON
        """
        raw = await self.body()
        if not raw.strip():
            return {}
        try:
            return json.loads(raw.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise InvalidJSON(f"Invalid UTF-8 in JSON payload: {e}")
        except json.JSONDecodeError as e:
            raise InvalidJSON(f"Invalid JSON: {e}")

    async def form(self) -> MultiDict:
        """
        Decode an application/x-www-form-urlencoded body.

        Raises:
            UnsupportedMediaType: If the Content-Type is not url-encoded or
                names an unknown charset
            BadRequest: If the body does not decode in that charset
        """
        parsed = self.content_type()
        if not parsed or parsed.media_type != FORM_MEDIA_TYPE:
            raise UnsupportedMediaType(f"Expected {FORM_MEDIA_TYPE}")
        raw = await self.body()
        try:
            text = raw.decode(parsed.charset)
        except LookupError:
            raise UnsupportedMediaType(f"Unsupported charset: {parsed.charset}")
        except UnicodeDecodeError as e:
            raise BadRequest(f"Invalid {parsed.charset} in form payload: {e}")
        return MultiDict(parse_qsl(text, keep_blank_values=True))

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.url}>"
