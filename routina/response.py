"""
Response - HTTP response builder.

Provides:
- Factory methods for JSON, HTML, plain text and redirect responses
- Multi-value headers
- ASGI send
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import quote

# Reserved characters plus "%" so already-encoded targets pass through unchanged.
LOCATION_SAFE = ":/?#[]@!$&'()*+,;=%"


def _json_default_serializer(o):
    """Default JSON serializer for non-standard types."""
    if isinstance(o, (set, tuple)):
        return list(o)
    if hasattr(o, "isoformat"):
        return o.isoformat()
    return str(o)


def dumps(obj: Any) -> bytes:
    """Encode ``obj`` as compact UTF-8 JSON."""
    return json.dumps(
        obj, default=_json_default_serializer, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


class Response:
    """
    HTTP response.

    ``content`` may be bytes, str, or a dict/list (encoded as JSON).
    Header names are stored lower-cased; a list value emits one header
    line per item.
    """

    def __init__(
        self,
        content: Union[bytes, str, Mapping, Sequence] = b"",
        status: int = 200,
        headers: Optional[Mapping[str, Union[str, Sequence[str]]]] = None,
        media_type: Optional[str] = None,
        *,
        encoding: str = "utf-8",
    ):
        self.status = status
        self.encoding = encoding
        self._headers: Dict[str, Union[str, List[str]]] = {}

        for key, value in (headers or {}).items():
            if isinstance(value, (list, tuple)):
                self._headers[key.lower()] = list(value)
            else:
                self._headers[key.lower()] = value

        self._body = self._encode_body(content)

        if media_type:
            self._headers["content-type"] = media_type
        elif "content-type" not in self._headers and self._body:
            self._headers["content-type"] = self._detect_media_type(content)

    @property
    def headers(self) -> Dict[str, Union[str, List[str]]]:
        return self._headers

    @property
    def body(self) -> bytes:
        return self._body

    @body.setter
    def body(self, value: bytes) -> None:
        self._body = value
        self._headers.pop("content-length", None)

    def _detect_media_type(self, content: Any) -> str:
        if isinstance(content, (dict, list)):
            return "application/json; charset=utf-8"
        if isinstance(content, str):
            return "text/plain; charset=utf-8"
        return "application/octet-stream"

    def _encode_body(self, content: Any) -> bytes:
        if isinstance(content, bytes):
            return content
        if isinstance(content, str):
            return content.encode(self.encoding)
        if isinstance(content, (dict, list)):
            return dumps(content)
        return str(content).encode(self.encoding)

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def json(
        cls,
        obj: Any,
        status: int = 200,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "Response":
        """Create JSON response."""
        return cls(
            content=dumps(obj),
            status=status,
            headers=headers,
            media_type="application/json; charset=utf-8",
        )

    @classmethod
    def html(cls, content: str, status: int = 200, **kwargs) -> "Response":
        return cls(content=content, status=status, media_type="text/html; charset=utf-8", **kwargs)

    @classmethod
    def text(cls, content: str, status: int = 200, **kwargs) -> "Response":
        return cls(content=content, status=status, media_type="text/plain; charset=utf-8", **kwargs)

    @classmethod
    def redirect(
        cls,
        url: str,
        status: int = 302,
        *,
        headers: Optional[Dict[str, str]] = None,
    ) -> "Response":
        """
        Create redirect response.

        The body is always empty; the target travels in ``Location``,
        percent-encoded so non-ASCII paths survive the latin-1 header encoding.
        """
        redirect_headers = {"location": quote(url, safe=LOCATION_SAFE)}
        if headers:
            redirect_headers.update(headers)
        return cls(content=b"", status=status, headers=redirect_headers)

    # ========================================================================
    # ASGI Send
    # ========================================================================

    def _prepare_headers(self) -> List[tuple]:
        headers_list = []
        for name, value in self._headers.items():
            name_bytes = name.encode("latin-1")
            if isinstance(value, list):
                for v in value:
                    headers_list.append((name_bytes, v.encode("latin-1")))
            else:
                headers_list.append((name_bytes, value.encode("latin-1")))
        return headers_list

    async def send_asgi(self, send: Callable[[dict], Awaitable[None]], *, head: bool = False) -> None:
        """Send response via ASGI (``head`` suppresses the body bytes)."""
        self._headers["content-length"] = str(len(self._body))
        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": self._prepare_headers(),
        })
        await send({
            "type": "http.response.body",
            "body": b"" if head else self._body,
            "more_body": False,
        })

    def __repr__(self) -> str:
        return f"<Response {self.status} {len(self._body)}B>"
