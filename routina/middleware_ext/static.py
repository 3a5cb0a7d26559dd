"""
Static File Middleware - serves files from a directory under a URL prefix.

Features:
- Prefix mounts on path-segment boundaries (``/dist`` does not match ``/distx``)
- Content-type detection via mimetypes + custom mappings
- Weak ETag with If-None-Match support
- Last-Modified / If-Modified-Since conditional responses
- Directory traversal prevention with realpath canonicalization
- Falls through to the next stage on any miss
"""

from __future__ import annotations

import hashlib
import mimetypes
import os
from datetime import datetime, timezone
from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from typing import Dict, Optional, TYPE_CHECKING

from routina.middleware import Handler
from routina.request import Request
from routina.response import Response

if TYPE_CHECKING:
    from routina.context import RequestCtx

# ─── Custom MIME types beyond stdlib ──────────────────────────────────────────
_EXTRA_MIME_TYPES: Dict[str, str] = {
    ".woff2": "font/woff2",
    ".woff": "font/woff",
    ".ttf": "font/ttf",
    ".webp": "image/webp",
    ".map": "application/json",
    ".mjs": "application/javascript",
    ".js": "application/javascript",
    ".webmanifest": "application/manifest+json",
    ".ico": "image/x-icon",
}

for _ext, _mime in _EXTRA_MIME_TYPES.items():
    mimetypes.add_type(_mime, _ext)


class StaticMiddleware:
    """
    Serve files from ``directory`` for requests under ``prefix``.

    Only GET and HEAD are handled. A path that does not name a readable
    file inside the directory falls through to the next stage; a path
    escaping the directory is answered with 403.

    Args:
        prefix: URL prefix the directory is mounted at ("/" mounts at root).
        directory: Filesystem directory to serve.
        cache_max_age: Cache-Control max-age (seconds).
        etag: Enable ETag generation.
        index_file: File served for the bare prefix; None disables it.
    """

    def __init__(
        self,
        prefix: str,
        directory: str | os.PathLike,
        cache_max_age: int = 0,
        etag: bool = True,
        index_file: Optional[str] = "index.html",
    ):
        self.prefix = "/" + prefix.strip("/")
        self.directory = Path(directory).resolve()
        self.name = f"static:{self.prefix}"
        self._cache_max_age = cache_max_age
        self._etag = etag
        self._index_file = index_file

    # ── Public API ────────────────────────────────────────────────────────

    async def __call__(
        self,
        request: Request,
        ctx: "RequestCtx",
        next_handler: Handler,
    ) -> Response:
        """Serve static file or fall through to next handler."""
        if request.method not in ("GET", "HEAD"):
            return await next_handler(request, ctx)

        relative_path = self._relative_path(request.path)
        if relative_path is None:
            return await next_handler(request, ctx)

        if not relative_path:
            if not self._index_file:
                return await next_handler(request, ctx)
            relative_path = self._index_file

        response = self._serve_file(request, relative_path)
        if response is None:
            return await next_handler(request, ctx)
        return response

    def _relative_path(self, path: str) -> Optional[str]:
        """Path below the mount point, or None when outside it."""
        if self.prefix == "/":
            return path.lstrip("/")
        if path == self.prefix or path.startswith(self.prefix + "/"):
            return path[len(self.prefix):].lstrip("/")
        return None

    # ── Internals ─────────────────────────────────────────────────────────

    def _serve_file(self, request: Request, relative_path: str) -> Optional[Response]:
        """Attempt to serve a single file.  Returns None on miss."""
        file_path = (self.directory / relative_path).resolve()
        try:
            file_path.relative_to(self.directory)
        except ValueError:
            return Response(b"Forbidden", status=403)

        if not file_path.is_file():
            return None

        try:
            st = file_path.stat()
        except OSError:
            return None

        etag = self._compute_etag(st) if self._etag else None
        cache_headers = self._build_cache_headers(etag, st)

        if etag:
            client_etag = request.header("if-none-match")
            if client_etag and self._etag_matches(client_etag, etag):
                return Response(b"", status=304, headers=cache_headers)

        ims = request.header("if-modified-since")
        if ims:
            try:
                ims_dt = parsedate_to_datetime(ims)
                file_dt = datetime.fromtimestamp(int(st.st_mtime), tz=timezone.utc)
                if file_dt <= ims_dt:
                    return Response(b"", status=304, headers=cache_headers)
            except (ValueError, TypeError):
                pass

        try:
            content = file_path.read_bytes()
        except OSError:
            return None

        return Response(
            content,
            status=200,
            headers=cache_headers,
            media_type=self._detect_content_type(file_path),
        )

    def _detect_content_type(self, path: Path) -> str:
        mime, _ = mimetypes.guess_type(str(path))
        return mime or "application/octet-stream"

    def _compute_etag(self, st: os.stat_result) -> str:
        """Compute a weak ETag from inode + mtime + size."""
        raw = f"{st.st_ino}-{st.st_mtime_ns}-{st.st_size}"
        digest = hashlib.md5(raw.encode(), usedforsecurity=False).hexdigest()[:16]
        return f'W/"{digest}"'

    def _etag_matches(self, client_header: str, etag: str) -> bool:
        if client_header.strip() == "*":
            return True
        tags = [t.strip().removeprefix("W/").strip('"') for t in client_header.split(",")]
        return etag.removeprefix("W/").strip('"') in tags

    def _build_cache_headers(
        self, etag: Optional[str], st: os.stat_result
    ) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if etag:
            headers["etag"] = etag
        headers["last-modified"] = formatdate(st.st_mtime, usegmt=True)
        headers["cache-control"] = f"public, max-age={self._cache_max_age}"
        headers["accept-ranges"] = "bytes"
        return headers

    def __repr__(self) -> str:
        return f"<StaticMiddleware {self.prefix} -> {self.directory}>"
