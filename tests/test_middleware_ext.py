"""
Extended middleware (routina/middleware_ext).

Tests JSONBodyMiddleware, URLEncodedBodyMiddleware, CookieMiddleware,
SecurityHeadersMiddleware, CORSMiddleware, StaticMiddleware and
UnauthorizedErrorInterceptor.
"""

import json
import logging

import pytest

from routina.faults import UnauthorizedError
from routina.middleware_ext import (
    CookieMiddleware,
    CORSMiddleware,
    JSONBodyMiddleware,
    SecurityHeadersMiddleware,
    StaticMiddleware,
    UnauthorizedErrorInterceptor,
    URLEncodedBodyMiddleware,
)
from routina.response import Response

from tests.conftest import make_ctx, make_request


def make_handler(status=200, body=None, headers=None):
    async def handler(request, ctx):
        return Response.json(body if body is not None else {"ok": True}, status=status, headers=headers)
    return handler


async def echo(request, ctx):
    return Response.json({"data": request.data, "cookies": request.cookies})


def payload(response):
    return json.loads(response.body)


# ============================================================================
# Body parsers
# ============================================================================

class TestJSONBodyMiddleware:

    @pytest.mark.asyncio
    async def test_parses_json(self):
        request = make_request(
            method="POST",
            headers=[("content-type", "application/json")],
            body=b'{"name": "Ada"}',
        )
        response = await JSONBodyMiddleware()(request, make_ctx(request), echo)
        assert payload(response)["data"] == {"name": "Ada"}

    @pytest.mark.asyncio
    async def test_empty_body_is_empty_dict(self):
        request = make_request(method="POST", headers=[("content-type", "application/json")])
        response = await JSONBodyMiddleware()(request, make_ctx(request), echo)
        assert payload(response)["data"] == {}

    @pytest.mark.asyncio
    async def test_vendor_json_type(self):
        request = make_request(
            method="POST",
            headers=[("content-type", "application/vnd.api+json")],
            body=b'{"a": 1}',
        )
        response = await JSONBodyMiddleware()(request, make_ctx(request), echo)
        assert payload(response)["data"] == {"a": 1}

    @pytest.mark.asyncio
    async def test_other_content_type_untouched(self):
        request = make_request(method="POST", headers=[("content-type", "text/plain")], body=b"{}")
        response = await JSONBodyMiddleware()(request, make_ctx(request), echo)
        assert payload(response)["data"] == {}

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        request = make_request(
            method="POST",
            headers=[("content-type", "application/json")],
            body=b'{"name": ',
        )
        called = []

        async def handler(request, ctx):
            called.append(True)
            return Response.json({})

        response = await JSONBodyMiddleware()(request, make_ctx(request), handler)
        assert response.status == 400
        assert payload(response)["error"].startswith("Invalid JSON")
        assert called == []

    @pytest.mark.asyncio
    async def test_too_large(self):
        request = make_request(
            method="POST",
            headers=[("content-type", "application/json")],
            body=b'{"a": "' + b"x" * 200 + b'"}',
            max_body_size=100,
        )
        response = await JSONBodyMiddleware()(request, make_ctx(request), echo)
        assert response.status == 413
        assert payload(response) == {"error": "request entity too large"}


class TestURLEncodedBodyMiddleware:

    @pytest.mark.asyncio
    async def test_parses_form(self):
        request = make_request(
            method="POST",
            headers=[("content-type", "application/x-www-form-urlencoded")],
            body=b"name=Ada+Lovelace&email=ada%40example.com&tag=a&tag=b",
        )
        response = await URLEncodedBodyMiddleware()(request, make_ctx(request), echo)
        assert payload(response)["data"] == {
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "tag": ["a", "b"],
        }

    @pytest.mark.asyncio
    async def test_undecodable_body(self):
        request = make_request(
            method="POST",
            headers=[("content-type", "application/x-www-form-urlencoded")],
            body=b"name=%FF\xff&email=a%40b.co",
        )
        response = await URLEncodedBodyMiddleware()(request, make_ctx(request), echo)
        assert response.status == 400
        assert payload(response)["error"].startswith("Invalid utf-8 in form payload")

    @pytest.mark.asyncio
    async def test_unknown_charset(self):
        request = make_request(
            method="POST",
            headers=[("content-type", "application/x-www-form-urlencoded; charset=bogus")],
            body=b"name=Ada",
        )
        response = await URLEncodedBodyMiddleware()(request, make_ctx(request), echo)
        assert response.status == 415
        assert payload(response) == {"error": "Unsupported charset: bogus"}

    @pytest.mark.asyncio
    async def test_declared_charset_used(self):
        request = make_request(
            method="POST",
            headers=[("content-type", "application/x-www-form-urlencoded; charset=latin-1")],
            body="name=Zo\xeb".encode("latin-1"),
        )
        response = await URLEncodedBodyMiddleware()(request, make_ctx(request), echo)
        assert payload(response)["data"] == {"name": "Zo\xeb"}

    @pytest.mark.asyncio
    async def test_json_request_untouched(self):
        request = make_request(method="POST", headers=[("content-type", "application/json")], body=b"{}")
        response = await URLEncodedBodyMiddleware()(request, make_ctx(request), echo)
        assert payload(response)["data"] == {}


class TestCookieMiddleware:

    @pytest.mark.asyncio
    async def test_parses_cookies(self):
        request = make_request(headers=[("cookie", "t=abc; theme=dark")])
        response = await CookieMiddleware()(request, make_ctx(request), echo)
        assert payload(response)["cookies"] == {"t": "abc", "theme": "dark"}

    @pytest.mark.asyncio
    async def test_not_parsed_before_stage(self):
        request = make_request(headers=[("cookie", "t=abc")])
        assert request.cookies == {}

    def test_malformed_header_falls_back(self):
        assert CookieMiddleware.parse('a=1; b c=2; d="x"') == {"a": "1", "b c": "2", "d": "x"}


# ============================================================================
# Security headers
# ============================================================================

class TestSecurityHeadersMiddleware:

    @pytest.mark.asyncio
    async def test_default_headers(self):
        request = make_request()
        response = await SecurityHeadersMiddleware()(request, make_ctx(request), make_handler())
        assert response.headers["x-dns-prefetch-control"] == "off"
        assert response.headers["x-frame-options"] == "SAMEORIGIN"
        assert response.headers["strict-transport-security"] == "max-age=15552000; includeSubDomains"
        assert response.headers["x-download-options"] == "noopen"
        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-xss-protection"] == "1; mode=block"

    @pytest.mark.asyncio
    async def test_strips_powered_by(self):
        request = make_request()
        handler = make_handler(headers={"X-Powered-By": "Express", "Server": "x"})
        response = await SecurityHeadersMiddleware()(request, make_ctx(request), handler)
        assert "x-powered-by" not in response.headers
        assert "server" not in response.headers

    @pytest.mark.asyncio
    async def test_handler_headers_win(self):
        request = make_request()
        handler = make_handler(headers={"X-Frame-Options": "DENY"})
        response = await SecurityHeadersMiddleware()(request, make_ctx(request), handler)
        assert response.headers["x-frame-options"] == "DENY"


# ============================================================================
# CORS
# ============================================================================

class TestCORSMiddleware:

    @pytest.mark.asyncio
    async def test_wildcard_origin(self):
        request = make_request(headers=[("origin", "http://elsewhere.example")])
        response = await CORSMiddleware()(request, make_ctx(request), make_handler())
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.asyncio
    async def test_preflight(self):
        request = make_request(
            method="OPTIONS",
            path="/api/users",
            headers=[
                ("origin", "http://elsewhere.example"),
                ("access-control-request-method", "PUT"),
                ("access-control-request-headers", "content-type, authorization"),
            ],
        )
        response = await CORSMiddleware()(request, make_ctx(request), make_handler(status=500))
        assert response.status == 204
        assert response.body == b""
        assert "PUT" in response.headers["access-control-allow-methods"]
        assert response.headers["access-control-allow-headers"] == "content-type, authorization"

    @pytest.mark.asyncio
    async def test_plain_options_passes_through(self):
        request = make_request(method="OPTIONS")
        response = await CORSMiddleware()(request, make_ctx(request), make_handler(status=404))
        assert response.status == 404

    @pytest.mark.asyncio
    async def test_restricted_origins(self):
        mw = CORSMiddleware(allow_origins=["https://*.example.com"])
        allowed = make_request(headers=[("origin", "https://app.example.com")])
        denied = make_request(headers=[("origin", "https://evil.test")])

        response = await mw(allowed, make_ctx(allowed), make_handler())
        assert response.headers["access-control-allow-origin"] == "https://app.example.com"
        assert "Origin" in response.headers["vary"]

        response = await mw(denied, make_ctx(denied), make_handler())
        assert "access-control-allow-origin" not in response.headers


# ============================================================================
# Static files
# ============================================================================

class TestStaticMiddleware:

    @pytest.fixture
    def dist(self, tmp_path):
        directory = tmp_path / "dist"
        directory.mkdir()
        (directory / "bundle.js").write_text("console.log('hi')")
        (tmp_path / "secret.txt").write_text("secret")
        return directory

    @pytest.mark.asyncio
    async def test_serves_file(self, dist):
        mw = StaticMiddleware("/dist", dist)
        request = make_request(path="/dist/bundle.js")
        response = await mw(request, make_ctx(request), make_handler(status=404))
        assert response.status == 200
        assert response.body == b"console.log('hi')"
        assert response.headers["content-type"].startswith("application/javascript")
        assert response.headers["etag"].startswith('W/"')

    @pytest.mark.asyncio
    async def test_missing_file_falls_through(self, dist):
        mw = StaticMiddleware("/dist", dist)
        request = make_request(path="/dist/nope.js")
        response = await mw(request, make_ctx(request), make_handler(status=404))
        assert response.status == 404

    @pytest.mark.asyncio
    async def test_prefix_segment_boundary(self, dist):
        mw = StaticMiddleware("/dist", dist)
        request = make_request(path="/distbundle.js")
        response = await mw(request, make_ctx(request), make_handler(status=404))
        assert response.status == 404

    @pytest.mark.asyncio
    async def test_post_falls_through(self, dist):
        mw = StaticMiddleware("/dist", dist)
        request = make_request(method="POST", path="/dist/bundle.js")
        response = await mw(request, make_ctx(request), make_handler(status=201))
        assert response.status == 201

    @pytest.mark.asyncio
    async def test_traversal_forbidden(self, dist):
        mw = StaticMiddleware("/dist", dist)
        request = make_request(path="/dist/../secret.txt")
        response = await mw(request, make_ctx(request), make_handler(status=404))
        assert response.status == 403

    @pytest.mark.asyncio
    async def test_etag_not_modified(self, dist):
        mw = StaticMiddleware("/dist", dist)
        first = make_request(path="/dist/bundle.js")
        etag = (await mw(first, make_ctx(first), make_handler())).headers["etag"]

        second = make_request(path="/dist/bundle.js", headers=[("if-none-match", etag)])
        response = await mw(second, make_ctx(second), make_handler())
        assert response.status == 304
        assert response.body == b""

    @pytest.mark.asyncio
    async def test_root_mount(self, tmp_path):
        sw = tmp_path / "sw"
        sw.mkdir()
        (sw / "service-worker.js").write_text("self.addEventListener('fetch', () => {})")
        mw = StaticMiddleware("/", sw)

        request = make_request(path="/service-worker.js")
        response = await mw(request, make_ctx(request), make_handler(status=404))
        assert response.status == 200

        request = make_request(path="/")
        response = await mw(request, make_ctx(request), make_handler(status=299))
        assert response.status == 299

    @pytest.mark.asyncio
    async def test_missing_directory_falls_through(self, tmp_path):
        mw = StaticMiddleware("/assets", tmp_path / "client" / "assets")
        request = make_request(path="/assets/logo.png")
        response = await mw(request, make_ctx(request), make_handler(status=404))
        assert response.status == 404


# ============================================================================
# Unauthorized-error interceptor
# ============================================================================

class TestUnauthorizedErrorInterceptor:

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        request = make_request(path="/api/users/abc")
        response = await UnauthorizedErrorInterceptor()(
            request, make_ctx(request), UnauthorizedError()
        )
        assert response.status == 401
        assert payload(response) == {
            "error": "UnauthorizedError: No authorization token was found"
        }

    @pytest.mark.asyncio
    async def test_duck_typed_unauthorized(self):
        class TokenError(Exception):
            name = "UnauthorizedError"
            message = "jwt expired"

        request = make_request()
        response = await UnauthorizedErrorInterceptor()(request, make_ctx(request), TokenError())
        assert response.status == 401
        assert payload(response) == {"error": "UnauthorizedError: jwt expired"}

    @pytest.mark.asyncio
    async def test_other_errors_become_500(self, caplog):
        request = make_request()
        with caplog.at_level(logging.ERROR, logger="routina.errors"):
            response = await UnauthorizedErrorInterceptor()(
                request, make_ctx(request), KeyError("missing")
            )
        assert response.status == 500
        assert payload(response) == {"error": "Internal server error"}
        assert any("Unhandled exception" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_debug_adds_detail(self):
        request = make_request()
        response = await UnauthorizedErrorInterceptor(debug=True)(
            request, make_ctx(request), RuntimeError("boom")
        )
        assert payload(response)["detail"] == "RuntimeError: boom"
