"""
Middleware system (routina/middleware.py).

Tests MiddlewareStack, RequestIdMiddleware, LoggingMiddleware,
CompressionMiddleware.
"""

import gzip
import logging

import pytest

from routina.middleware import (
    CompressionMiddleware,
    LoggingMiddleware,
    MiddlewareStack,
    RequestIdMiddleware,
)
from routina.response import Response

from tests.conftest import make_ctx, make_request


async def ok_handler(request, ctx):
    return Response.json({"ok": True})


# ============================================================================
# MiddlewareStack
# ============================================================================

class TestMiddlewareStack:

    def test_init(self):
        stack = MiddlewareStack()
        assert stack.middlewares == []
        assert stack.error_handlers == []

    def test_names_in_order(self):
        stack = MiddlewareStack()

        async def first(request, ctx, next_handler):
            return await next_handler(request, ctx)

        async def recover(request, ctx, exc):
            return None

        stack.add(first)
        stack.add(CompressionMiddleware())
        stack.add(first, name="custom")
        stack.add_error_handler(recover)
        assert stack.names == ["first", "compression", "custom", "recover"]

    @pytest.mark.asyncio
    async def test_build_handler_order(self):
        stack = MiddlewareStack()
        calls = []

        def make_mw(label):
            async def mw(request, ctx, next_handler):
                calls.append(f"{label}_before")
                resp = await next_handler(request, ctx)
                calls.append(f"{label}_after")
                return resp
            return mw

        async def handler(request, ctx):
            calls.append("handler")
            return Response.text("ok")

        stack.add(make_mw("a"))
        stack.add(make_mw("b"))
        composed = stack.build_handler(handler)
        await composed(make_request(), make_ctx())
        assert calls == ["a_before", "b_before", "handler", "b_after", "a_after"]

    @pytest.mark.asyncio
    async def test_short_circuit_skips_rest(self):
        stack = MiddlewareStack()
        reached = []

        async def stop(request, ctx, next_handler):
            return Response.text("stopped", status=403)

        async def later(request, ctx, next_handler):
            reached.append(True)
            return await next_handler(request, ctx)

        stack.add(stop)
        stack.add(later)
        response = await stack.build_handler(ok_handler)(make_request(), make_ctx())
        assert response.status == 403
        assert reached == []

    @pytest.mark.asyncio
    async def test_error_handler_sees_errors_from_any_stage(self):
        stack = MiddlewareStack()
        seen = []

        async def boom(request, ctx, next_handler):
            raise RuntimeError("boom")

        async def recover(request, ctx, exc):
            seen.append(str(exc))
            return Response.json({"error": "handled"}, status=500)

        stack.add(boom)
        stack.add_error_handler(recover)
        response = await stack.build_handler(ok_handler)(make_request(), make_ctx())
        assert response.status == 500
        assert seen == ["boom"]

    @pytest.mark.asyncio
    async def test_error_handlers_first_response_wins(self):
        stack = MiddlewareStack()
        calls = []

        async def failing_final(request, ctx):
            raise ValueError("bad")

        async def passes(request, ctx, exc):
            calls.append("passes")
            return None

        async def answers(request, ctx, exc):
            calls.append("answers")
            return Response.text("answered", status=418)

        async def never(request, ctx, exc):
            calls.append("never")
            return Response.text("never")

        stack.add_error_handler(passes)
        stack.add_error_handler(answers)
        stack.add_error_handler(never)
        response = await stack.build_handler(failing_final)(make_request(), make_ctx())
        assert response.status == 418
        assert calls == ["passes", "answers"]

    @pytest.mark.asyncio
    async def test_unhandled_error_reraised(self):
        stack = MiddlewareStack()

        async def failing_final(request, ctx):
            raise ValueError("bad")

        async def passes(request, ctx, exc):
            return None

        stack.add_error_handler(passes)
        with pytest.raises(ValueError):
            await stack.build_handler(failing_final)(make_request(), make_ctx())

    @pytest.mark.asyncio
    async def test_error_response_flows_through_stages_before_boundary(self):
        stack = MiddlewareStack()

        async def stamp(request, ctx, next_handler):
            response = await next_handler(request, ctx)
            response.headers["x-stamped"] = "yes"
            return response

        async def boom(request, ctx, next_handler):
            raise RuntimeError("boom")

        async def recover(request, ctx, exc):
            return Response.json({"error": "handled"}, status=401)

        stack.add(stamp)
        stack.mark_error_boundary()
        stack.add(boom)
        stack.add_error_handler(recover)
        response = await stack.build_handler(ok_handler)(make_request(), make_ctx())
        assert response.status == 401
        assert response.headers["x-stamped"] == "yes"

    @pytest.mark.asyncio
    async def test_errors_before_boundary_still_handled(self):
        stack = MiddlewareStack()

        async def boom(request, ctx, next_handler):
            raise RuntimeError("boom")

        async def recover(request, ctx, exc):
            return Response.json({"error": str(exc)}, status=500)

        stack.add(boom)
        stack.mark_error_boundary()
        stack.add_error_handler(recover)
        response = await stack.build_handler(ok_handler)(make_request(), make_ctx())
        assert response.status == 500
        assert stack.names == ["boom", "recover"]


# ============================================================================
# RequestIdMiddleware
# ============================================================================

class TestRequestIdMiddleware:

    @pytest.mark.asyncio
    async def test_generates_id(self):
        mw = RequestIdMiddleware()
        ctx = make_ctx()
        response = await mw(ctx.request, ctx, ok_handler)
        assert len(response.headers["x-request-id"]) == 32
        assert ctx.request_id == response.headers["x-request-id"]

    @pytest.mark.asyncio
    async def test_keeps_incoming_id(self):
        mw = RequestIdMiddleware()
        request = make_request(headers=[("x-request-id", "abc-123")])
        ctx = make_ctx(request)
        response = await mw(request, ctx, ok_handler)
        assert response.headers["x-request-id"] == "abc-123"


# ============================================================================
# LoggingMiddleware
# ============================================================================

class TestLoggingMiddleware:

    @pytest.mark.asyncio
    async def test_logs_request_line(self, caplog):
        mw = LoggingMiddleware()
        request = make_request(method="GET", path="/api/users")
        with caplog.at_level(logging.INFO, logger="routina.requests"):
            await mw(request, make_ctx(request), ok_handler)
        assert any("GET /api/users - 200" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_slow_request_warning(self, caplog):
        mw = LoggingMiddleware(slow_threshold_ms=-1)
        request = make_request(path="/slow")
        with caplog.at_level(logging.INFO, logger="routina.requests"):
            await mw(request, make_ctx(request), ok_handler)
        assert any(r.levelno == logging.WARNING and "Slow request" in r.getMessage()
                   for r in caplog.records)


# ============================================================================
# CompressionMiddleware
# ============================================================================

class TestCompressionMiddleware:

    def _big_handler(self, size=2000):
        async def handler(request, ctx):
            return Response.text("x" * size)
        return handler

    @pytest.mark.asyncio
    async def test_compresses_large_body(self):
        mw = CompressionMiddleware(minimum_size=500)
        request = make_request(headers=[("accept-encoding", "gzip, deflate")])
        response = await mw(request, make_ctx(request), self._big_handler())
        assert response.headers["content-encoding"] == "gzip"
        assert gzip.decompress(response.body) == b"x" * 2000
        assert "Accept-Encoding" in response.headers["vary"]

    @pytest.mark.asyncio
    async def test_skips_small_body(self):
        mw = CompressionMiddleware(minimum_size=500)
        request = make_request(headers=[("accept-encoding", "gzip")])
        response = await mw(request, make_ctx(request), self._big_handler(10))
        assert "content-encoding" not in response.headers

    @pytest.mark.asyncio
    async def test_skips_without_accept_encoding(self):
        mw = CompressionMiddleware()
        request = make_request()
        response = await mw(request, make_ctx(request), self._big_handler())
        assert "content-encoding" not in response.headers
        assert response.body == b"x" * 2000
