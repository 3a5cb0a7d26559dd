"""
Shared test fixtures and helpers for the routina test suite.
"""

from typing import List, Optional

import httpx
import pytest
import pytest_asyncio

from routina.app import create_app
from routina.config import ServerConfig
from routina.context import RequestCtx
from routina.request import Request
from routina.users import PasswordHasher, SQLiteUserRepository


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    scheme: str = "http",
    client: Optional[tuple] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = []
    if headers:
        for name, value in headers:
            raw_headers.append(
                (name.encode("latin-1") if isinstance(name, str) else name,
                 value.encode("latin-1") if isinstance(value, str) else value)
            )
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": query_string.encode("utf-8") if isinstance(query_string, str) else query_string,
        "headers": raw_headers,
        "scheme": scheme,
        "server": ("127.0.0.1", 3000),
        "client": client or ("127.0.0.1", 12345),
        "root_path": "",
    }


def make_receive(body: bytes = b"", *, chunks: Optional[List[bytes]] = None):
    """Create an ASGI receive callable from body bytes or chunked list."""
    if chunks:
        messages = []
        for i, chunk in enumerate(chunks):
            messages.append({
                "type": "http.request",
                "body": chunk,
                "more_body": i < len(chunks) - 1,
            })
    else:
        messages = [{"type": "http.request", "body": body, "more_body": False}]

    idx = 0

    async def receive():
        nonlocal idx
        if idx < len(messages):
            msg = messages[idx]
            idx += 1
            return msg
        return {"type": "http.disconnect"}

    return receive


def make_request(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    body: bytes = b"",
    scheme: str = "http",
    client: Optional[tuple] = None,
    **kwargs,
) -> Request:
    """Build a full Request object for testing."""
    scope = make_scope(
        method=method,
        path=path,
        query_string=query_string,
        headers=headers,
        scheme=scheme,
        client=client,
    )
    receive = make_receive(body)
    return Request(scope, receive, **kwargs)


def make_ctx(request: Optional[Request] = None) -> RequestCtx:
    return RequestCtx(request=request or make_request())


async def collect_response(app, scope: dict, body: bytes = b"") -> dict:
    """Drive an ASGI app directly and gather what it sent."""
    sent = []

    async def send(message):
        sent.append(message)

    await app(scope, make_receive(body), send)
    start = next(m for m in sent if m["type"] == "http.response.start")
    body_parts = [m.get("body", b"") for m in sent if m["type"] == "http.response.body"]
    return {
        "status": start["status"],
        "headers": [(k.decode("latin-1"), v.decode("latin-1")) for k, v in start["headers"]],
        "body": b"".join(body_parts),
    }


# ============================================================================
# Fixtures
# ============================================================================

# Cheap Argon2 parameters; hashing cost is irrelevant to behaviour under test.
FAST_HASHER = dict(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def hasher():
    return PasswordHasher(**FAST_HASHER)


@pytest_asyncio.fixture
async def repository(hasher):
    repo = SQLiteUserRepository("sqlite:///:memory:", hasher=hasher)
    await repo.connect()
    yield repo
    await repo.close()


@pytest.fixture
def config(tmp_path):
    return ServerConfig(
        database_url="sqlite:///:memory:",
        root_dir=str(tmp_path),
        access_log=False,
        password_time_cost=FAST_HASHER["time_cost"],
        password_memory_cost=FAST_HASHER["memory_cost"],
    )


@pytest.fixture
def app(config, repository):
    return create_app(config, repository=repository)


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


VALID_USER = {"name": "Ada Lovelace", "email": "ada@example.com", "password": "secret123"}
