"""
User repository - JSON-document collection in SQLite via aiosqlite.

Each user is one row: the store-assigned id, the email (backing the
unique index) and the JSON document. Writes are serialized with an
``asyncio.Lock``; last write wins.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import secrets
from typing import Any, Dict, List, Mapping, Optional, Protocol

import aiosqlite

from routina.faults import DuplicateKeyFault, StoreFault, UserNotFoundFault

from .hashing import PasswordHasher
from .models import UserRecord, build_record, merge_record

logger = logging.getLogger("routina.db")

__all__ = ["UserRepository", "SQLiteUserRepository"]

_ID_RE = re.compile(r"^[0-9a-f]{24}$")
_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL,
        document TEXT NOT NULL
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS users_email_unique ON users(email)",
)


def new_id() -> str:
    """24 lowercase hex chars."""
    return secrets.token_hex(12)


class UserRepository(Protocol):
    """What the user handlers need from a store."""

    async def create(self, data: Mapping[str, Any]) -> UserRecord: ...

    async def list_all(self) -> List[Dict[str, Any]]: ...

    async def find_by_id(self, user_id: str) -> UserRecord: ...

    async def update(self, record: UserRecord, patch: Mapping[str, Any]) -> UserRecord: ...

    async def remove(self, record: UserRecord) -> UserRecord: ...


class SQLiteUserRepository:
    """
    aiosqlite-backed :class:`UserRepository`.

    The connection is opened by :meth:`connect` (ASGI lifespan startup)
    or lazily on first use, and closed by :meth:`close`.
    """

    def __init__(self, url: str = "sqlite:///routina.db", hasher: Optional[PasswordHasher] = None):
        self.url = url
        self.hasher = hasher or PasswordHasher()
        self._connection: Optional[aiosqlite.Connection] = None
        self._connect_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    # ── Connection ───────────────────────────────────────────────────

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        if self._connection is not None:
            return
        async with self._connect_lock:
            if self._connection is not None:
                return
            db_path = self._parse_url(self.url)
            try:
                connection = await aiosqlite.connect(db_path)
                if db_path != ":memory:":
                    await connection.execute("PRAGMA journal_mode=WAL")
                for statement in _SCHEMA:
                    await connection.execute(statement)
                await connection.commit()
            except aiosqlite.Error as e:
                raise StoreFault(f"Could not open store: {e}", operation="connect") from e
            self._connection = connection
            logger.info("SQLite connected: %s", db_path)

    async def close(self) -> None:
        if self._connection is None:
            return
        async with self._connect_lock:
            if self._connection is not None:
                await self._connection.close()
                self._connection = None
                logger.info("SQLite disconnected")

    async def _conn(self) -> aiosqlite.Connection:
        if self._connection is None:
            await self.connect()
        return self._connection

    @staticmethod
    def _parse_url(url: str) -> str:
        """Extract file path from sqlite URL."""
        for prefix in ("sqlite:///", "sqlite://"):
            if url.startswith(prefix):
                path = url[len(prefix):]
                return path or ":memory:"
        return url.replace("sqlite:", "").lstrip("/") or ":memory:"

    # ── Operations ───────────────────────────────────────────────────

    async def create(self, data: Mapping[str, Any]) -> UserRecord:
        """
        Validate, hash and insert a new user.

        Raises:
            ValidationFault: schema violation
            DuplicateKeyFault: email already taken
            StoreFault: the insert failed
        """
        record = build_record(new_id(), data, self.hasher)
        conn = await self._conn()
        async with self._write_lock:
            try:
                await conn.execute(
                    "INSERT INTO users (id, email, document) VALUES (?, ?, ?)",
                    (record.id, record.email, json.dumps(record.to_document())),
                )
                await conn.commit()
            except aiosqlite.Error as e:
                await conn.rollback()
                raise self._map_error(e, "create") from e
        logger.debug("Created user %s", record.id)
        return record

    async def list_all(self) -> List[Dict[str, Any]]:
        """Every user projected to id, name, email, updated and created."""
        conn = await self._conn()
        try:
            async with conn.execute("SELECT id, document FROM users ORDER BY rowid") as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StoreFault(str(e), operation="list_all") from e
        return [UserRecord.from_document(row[0], json.loads(row[1])).to_public() for row in rows]

    async def find_by_id(self, user_id: str) -> UserRecord:
        """
        Raises:
            UserNotFoundFault: no such user, or ``user_id`` is not a valid id
        """
        if not isinstance(user_id, str) or not _ID_RE.match(user_id):
            raise UserNotFoundFault(str(user_id))
        conn = await self._conn()
        try:
            async with conn.execute("SELECT document FROM users WHERE id = ?", (user_id,)) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreFault(str(e), operation="find_by_id") from e
        if row is None:
            raise UserNotFoundFault(user_id)
        return UserRecord.from_document(user_id, json.loads(row[0]))

    async def update(self, record: UserRecord, patch: Mapping[str, Any]) -> UserRecord:
        """
        Shallow-merge ``patch`` onto ``record`` and persist it.

        ``record`` itself is left untouched; the merged copy is returned.

        Raises:
            ValidationFault: the merged record is invalid
            DuplicateKeyFault: the new email is taken
            UserNotFoundFault: the row is gone
        """
        merged = merge_record(record, patch, self.hasher)
        conn = await self._conn()
        async with self._write_lock:
            try:
                cursor = await conn.execute(
                    "UPDATE users SET email = ?, document = ? WHERE id = ?",
                    (merged.email, json.dumps(merged.to_document()), merged.id),
                )
                await conn.commit()
            except aiosqlite.Error as e:
                await conn.rollback()
                raise self._map_error(e, "update") from e
        if cursor.rowcount == 0:
            raise UserNotFoundFault(merged.id)
        logger.debug("Updated user %s", merged.id)
        return merged

    async def remove(self, record: UserRecord) -> UserRecord:
        """Delete ``record``'s row and return the deleted snapshot."""
        conn = await self._conn()
        async with self._write_lock:
            try:
                cursor = await conn.execute("DELETE FROM users WHERE id = ?", (record.id,))
                await conn.commit()
            except aiosqlite.Error as e:
                await conn.rollback()
                raise self._map_error(e, "remove") from e
        if cursor.rowcount == 0:
            raise UserNotFoundFault(record.id)
        logger.debug("Removed user %s", record.id)
        return record

    @staticmethod
    def _map_error(error: Exception, operation: str) -> StoreFault:
        if isinstance(error, aiosqlite.IntegrityError):
            m = _UNIQUE_RE.search(str(error))
            if "UNIQUE" in str(error):
                return DuplicateKeyFault(m.group(1) if m else None)
        return StoreFault(str(error), operation=operation)
