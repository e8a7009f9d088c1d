# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQLite async adapter using aiosqlite with per-request connections."""

from __future__ import annotations

import re
import sqlite3
from collections.abc import Sequence
from typing import Any

import aiosqlite

from ..errors import DbError, classify
from ..query import Query, Row
from ..transaction import IsolationLevel
from .base import DbAdapter

_UNIQUE_FAILED = re.compile(r"UNIQUE constraint failed: (\w+)\.(\w+)")


class SqliteAdapter(DbAdapter):
    """SQLite async adapter with per-request connections.

    Each acquire() opens a new connection, release() closes it. Connections
    are opened with ``isolation_level=None`` so the sqlite3 module never
    starts transactions on its own, and with foreign key enforcement on.

    SQLite has a single, serializable isolation level: begin_statement()
    ignores the requested level. Integrity and locking errors are mapped to
    the PostgreSQL SQLSTATE codes understood by ``pgmap.errors.classify``;
    a busy/locked database counts as a serialization failure and is retried.

    Note:
        ``:memory:`` gives every connection its own empty database, so it is
        only useful for single-statement work. Use a file path otherwise.
    """

    placeholder = ":name"

    def __init__(self, db_path: str):
        self.db_path = db_path or ":memory:"

    async def acquire(self) -> aiosqlite.Connection:
        """Open new connection for request."""
        conn = await aiosqlite.connect(self.db_path, isolation_level=None)
        await conn.execute("PRAGMA foreign_keys = ON")
        return conn

    async def release(self, conn: aiosqlite.Connection) -> None:
        """Close connection."""
        await conn.close()

    async def shutdown(self) -> None:
        """No-op for SQLite (no pool to close)."""
        pass

    async def execute(
        self, conn: aiosqlite.Connection, sql: str, values: Sequence[Any] | None = None
    ) -> list[Row]:
        """Execute one statement, return result rows as dicts."""
        sql, params = self._bind(sql, values)
        async with conn.execute(sql, params or {}) as cursor:
            rows = await cursor.fetchall()
            if cursor.description is None:
                return []
            cols = [c[0] for c in cursor.description]
            return [dict(zip(cols, row, strict=True)) for row in rows]

    def classify_error(self, error: BaseException) -> DbError | None:
        """Map sqlite3 integrity and locking errors onto SQLSTATE codes."""
        if not isinstance(error, sqlite3.Error):
            return None
        message = str(error)
        if isinstance(error, sqlite3.IntegrityError):
            match = _UNIQUE_FAILED.search(message)
            if match:
                return classify("23505", table=match.group(1), column=match.group(2))
            if "FOREIGN KEY constraint failed" in message:
                return classify("23503")
            return None
        if isinstance(error, sqlite3.OperationalError) and "locked" in message:
            return classify("40001")
        return None

    def begin_statement(self, isolation: IsolationLevel) -> str:
        """SQLite transactions are always serializable."""
        return "BEGIN"

    def table_exists_query(self, table: str) -> Query:
        return Query(
            "SELECT count(*) AS present FROM sqlite_master WHERE type = 'table' AND name = $1",
            (table,),
        )
