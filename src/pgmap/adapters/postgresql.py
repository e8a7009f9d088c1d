# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""PostgreSQL async adapter using psycopg3 with connection pooling.

Uses connection-per-request model: acquire() gets from pool,
release() returns to pool. Pooled connections are in autocommit mode and
transactions are bracketed explicitly by the caller.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

from ..errors import DbError, classify
from ..query import Query, Row
from .base import DbAdapter


class PostgresAdapter(DbAdapter):
    """PostgreSQL async adapter with connection pooling.

    ``$n`` placeholders are converted to ``%(pn)s`` and literal ``%`` signs
    are doubled when values are bound. Pool is initialized lazily on first
    acquire().
    """

    placeholder = "%(name)s"
    now_utc = "(NOW() AT TIME ZONE 'utc')"

    def __init__(self, dsn: str, pool_size: int = 10, connect_timeout: float = 10.0):
        self.dsn = dsn
        self.pool_size = pool_size
        self.connect_timeout = connect_timeout
        self._pool: Any = None

        # Verify psycopg is available at init time
        try:
            import psycopg  # noqa: F401
        except ImportError as e:
            raise ImportError(
                "PostgreSQL support requires psycopg. "
                "Install with: pip install pgmap[postgresql]"
            ) from e

    def _convert_placeholders(self, sql: str) -> str:
        """Escape literal % then convert $n placeholders to %(pn)s."""
        return super()._convert_placeholders(sql.replace("%", "%%"))

    async def _ensure_pool(self) -> None:
        """Initialize connection pool if not already open."""
        if self._pool is not None:
            return

        from psycopg_pool import AsyncConnectionPool

        self._pool = AsyncConnectionPool(
            self.dsn,
            min_size=1,
            max_size=self.pool_size,
            open=False,
            kwargs={"autocommit": True},
        )
        try:
            await asyncio.wait_for(
                self._pool.open(wait=True, timeout=self.connect_timeout),
                timeout=self.connect_timeout + 1,
            )
        except asyncio.TimeoutError:
            await self._pool.close()
            self._pool = None
            raise TimeoutError(
                f"PostgreSQL connection timed out after {self.connect_timeout}s. "
                "Check credentials and server availability."
            ) from None
        except Exception as e:
            await self._pool.close()
            self._pool = None
            raise ConnectionError(f"PostgreSQL connection failed: {e}") from e

    async def acquire(self) -> Any:
        """Acquire connection from pool."""
        await self._ensure_pool()
        return await self._pool.getconn()

    async def release(self, conn: Any) -> None:
        """Return connection to pool."""
        if self._pool:
            await self._pool.putconn(conn)

    async def shutdown(self) -> None:
        """Close connection pool (application shutdown)."""
        if self._pool:
            await self._pool.close()
            self._pool = None

    async def execute(self, conn: Any, sql: str, values: Sequence[Any] | None = None) -> list[Row]:
        """Execute one statement, return result rows as dicts."""
        from psycopg.rows import dict_row

        sql, params = self._bind(sql, values)
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(sql, params)
            if cur.description is None:
                return []
            return await cur.fetchall()

    def classify_error(self, error: BaseException) -> DbError | None:
        """Classify a psycopg error from its SQLSTATE and diagnostics."""
        import psycopg

        if not isinstance(error, psycopg.Error):
            return None
        diag = error.diag
        return classify(
            error.sqlstate,
            constraint=diag.constraint_name,
            table=diag.table_name,
            column=diag.column_name,
        )

    def table_exists_query(self, table: str) -> Query:
        return Query(
            "SELECT (CASE WHEN to_regclass($1) IS NULL THEN 0 ELSE 1 END) AS present",
            (table,),
        )
