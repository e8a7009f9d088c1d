# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Query surface with per-operation connections and retrying transactions."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, TypeVar

from . import query as q
from .query import Query, Row, RowResult
from .transaction import DEFAULT_RETRIES, DEFAULT_RETRY_DELAY, IsolationLevel, retry

if TYPE_CHECKING:
    from .adapters import DbAdapter
    from .columns import ColumnMap

T = TypeVar("T")


class Client:
    """Executes queries through a DbAdapter.

    A top-level Client acquires a connection for each call and releases it
    on every exit path. transaction() hands its callback a transaction-scoped
    Client that runs every call on the open transaction's connection.

    Driver errors are classified by the adapter: recognized ones are raised
    as DbError (chained to the driver error), others propagate unchanged.

    Transaction Model:
        Each attempt is BEGIN (at the requested isolation level), callback,
        COMMIT. Any failure rolls back. If the ROLLBACK itself fails it is
        logged and the original error propagates. Serialization failures
        and deadlocks restart the attempt after ``retry_delay`` seconds, at
        most ``retries`` times, then the last error propagates. Calling
        transaction() on a transaction-scoped Client runs the callback inside
        the current transaction (no nested BEGIN).

    Usage:
        client = Client(get_adapter("postgresql://app@db/app"))

        rows = await client.select("users", USERS, {"name": "ann"})
        await client.insert("users", USERS, {"id": 1, "name": "ann"})

        async def move(tx: Client) -> None:
            await tx.update("accounts", ACCOUNTS, source, "id")
            await tx.update("accounts", ACCOUNTS, target, "id")

        await client.transaction(move)
    """

    def __init__(
        self,
        adapter: DbAdapter,
        *,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize client.

        Args:
            adapter: Connection gateway.
            retries: Transaction retries on serialization failure/deadlock.
            retry_delay: Seconds between transaction attempts.
            logger: Logger for statements and transaction events.
        """
        self.adapter = adapter
        self.retries = retries
        self.retry_delay = retry_delay
        self.logger = logger or logging.getLogger(__name__)
        self._conn: Any = None
        self._in_transaction = False

    @property
    def in_transaction(self) -> bool:
        """True for the Client handed to a transaction() callback."""
        return self._in_transaction

    def _bound(self, conn: Any, in_transaction: bool) -> Client:
        client = Client(
            self.adapter, retries=self.retries, retry_delay=self.retry_delay, logger=self.logger
        )
        client._conn = conn
        client._in_transaction = in_transaction
        return client

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _open(self) -> AsyncIterator[Any]:
        """Bound connection, or a fresh one released on exit."""
        if self._conn is not None:
            yield self._conn
            return
        conn = await self.adapter.acquire()
        try:
            yield conn
        finally:
            await self.adapter.release(conn)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Client]:
        """Pin one connection for several calls, without opening a transaction.

        Usage:
            async with client.connection() as conn:
                await conn.query("SET search_path TO tenant_a")
                rows = await conn.select("users", USERS)
        """
        async with self._open() as conn:
            if self._conn is not None:
                yield self
            else:
                yield self._bound(conn, in_transaction=False)

    async def _run(self, conn: Any, sql: str, values: Sequence[Any] | None = None) -> list[Row]:
        self.logger.debug("query: %s", sql)
        try:
            return await self.adapter.execute(conn, sql, values)
        except Exception as e:
            error = self.adapter.classify_error(e)
            if error is None:
                raise
            self.logger.debug("query failed: %s", error)
            raise error from e

    # -------------------------------------------------------------------------
    # Raw statements
    # -------------------------------------------------------------------------

    async def query(self, sql: str, values: Sequence[Any] | None = None) -> list[Row]:
        """Execute a ``$n`` statement, return all rows."""
        async with self._open() as conn:
            return await self._run(conn, sql, values)

    async def execute(self, query: Query) -> list[Row]:
        """Execute a built Query, return all rows."""
        return await self.query(query.sql, query.values)

    async def single(self, sql: str, values: Sequence[Any] | None = None) -> Row:
        """Exactly one row, else NotFoundError/MoreThanOneError."""
        return q.single(await self.query(sql, values))

    async def single_or_none(self, sql: str, values: Sequence[Any] | None = None) -> Row | None:
        """One row or None, MoreThanOneError if several."""
        return q.single_or_none(await self.query(sql, values))

    async def scalar(self, sql: str, values: Sequence[Any] | None = None) -> Any:
        """First column of exactly one row."""
        return q.scalar(await self.query(sql, values))

    async def scalar_or_none(self, sql: str, values: Sequence[Any] | None = None) -> Any:
        """First column of one row, None if there are no rows."""
        return q.scalar_or_none(await self.query(sql, values))

    # -------------------------------------------------------------------------
    # Column map operations
    # -------------------------------------------------------------------------

    async def select(
        self, table: str, cmap: ColumnMap, filter: Mapping[str, Any] | None = None
    ) -> list[Row]:
        """Rows matching ``filter`` (all rows if None), keyed by field name."""
        return await self.execute(q.select(table, cmap, filter))

    select_many = select

    async def select_result(
        self, table: str, cmap: ColumnMap, filter: Mapping[str, Any] | None = None
    ) -> RowResult:
        """Matching rows tagged FOUND / NOT_FOUND / MULTIPLE."""
        return q.classify_rows(await self.select(table, cmap, filter))

    async def select_one(
        self, table: str, cmap: ColumnMap, filter: Mapping[str, Any] | None = None
    ) -> Row:
        """The single matching row, else NotFoundError/MoreThanOneError."""
        return (await self.select_result(table, cmap, filter)).unwrap()

    async def select_one_or_none(
        self, table: str, cmap: ColumnMap, filter: Mapping[str, Any] | None = None
    ) -> Row | None:
        """The single matching row or None, MoreThanOneError if several."""
        return (await self.select_result(table, cmap, filter)).unwrap_or_none()

    async def insert(
        self, table: str, cmap: ColumnMap, value: Any, returning: bool = False
    ) -> list[Row]:
        """Insert one row. Returns the inserted row when ``returning``."""
        return await self.execute(q.insert(table, cmap, value, returning))

    async def update(
        self,
        table: str,
        cmap: ColumnMap,
        value: Any,
        key_fields: str | Sequence[str],
        update_fields: Sequence[str] | None = None,
        returning: bool = False,
    ) -> list[Row]:
        """Update by key. Returns the updated rows when ``returning``."""
        return await self.execute(
            q.update(table, cmap, value, key_fields, update_fields, returning)
        )

    async def upsert(
        self,
        table: str,
        cmap: ColumnMap,
        value: Any,
        key_field: str,
        update_fields: Sequence[str] | None = None,
        returning: bool = False,
    ) -> list[Row]:
        """Insert or update on ``key_field`` conflict."""
        return await self.execute(
            q.upsert(table, cmap, value, key_field, update_fields, returning)
        )

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def transaction(
        self,
        callback: Callable[[Client], Awaitable[T]],
        isolation: IsolationLevel | str = IsolationLevel.SERIALIZABLE,
    ) -> T:
        """Run ``callback`` in a transaction, committing on success.

        Args:
            callback: Coroutine function receiving the transaction-scoped
                Client. It may run more than once when retried.
            isolation: Isolation level of the outermost transaction.

        Returns:
            The callback's result from the committed attempt.
        """
        if self._in_transaction:
            return await callback(self)

        level = IsolationLevel(isolation)
        async with self._open() as conn:
            tx = self._bound(conn, in_transaction=True)

            async def attempt() -> T:
                self.logger.debug("begin transaction (isolation = %s)", level.value)
                await self._run(conn, self.adapter.begin_statement(level))
                try:
                    result = await callback(tx)
                    self.logger.debug("commit transaction")
                    await self._run(conn, "COMMIT")
                except Exception as error:
                    self.logger.debug("rollback transaction")
                    try:
                        await self._run(conn, "ROLLBACK")
                    except Exception:
                        # the callback's error propagates, not the rollback failure
                        self.logger.warning("rollback failed after %r", error, exc_info=True)
                    raise
                return result

            return await retry(
                attempt, retries=self.retries, delay=self.retry_delay, logger=self.logger
            )


__all__ = ["Client"]
