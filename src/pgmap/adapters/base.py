# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Base adapter class: the connection gateway seen by Client and Database."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from ..errors import DbError
from ..query import Query, Row
from ..transaction import IsolationLevel

# Quoted strings, quoted identifiers, dollar-quoted bodies and comments are
# matched whole and kept; only a bare $n (group 2) is a placeholder.
_PLACEHOLDER = re.compile(
    r"'(?:[^']|'')*'"
    r'|"(?:[^"]|"")*"'
    r"|(\$(?:[A-Za-z_]\w*)?\$).*?\1"
    r"|--[^\n]*"
    r"|/\*.*?\*/"
    r"|\$(\d+)",
    re.DOTALL,
)


class DbAdapter(ABC):
    """Abstract base class for async database gateways.

    Provides a unified interface for PostgreSQL and SQLite with:
    - Connection management (acquire, release, shutdown)
    - Raw statement execution returning rows as dicts
    - Driver error classification into the pgmap taxonomy
    - The few dialect hooks the transaction and migration code needs

    Connection model:
    - acquire(): Returns a connection (from pool or new file handle)
    - release(conn): Returns connection to pool or closes it
    - shutdown(): Closes connection pool (application shutdown only)

    Connections run in autocommit mode: transactions are opened and closed
    with explicit BEGIN/COMMIT/ROLLBACK statements issued by Client.

    Statements use ``$n`` positional placeholders. Subclasses rewrite them
    to a named driver placeholder (``placeholder``, with ``name`` standing
    for ``p<n>``) and bind values by name, so values the statement does not
    reference are ignored.
    """

    placeholder: str = ":name"  # Override in subclass

    now_utc: str = "CURRENT_TIMESTAMP"
    """SQL expression for the current UTC timestamp, used as a column default."""

    @abstractmethod
    async def acquire(self) -> Any:
        """Acquire a connection.

        For pooled adapters: gets connection from pool.
        For file-based adapters: opens new connection.
        """
        ...

    @abstractmethod
    async def release(self, conn: Any) -> None:
        """Release a connection acquired with acquire()."""
        ...

    @abstractmethod
    async def shutdown(self) -> None:
        """Close connection pool (application shutdown)."""
        ...

    @abstractmethod
    async def execute(
        self, conn: Any, sql: str, values: Sequence[Any] | None = None
    ) -> list[Row]:
        """Execute one statement, return result rows (empty if none)."""
        ...

    @abstractmethod
    def classify_error(self, error: BaseException) -> DbError | None:
        """Translate a driver error. None if it is not a recognized one."""
        ...

    # -------------------------------------------------------------------------
    # Dialect hooks
    # -------------------------------------------------------------------------

    def begin_statement(self, isolation: IsolationLevel) -> str:
        """Statement opening a transaction at the given isolation level."""
        return f"BEGIN TRANSACTION ISOLATION LEVEL {IsolationLevel(isolation).value}"

    @abstractmethod
    def table_exists_query(self, table: str) -> Query:
        """Query returning a single row whose first column is 1 if ``table`` exists, else 0."""
        ...

    # -------------------------------------------------------------------------
    # SQL Helpers
    # -------------------------------------------------------------------------

    def _placeholder(self, name: str) -> str:
        """Return placeholder for named parameter."""
        return self.placeholder.replace("name", name)

    def _convert_placeholders(self, sql: str) -> str:
        """Rewrite ``$n`` placeholders to the driver's named form.

        Text inside string literals, quoted identifiers, ``$tag$`` bodies and
        comments is left as written.
        """

        def replace(match: re.Match[str]) -> str:
            if match.group(2) is None:
                return match.group(0)
            return self._placeholder(f"p{match.group(2)}")

        return _PLACEHOLDER.sub(replace, sql)

    def _bind(self, sql: str, values: Sequence[Any] | None) -> tuple[str, dict[str, Any] | None]:
        """Return driver SQL and named params for a ``$n`` statement.

        Statements without values are passed through untouched, so DDL
        containing ``$`` (function bodies, dollar quoting) is not rewritten.
        """
        if not values:
            return sql, None
        params = {f"p{i}": v for i, v in enumerate(values, start=1)}
        return self._convert_placeholders(sql), params
