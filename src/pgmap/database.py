# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Migration engine: versioned schema upgrades with hash integrity checks.

The engine keeps a ledger table, ``___<namespace>_migrations``, with one row
per applied migration (version, hash, application time). Several logical
schemas can share one physical database by using different namespaces.

States:
    EMPTY: the ledger table does not exist (and init() was not asked to
        create it).
    NEEDS_UPGRADE: the ledger exists and some migrations are not applied.
    UP_TO_DATE: every migration is applied with a matching hash.

Integrity:
    The migration list must be versions 1..N in order, and the ledger must
    hold a prefix 1..M of it (M <= N). A recorded hash that differs from the
    code's hash for the same version means the history was edited after it
    was applied: MigrationHashMismatchError, never a silent re-apply.

Example:
    Applying migrations at startup::

        MIGRATIONS = [
            Migration(1, [create_table("person", column("id", "int", primary_key=True))]),
            Migration(2, ["ALTER TABLE person ADD COLUMN name text"]),
        ]

        db = Database("postgresql://app@db/app", "billing", MIGRATIONS)
        status = await db.init(update_to_latest=True)   # DatabaseStatus.UP_TO_DATE
        rows = await db.connection.select("person", PERSON)
        await db.dispose()
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from enum import Enum
from typing import Any

from .adapters import DbAdapter, get_adapter
from .client import Client
from .config import DatabaseConfig
from .errors import MigrationHashMismatchError, MigrationVersionMismatchError
from .migration import AppliedMigration, Migration, validate_migrations
from .transaction import DEFAULT_RETRIES, DEFAULT_RETRY_DELAY


class DatabaseStatus(str, Enum):
    EMPTY = "empty"
    NEEDS_UPGRADE = "needs_upgrade"
    UP_TO_DATE = "up_to_date"


class Database:
    """Database access with a migration ledger.

    Attributes:
        adapter: Connection gateway.
        namespace: Migration namespace.
        migrations: The validated migration list.
    """

    def __init__(
        self,
        config: str | DatabaseConfig | DbAdapter,
        namespace: str,
        migrations: Sequence[Migration],
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize database manager.

        Args:
            config: Connection string, DatabaseConfig or a ready adapter.
            namespace: Migration namespace, part of the ledger table name.
            migrations: Migrations with versions 1..N in order.

        Raises:
            MigrationVersionMismatchError: If the versions are not 1..N.
        """
        validate_migrations(migrations)
        self.namespace = namespace
        self.migrations: tuple[Migration, ...] = tuple(migrations)
        self.logger = logger or logging.getLogger(__name__)

        self.retries = DEFAULT_RETRIES
        self.retry_delay = DEFAULT_RETRY_DELAY
        if isinstance(config, DbAdapter):
            self.adapter = config
        elif isinstance(config, DatabaseConfig):
            self.adapter = get_adapter(
                config.connection_string(),
                pool_size=config.pool_size,
                connect_timeout=config.connect_timeout,
            )
            self.retries = config.retries
            self.retry_delay = config.retry_delay
        else:
            self.adapter = get_adapter(config)

        self._client: Client | None = None

    @property
    def migration_table(self) -> str:
        """Ledger table name."""
        return f"___{self.namespace}_migrations"

    @property
    def connection(self) -> Client:
        """Query surface.

        Raises:
            RuntimeError: Before init() or after dispose().
        """
        if self._client is None:
            raise RuntimeError("Database disposed or not initialised. Call init() first.")
        return self._client

    async def __aenter__(self) -> Database:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.dispose()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def init(self, update_to_latest: bool = False) -> DatabaseStatus:
        """Make the database available, optionally applying outstanding migrations.

        Without ``update_to_latest`` this is a read-only probe: a missing
        ledger gives EMPTY and nothing is created.

        Args:
            update_to_latest: Create the ledger and apply every outstanding
                migration.

        Raises:
            MigrationVersionMismatchError: If the ledger is not a prefix 1..M.
            MigrationHashMismatchError: If an applied migration changed.
        """
        self.logger.debug("begin init database")
        self.connect()

        if update_to_latest:
            self.logger.debug("update_to_latest given in init")
            await self.update_to_latest()
            return DatabaseStatus.UP_TO_DATE

        status = await self.status()
        self.logger.debug("init status %s", status.value)
        return status

    def connect(self) -> Client:
        """Create the query surface without touching the ledger.

        init() calls this; use it directly to read a database whose ledger
        may not match the migration list.
        """
        if self._client is None:
            self._client = Client(
                self.adapter,
                retries=self.retries,
                retry_delay=self.retry_delay,
                logger=self.logger,
            )
        return self._client

    async def dispose(self) -> None:
        """Release resources (closes the adapter pool)."""
        await self.adapter.shutdown()
        self._client = None

    async def status(self) -> DatabaseStatus:
        """Current state of the ledger against the migration list, without changes."""
        if not await self.migration_table_present():
            self.logger.debug("empty database")
            return DatabaseStatus.EMPTY

        await self._check_applied_versions()

        up_to_date = True
        for migration in self.migrations:
            applied = await self.check_migration(migration)
            up_to_date = up_to_date and applied
        return DatabaseStatus.UP_TO_DATE if up_to_date else DatabaseStatus.NEEDS_UPGRADE

    # -------------------------------------------------------------------------
    # Migrations
    # -------------------------------------------------------------------------

    async def update_to_latest(self) -> list[int]:
        """Apply every outstanding migration in version order.

        Returns:
            Versions applied by this call.
        """
        self.logger.debug("begin update to latest")
        await self.ensure_migration_table()
        await self._check_applied_versions()

        applied: list[int] = []
        for migration in self.migrations:
            if await self.apply_migration(migration):
                applied.append(migration.version)
        return applied

    async def apply_migration(self, migration: Migration) -> bool:
        """Apply one migration and record it, in a single transaction.

        The ledger is checked again inside the transaction, so a migration
        applied concurrently by another process is skipped.

        Returns:
            True if the statements ran, False if it was already applied.

        Raises:
            MigrationHashMismatchError: If it was applied with another hash.
        """
        self.logger.debug("applying migration %d", migration.version)

        async def apply(tx: Client) -> bool:
            if await self.check_migration(migration, tx):
                self.logger.debug("migration %d already applied", migration.version)
                return False

            for statement in migration.statements:
                self.logger.debug('migration script "%s"', ellipsis(statement, 40))
                await tx.query(statement)

            await tx.query(
                f"INSERT INTO {self.migration_table} (id, hash) VALUES ($1, $2)",
                [migration.version, migration.hash()],
            )
            return True

        return await self.connection.transaction(apply)

    async def check_migration(self, migration: Migration, client: Client | None = None) -> bool:
        """True if applied with a matching hash, False if not applied.

        Raises:
            MigrationHashMismatchError: If applied with a different hash.
        """
        client = client or self.connection
        row = await client.single_or_none(
            f"SELECT hash FROM {self.migration_table} WHERE id = $1", [migration.version]
        )
        if row is None:
            return False
        calculated = migration.hash()
        if row["hash"] == calculated:
            return True
        raise MigrationHashMismatchError(migration.version, row["hash"], calculated)

    async def applied_migrations(self) -> list[AppliedMigration]:
        """Ledger rows in version order (empty if there is no ledger)."""
        if not await self.migration_table_present():
            return []
        rows = await self.connection.query(
            f"SELECT id, hash, at FROM {self.migration_table} ORDER BY id ASC"
        )
        return [
            AppliedMigration(version=row["id"], hash=row["hash"], applied_at=_timestamp(row["at"]))
            for row in rows
        ]

    async def ensure_migration_table(self) -> None:
        """Create the ledger table if it doesn't already exist."""
        self.logger.debug("ensuring migration table exists")
        await self.connection.query(
            f"CREATE TABLE IF NOT EXISTS {self.migration_table} ("
            "id int NOT NULL PRIMARY KEY, "
            f"at timestamp NOT NULL DEFAULT {self.adapter.now_utc}, "
            "hash text NOT NULL)"
        )

    async def migration_table_present(self) -> bool:
        """True if the ledger table exists."""
        probe = self.adapter.table_exists_query(self.migration_table)
        return bool(await self.connection.scalar(probe.sql, probe.values))

    async def _check_applied_versions(self) -> None:
        """Verify the ledger holds versions 1..M with M <= N."""
        rows = await self.connection.query(
            f"SELECT id FROM {self.migration_table} ORDER BY id ASC"
        )
        applied = [row["id"] for row in rows]
        for i, version in enumerate(applied):
            if version != i + 1:
                raise MigrationVersionMismatchError(i + 1, version, applied=True)
            self.logger.debug("migration %d already applied", version)
        if len(applied) > len(self.migrations):
            raise MigrationVersionMismatchError(
                len(self.migrations),
                applied[-1],
                applied=True,
                message=(
                    f"{len(applied)} migrations applied but only "
                    f"{len(self.migrations)} are defined"
                ),
            )


def ellipsis(text: str, width: int) -> str:
    """First line of ``text``, cut to ``width``, with ``...`` if anything was dropped."""
    lines = text.strip().splitlines() or [""]
    first = lines[0]
    if len(first) > width:
        return first[:width] + "..."
    if len(lines) > 1:
        return first + "..."
    return first


def _timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


__all__ = ["Database", "DatabaseStatus", "ellipsis"]
