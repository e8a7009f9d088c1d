# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Connection configuration dataclass and environment loader.

Usage:
    # From environment (Docker/production):
    config = config_from_env()
    db = Database(config, "billing", MIGRATIONS)

    # Explicit configuration:
    config = DatabaseConfig(host="db", user="app", password="s3cret", database="app")
    config.connection_string()  # "postgresql://app:s3cret@db:5432/app"
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import quote

from .transaction import DEFAULT_RETRIES, DEFAULT_RETRY_DELAY


@dataclass
class DatabaseConfig:
    """How to reach the database and how hard to retry.

    Either ``dsn`` (any connection string accepted by ``get_adapter``) or
    the discrete PostgreSQL fields are used; ``dsn`` wins when set.

    Attributes:
        dsn: Full connection string.
        host: PostgreSQL host.
        port: PostgreSQL port.
        user: PostgreSQL user.
        password: PostgreSQL password.
        database: PostgreSQL database name.
        pool_size: Maximum pooled connections.
        connect_timeout: Seconds to wait for the pool to open.
        retries: Transaction retries on serialization failure/deadlock.
        retry_delay: Seconds between transaction attempts.
        namespace: Migration namespace (ledger table ``___<namespace>_migrations``).
    """

    dsn: str | None = None
    host: str = "localhost"
    port: int = 5432
    user: str | None = None
    password: str | None = None
    database: str | None = None
    pool_size: int = 10
    connect_timeout: float = 10.0
    retries: int = DEFAULT_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY
    namespace: str = "app"

    def connection_string(self) -> str:
        """``dsn`` if given, else a postgresql:// URL from the discrete fields."""
        if self.dsn:
            return self.dsn
        auth = ""
        if self.user:
            auth = quote(self.user, safe="")
            if self.password:
                auth += ":" + quote(self.password, safe="")
            auth += "@"
        return f"postgresql://{auth}{self.host}:{self.port}/{self.database or ''}"


def config_from_env() -> DatabaseConfig:
    """Build DatabaseConfig from PGMAP_* environment variables.

    Environment variables:
        PGMAP_DB: Full connection string (default: None)
        PGMAP_HOST: Host (default: localhost)
        PGMAP_PORT: Port (default: 5432)
        PGMAP_USER: User (default: None)
        PGMAP_PASSWORD: Password (default: None)
        PGMAP_DATABASE: Database name (default: None)
        PGMAP_POOL_SIZE: Pool size (default: 10)
        PGMAP_CONNECT_TIMEOUT: Pool open timeout in seconds (default: 10)
        PGMAP_NAMESPACE: Migration namespace (default: "app")

    Returns:
        DatabaseConfig instance populated from environment.
    """
    return DatabaseConfig(
        dsn=os.environ.get("PGMAP_DB") or None,
        host=os.environ.get("PGMAP_HOST", "localhost"),
        port=int(os.environ.get("PGMAP_PORT", "5432")),
        user=os.environ.get("PGMAP_USER"),
        password=os.environ.get("PGMAP_PASSWORD"),
        database=os.environ.get("PGMAP_DATABASE"),
        pool_size=int(os.environ.get("PGMAP_POOL_SIZE", "10")),
        connect_timeout=float(os.environ.get("PGMAP_CONNECT_TIMEOUT", "10")),
        namespace=os.environ.get("PGMAP_NAMESPACE", "app"),
    )


__all__ = ["DatabaseConfig", "config_from_env"]
