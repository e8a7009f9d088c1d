# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""pgmap: typed data access and schema migrations for PostgreSQL and SQLite.

Components:
    ColumnMap: Field/column/placeholder mapping for one model.
    pgmap.query: Statement builders and result cardinality helpers.
    Client: Query surface with retrying serializable transactions.
    Database: Migration engine with a hash-checked ledger.
    pgmap.errors: Classified database errors.
"""

import logging

from .adapters import DbAdapter, get_adapter
from .client import Client
from .columns import ColumnEntry, ColumnMap
from .config import DatabaseConfig, config_from_env
from .conventions import camel_to_snake, snake_case_map
from .database import Database, DatabaseStatus
from .errors import (
    DbError,
    DeadlockDetectedError,
    DuplicateKeyError,
    ErrorKind,
    InvalidReferenceError,
    MigrationError,
    MigrationHashMismatchError,
    MigrationVersionMismatchError,
    MoreThanOneError,
    NotFoundError,
    SerializationFailureError,
)
from .migration import AppliedMigration, Migration
from .query import Cardinality, Query, Row, RowResult
from .transaction import IsolationLevel, retry

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AppliedMigration",
    "Cardinality",
    "Client",
    "ColumnEntry",
    "ColumnMap",
    "Database",
    "DatabaseConfig",
    "DatabaseStatus",
    "DbAdapter",
    "DbError",
    "DeadlockDetectedError",
    "DuplicateKeyError",
    "ErrorKind",
    "InvalidReferenceError",
    "IsolationLevel",
    "Migration",
    "MigrationError",
    "MigrationHashMismatchError",
    "MigrationVersionMismatchError",
    "MoreThanOneError",
    "NotFoundError",
    "Query",
    "Row",
    "RowResult",
    "SerializationFailureError",
    "camel_to_snake",
    "config_from_env",
    "get_adapter",
    "retry",
    "snake_case_map",
]
