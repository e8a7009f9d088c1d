# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Migration definitions and ledger records."""

from __future__ import annotations

import base64
import hashlib
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from .errors import MigrationVersionMismatchError


@dataclass(frozen=True)
class Migration:
    """A numbered batch of schema statements, run in order in one transaction."""

    version: int
    statements: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if isinstance(self.statements, str):
            raise TypeError("Migration statements must be a sequence of strings, not a string")
        if not isinstance(self.statements, tuple):
            object.__setattr__(self, "statements", tuple(self.statements))

    def hash(self) -> str:
        """Base64 SHA-1 of the statements, fed to the digest in order."""
        digest = hashlib.sha1()
        for statement in self.statements:
            digest.update(statement.encode("utf-8"))
        return base64.b64encode(digest.digest()).decode("ascii")


@dataclass(frozen=True)
class AppliedMigration:
    """A ledger row."""

    version: int
    hash: str
    applied_at: datetime | None = None


def validate_migrations(migrations: Sequence[Migration]) -> None:
    """Check that the migration at position i has version i + 1.

    Raises:
        MigrationVersionMismatchError: On a gap, duplicate or reordering.
    """
    for i, migration in enumerate(migrations):
        if migration.version != i + 1:
            raise MigrationVersionMismatchError(i + 1, migration.version)


__all__ = ["AppliedMigration", "Migration", "validate_migrations"]
