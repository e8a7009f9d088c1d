# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Database error taxonomy and driver error classification.

Driver errors are translated once, at the adapter boundary, into DbError
instances tagged with an ErrorKind. Everything downstream (retry decisions,
callers) matches on the kind or on the DbError subclass and never looks at
raw driver codes again. Driver errors with an unrecognized code are not
translated: the original exception propagates unchanged.

Migration integrity failures have their own hierarchy (MigrationError). They
mean the recorded history and the code disagree and are never retried.
"""

from __future__ import annotations

from enum import Enum

from .ddl import parse_constraint_name


class ErrorKind(Enum):
    """Closed set of classified database error kinds."""

    UNKNOWN = "unknown"
    DUPLICATE_KEY = "duplicate_key"
    INVALID_REFERENCE = "invalid_reference"
    NOT_FOUND = "not_found"
    MORE_THAN_ONE = "more_than_one"
    SERIALIZATION_FAILURE = "serialization_failure"
    DEADLOCK_DETECTED = "deadlock_detected"


RETRYABLE_KINDS = frozenset({ErrorKind.SERIALIZATION_FAILURE, ErrorKind.DEADLOCK_DETECTED})

# SQLSTATE codes understood by classify()
SQLSTATE_KINDS: dict[str, ErrorKind] = {
    "23505": ErrorKind.DUPLICATE_KEY,
    "23503": ErrorKind.INVALID_REFERENCE,
    "40001": ErrorKind.SERIALIZATION_FAILURE,
    "40P01": ErrorKind.DEADLOCK_DETECTED,
}


class DbError(Exception):
    """A database error translated into the pgmap taxonomy.

    Attributes:
        kind: The ErrorKind tag.
        message: Human readable description.
        constraint: Violated constraint name, if reported.
        table: Table involved, if known.
        column: Column involved, if known.
        foreign_table: Referenced table for invalid references, if known.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str = "database error",
        *,
        kind: ErrorKind | None = None,
        constraint: str | None = None,
        table: str | None = None,
        column: str | None = None,
        foreign_table: str | None = None,
    ) -> None:
        if kind is not None:
            self.kind = kind
        self.message = message
        self.constraint = constraint
        self.table = table
        self.column = column
        self.foreign_table = foreign_table
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """True for transient contention errors."""
        return self.kind in RETRYABLE_KINDS


class DuplicateKeyError(DbError):
    kind = ErrorKind.DUPLICATE_KEY


class InvalidReferenceError(DbError):
    kind = ErrorKind.INVALID_REFERENCE


class SerializationFailureError(DbError):
    kind = ErrorKind.SERIALIZATION_FAILURE


class DeadlockDetectedError(DbError):
    kind = ErrorKind.DEADLOCK_DETECTED


class NotFoundError(DbError):
    """Raised when exactly one row was expected and none was returned."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str = "no results found") -> None:
        super().__init__(message)


class MoreThanOneError(DbError):
    """Raised when at most one row was expected and more were returned."""

    kind = ErrorKind.MORE_THAN_ONE

    def __init__(self, count: int | None = None) -> None:
        self.count = count
        msg = f"expected 1 result, got {count}" if count is not None else "expected 1 result"
        super().__init__(msg)


_ERROR_CLASSES: dict[ErrorKind, type[DbError]] = {
    ErrorKind.DUPLICATE_KEY: DuplicateKeyError,
    ErrorKind.INVALID_REFERENCE: InvalidReferenceError,
    ErrorKind.SERIALIZATION_FAILURE: SerializationFailureError,
    ErrorKind.DEADLOCK_DETECTED: DeadlockDetectedError,
}


def classify(
    sqlstate: str | None,
    *,
    constraint: str | None = None,
    table: str | None = None,
    column: str | None = None,
) -> DbError | None:
    """Translate a driver error code into a DbError.

    Table and column context comes from the driver when it reports them,
    otherwise from a conventionally named constraint
    (``UQ:table:column``, ``FK:table:column:target``, see ``pgmap.ddl``).

    Args:
        sqlstate: SQLSTATE code reported by the driver.
        constraint: Constraint name reported by the driver.
        table: Table name reported by the driver.
        column: Column name reported by the driver.

    Returns:
        The classified error, or None if the code is not recognized.
    """
    kind = SQLSTATE_KINDS.get(sqlstate or "")
    if kind is None:
        return None

    parsed = parse_constraint_name(constraint)
    foreign_table = None
    if parsed is not None:
        table = table or parsed.table
        column = column or parsed.column
        foreign_table = parsed.target

    if kind is ErrorKind.INVALID_REFERENCE:
        message = (
            f"invalid reference from {table or 'table'}.{column or '<unknown>'}"
            f" to {foreign_table or '<unknown>'}"
        )
    elif kind is ErrorKind.DUPLICATE_KEY:
        message = f"duplicate key in {table or 'table'}.{column or '<unknown>'}"
    elif kind is ErrorKind.SERIALIZATION_FAILURE:
        message = "serialization failure in transaction"
    else:
        message = "deadlock detected in transaction"

    return _ERROR_CLASSES[kind](
        message,
        constraint=constraint,
        table=table,
        column=column,
        foreign_table=foreign_table,
    )


def error_kind(error: BaseException) -> ErrorKind:
    """Kind of a classified error, UNKNOWN for anything else."""
    if isinstance(error, DbError):
        return error.kind
    return ErrorKind.UNKNOWN


# -----------------------------------------------------------------------------
# Migration integrity
# -----------------------------------------------------------------------------


class MigrationError(Exception):
    """Base class for fatal migration history errors."""


class MigrationVersionMismatchError(MigrationError):
    """Migration versions are not the contiguous sequence 1..N.

    Raised for the static migration list (``applied=False``) and for the
    ledger read back from the database (``applied=True``).
    """

    def __init__(
        self, expected: int, actual: int, applied: bool = False, message: str | None = None
    ) -> None:
        self.expected = expected
        self.actual = actual
        self.applied = applied
        what = "applied migration" if applied else "migration"
        super().__init__(message or f"expected {what} {expected} to have version {expected}, got {actual}")


class MigrationHashMismatchError(MigrationError):
    """The recorded hash of an applied migration differs from the code's."""

    def __init__(self, version: int, recorded: str, calculated: str) -> None:
        self.version = version
        self.recorded = recorded
        self.calculated = calculated
        super().__init__(
            f"hash mismatch for migration {version}: "
            f"recorded {recorded}, calculated {calculated}"
        )


__all__ = [
    "DbError",
    "DeadlockDetectedError",
    "DuplicateKeyError",
    "ErrorKind",
    "InvalidReferenceError",
    "MigrationError",
    "MigrationHashMismatchError",
    "MigrationVersionMismatchError",
    "MoreThanOneError",
    "NotFoundError",
    "RETRYABLE_KINDS",
    "SQLSTATE_KINDS",
    "SerializationFailureError",
    "classify",
    "error_kind",
]
