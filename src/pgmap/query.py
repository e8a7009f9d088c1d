# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Statement builders over ColumnMap, plus result-shape helpers.

Builders are pure: they return a Query (SQL text with ``$n`` placeholders and
the ordered values list) and never touch a connection. ``pgmap.client.Client``
executes them.

Placeholder discipline for update/upsert:
    The key map and the update map are both picked from the full map with
    preserved indices, and the values list is built once from the full map.
    ``update("t", USERS, {"id": 1, "name": "a"}, "id")`` therefore renders
    ``SET full_name = $2 WHERE user_id = $1`` with values ``[1, "a"]``.

Result shapes:
    classify_rows() tags a result list as FOUND, NOT_FOUND or MULTIPLE.
    single()/single_or_none()/scalar()/scalar_or_none() are built on it and
    raise NotFoundError / MoreThanOneError when the cardinality is wrong.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .columns import ColumnMap
from .errors import MoreThanOneError, NotFoundError

Row = dict[str, Any]


@dataclass(frozen=True)
class Query:
    """SQL text and its positional values (``values[i]`` binds ``$i+1``)."""

    sql: str
    values: tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.values, tuple):
            object.__setattr__(self, "values", tuple(self.values))


def _returning(cmap: ColumnMap, returning: bool) -> str:
    return f" RETURNING {cmap.aliased_columns()}" if returning else ""


def select(table: str, cmap: ColumnMap, filter: Mapping[str, Any] | None = None) -> Query:
    """SELECT every mapped column, optionally filtered by field equality.

    A None or empty filter selects the whole table.
    """
    sql = f"SELECT {cmap.aliased_columns()} FROM {table}"
    if not filter:
        return Query(sql)
    filter_map = cmap.pick(*filter)
    return Query(f"{sql} WHERE {filter_map.conditions()}", filter_map.values(filter))


def insert(table: str, cmap: ColumnMap, value: Any, returning: bool = False) -> Query:
    """INSERT one row built from ``value``."""
    return Query(
        f"INSERT INTO {table} ({cmap.columns()}) VALUES ({cmap.placeholders()})"
        f"{_returning(cmap, returning)}",
        cmap.values(value),
    )


def update(
    table: str,
    cmap: ColumnMap,
    value: Any,
    key_fields: str | Sequence[str],
    update_fields: Sequence[str] | None = None,
    returning: bool = False,
) -> Query:
    """UPDATE the row(s) matching the key fields of ``value``.

    Args:
        table: Table name.
        cmap: Full column map of the model.
        value: Model providing both key and updated values.
        key_fields: Field or fields identifying the row (WHERE clause).
        update_fields: Fields to SET. Defaults to every non-key field.
        returning: Add a RETURNING clause with all mapped columns.

    Raises:
        ValueError: If no field is left to SET.
    """
    keys = [key_fields] if isinstance(key_fields, str) else list(key_fields)
    if not keys:
        raise ValueError("update requires at least one key field")
    key_map = cmap.pick(*keys, preserve_indices=True)
    update_map = _update_map(cmap, keys, update_fields)
    return Query(
        f"UPDATE {table} SET {update_map.assignments()} WHERE {key_map.conditions()}"
        f"{_returning(cmap, returning)}",
        cmap.values(value),
    )


def upsert(
    table: str,
    cmap: ColumnMap,
    value: Any,
    key_field: str,
    update_fields: Sequence[str] | None = None,
    returning: bool = False,
) -> Query:
    """INSERT, or UPDATE on conflict with the unique ``key_field``.

    Raises:
        ValueError: If no field is left to SET.
    """
    conflict_column = cmap.pick(key_field).columns()
    update_map = _update_map(cmap, [key_field], update_fields)
    return Query(
        f"INSERT INTO {table} ({cmap.columns()}) VALUES ({cmap.placeholders()})"
        f" ON CONFLICT ({conflict_column}) DO UPDATE SET {update_map.assignments()}"
        f"{_returning(cmap, returning)}",
        cmap.values(value),
    )


def _update_map(
    cmap: ColumnMap, keys: Sequence[str], update_fields: Sequence[str] | None
) -> ColumnMap:
    if update_fields is None:
        update_map = cmap.omit(*keys, preserve_indices=True)
    else:
        update_map = cmap.pick(*update_fields, preserve_indices=True)
    if not len(update_map):
        raise ValueError("no fields to update: SET clause would be empty")
    return update_map


# -----------------------------------------------------------------------------
# Result shapes
# -----------------------------------------------------------------------------


class Cardinality(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    MULTIPLE = "multiple"


@dataclass(frozen=True)
class RowResult:
    """A result list tagged with its cardinality."""

    status: Cardinality
    rows: tuple[Row, ...] = ()

    @property
    def found(self) -> bool:
        return self.status is Cardinality.FOUND

    @property
    def row(self) -> Row | None:
        """The lone row when FOUND, else None."""
        return self.rows[0] if self.status is Cardinality.FOUND else None

    def unwrap(self) -> Row:
        """The lone row. Raises NotFoundError or MoreThanOneError otherwise."""
        if self.status is Cardinality.MULTIPLE:
            raise MoreThanOneError(len(self.rows))
        if self.status is Cardinality.NOT_FOUND:
            raise NotFoundError()
        return self.rows[0]

    def unwrap_or_none(self) -> Row | None:
        """The lone row, None when empty. Raises MoreThanOneError if several."""
        if self.status is Cardinality.MULTIPLE:
            raise MoreThanOneError(len(self.rows))
        return self.row


def classify_rows(rows: Sequence[Row]) -> RowResult:
    if not rows:
        return RowResult(Cardinality.NOT_FOUND)
    if len(rows) > 1:
        return RowResult(Cardinality.MULTIPLE, tuple(rows))
    return RowResult(Cardinality.FOUND, (rows[0],))


def single(rows: Sequence[Row]) -> Row:
    """The only row. Raises unless there is exactly one."""
    return classify_rows(rows).unwrap()


def single_or_none(rows: Sequence[Row]) -> Row | None:
    """The only row, or None. Raises MoreThanOneError if there are several."""
    return classify_rows(rows).unwrap_or_none()


def scalar(rows: Sequence[Row]) -> Any:
    """First column of the only row.

    With several columns the first one in select order is returned.
    """
    return first_value(single(rows))


def scalar_or_none(rows: Sequence[Row]) -> Any:
    """First column of the only row, None when there are no rows."""
    row = single_or_none(rows)
    if row is None:
        return None
    return first_value(row)


def first_value(row: Row) -> Any:
    """Value of the first column of a row, None for a row without columns."""
    return next(iter(row.values()), None)


__all__ = [
    "Cardinality",
    "Query",
    "Row",
    "RowResult",
    "classify_rows",
    "first_value",
    "insert",
    "scalar",
    "scalar_or_none",
    "select",
    "single",
    "single_or_none",
    "update",
    "upsert",
]
