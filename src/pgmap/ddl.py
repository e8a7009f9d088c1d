# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""DDL string helpers and the constraint naming convention.

Constraint names encode what they protect so that driver errors can be
attributed back to a table and column (see ``pgmap.errors.classify``)::

    PK:<table>:<column>
    UQ:<table>:<column>
    FK:<table>:<column>:<target table>
    IX:<table>:<column>[:<column>...]

Example:
    Writing a migration with the helpers::

        Migration(1, [
            create_table(
                "account",
                column("id", "uuid", primary_key=True),
                column("email", "text", unique=True),
                column("owner_id", "uuid", nullable=True, foreign_table="person"),
            ),
            create_index("account", "owner_id"),
        ])
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

TableItem = Callable[[str], str]
"""A column or constraint clause, rendered once the table name is known."""

CONSTRAINT_KINDS = frozenset({"PK", "UQ", "FK", "IX"})


@dataclass(frozen=True)
class ConstraintName:
    """A parsed constraint name."""

    kind: str
    table: str
    columns: tuple[str, ...]
    target: str | None = None

    @property
    def column(self) -> str | None:
        """First (usually only) column."""
        return self.columns[0] if self.columns else None


def primary_key_name(table: str, column: str) -> str:
    return f"PK:{table}:{column}"


def unique_name(table: str, column: str) -> str:
    return f"UQ:{table}:{column}"


def foreign_key_name(table: str, column: str, target: str) -> str:
    return f"FK:{table}:{column}:{target}"


def index_name(table: str, *columns: str) -> str:
    return ":".join(["IX", table, *columns])


def parse_constraint_name(name: str | None) -> ConstraintName | None:
    """Parse a name built by the helpers above. None if it doesn't follow the convention."""
    if not name:
        return None
    parts = name.split(":")
    kind = parts[0]
    if kind not in CONSTRAINT_KINDS or len(parts) < 3:
        return None
    table = parts[1]
    if kind == "FK":
        if len(parts) != 4:
            return None
        return ConstraintName(kind, table, (parts[2],), parts[3])
    if kind in ("PK", "UQ") and len(parts) != 3:
        return None
    return ConstraintName(kind, table, tuple(parts[2:]))


def column(
    name: str,
    type: str,
    *,
    nullable: bool = False,
    primary_key: bool = False,
    unique: bool = False,
    foreign_table: str | None = None,
    foreign_column: str | None = None,
) -> TableItem:
    """Column definition with conventionally named constraints.

    Columns are NOT NULL unless ``nullable`` is set. ``primary_key`` wins
    over ``unique``.
    """

    def render(table: str) -> str:
        ddl = f'"{name}" {type} {"NULL" if nullable else "NOT NULL"}'
        if primary_key:
            ddl += f' CONSTRAINT "{primary_key_name(table, name)}" PRIMARY KEY'
        elif unique:
            ddl += f' CONSTRAINT "{unique_name(table, name)}" UNIQUE'
        if foreign_table:
            ddl += (
                f' CONSTRAINT "{foreign_key_name(table, name, foreign_table)}"'
                f" REFERENCES {foreign_table}"
            )
            if foreign_column:
                ddl += f'("{foreign_column}")'
        return ddl

    return render


def create_table(name: str, *items: TableItem) -> str:
    """CREATE TABLE statement from column/constraint items."""
    body = ", ".join(item(name) for item in items)
    return f"CREATE TABLE {name} ({body})"


def create_index(table: str, *columns: str) -> str:
    """CREATE INDEX statement named by convention."""
    if not columns:
        raise ValueError("create_index requires at least one column")
    return f'CREATE INDEX "{index_name(table, *columns)}" ON {table}({", ".join(columns)})'


__all__ = [
    "ConstraintName",
    "TableItem",
    "column",
    "create_index",
    "create_table",
    "foreign_key_name",
    "index_name",
    "parse_constraint_name",
    "primary_key_name",
    "unique_name",
]
