# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Column maps: ordered field/column/placeholder associations for one model.

A ColumnMap is declared once per model type from an explicit, ordered table
of ``(field, column)`` descriptors and is immutable afterwards. Every query in
``pgmap.query`` is rendered from one.

Placeholder indices:
    Each entry carries the 1-based index of its ``$n`` placeholder. A fresh
    map numbers entries by position. Sub-maps produced by pick()/omit() either
    renumber (``1..k`` in the new order, for standalone statements) or keep
    the parent's indices (``preserve_indices=True``), so that two sub-maps can
    be rendered into one statement and share a single values list built from
    the full map.

Example:
    Declaring and slicing a map::

        USERS = ColumnMap([("id", "user_id"), ("name", "full_name"), ("age", "age")])

        USERS.placeholders()                               # "$1, $2, $3"
        USERS.pick("name").assignments()                   # "full_name = $1"
        USERS.pick("name", preserve_indices=True).assignments()  # "full_name = $2"
        USERS.values({"id": 7, "name": "Ann"})             # [7, "Ann", None]
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

ColumnDefinition = Mapping[str, str] | Iterable[tuple[str, str]]


@dataclass(frozen=True)
class ColumnEntry:
    """One mapped field."""

    field: str
    column: str
    index: int


class ColumnMap:
    """Ordered mapping between model fields and table columns.

    Args:
        definition: Ordered ``field -> column`` mapping, or a sequence of
            ``(field, column)`` pairs.
        indices: Optional ``field -> placeholder index``. When omitted,
            entries are numbered 1..n in definition order.

    Raises:
        ValueError: On duplicate fields, duplicate or non-positive indices,
            or a field missing from ``indices``.
    """

    def __init__(
        self,
        definition: ColumnDefinition,
        indices: Mapping[str, int] | None = None,
    ) -> None:
        pairs = list(definition.items() if isinstance(definition, Mapping) else definition)

        entries: list[ColumnEntry] = []
        seen_fields: set[str] = set()
        seen_indices: set[int] = set()
        for position, (field, column) in enumerate(pairs, start=1):
            if field in seen_fields:
                raise ValueError(f"Duplicate field '{field}' in column map")
            if indices is None:
                index = position
            elif field not in indices:
                raise ValueError(f"No placeholder index given for field '{field}'")
            else:
                index = indices[field]
            if index < 1:
                raise ValueError(f"Placeholder index for '{field}' must be positive, got {index}")
            if index in seen_indices:
                raise ValueError(f"Duplicate placeholder index {index} in column map")
            seen_fields.add(field)
            seen_indices.add(index)
            entries.append(ColumnEntry(field=field, column=column, index=index))

        self._entries: tuple[ColumnEntry, ...] = tuple(entries)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def entries(self) -> tuple[ColumnEntry, ...]:
        """Entries in map order."""
        return self._entries

    def fields(self) -> list[str]:
        """Field names in map order."""
        return [e.field for e in self._entries]

    def column_names(self) -> list[str]:
        """Column names in map order."""
        return [e.column for e in self._entries]

    def indices(self) -> dict[str, int]:
        """Map of field name to placeholder index."""
        return {e.field: e.index for e in self._entries}

    def column_to_field(self, column: str) -> str | None:
        """Reverse lookup. None if the column is unmapped or mapped twice."""
        matches = [e.field for e in self._entries if e.column == column]
        if len(matches) != 1:
            return None
        return matches[0]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ColumnEntry]:
        return iter(self._entries)

    def __contains__(self, field: object) -> bool:
        return any(e.field == field for e in self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnMap):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        items = ", ".join(f"{e.field}={e.column}${e.index}" for e in self._entries)
        return f"ColumnMap({items})"

    # -------------------------------------------------------------------------
    # Sub-maps
    # -------------------------------------------------------------------------

    def pick(self, *fields: str, preserve_indices: bool = False) -> ColumnMap:
        """Map with only the given fields, in the order given.

        Raises:
            KeyError: If a field is not in this map.
        """
        by_field = {e.field: e for e in self._entries}
        missing = [f for f in fields if f not in by_field]
        if missing:
            raise KeyError(f"Unknown field(s) in column map: {', '.join(missing)}")
        # dict.fromkeys drops repeated names but keeps first-seen order
        chosen = [by_field[f] for f in dict.fromkeys(fields)]
        return self._derive(chosen, preserve_indices)

    def omit(self, *fields: str, preserve_indices: bool = False) -> ColumnMap:
        """Map without the given fields, in map order.

        Raises:
            KeyError: If a field is not in this map.
        """
        missing = [f for f in fields if f not in self]
        if missing:
            raise KeyError(f"Unknown field(s) in column map: {', '.join(missing)}")
        excluded = set(fields)
        return self._derive([e for e in self._entries if e.field not in excluded], preserve_indices)

    def with_table_name(self, table: str) -> ColumnMap:
        """Map whose columns are qualified as ``table.column``. Indices are kept."""
        return ColumnMap(
            [(e.field, f"{table}.{e.column}") for e in self._entries],
            self.indices(),
        )

    def _derive(self, entries: list[ColumnEntry], preserve_indices: bool) -> ColumnMap:
        pairs = [(e.field, e.column) for e in entries]
        if preserve_indices:
            return ColumnMap(pairs, {e.field: e.index for e in entries})
        return ColumnMap(pairs)

    # -------------------------------------------------------------------------
    # SQL renderers
    # -------------------------------------------------------------------------

    def columns(self) -> str:
        """Comma-separated column list."""
        return ", ".join(e.column for e in self._entries)

    def aliased_columns(self) -> str:
        """Comma-separated ``column AS "field"`` list, for decoding result rows."""
        return ", ".join(f'{e.column} AS "{e.field}"' for e in self._entries)

    def assignments(self, separator: str = ", ") -> str:
        """``column = $n`` terms joined by ``separator`` (SET clauses)."""
        return separator.join(f"{e.column} = ${e.index}" for e in self._entries)

    def conditions(self) -> str:
        """``column = $n`` terms joined by AND (WHERE clauses)."""
        return self.assignments(" AND ")

    def placeholders(self) -> str:
        """Comma-separated ``$n`` list in map order."""
        return ", ".join(f"${e.index}" for e in self._entries)

    # -------------------------------------------------------------------------
    # Values
    # -------------------------------------------------------------------------

    def values(self, model: Mapping[str, Any] | Any) -> list[Any]:
        """Project a model into a values list aligned to placeholder indices.

        ``values[i - 1]`` is the value bound to ``$i``. The model may be a
        mapping or any object exposing the fields as attributes. Missing
        fields, and index gaps left by a preserved sub-map, are None.
        """
        if not self._entries:
            return []
        result: list[Any] = [None] * max(e.index for e in self._entries)
        for e in self._entries:
            result[e.index - 1] = _field_value(model, e.field)
        return result


def _field_value(model: Any, field: str) -> Any:
    if isinstance(model, Mapping):
        return model.get(field)
    return getattr(model, field, None)


__all__ = ["ColumnEntry", "ColumnMap", "ColumnDefinition"]
