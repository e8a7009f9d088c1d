# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for ColumnMap: declaration, sub-maps, renderers and value projection."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from pgmap.columns import ColumnEntry, ColumnMap

USERS = ColumnMap([("id", "user_id"), ("name", "full_name"), ("age", "age")])


@dataclass
class User:
    id: int
    name: str
    age: int | None = None


class TestDeclaration:
    """Building a map from definitions."""

    def test_indices_follow_definition_order(self):
        """Fresh maps number placeholders 1..n."""
        assert USERS.indices() == {"id": 1, "name": 2, "age": 3}
        assert USERS.fields() == ["id", "name", "age"]
        assert USERS.column_names() == ["user_id", "full_name", "age"]

    def test_mapping_definition(self):
        """A dict keeps insertion order."""
        cmap = ColumnMap({"id": "id", "createdAt": "created_at"})
        assert cmap.entries == (
            ColumnEntry("id", "id", 1),
            ColumnEntry("createdAt", "created_at", 2),
        )

    def test_explicit_indices(self):
        """Explicit indices are kept as given."""
        cmap = ColumnMap([("a", "a"), ("b", "b")], {"a": 3, "b": 1})
        assert cmap.placeholders() == "$3, $1"

    def test_duplicate_field_rejected(self):
        with pytest.raises(ValueError, match="Duplicate field"):
            ColumnMap([("id", "a"), ("id", "b")])

    def test_duplicate_index_rejected(self):
        with pytest.raises(ValueError, match="Duplicate placeholder index"):
            ColumnMap([("a", "a"), ("b", "b")], {"a": 1, "b": 1})

    def test_missing_index_rejected(self):
        with pytest.raises(ValueError, match="No placeholder index"):
            ColumnMap([("a", "a"), ("b", "b")], {"a": 1})

    def test_non_positive_index_rejected(self):
        with pytest.raises(ValueError, match="must be positive"):
            ColumnMap([("a", "a")], {"a": 0})

    def test_empty_map(self):
        """An empty map renders empty strings and no values."""
        cmap = ColumnMap([])
        assert len(cmap) == 0
        assert cmap.columns() == ""
        assert cmap.values({}) == []

    def test_equality_and_hash(self):
        """Maps with the same entries are equal and hash alike."""
        other = ColumnMap({"id": "user_id", "name": "full_name", "age": "age"})
        assert other == USERS
        assert hash(other) == hash(USERS)
        assert USERS.pick("id") != USERS

    def test_contains_and_reverse_lookup(self):
        assert "name" in USERS
        assert "email" not in USERS
        assert USERS.column_to_field("full_name") == "name"
        assert USERS.column_to_field("missing") is None


class TestSubMaps:
    """pick(), omit() and with_table_name()."""

    def test_pick_renumbers_in_given_order(self):
        """Standalone sub-maps are numbered 1..k in the order requested."""
        sub = USERS.pick("age", "id")
        assert sub.fields() == ["age", "id"]
        assert sub.assignments() == "age = $1, user_id = $2"

    def test_pick_preserve_indices(self):
        """Preserved sub-maps keep the parent's placeholder numbers."""
        sub = USERS.pick("name", preserve_indices=True)
        assert sub.assignments() == "full_name = $2"

    def test_pick_unknown_field_raises(self):
        with pytest.raises(KeyError, match="email"):
            USERS.pick("id", "email")

    def test_pick_repeated_field_once(self):
        assert USERS.pick("id", "id").fields() == ["id"]

    def test_omit_keeps_map_order(self):
        sub = USERS.omit("name", preserve_indices=True)
        assert sub.fields() == ["id", "age"]
        assert sub.placeholders() == "$1, $3"

    def test_omit_renumbers(self):
        assert USERS.omit("id").placeholders() == "$1, $2"

    def test_omit_unknown_field_raises(self):
        with pytest.raises(KeyError):
            USERS.omit("email")

    def test_with_table_name(self):
        """Columns are qualified, indices unchanged."""
        qualified = USERS.pick("name", preserve_indices=True).with_table_name("u")
        assert qualified.assignments() == "u.full_name = $2"

    def test_parent_unchanged(self):
        """Deriving never mutates the parent map."""
        USERS.pick("name")
        USERS.omit("id")
        assert USERS.indices() == {"id": 1, "name": 2, "age": 3}


class TestRenderers:
    """SQL fragments."""

    def test_columns(self):
        assert USERS.columns() == "user_id, full_name, age"

    def test_aliased_columns(self):
        """Result rows are decoded by aliasing each column to its field."""
        assert USERS.pick("id", "name").aliased_columns() == (
            'user_id AS "id", full_name AS "name"'
        )

    def test_assignments(self):
        assert USERS.assignments() == "user_id = $1, full_name = $2, age = $3"

    def test_conditions_use_and(self):
        assert USERS.pick("id", "name").conditions() == "user_id = $1 AND full_name = $2"

    def test_placeholders(self):
        assert USERS.placeholders() == "$1, $2, $3"


class TestValues:
    """Projection of models into placeholder-aligned value lists."""

    def test_values_from_mapping(self):
        assert USERS.values({"id": 7, "name": "Ann", "age": 30}) == [7, "Ann", 30]

    def test_missing_fields_are_none(self):
        assert USERS.values({"id": 7}) == [7, None, None]

    def test_values_from_object(self):
        assert USERS.values(User(id=1, name="Bob")) == [1, "Bob", None]

    def test_preserved_sub_map_fills_gaps(self):
        """values[i - 1] binds $i, so index gaps are None."""
        sub = USERS.pick("age", preserve_indices=True)
        assert sub.values({"id": 1, "name": "x", "age": 5}) == [None, None, 5]

    def test_extra_fields_ignored(self):
        assert USERS.pick("id").values({"id": 1, "other": 2}) == [1]


class TestSubMapLaws:
    """Properties holding for any map."""

    @pytest.mark.parametrize("fields", [("id",), ("age", "name"), ("name", "id", "age")])
    def test_pick_keeps_field_order(self, fields):
        assert USERS.pick(*fields).fields() == list(fields)

    @pytest.mark.parametrize("keys", [("id",), ("name", "age"), ()])
    def test_omit_equals_pick_of_complement(self, keys):
        complement = [f for f in USERS.fields() if f not in keys]
        assert USERS.omit(*keys) == USERS.pick(*complement)
        assert USERS.omit(*keys, preserve_indices=True) == USERS.pick(
            *complement, preserve_indices=True
        )

    def test_renumbered_indices_are_contiguous(self):
        assert sorted(USERS.pick("age", "id").indices().values()) == [1, 2]

    def test_values_align_with_placeholders(self):
        """Each $i in placeholders() finds its value at values[i - 1]."""
        model = {"id": 1, "name": "Ann", "age": 30}
        for sub in (USERS, USERS.pick("age", "id"), USERS.pick("age", "name", preserve_indices=True)):
            values = sub.values(model)
            for entry in sub:
                assert values[entry.index - 1] == model[entry.field]
