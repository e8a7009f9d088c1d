# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for statement builders and result cardinality helpers."""

from __future__ import annotations

import pytest

from pgmap import query as q
from pgmap.columns import ColumnMap
from pgmap.errors import ErrorKind, MoreThanOneError, NotFoundError
from pgmap.query import Cardinality, Query

USERS = ColumnMap([("id", "user_id"), ("name", "full_name"), ("age", "age")])


class TestQuery:
    def test_values_coerced_to_tuple(self):
        assert Query("SELECT $1", [1]).values == (1,)

    def test_default_values_empty(self):
        assert Query("SELECT 1").values == ()


class TestSelect:
    """SELECT rendering."""

    def test_without_filter(self):
        """None and empty filters both select the whole table."""
        expected = 'SELECT user_id AS "id", full_name AS "name", age AS "age" FROM users'
        assert q.select("users", USERS).sql == expected
        assert q.select("users", USERS, {}).sql == expected
        assert q.select("users", USERS).values == ()

    def test_single_field_filter(self):
        query = q.select("users", USERS, {"name": "Ann"})
        assert query.sql.endswith(" FROM users WHERE full_name = $1")
        assert query.values == ("Ann",)

    def test_multi_field_filter_uses_and(self):
        """Filter placeholders are renumbered from 1 in filter order."""
        query = q.select("users", USERS, {"age": 30, "id": 7})
        assert query.sql.endswith(" WHERE age = $1 AND user_id = $2")
        assert query.values == (30, 7)

    def test_unknown_filter_field_raises(self):
        with pytest.raises(KeyError):
            q.select("users", USERS, {"email": "x"})


class TestInsert:
    def test_insert(self):
        query = q.insert("users", USERS, {"id": 1, "name": "Ann", "age": 30})
        assert query.sql == "INSERT INTO users (user_id, full_name, age) VALUES ($1, $2, $3)"
        assert query.values == (1, "Ann", 30)

    def test_insert_returning(self):
        query = q.insert("users", USERS, {"id": 1}, returning=True)
        assert query.sql.endswith(
            ' RETURNING user_id AS "id", full_name AS "name", age AS "age"'
        )
        assert query.values == (1, None, None)


class TestUpdate:
    """UPDATE rendering with a shared values list."""

    def test_update_by_key(self):
        """Key and SET placeholders use the full map's numbering."""
        query = q.update("users", USERS, {"id": 1, "name": "a", "age": 2}, "id")
        assert query.sql == "UPDATE users SET full_name = $2, age = $3 WHERE user_id = $1"
        assert query.values == (1, "a", 2)

    def test_update_selected_fields(self):
        """Unreferenced values stay in the list, bound to nothing."""
        query = q.update("users", USERS, {"id": 1, "name": "a", "age": 2}, "id", ["age"])
        assert query.sql == "UPDATE users SET age = $3 WHERE user_id = $1"
        assert query.values == (1, "a", 2)

    def test_update_composite_key(self):
        query = q.update("users", USERS, {"id": 1, "name": "a", "age": 2}, ["id", "name"])
        assert query.sql == "UPDATE users SET age = $3 WHERE user_id = $1 AND full_name = $2"

    def test_update_returning(self):
        query = q.update("users", USERS, {"id": 1}, "id", returning=True)
        assert " WHERE user_id = $1 RETURNING " in query.sql

    def test_update_empty_set_raises(self):
        """Updating with every field as key leaves nothing to SET."""
        with pytest.raises(ValueError, match="SET clause would be empty"):
            q.update("users", USERS, {}, ["id", "name", "age"])

    def test_update_empty_update_fields_raises(self):
        with pytest.raises(ValueError, match="SET clause would be empty"):
            q.update("users", USERS, {}, "id", [])

    def test_update_without_key_raises(self):
        with pytest.raises(ValueError, match="at least one key"):
            q.update("users", USERS, {}, [])


class TestUpsert:
    def test_upsert(self):
        query = q.upsert("users", USERS, {"id": 1, "name": "a", "age": 2}, "id")
        assert query.sql == (
            "INSERT INTO users (user_id, full_name, age) VALUES ($1, $2, $3)"
            " ON CONFLICT (user_id) DO UPDATE SET full_name = $2, age = $3"
        )
        assert query.values == (1, "a", 2)

    def test_upsert_selected_fields(self):
        query = q.upsert("users", USERS, {"id": 1}, "id", ["name"])
        assert query.sql.endswith("DO UPDATE SET full_name = $2")

    def test_upsert_returning(self):
        query = q.upsert("users", USERS, {"id": 1}, "id", returning=True)
        assert query.sql.endswith('RETURNING user_id AS "id", full_name AS "name", age AS "age"')

    def test_upsert_only_key_raises(self):
        with pytest.raises(ValueError):
            q.upsert("users", USERS.pick("id"), {"id": 1}, "id")


class TestCardinality:
    """classify_rows() and the single/scalar helpers."""

    def test_classify_rows(self):
        assert q.classify_rows([]).status is Cardinality.NOT_FOUND
        assert q.classify_rows([{"a": 1}]).status is Cardinality.FOUND
        assert q.classify_rows([{"a": 1}, {"a": 2}]).status is Cardinality.MULTIPLE

    def test_row_result_accessors(self):
        result = q.classify_rows([{"a": 1}])
        assert result.found
        assert result.row == {"a": 1}
        assert q.classify_rows([{"a": 1}, {"a": 2}]).row is None

    def test_single(self):
        assert q.single([{"a": 1}]) == {"a": 1}

    def test_single_no_rows(self):
        with pytest.raises(NotFoundError) as exc_info:
            q.single([])
        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    def test_single_many_rows(self):
        with pytest.raises(MoreThanOneError, match="expected 1 result, got 2") as exc_info:
            q.single([{"a": 1}, {"a": 2}])
        assert exc_info.value.count == 2

    def test_single_or_none(self):
        assert q.single_or_none([]) is None
        assert q.single_or_none([{"a": 1}]) == {"a": 1}
        with pytest.raises(MoreThanOneError):
            q.single_or_none([{"a": 1}, {"a": 2}])

    def test_scalar_first_column(self):
        """With several columns the first in select order wins."""
        assert q.scalar([{"b": 2, "a": 1}]) == 2

    def test_scalar_no_rows(self):
        with pytest.raises(NotFoundError):
            q.scalar([])

    def test_scalar_or_none(self):
        assert q.scalar_or_none([]) is None
        assert q.scalar_or_none([{"n": 5}]) == 5
        with pytest.raises(MoreThanOneError):
            q.scalar_or_none([{"n": 1}, {"n": 2}])

    def test_first_value_empty_row(self):
        assert q.first_value({}) is None
