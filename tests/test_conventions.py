# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for identifier case conversion."""

from __future__ import annotations

from pgmap.conventions import (
    camel_to_snake,
    from_camel_case,
    from_snake_case,
    snake_case_map,
    to_camel_case,
    to_snake_case,
)


class TestSplitting:
    def test_from_snake_case(self):
        assert from_snake_case("created_at") == ["created", "at"]
        assert from_snake_case("USER_ID") == ["user", "id"]

    def test_from_camel_case(self):
        assert from_camel_case("createdAt") == ["created", "at"]
        assert from_camel_case("CreatedAt") == ["created", "at"]
        assert from_camel_case("id") == ["id"]


class TestJoining:
    def test_to_snake_case(self):
        assert to_snake_case(["created", "at"]) == "created_at"
        assert to_snake_case(["created", "at"], screaming=True) == "CREATED_AT"

    def test_to_camel_case(self):
        assert to_camel_case(["created", "at"]) == "createdAt"
        assert to_camel_case(["created", "at"], initial=True) == "CreatedAt"

    def test_camel_to_snake(self):
        assert camel_to_snake("userAccountId") == "user_account_id"


class TestSnakeCaseMap:
    def test_columns_are_snake_case(self):
        cmap = snake_case_map(["id", "createdAt"])
        assert cmap.fields() == ["id", "createdAt"]
        assert cmap.column_names() == ["id", "created_at"]
        assert cmap.placeholders() == "$1, $2"
