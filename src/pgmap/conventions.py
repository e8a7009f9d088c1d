# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Identifier case conversion and conventional column maps.

Example:
    >>> camel_to_snake("createdAt")
    'created_at'
    >>> snake_case_map(["id", "createdAt"]).column_names()
    ['id', 'created_at']
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .columns import ColumnMap

_CAMEL_BOUNDARY = re.compile(r"(?=[A-Z])")


def from_snake_case(identifier: str) -> list[str]:
    """Split ``snake_case`` into lowercase words."""
    return [word.lower() for word in identifier.split("_")]


def from_camel_case(identifier: str) -> list[str]:
    """Split ``camelCase`` into lowercase words, breaking before each capital."""
    return [word.lower() for word in _CAMEL_BOUNDARY.split(identifier) if word]


def to_snake_case(words: Iterable[str], screaming: bool = False) -> str:
    """Join words with underscores, uppercased when ``screaming``."""
    if screaming:
        words = [word.upper() for word in words]
    return "_".join(words)


def to_camel_case(words: Iterable[str], initial: bool = False) -> str:
    """Join words in camelCase (PascalCase when ``initial``)."""
    return "".join(
        word[:1].upper() + word[1:] if initial or i > 0 else word
        for i, word in enumerate(words)
    )


def camel_to_snake(identifier: str) -> str:
    return to_snake_case(from_camel_case(identifier))


def snake_case_map(fields: Iterable[str]) -> ColumnMap:
    """ColumnMap whose columns are the snake_case form of each field."""
    return ColumnMap([(field, camel_to_snake(field)) for field in fields])


__all__ = [
    "camel_to_snake",
    "from_camel_case",
    "from_snake_case",
    "snake_case_map",
    "to_camel_case",
    "to_snake_case",
]
