# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Schema records returned by adapter introspection.

Records are frozen: a Schema is a snapshot of the table at the time
DbAdapter.get_schema() ran. Call get_schema() again to refresh.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

BASE = "BASE"
VIEW = "VIEW"


@dataclass(frozen=True)
class Column:
    """Column descriptor.

    Attributes:
        name: Physical column name.
        type: Normalized type ("int", "string", "time", ...), None if unknown.
        unique: Column belongs to a primary or single-column unique key.
        autoinc: Backend generates the value (auto-increment / serial).
        default: Default value, already converted from its SQL literal.
        raw_type: Backend type as reported, e.g. "VARCHAR(255)".
        nullable: Column accepts NULL.
    """

    name: str
    type: str | None
    unique: bool = False
    autoinc: bool = False
    default: Any = None
    raw_type: str = ""
    nullable: bool = True


@dataclass(frozen=True)
class TableInfo:
    """Table status: name, storage engine, kind (BASE or VIEW) and metadata."""

    name: str
    engine: str | None = None
    kind: str = BASE
    length: int | None = None
    autoinc_start: int | None = None
    collation: str | None = None
    description: str = ""


@dataclass(frozen=True)
class IndexMember:
    """One column of an index, at 1-based position seq."""

    index: str
    column: str
    seq: int
    unique: bool = False
    primary: bool = False


@dataclass(frozen=True)
class Schema:
    """Full table schema: info, indexes (name → ordered members), columns."""

    info: TableInfo
    indexes: dict[str, list[IndexMember]] = field(default_factory=dict)
    columns: dict[str, Column] = field(default_factory=dict)


def group_indexes(members: list[IndexMember]) -> dict[str, list[IndexMember]]:
    """Group index members by index name, each group ordered by seq."""
    result: dict[str, list[IndexMember]] = {}
    for member in members:
        result.setdefault(member.index, []).append(member)
    for group in result.values():
        group.sort(key=lambda m: m.seq)
    return result


def unique_columns(indexes: dict[str, list[IndexMember]]) -> set[str]:
    """Columns that are unique on their own: sole member of a unique index."""
    return {
        group[0].column
        for group in indexes.values()
        if len(group) == 1 and (group[0].unique or group[0].primary)
    }


__all__ = [
    "BASE",
    "VIEW",
    "Column",
    "TableInfo",
    "IndexMember",
    "Schema",
    "group_indexes",
    "unique_columns",
]
