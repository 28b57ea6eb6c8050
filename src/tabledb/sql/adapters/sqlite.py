# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQLite async adapter using aiosqlite with one autocommit connection."""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import aiosqlite

from ...errors import AdapterConnectionError
from ..schema import BASE, VIEW, Column, IndexMember, TableInfo, unique_columns
from .base import SQL_TYPES, DbAdapter, QueryResult, parse_default

if TYPE_CHECKING:
    from ...config import DatabaseConfig

logger = logging.getLogger(__name__)


def _bind(params: dict[str, Any]) -> dict[str, Any]:
    """Temporal and Decimal values are stored as ISO text."""
    bound = {}
    for key, value in params.items():
        if isinstance(value, datetime):
            value = value.isoformat(" ")
        elif isinstance(value, (date, time)):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = str(value)
        bound[key] = value
    return bound


class SqliteAdapter(DbAdapter):
    """SQLite async adapter.

    Uses :name placeholders natively. The connection runs in autocommit mode
    (isolation_level=None): every statement is its own transaction.

    Introspection:
    - status: sqlite_master (+ sqlite_sequence for the next autoinc value)
    - indexes: PRAGMA index_list / PRAGMA index_info
    - columns: PRAGMA table_info; an INTEGER PRIMARY KEY is the rowid
      alias and therefore the auto-increment column.
    """

    name = "sqlite"
    types = SQL_TYPES
    strict_columns = True
    placeholder = ":name"

    @classmethod
    async def connect(cls, config: DatabaseConfig) -> SqliteAdapter:
        """Open the database file (or :memory:)."""
        path = config.database or ":memory:"
        try:
            conn = await aiosqlite.connect(path, isolation_level=None)
        except sqlite3.Error as e:
            raise AdapterConnectionError(str(e)) from e
        logger.info("Connected to SQLite database %s", path)
        return cls(config, conn)

    async def close(self) -> None:
        """Close connection."""
        await self.connection.close()

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _run_fetch(self, sql: str, params: dict[str, Any], kind: str | None) -> QueryResult:
        async with self.connection.execute(sql, _bind(params)) as cursor:
            rows = await cursor.fetchall()
            cols = [c[0] for c in cursor.description] if cursor.description else []
            return QueryResult(
                rows=[dict(zip(cols, row, strict=True)) for row in rows],
                insert_id=cursor.lastrowid if kind == "insert" else None,
                affected_rows=cursor.rowcount,
            )

    async def _run_write(self, sql: str, params: dict[str, Any], kind: str | None) -> QueryResult:
        async with self.connection.execute(sql, _bind(params)) as cursor:
            return QueryResult(
                insert_id=cursor.lastrowid if kind == "insert" else None,
                affected_rows=cursor.rowcount,
            )

    async def _fetch_all(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        return (await self._run_fetch(sql, params or {}, "select")).rows

    # -------------------------------------------------------------------------
    # Schema introspection
    # -------------------------------------------------------------------------

    async def _fetch_info(self, name: str) -> TableInfo:
        rows = await self._fetch_all(
            "SELECT name, type FROM sqlite_master "
            "WHERE type IN ('table', 'view') AND name = :name",
            {"name": name},
        )
        if not rows:
            raise ValueError(f"Table '{name}' does not exist")
        row = rows[0]

        autoinc_start = None
        has_sequence = await self._fetch_all(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'sqlite_sequence'"
        )
        if has_sequence:
            seq = await self._fetch_all(
                "SELECT seq FROM sqlite_sequence WHERE name = :name", {"name": name}
            )
            if seq:
                autoinc_start = seq[0]["seq"] + 1

        return TableInfo(
            name=row["name"],
            engine="sqlite",
            kind=VIEW if row["type"] == "view" else BASE,
            length=None,
            autoinc_start=autoinc_start,
            collation="BINARY",
            description="",
        )

    async def _fetch_indexes(self, name: str) -> list[IndexMember]:
        members: list[IndexMember] = []
        for index in await self._fetch_all(f"PRAGMA index_list({self._sql_name(name)})"):
            index_name = index["name"]
            for part in await self._fetch_all(f"PRAGMA index_info({self._sql_name(index_name)})"):
                if part["name"] is None:
                    continue  # expression index
                members.append(
                    IndexMember(
                        index=index_name,
                        column=part["name"],
                        seq=part["seqno"] + 1,
                        unique=bool(index["unique"]),
                        primary=index["origin"] == "pk",
                    )
                )
        return members

    async def _fetch_columns(
        self, name: str, indexes: dict[str, list[IndexMember]]
    ) -> dict[str, Column]:
        rows = await self._fetch_all(f"PRAGMA table_info({self._sql_name(name)})")
        single_pk = sum(1 for r in rows if r["pk"]) == 1
        uniques = unique_columns(indexes)

        result: dict[str, Column] = {}
        for r in rows:
            raw_type = r["type"] or ""
            result[r["name"]] = Column(
                name=r["name"],
                type=self.get_type(raw_type),
                unique=bool(r["pk"]) or r["name"] in uniques,
                autoinc=bool(r["pk"]) and single_pk and raw_type.upper() == "INTEGER",
                default=parse_default(r["dflt_value"]),
                raw_type=raw_type,
                nullable=not r["notnull"],
            )
        return result


__all__ = ["SqliteAdapter"]
