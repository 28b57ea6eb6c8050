# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""PostgreSQL async adapter using psycopg3 with one autocommit connection.

Generated keys are read back with INSERT ... RETURNING, so the identity
column value is reported as QueryResult.insert_id like SQLite's lastrowid.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from ...errors import AdapterConnectionError
from ..schema import BASE, VIEW, Column, IndexMember, TableInfo, unique_columns
from .base import SQL_TYPES, DbAdapter, QueryResult, parse_default

if TYPE_CHECKING:
    from ...config import DatabaseConfig

logger = logging.getLogger(__name__)

# 'abc'::character varying → 'abc'
_CAST_RE = re.compile(r"::[\w\s\"\[\]]+$")

_INFO_SQL = """
SELECT t.table_name AS name,
       t.table_type AS table_type,
       obj_description(c.oid, 'pg_class') AS description,
       pg_total_relation_size(c.oid) AS length,
       d.datcollate AS collation
FROM information_schema.tables t
JOIN pg_namespace n ON n.nspname = t.table_schema
JOIN pg_class c ON c.relname = t.table_name AND c.relnamespace = n.oid
JOIN pg_database d ON d.datname = current_database()
WHERE t.table_schema = current_schema() AND t.table_name = %(name)s
"""

_SEQUENCE_SQL = """
SELECT COALESCE(s.last_value + s.increment_by, s.start_value) AS next_value
FROM information_schema.columns col
JOIN pg_sequences s
  ON pg_get_serial_sequence(quote_ident(col.table_schema) || '.' || quote_ident(col.table_name),
                            col.column_name)
     = quote_ident(s.schemaname) || '.' || quote_ident(s.sequencename)
WHERE col.table_schema = current_schema() AND col.table_name = %(name)s
LIMIT 1
"""

_INDEXES_SQL = """
SELECT i.relname AS index_name,
       a.attname AS column_name,
       k.ord AS seq,
       ix.indisunique AS is_unique,
       ix.indisprimary AS is_primary
FROM pg_index ix
JOIN pg_class t ON t.oid = ix.indrelid
JOIN pg_namespace n ON n.oid = t.relnamespace
JOIN pg_class i ON i.oid = ix.indexrelid
CROSS JOIN LATERAL unnest(ix.indkey::int2[]) WITH ORDINALITY AS k(attnum, ord)
JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
WHERE n.nspname = current_schema() AND t.relname = %(name)s
ORDER BY i.relname, k.ord
"""

_COLUMNS_SQL = """
SELECT column_name, data_type, character_maximum_length,
       column_default, is_nullable, is_identity
FROM information_schema.columns
WHERE table_schema = current_schema() AND table_name = %(name)s
ORDER BY ordinal_position
"""


class PostgresAdapter(DbAdapter):
    """PostgreSQL async adapter.

    Uses %(name)s placeholders. The connection runs in autocommit mode.

    Introspection:
    - status: information_schema.tables + pg_class (+ pg_sequences)
    - indexes: pg_index members in key order
    - columns: information_schema.columns; serial (nextval default) and
      identity columns are auto-increment.
    """

    name = "postgresql"
    types = SQL_TYPES
    strict_columns = True
    default_port = 5432
    placeholder = "%(name)s"
    supports_returning = True
    connect_timeout: int = 10

    @classmethod
    async def connect(cls, config: DatabaseConfig) -> PostgresAdapter:
        """Open a psycopg AsyncConnection from the config."""
        try:
            import psycopg
        except ImportError as e:
            raise ImportError(
                "PostgreSQL support requires psycopg. "
                "Install with: pip install tabledb[postgresql]"
            ) from e

        try:
            conn = await psycopg.AsyncConnection.connect(
                host=config.host,
                port=config.port or cls.default_port,
                user=config.user,
                password=config.password,
                dbname=config.database,
                autocommit=True,
                connect_timeout=cls.connect_timeout,
            )
        except (psycopg.Error, OSError) as e:
            raise AdapterConnectionError(str(e)) from e
        logger.info("Connected to PostgreSQL %s@%s/%s", config.user, config.host, config.database)
        return cls(config, conn)

    async def close(self) -> None:
        """Close connection."""
        await self.connection.close()

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _run_fetch(self, sql: str, params: dict[str, Any], kind: str | None) -> QueryResult:
        from psycopg.rows import dict_row

        async with self.connection.cursor(row_factory=dict_row) as cur:
            await cur.execute(sql, params or None)
            rows = await cur.fetchall()
            if kind == "insert":
                insert_id = next(iter(rows[0].values())) if rows else None
                return QueryResult(insert_id=insert_id, affected_rows=cur.rowcount)
            return QueryResult(rows=list(rows), affected_rows=cur.rowcount)

    async def _run_write(self, sql: str, params: dict[str, Any], kind: str | None) -> QueryResult:
        async with self.connection.cursor() as cur:
            await cur.execute(sql, params or None)
            return QueryResult(affected_rows=cur.rowcount)

    async def _fetch_all(self, sql: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        return (await self._run_fetch(sql, params, "select")).rows

    # -------------------------------------------------------------------------
    # Schema introspection
    # -------------------------------------------------------------------------

    async def _fetch_info(self, name: str) -> TableInfo:
        rows = await self._fetch_all(_INFO_SQL, {"name": name})
        if not rows:
            raise ValueError(f"Table '{name}' does not exist")
        row = rows[0]
        sequence = await self._fetch_all(_SEQUENCE_SQL, {"name": name})

        return TableInfo(
            name=row["name"],
            engine="postgresql",
            kind=VIEW if row["table_type"] == "VIEW" else BASE,
            length=row["length"],
            autoinc_start=sequence[0]["next_value"] if sequence else None,
            collation=row["collation"],
            description=row["description"] or "",
        )

    async def _fetch_indexes(self, name: str) -> list[IndexMember]:
        return [
            IndexMember(
                index=r["index_name"],
                column=r["column_name"],
                seq=r["seq"],
                unique=r["is_unique"],
                primary=r["is_primary"],
            )
            for r in await self._fetch_all(_INDEXES_SQL, {"name": name})
        ]

    async def _fetch_columns(
        self, name: str, indexes: dict[str, list[IndexMember]]
    ) -> dict[str, Column]:
        primary = {m.column for group in indexes.values() for m in group if m.primary}
        uniques = unique_columns(indexes)

        result: dict[str, Column] = {}
        for r in await self._fetch_all(_COLUMNS_SQL, {"name": name}):
            default_sql = r["column_default"]
            raw_type = r["data_type"]
            if r["character_maximum_length"]:
                raw_type = f"{raw_type}({r['character_maximum_length']})"
            result[r["column_name"]] = Column(
                name=r["column_name"],
                type=self.get_type(raw_type),
                unique=r["column_name"] in primary or r["column_name"] in uniques,
                autoinc=r["is_identity"] == "YES"
                or (default_sql or "").startswith("nextval("),
                default=parse_default(_CAST_RE.sub("", default_sql)) if default_sql else None,
                raw_type=raw_type,
                nullable=r["is_nullable"] == "YES",
            )
        return result


__all__ = ["PostgresAdapter"]
