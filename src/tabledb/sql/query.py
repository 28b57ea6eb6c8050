# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Statement builder with fluent API.

Query builds one INSERT, UPDATE, DELETE or SELECT statement and serializes
it with to_query() into an (sql, params) pair in the dialect of the adapter
it was created by: identifier quoting and parameter placeholders come from
the adapter (`:name` for SQLite, `%(name)s` for PostgreSQL).

Usage:
    query = adapter.get_query().insert().table("users")
    query.set("name", "Ada").set("email", "ada@example.com")
    sql, params = query.to_query()

    query = adapter.get_query().select().table("users")
    query.where("email", "LIKE", "%@example.com").order_by("id").limit(10)

WHERE predicates are conjunctive (AND). Supported operators:
    =, !=, <>, <, >, <=, >=, LIKE, ILIKE, NOT LIKE, NOT ILIKE,
    IN, NOT IN, IS NULL, IS NOT NULL, BETWEEN
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .adapters.base import DbAdapter

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"
SELECT = "select"


class Query:
    """Backend-native statement builder.

    Attributes:
        kind: Statement kind (insert, update, delete, select) or None.
        table_name: Target table name.
        values: SET/VALUES column-value pairs, in call order.
        predicates: WHERE (column, op, value) triples, in call order.
    """

    OPERATORS = frozenset({
        '=', '!=', '<>', '<', '>', '<=', '>=',
        'LIKE', 'ILIKE', 'NOT LIKE', 'NOT ILIKE',
        'IN', 'NOT IN',
        'IS NULL', 'IS NOT NULL',
        'BETWEEN',
    })

    def __init__(self, adapter: DbAdapter):
        self.adapter = adapter
        self.kind: str | None = None
        self.table_name: str | None = None
        self.fields: list[str] = []
        self.values: dict[str, Any] = {}
        self.predicates: list[tuple[str, str, Any]] = []
        self._order_by: list[tuple[str, str]] = []
        self._limit: int | None = None
        self._offset: int | None = None
        self._returning: str | None = None

    # -------------------------------------------------------------------------
    # Statement kind
    # -------------------------------------------------------------------------

    def insert(self) -> Query:
        self.kind = INSERT
        return self

    def update(self) -> Query:
        self.kind = UPDATE
        return self

    def delete(self) -> Query:
        self.kind = DELETE
        return self

    def select(self, *fields: str) -> Query:
        """SELECT statement; no fields means all columns."""
        self.kind = SELECT
        self.fields = list(fields)
        return self

    # -------------------------------------------------------------------------
    # Clauses
    # -------------------------------------------------------------------------

    def table(self, name: str) -> Query:
        self.table_name = name
        return self

    def set(self, column: str, value: Any) -> Query:
        """Set a column value (INSERT values or UPDATE SET clause)."""
        self.values[column] = value
        return self

    def where(self, column: str, op: str = "=", value: Any = None) -> Query:
        """Add a predicate, AND-joined with previous ones.

        Raises:
            ValueError: If operator is not supported.
        """
        op = op.upper()
        if op not in self.OPERATORS:
            raise ValueError(f"Unsupported operator '{op}'")
        self.predicates.append((column, op, value))
        return self

    def order_by(self, column: str, direction: str = "ASC") -> Query:
        direction = direction.upper()
        if direction not in ("ASC", "DESC"):
            raise ValueError(f"Invalid sort direction '{direction}'")
        self._order_by.append((column, direction))
        return self

    def limit(self, count: int) -> Query:
        self._limit = int(count)
        return self

    def offset(self, count: int) -> Query:
        self._offset = int(count)
        return self

    def returning(self, column: str) -> Query:
        """Request the generated value of column back from an INSERT.

        Only emitted when the adapter supports RETURNING.
        """
        self._returning = column
        return self

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_query(self) -> tuple[str, dict[str, Any]]:
        """Serialize to (sql, params).

        Raises:
            ValueError: If statement kind or table is missing, or the
                statement is incomplete (INSERT/UPDATE without values).
        """
        if self.kind is None:
            raise ValueError("Query has no statement kind: call insert/update/delete/select")
        if not self.table_name:
            raise ValueError("Query has no table: call table(name)")

        params: dict[str, Any] = {}
        table = self._sql_name(self.table_name)

        if self.kind == INSERT:
            sql = self._insert_sql(table, params)
        elif self.kind == UPDATE:
            sql = self._update_sql(table, params)
        elif self.kind == DELETE:
            sql = f"DELETE FROM {table}"
        else:
            cols = ", ".join(self._sql_name(f) for f in self.fields) if self.fields else "*"
            sql = f"SELECT {cols} FROM {table}"

        if self.kind != INSERT:
            where_sql = self._where_sql(params)
            if where_sql:
                sql += f" WHERE {where_sql}"

        if self.kind == SELECT:
            if self._order_by:
                order = ", ".join(f"{self._sql_name(c)} {d}" for c, d in self._order_by)
                sql += f" ORDER BY {order}"
            if self._limit is not None:
                sql += f" LIMIT {self._limit}"
            if self._offset is not None:
                sql += f" OFFSET {self._offset}"

        return sql, params

    def __str__(self) -> str:
        return self.to_query()[0]

    def __repr__(self) -> str:
        return f"<Query {self.kind} {self.table_name!r}>"

    def _insert_sql(self, table: str, params: dict[str, Any]) -> str:
        if not self.values:
            sql = f"INSERT INTO {table} DEFAULT VALUES"
        else:
            cols = []
            placeholders = []
            for i, (col, val) in enumerate(self.values.items()):
                param_name = f"s_{i}"
                cols.append(self._sql_name(col))
                placeholders.append(self.adapter._placeholder(param_name))
                params[param_name] = val
            sql = f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join(placeholders)})"
        if self._returning and self.adapter.supports_returning:
            sql += f" RETURNING {self._sql_name(self._returning)}"
        return sql

    def _update_sql(self, table: str, params: dict[str, Any]) -> str:
        if not self.values:
            raise ValueError("UPDATE requires at least one set(column, value)")
        parts = []
        for i, (col, val) in enumerate(self.values.items()):
            param_name = f"s_{i}"
            parts.append(f"{self._sql_name(col)} = {self.adapter._placeholder(param_name)}")
            params[param_name] = val
        return f"UPDATE {table} SET {', '.join(parts)}"

    def _where_sql(self, params: dict[str, Any]) -> str:
        return " AND ".join(
            self._predicate_sql(i, column, op, value, params)
            for i, (column, op, value) in enumerate(self.predicates)
        )

    def _predicate_sql(
        self, i: int, column: str, op: str, value: Any, params: dict[str, Any]
    ) -> str:
        col = self._sql_name(column)

        if op in ('IS NULL', 'IS NOT NULL'):
            return f"{col} {op}"

        if op in ('IN', 'NOT IN'):
            if not isinstance(value, (list, tuple, set, frozenset)):
                raise ValueError(f"{op} requires a list, got {type(value).__name__}")
            if not value:
                # Empty list: IN () is always false, NOT IN () is always true
                return "1=0" if op == 'IN' else "1=1"
            placeholders = []
            for j, v in enumerate(value):
                param_name = f"w_{i}_{j}"
                placeholders.append(self.adapter._placeholder(param_name))
                params[param_name] = v
            return f"{col} {op} ({', '.join(placeholders)})"

        if op == 'BETWEEN':
            if not isinstance(value, (list, tuple)) or len(value) != 2:
                raise ValueError("BETWEEN requires a [low, high] pair")
            params[f"w_{i}_low"] = value[0]
            params[f"w_{i}_high"] = value[1]
            return (
                f"{col} BETWEEN {self.adapter._placeholder(f'w_{i}_low')} "
                f"AND {self.adapter._placeholder(f'w_{i}_high')}"
            )

        param_name = f"w_{i}"
        params[param_name] = value
        return f"{col} {op} {self.adapter._placeholder(param_name)}"

    def _sql_name(self, name: str) -> str:
        return self.adapter._sql_name(name)


__all__ = ["Query", "INSERT", "UPDATE", "DELETE", "SELECT"]
