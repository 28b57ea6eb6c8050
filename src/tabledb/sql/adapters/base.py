# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Base adapter class for async database backends with schema introspection."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..query import Query
from ..schema import IndexMember, Schema, TableInfo, group_indexes

if TYPE_CHECKING:
    from ...config import DatabaseConfig
    from ..schema import Column

logger = logging.getLogger(__name__)

# Raw statements starting with these keywords return rows
_FETCH_KINDS = frozenset({"select", "with", "pragma", "show", "explain", "values"})

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")
_EXPRESSION_DEFAULTS = frozenset({"CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME"})


def parse_default(literal: str | None) -> Any:
    """Convert a column default as reported by the backend into a Python value.

    "'abc'" → "abc", "0" → 0, "1.5" → 1.5, TRUE → True, NULL → None.
    Expression defaults (CURRENT_TIMESTAMP, now(), "(...)") are computed by
    the backend and map to None.
    """
    if literal is None:
        return None
    text = literal.strip()
    upper = text.upper()
    if not text or upper == "NULL" or upper in _EXPRESSION_DEFAULTS:
        return None
    if upper in ("TRUE", "FALSE"):
        return upper == "TRUE"
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1].replace(text[0] * 2, text[0])
    if "(" in text:
        return None
    if _INT_RE.match(text):
        return int(text)
    if _FLOAT_RE.match(text):
        return float(text)
    return text


@dataclass
class QueryResult:
    """Primary result set of one executed statement.

    SELECT statements fill rows; write statements report insert_id (INSERT
    only) and affected_rows. Iterating, indexing and len() apply to rows.
    """

    rows: list[dict[str, Any]] = field(default_factory=list)
    insert_id: Any = None
    affected_rows: int = 0

    def __iter__(self):
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def __getitem__(self, index: int) -> dict[str, Any]:
        return self.rows[index]


class DbAdapter(ABC):
    """Abstract base class for connection-bound async database adapters.

    An adapter owns exactly one backend connection. Instances are created by
    connect() and cached per logical name by AdapterRegistry; use
    AdapterRegistry.get_instance() rather than calling connect() directly.

    Provides a unified interface with:
    - Connection management (connect, close)
    - Statement execution (execute)
    - Schema introspection (get_schema, get_type)
    - Query builder factory (get_query)

    Subclasses implement connect(), close(), the statement runners and the
    three introspection fetchers, and set the class attributes below.

    Attributes:
        name: Adapter kind, the `type` value of DatabaseConfig.
        types: Raw backend type (lower-case, no length suffix) → normalized type.
        strict_columns: INSERT/UPDATE only set columns whose value is present,
            keyed by physical column name. When False every column is set,
            keyed by its mapped field name.
        default_port: Port used when DatabaseConfig.port is None.
        placeholder: Parameter placeholder template (`name` is replaced).
        supports_returning: Backend reports generated keys via RETURNING.
    """

    name: str = ""
    types: dict[str, str] = {}
    strict_columns: bool = False
    default_port: int | None = None
    placeholder: str = ":name"
    supports_returning: bool = False

    def __init__(self, config: DatabaseConfig, connection: Any):
        self.config = config
        self.connection = connection

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    @classmethod
    @abstractmethod
    async def connect(cls, config: DatabaseConfig) -> DbAdapter:
        """Open a backend connection and wrap it in a new adapter.

        Raises:
            AdapterConnectionError: If the connection cannot be established.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the backend connection."""
        ...

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def get_query(self) -> Query:
        """Return a new statement builder bound to this adapter's dialect."""
        return Query(self)

    async def execute(self, query: Query | str, params: dict[str, Any] | None = None) -> QueryResult:
        """Serialize and run a statement, return its primary result set.

        Args:
            query: Query builder, or raw SQL (then params are bound).
            params: Parameters for raw SQL; ignored for Query objects.
        """
        if isinstance(query, Query):
            sql, params = query.to_query()
            kind = query.kind
        else:
            sql = query
            kind = sql.lstrip().split(None, 1)[0].lower() if sql.strip() else ""
        logger.debug("%s: %s %r", self.name, sql, params)
        if kind in _FETCH_KINDS or (kind == "insert" and " RETURNING " in sql.upper()):
            return await self._run_fetch(sql, params or {}, kind)
        return await self._run_write(sql, params or {}, kind)

    @abstractmethod
    async def _run_fetch(self, sql: str, params: dict[str, Any], kind: str | None) -> QueryResult:
        """Run a row-returning statement."""
        ...

    @abstractmethod
    async def _run_write(self, sql: str, params: dict[str, Any], kind: str | None) -> QueryResult:
        """Run a statement that returns no rows."""
        ...

    # -------------------------------------------------------------------------
    # Schema introspection
    # -------------------------------------------------------------------------

    async def get_schema(self, name: str) -> Schema:
        """Introspect table name: status, then indexes, then columns.

        Raises:
            ValueError: If the table does not exist.
        """
        info = await self._fetch_info(name)
        indexes = group_indexes(await self._fetch_indexes(name))
        columns = await self._fetch_columns(name, indexes)
        return Schema(info=info, indexes=indexes, columns=columns)

    @abstractmethod
    async def _fetch_info(self, name: str) -> TableInfo:
        """Fetch table status."""
        ...

    @abstractmethod
    async def _fetch_indexes(self, name: str) -> list[IndexMember]:
        """Fetch every index member of the table."""
        ...

    @abstractmethod
    async def _fetch_columns(
        self, name: str, indexes: dict[str, list[IndexMember]]
    ) -> dict[str, Column]:
        """Fetch column descriptors keyed by column name."""
        ...

    def get_type(self, raw_type: str | None) -> str | None:
        """Normalize a backend type name, None if unknown.

        "VARCHAR(255)" → "string", "int(11) unsigned" → "int".
        """
        if not raw_type:
            return None
        type_ = raw_type.lower()
        if "(" in type_:
            type_ = type_.split("(", 1)[0]
        type_ = type_.strip()
        if type_ in self.types:
            return self.types[type_]
        # "int unsigned", "integer primary"
        return self.types.get(type_.split(" ", 1)[0])

    # -------------------------------------------------------------------------
    # SQL Helpers
    # -------------------------------------------------------------------------

    def _sql_name(self, name: str) -> str:
        """Return quoted SQL identifier for column/table name."""
        return '"' + name.replace('"', '""') + '"'

    def _placeholder(self, name: str) -> str:
        """Return placeholder for named parameter."""
        return self.placeholder.replace("name", name)


SQL_TYPES: dict[str, str] = {
    "int": "int",
    "integer": "int",
    "bigint": "int",
    "smallint": "int",
    "tinyint": "int",
    "mediumint": "int",
    "serial": "int",
    "bigserial": "int",
    "varchar": "string",
    "char": "string",
    "text": "string",
    "character varying": "string",
    "character": "string",
    "string": "string",
    "clob": "string",
    "datetime": "time",
    "timestamp": "time",
    "timestamp without time zone": "time",
    "timestamp with time zone": "time",
    "time": "timeofday",
    "date": "date",
    "real": "float",
    "float": "float",
    "double": "float",
    "double precision": "float",
    "numeric": "float",
    "decimal": "float",
    "boolean": "bool",
    "bool": "bool",
}
"""Type table shared by the relational-SQL adapters."""


__all__ = ["DbAdapter", "QueryResult", "SQL_TYPES", "parse_default"]
