# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Async SQL layer: adapters, schema introspection and statement builder.

Components:
    DbAdapter: Abstract base for SQLite/PostgreSQL adapters.
    AdapterRegistry: Connected adapters keyed by logical name.
    Query: Fluent INSERT/UPDATE/DELETE/SELECT builder.
    Column, TableInfo, IndexMember, Schema: Introspection records.

Example:
    registry = AdapterRegistry()
    adapter = await registry.get_instance("default", DatabaseConfig())
    await adapter.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")

    schema = await adapter.get_schema("users")
    schema.columns["id"].autoinc      # True

    query = adapter.get_query().insert().table("users").set("name", "Ada")
    result = await adapter.execute(query)
    result.insert_id                  # 1
"""

from .adapters import ADAPTERS, AdapterRegistry, DbAdapter, QueryResult, get_adapter_class
from .query import Query
from .schema import Column, IndexMember, Schema, TableInfo

__all__ = [
    "ADAPTERS",
    "AdapterRegistry",
    "DbAdapter",
    "QueryResult",
    "get_adapter_class",
    "Query",
    "Column",
    "IndexMember",
    "Schema",
    "TableInfo",
]
