# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Table: CRUD over one backend table with before/after hooks.

A Table is a singleton Service per identifier. initialize() resolves the
database, the table name and the identity column; every operation then runs

    before.<op> hooks → build + execute statement → after.<op> hooks

with a shared OperationContext.

Column naming:
    Rows and hooks see external field names. column_map maps external →
    physical names; map_columns() applies it in either direction and never
    adds or drops keys. When the map has no "id" entry and the table has an
    identity column, "id" is mapped to it.

Table name:
    db_config.prefix + (config "name" | component config "name" |
    "<component>_<pluralize(identifier name)>")

Example:
    users = await services.get_service("com:app.database.table.user")
    # table "app_users"
    row = await users.get_row()
    row.set_data({"name": "Ada", "email": "ada@example.com"})
    await row.save()              # INSERT, row["id"] = new id
    everyone = await users.select()
    first = await users.select(
        (await users.get_query()).select().table(users.get_name()).where("id", "=", 1),
        SelectMode.ROW,
    )
"""

from __future__ import annotations

import logging
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any

from .chain import CommandChain, OperationContext
from .filters import FilterRegistry, filters
from .inflector import pluralize
from .service import Service

if TYPE_CHECKING:
    from .config import DatabaseConfig
    from .row import Row
    from .rowset import Rowset
    from .service import Identifier, ServiceManager
    from .sql.adapters import DbAdapter
    from .sql.query import Query
    from .sql.schema import Column, Schema

logger = logging.getLogger(__name__)

_UNSET = object()


class TableState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class SelectMode(IntEnum):
    """Result shape of Table.select()."""

    ROW = 1
    ROWSET = 2


class Table(Service):
    """Generic table bound to one logical database.

    Config keys (each falls back to the component config "<type>.<name>"):
        db: Logical database name (default "default").
        name: Table name without prefix.
        identity_column: Physical identity column (else derived from schema).
        column_map: External → physical column names.
        behaviors: Behavior instances or classes for the command chain.

    Attributes:
        name: Physical table name, fixed at initialization.
        db: Logical database name.
        db_config: DatabaseConfig of db.
        adapter_kind: Adapter type of db_config.
        state: TableState.
    """

    singleton = True
    type_filters: FilterRegistry = filters

    def __init__(self, identifier: Identifier, services: ServiceManager):
        super().__init__(identifier, services)
        self.name = ""
        self.db = "default"
        self.db_config: DatabaseConfig | None = None
        self.adapter_kind = ""
        self.state = TableState.UNINITIALIZED
        self._identity_column: Any = _UNSET
        self._column_map: dict[str, str] = {}
        self._chain = CommandChain()

    async def initialize(self, config: dict[str, Any] | None = None) -> Table:
        """Resolve database, name, schema and identity column.

        Raises:
            ValueError: If the database is not configured or the table does
                not exist.
        """
        config = dict(config or {})
        self.state = TableState.INITIALIZING
        extra = self.get_component_config(f"{self.identifier.type}.{self.identifier.name}")

        self.db = config.get("db") or extra.get("db") or "default"
        self.db_config = self.get_database_config(self.db)
        self.adapter_kind = self.db_config.type

        config["behaviors"] = config.get("behaviors") or extra.get("behaviors") or ()
        if config.get("identity_column"):
            self._identity_column = config["identity_column"]
        self._column_map = dict(config.get("column_map") or extra.get("column_map") or {})

        await super().initialize(config)
        self._chain = CommandChain(config["behaviors"])

        self.name = self.db_config.prefix + (
            config.get("name")
            or extra.get("name")
            or f"{self.identifier.component}_{pluralize(self.identifier.name)}"
        )

        await self.get_schema()
        identity = await self.get_identity_column()
        if "id" not in self._column_map and identity:
            self._column_map["id"] = identity

        self.state = TableState.READY
        logger.debug("Table %s ready (db=%s, identity=%s)", self.name, self.db, identity)
        return self

    def get_name(self) -> str:
        return self.name

    # -------------------------------------------------------------------------
    # Collaborators
    # -------------------------------------------------------------------------

    async def get_adapter(self) -> DbAdapter:
        """Connected adapter of this table's database (connects on first use)."""
        return await self.services.adapters.get_instance(self.db, self.db_config)

    def is_connected(self) -> bool:
        return self.services.adapters.lookup(self.db) is not None

    async def get_query(self) -> Query:
        return (await self.get_adapter()).get_query()

    def get_command_chain(self) -> CommandChain:
        return self._chain

    async def get_row(self) -> Row:
        """New Row bound to this table, initialized with column defaults."""
        identifier = self.identifier.clone().set_path(["database", "row"])
        return await self.get_service(identifier, {"table": self})

    async def get_rowset(self) -> Rowset:
        identifier = self.identifier.clone().set_path(["database", "rowset"])
        return await self.get_service(identifier, {"table": self})

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    async def get_schema(self) -> Schema:
        adapter = await self.get_adapter()
        return await adapter.get_schema(self.get_name())

    async def get_columns(self) -> dict[str, Column]:
        """Column descriptors keyed by external field name (re-fetched each call)."""
        schema = await self.get_schema()
        return self.map_columns(schema.columns, reverse=True)

    async def get_unique_columns(self) -> dict[str, Column]:
        return {field: c for field, c in (await self.get_columns()).items() if c.unique}

    async def get_identity_column(self) -> str | None:
        """Physical name of the auto-increment unique column, None if none.

        Computed at most once per instance.
        """
        if self._identity_column is _UNSET:
            identity = None
            for column in (await self.get_unique_columns()).values():
                if column.autoinc:
                    identity = column.name
                    break
            self._identity_column = identity
        return self._identity_column

    def map_columns(self, obj: dict[str, Any], reverse: bool = False) -> dict[str, Any]:
        """Rename keys external → physical (or physical → external if reverse).

        Keys not in the map pass through. Returns a new dict.
        """
        if reverse:
            mapping = {physical: external for external, physical in self._column_map.items()}
        else:
            mapping = self._column_map
        return {mapping.get(key, key): value for key, value in obj.items()}

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def select(
        self, query: Query | str | None = None, mode: SelectMode | int = SelectMode.ROWSET
    ) -> Row | Rowset:
        """Run a SELECT and wrap the result.

        Args:
            query: Statement to execute. None selects every row of the table.
            mode: SelectMode.ROW (first row as Row) or SelectMode.ROWSET.

        Returns:
            Row (a new default Row when nothing matched) or Rowset, with
            external field names.

        Raises:
            ValueError: If mode is not a SelectMode value.
        """
        mode = SelectMode(mode)
        if query is None:
            query = (await self.get_query()).select().table(self.get_name())

        context = OperationContext(data=None, table=self.get_name(), query=query)
        chain = self.get_command_chain()
        await chain.run("before.select", context)

        adapter = await self.get_adapter()
        result = await adapter.execute(context.query)
        context.result = result

        if mode is SelectMode.ROW:
            context.data = self.map_columns(result.rows[0], reverse=True) if result.rows else None
        else:
            context.data = [self.map_columns(r, reverse=True) for r in result.rows]

        await chain.run("after.select", context)

        if mode is SelectMode.ROW:
            row = await self.get_row()
            if context.data is not None:
                row.set_data(context.data)
                row.is_new = False
            return row

        rowset = await self.get_rowset()
        await rowset.set_data(context.data)
        for row in rowset:
            row.is_new = False
        return rowset

    async def insert(self, row: Row) -> OperationContext:
        """INSERT row; the generated key is stored as row["id"].

        row.is_new is left unchanged (Row.save() toggles it).
        """
        context = OperationContext(data=row, table=self.get_name())
        chain = self.get_command_chain()
        await chain.run("before.insert", context)

        columns = await self.get_columns()
        adapter = await self.get_adapter()
        data = context.data.data
        self._sanitize(columns, data)

        query = adapter.get_query().insert().table(context.table)
        self._set_values(query, adapter, columns, data)
        identity = await self.get_identity_column()
        if identity and adapter.supports_returning:
            query.returning(identity)
        context.query = query

        result = await adapter.execute(query)
        context.result = result
        data["id"] = result.insert_id
        logger.debug("Inserted into %s, id=%r", context.table, result.insert_id)

        return await chain.run("after.insert", context)

    async def update(self, row: Row) -> OperationContext:
        """UPDATE the record matching every unique column of row.

        Raises:
            ValueError: If the table has no unique columns.
        """
        context = OperationContext(data=row, table=self.get_name())
        chain = self.get_command_chain()
        await chain.run("before.update", context)

        columns = await self.get_columns()
        adapter = await self.get_adapter()
        data = context.data.data
        self._sanitize(columns, data)

        query = adapter.get_query().update().table(context.table)
        self._set_values(query, adapter, columns, data)
        self._where_unique(query, columns, data)
        context.query = query

        context.result = await adapter.execute(query)
        return await chain.run("after.update", context)

    async def delete(self, row: Row) -> OperationContext:
        """DELETE the record matching every unique column of row.

        Raises:
            ValueError: If the table has no unique columns.
        """
        context = OperationContext(data=row, table=self.get_name())
        chain = self.get_command_chain()
        await chain.run("before.delete", context)

        columns = await self.get_unique_columns()
        adapter = await self.get_adapter()

        query = adapter.get_query().delete().table(context.table)
        self._where_unique(query, columns, context.data.data)
        context.query = query

        context.result = await adapter.execute(query)
        return await chain.run("after.delete", context)

    # -------------------------------------------------------------------------
    # Statement helpers
    # -------------------------------------------------------------------------

    def _sanitize(self, columns: dict[str, Column], data: dict[str, Any]) -> None:
        for field, column in columns.items():
            if field not in data:
                continue
            type_filter = self.type_filters.get(column.type)
            if not type_filter.validate(data[field]):
                data[field] = type_filter.sanitize(data[field])

    def _set_values(
        self, query: Query, adapter: DbAdapter, columns: dict[str, Column], data: dict[str, Any]
    ) -> None:
        # strict INSERT skips None; strict UPDATE writes every key, None included
        updating = query.kind == "update"
        for field, column in columns.items():
            if column.autoinc:
                continue
            value = data.get(field)
            if adapter.strict_columns:
                present = field in data if updating else value is not None
                if present:
                    query.set(column.name, value)
            else:
                query.set(field, value)

    def _where_unique(self, query: Query, columns: dict[str, Column], data: dict[str, Any]) -> None:
        unique = [(field, c) for field, c in columns.items() if c.unique]
        if not unique:
            raise ValueError(f"Table '{self.name}' has no unique columns")
        for field, column in unique:
            query.where(column.name, "=", data.get(field))


__all__ = ["SelectMode", "Table", "TableState"]
