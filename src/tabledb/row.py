# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Row: one record of a Table, keyed by external field names."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

from .service import Service

if TYPE_CHECKING:
    from .chain import OperationContext
    from .table import Table


class Row(Service):
    """Single record bound to a Table.

    Attributes:
        data: Field values keyed by external name.
        table: Owning Table, None for unbound template rows.
        is_new: True until the row is inserted by save() or loaded by select().
    """

    def __init__(self, identifier, services):
        super().__init__(identifier, services)
        self.data: dict[str, Any] = {}
        self.table: Table | None = None
        self.is_new = True

    async def initialize(self, config: dict[str, Any] | None = None) -> Row:
        """Bind config["table"] and fill unset fields with column defaults."""
        config = config or {}
        if config.get("table") is not None:
            self.table = config["table"]
        await super().initialize(config)
        if self.table is not None:
            for field, column in (await self.table.get_columns()).items():
                self.data.setdefault(field, column.default)
        return self

    async def save(self) -> OperationContext:
        """INSERT when new (then is_new becomes False), UPDATE otherwise."""
        if self.is_new:
            context = await self._bound_table().insert(self)
            self.is_new = False
            return context
        return await self._bound_table().update(self)

    async def delete(self) -> OperationContext:
        return await self._bound_table().delete(self)

    def clone(self) -> Row:
        """New uninitialized Row with the same identifier and table, no data."""
        row = type(self)(self.identifier, self.services)
        row.table = self.table
        return row

    def set_data(self, data: Mapping[str, Any] | None) -> Row:
        if data:
            self.data.update(data)
        return self

    def get_data(self) -> dict[str, Any]:
        return dict(self.data)

    def get(self, field: str, default: Any = None) -> Any:
        return self.data.get(field, default)

    def _bound_table(self) -> Table:
        if self.table is None:
            raise ValueError(f"Row {self.identifier} is not bound to a table")
        return self.table

    def __getitem__(self, field: str) -> Any:
        return self.data[field]

    def __setitem__(self, field: str, value: Any) -> None:
        self.data[field] = value

    def __contains__(self, field: object) -> bool:
        return field in self.data

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.data!r}, is_new={self.is_new})"


__all__ = ["Row"]
