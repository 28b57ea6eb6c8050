# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Rowset: ordered collection of Rows from one Table."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from .service import Service

if TYPE_CHECKING:
    from .row import Row
    from .table import Table


class Rowset(Service):
    """Rows in input order; iteration, len() and indexing follow rows."""

    def __init__(self, identifier, services):
        super().__init__(identifier, services)
        self.rows: list[Row] = []
        self.table: Table | None = None

    async def initialize(self, config: dict[str, Any] | None = None) -> Rowset:
        config = config or {}
        if config.get("table") is not None:
            self.table = config["table"]
        return await super().initialize(config)

    async def get_row(self) -> Row:
        """Template Row: sibling "database.row" service, created without a table."""
        identifier = self.identifier.clone().set_path(["database", "row"])
        return await self.get_service(identifier, None)

    async def set_data(self, data: Iterable[Mapping[str, Any]] | None) -> Rowset:
        """Append one Row per element of data, in order."""
        template = await self.get_row()
        template.table = self.table
        for item in data or ():
            self.rows.append(template.clone().set_data(item))
        return self

    def get_data(self) -> list[dict[str, Any]]:
        return [row.get_data() for row in self.rows]

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def __getitem__(self, index: int) -> Row:
        return self.rows[index]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self.rows)} rows)"


__all__ = ["Rowset"]
