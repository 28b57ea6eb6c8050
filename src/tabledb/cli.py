# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line inspection of tabledb tables.

Commands:
    tabledb schema TABLE     Show columns and indexes of a table
    tabledb rows TABLE       Show rows of a table (--limit N)

The database comes from --db, or TABLEDB_DB / TABLEDB_DB_PREFIX:

    tabledb --db /data/app.db schema users
    TABLEDB_DB=postgresql://app@localhost/app tabledb rows users --limit 20
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any

import click
from rich.console import Console
from rich.table import Table as RichTable

from .config import DatabaseConfig, TableDbConfig, config_from_env
from .errors import TableDbError
from .service import Identifier, ServiceManager
from .table import Table

console = Console()


def _print_result(result: Any) -> None:
    """Print command result with rich formatting."""
    if isinstance(result, list) and result and isinstance(result[0], dict):
        table = RichTable(show_header=True, header_style="bold cyan")
        keys = list(result[0].keys())
        for key in keys:
            table.add_column(key)
        for row in result:
            table.add_row(*["" if row.get(k) is None else str(row.get(k)) for k in keys])
        console.print(table)
    elif isinstance(result, dict):
        for key, value in result.items():
            console.print(f"[bold]{key}:[/bold] {value}")
    elif isinstance(result, list):
        console.print("[dim]No rows[/dim]")
    else:
        console.print(result)


async def _open_table(services: ServiceManager, name: str) -> Table:
    identifier = Identifier("com", "cli", ["database", "table"], name)
    return await services.get_service(identifier, {"name": name})


async def _schema(config: TableDbConfig, name: str) -> None:
    async with ServiceManager(config) as services:
        table = await _open_table(services, name)
        schema = await table.get_schema()
        identity = await table.get_identity_column()

    info = schema.info
    _print_result(
        {
            "table": info.name,
            "kind": info.kind,
            "engine": info.engine,
            "identity": identity,
            "next id": info.autoinc_start,
        }
    )
    _print_result(
        [
            {
                "column": c.name,
                "type": c.type or "?",
                "raw type": c.raw_type,
                "unique": "yes" if c.unique else "",
                "autoinc": "yes" if c.autoinc else "",
                "default": c.default,
                "nullable": "yes" if c.nullable else "no",
            }
            for c in schema.columns.values()
        ]
    )
    if schema.indexes:
        _print_result(
            [
                {
                    "index": index,
                    "columns": ", ".join(m.column for m in members),
                    "unique": "yes" if members[0].unique else "",
                    "primary": "yes" if members[0].primary else "",
                }
                for index, members in schema.indexes.items()
            ]
        )


async def _rows(config: TableDbConfig, name: str, limit: int) -> None:
    async with ServiceManager(config) as services:
        table = await _open_table(services, name)
        query = (await table.get_query()).select().table(table.get_name()).limit(limit)
        rowset = await table.select(query)
    _print_result(rowset.get_data())


@click.group()
@click.option("--db", "db_url", default=None, help="Connection string (default: $TABLEDB_DB).")
@click.option("--prefix", default=None, help="Table name prefix (default: $TABLEDB_DB_PREFIX).")
@click.pass_context
def cli(ctx: click.Context, db_url: str | None, prefix: str | None) -> None:
    """Inspect tables through the tabledb adapters."""
    config = config_from_env()
    default = config.database("default")
    if db_url is not None or prefix is not None:
        try:
            db = DatabaseConfig.from_url(db_url, prefix=default.prefix) if db_url else default
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--db") from e
        if prefix is not None:
            db = replace(db, prefix=prefix)
        config = config.with_database("default", db)
    ctx.obj = config


@cli.command()
@click.argument("table")
@click.pass_obj
def schema(config: TableDbConfig, table: str) -> None:
    """Show columns and indexes of TABLE."""
    try:
        asyncio.run(_schema(config, table))
    except (ValueError, TableDbError) as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@click.argument("table")
@click.option("--limit", default=50, show_default=True, help="Maximum rows to show.")
@click.pass_obj
def rows(config: TableDbConfig, table: str, limit: int) -> None:
    """Show rows of TABLE."""
    try:
        asyncio.run(_rows(config, table, limit))
    except (ValueError, TableDbError) as e:
        raise click.ClickException(str(e)) from e


__all__ = ["cli"]
