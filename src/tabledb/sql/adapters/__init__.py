# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Database adapters for SQLite and PostgreSQL, and the adapter instance cache.

This package provides async database adapters with a unified interface
for executing statements and introspecting schema. Each adapter instance
owns one backend connection.

Components:
    DbAdapter: Abstract base class defining the adapter interface.
    SqliteAdapter: SQLite adapter using aiosqlite.
    PostgresAdapter: PostgreSQL adapter using psycopg3 (optional extra).
    AdapterRegistry: Cache of connected adapters keyed by logical name.
    get_adapter_class: Resolve an adapter class from its kind.

Connection Model:
    AdapterRegistry is the only place connections are opened:

    - get_instance(name, config): cached adapter, connecting on first use
    - lookup(name): cached adapter or None, never connects
    - open(name, config): always connects, replacing the cached adapter
    - close_all(): closes every cached adapter (application shutdown)

    The check-then-create path of get_instance() runs under a per-name
    asyncio.Lock, so concurrent first requests share one connection.

Example:
    registry = AdapterRegistry()
    adapter = await registry.get_instance("default", DatabaseConfig.from_url("/data/app.db"))
    result = await adapter.execute(adapter.get_query().select().table("users"))
    await registry.close_all()

Note:
    PostgreSQL requires psycopg: `pip install tabledb[postgresql]`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .base import DbAdapter, QueryResult
from .sqlite import SqliteAdapter

if TYPE_CHECKING:
    from ...config import DatabaseConfig

__all__ = [
    "DbAdapter",
    "QueryResult",
    "SqliteAdapter",
    "ADAPTERS",
    "AdapterRegistry",
    "get_adapter_class",
]

logger = logging.getLogger(__name__)

# Adapter registry
ADAPTERS: dict[str, type[DbAdapter]] = {
    "sqlite": SqliteAdapter,
}


def get_adapter_class(kind: str) -> type[DbAdapter]:
    """Return the adapter class for an adapter kind.

    Args:
        kind: DatabaseConfig.type ("sqlite", "postgresql" or "postgres").

    Raises:
        ValueError: If the kind is unknown.
        ImportError: If postgresql requested but psycopg not installed.
    """
    kind = kind.lower()
    if kind in ADAPTERS:
        return ADAPTERS[kind]

    if kind in ("postgresql", "postgres"):
        # Lazy import to avoid ImportError when psycopg not installed
        from .postgresql import PostgresAdapter

        ADAPTERS["postgresql"] = PostgresAdapter
        ADAPTERS["postgres"] = PostgresAdapter
        return PostgresAdapter

    raise ValueError(f"Unknown database type: '{kind}'. Supported: sqlite, postgresql")


class AdapterRegistry:
    """Connected adapters keyed by logical connection name.

    One registry is owned by each ServiceManager; tables resolve their
    adapter through it.
    """

    def __init__(self, adapters: dict[str, type[DbAdapter]] | None = None):
        self._classes = adapters
        self._instances: dict[str, DbAdapter] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def adapter_class(self, kind: str) -> type[DbAdapter]:
        if self._classes is not None and kind in self._classes:
            return self._classes[kind]
        return get_adapter_class(kind)

    def lookup(self, name: str) -> DbAdapter | None:
        """Return the cached adapter for name, None if not connected."""
        return self._instances.get(name)

    async def get_instance(self, name: str, config: DatabaseConfig) -> DbAdapter:
        """Return the cached adapter for name, connecting on first use.

        Raises:
            AdapterConnectionError: If the connection cannot be established.
        """
        adapter = self._instances.get(name)
        if adapter is not None:
            return adapter

        lock = self._locks.setdefault(name, asyncio.Lock())
        async with lock:
            adapter = self._instances.get(name)
            if adapter is None:
                adapter = await self._connect(name, config)
                self._instances[name] = adapter
                self._locks.pop(name, None)
            return adapter

    async def open(self, name: str, config: DatabaseConfig) -> DbAdapter:
        """Connect a new adapter under name, closing the one it replaces."""
        lock = self._locks.setdefault(name, asyncio.Lock())
        async with lock:
            adapter = await self._connect(name, config)
            previous = self._instances.get(name)
            self._instances[name] = adapter
            self._locks.pop(name, None)
        if previous is not None:
            await previous.close()
        return adapter

    async def close_all(self) -> None:
        """Close and forget every cached adapter."""
        instances = list(self._instances.items())
        self._instances.clear()
        for name, adapter in instances:
            logger.info("Closing connection '%s'", name)
            await adapter.close()

    def __contains__(self, name: object) -> bool:
        return name in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    async def _connect(self, name: str, config: DatabaseConfig) -> DbAdapter:
        adapter_class = self.adapter_class(config.type)
        logger.info("Opening connection '%s' (%s)", name, adapter_class.name)
        return await adapter_class.connect(config)
