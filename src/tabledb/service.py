# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Service locator: logical identifiers, the Service base class and its manager.

Components are addressed by an Identifier of the form
``type:component.path.name``, for example ``com:blog.database.table.post``
(type "com", component "blog", path ["database", "table"], name "post").

ServiceManager.get_service() resolves an identifier to a class (explicitly
registered, or a default chosen by path), instantiates it and awaits its
initialize(config). Classes with ``singleton = True`` (Table) are created
once per identifier.

Usage:
    services = ServiceManager(TableDbConfig().with_database("default", DatabaseConfig.from_url("app.db")))
    posts = await services.get_service("com:blog.database.table.post")
    rows = await posts.select()
    await services.close()
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from .config import TableDbConfig
from .sql.adapters import AdapterRegistry

if TYPE_CHECKING:
    from .config import DatabaseConfig

logger = logging.getLogger(__name__)


class Identifier:
    """Structured logical name: type, component, path segments and name."""

    def __init__(
        self,
        type: str = "com",
        component: str = "",
        path: list[str] | tuple[str, ...] = (),
        name: str = "",
    ):
        self.type = type
        self.component = component
        self.path = list(path)
        self.name = name

    @classmethod
    def parse(cls, value: str | Identifier) -> Identifier:
        """Parse "type:component.path.name" ("com:" is implied when missing).

        Raises:
            ValueError: If component or name is missing.
        """
        if isinstance(value, Identifier):
            return value.clone()
        type_, sep, rest = value.partition(":")
        if not sep:
            type_, rest = "com", value
        parts = [p for p in rest.split(".") if p]
        if not type_ or len(parts) < 2:
            raise ValueError(f"Invalid identifier '{value}': expected 'type:component.path.name'")
        return cls(type_, parts[0], parts[1:-1], parts[-1])

    def clone(self) -> Identifier:
        return Identifier(self.type, self.component, self.path, self.name)

    def set_path(self, path: list[str] | tuple[str, ...]) -> Identifier:
        self.path = list(path)
        return self

    def set_name(self, name: str) -> Identifier:
        self.name = name
        return self

    def __str__(self) -> str:
        return f"{self.type}:" + ".".join([self.component, *self.path, self.name])

    def __repr__(self) -> str:
        return f"Identifier({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            return str(self) == other
        if isinstance(other, Identifier):
            return str(self) == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(str(self))


class Service:
    """Base class of everything the ServiceManager builds.

    Attributes:
        identifier: Identifier this instance was created for.
        services: Owning ServiceManager.
        config: Config dict passed to initialize().
    """

    singleton: bool = False

    def __init__(self, identifier: Identifier, services: ServiceManager):
        self.identifier = identifier
        self.services = services
        self.config: dict[str, Any] = {}

    async def initialize(self, config: dict[str, Any] | None = None) -> Service:
        """Store config. Subclasses extend and must return self."""
        self.config = dict(config or {})
        return self

    def get_identifier(self) -> Identifier:
        return self.identifier

    async def get_service(
        self, identifier: Identifier | str, config: dict[str, Any] | None = None
    ) -> Any:
        return await self.services.get_service(identifier, config)

    def get_database_config(self, name: str) -> DatabaseConfig:
        return self.services.config.database(name)

    def get_component_config(self, key: str) -> dict[str, Any]:
        return self.services.get_component_config(key)


class ServiceManager:
    """Resolves identifiers to initialized service instances.

    Owns the AdapterRegistry shared by every table it creates; close()
    releases all connections.
    """

    def __init__(
        self,
        config: TableDbConfig | None = None,
        adapters: AdapterRegistry | None = None,
    ):
        self.config = config or TableDbConfig()
        self.adapters = adapters or AdapterRegistry()
        self._classes: dict[str, type[Service]] = {}
        self._singletons: dict[str, Service] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def register(self, identifier: Identifier | str, service_class: type[Service]) -> None:
        """Bind a class to an identifier, replacing the default for that path."""
        key = str(Identifier.parse(identifier))
        self._classes[key] = service_class
        self._singletons.pop(key, None)

    def get_component_config(self, key: str) -> dict[str, Any]:
        return self.config.component(key)

    def resolve(self, identifier: Identifier) -> type[Service]:
        """Registered class for identifier, else the default for its path.

        Raises:
            LookupError: If nothing is registered and the path has no default.
        """
        registered = self._classes.get(str(identifier))
        if registered is not None:
            return registered
        default = _default_classes().get(tuple(identifier.path))
        if default is None:
            raise LookupError(f"No service registered for '{identifier}'")
        return default

    async def get_service(
        self, identifier: Identifier | str, config: dict[str, Any] | None = None
    ) -> Any:
        """Instantiate and initialize the service for identifier.

        Singletons are initialized once; later calls ignore config.
        """
        identifier = Identifier.parse(identifier)
        service_class = self.resolve(identifier)
        if not service_class.singleton:
            return await self._create(service_class, identifier, config)

        key = str(identifier)
        instance = self._singletons.get(key)
        if instance is not None:
            return instance
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            instance = self._singletons.get(key)
            if instance is None:
                instance = await self._create(service_class, identifier, config)
                self._singletons[key] = instance
                self._locks.pop(key, None)
            return instance

    async def _create(
        self,
        service_class: type[Service],
        identifier: Identifier,
        config: dict[str, Any] | None,
    ) -> Service:
        logger.debug("Creating %s for %s", service_class.__name__, identifier)
        instance = service_class(identifier, self)
        return await instance.initialize(config)

    async def close(self) -> None:
        """Close every database connection."""
        await self.adapters.close_all()

    async def __aenter__(self) -> ServiceManager:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


def _default_classes() -> dict[tuple[str, ...], type[Service]]:
    # Deferred: table/row/rowset subclass Service
    from .row import Row
    from .rowset import Rowset
    from .table import Table

    return {
        ("database", "table"): Table,
        ("database", "row"): Row,
        ("database", "rowset"): Rowset,
    }


__all__ = ["Identifier", "Service", "ServiceManager"]
