# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""tabledb: async table/row/rowset data access with before/after hooks."""

from .chain import Behavior, CommandChain, OperationContext
from .config import DatabaseConfig, TableDbConfig, config_from_env
from .errors import AdapterConnectionError, TableDbError
from .row import Row
from .rowset import Rowset
from .service import Identifier, Service, ServiceManager
from .table import SelectMode, Table, TableState

__version__ = "0.1.0"

__all__ = [
    "AdapterConnectionError",
    "Behavior",
    "CommandChain",
    "DatabaseConfig",
    "Identifier",
    "OperationContext",
    "Row",
    "Rowset",
    "SelectMode",
    "Service",
    "ServiceManager",
    "Table",
    "TableDbConfig",
    "TableDbError",
    "TableState",
    "config_from_env",
]
