# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exception types raised by the tabledb core."""

from __future__ import annotations


class TableDbError(Exception):
    """Base exception for tabledb errors."""


class AdapterConnectionError(TableDbError, ConnectionError):
    """Raised when a backend connection cannot be established.

    Wraps the backend's native error message and reports it with a fixed
    severity code, so callers can tell connection failures apart from query
    failures that propagate unchanged.
    """

    code: int = 500

    def __init__(self, message: str, name: str | None = None):
        self.message = message
        self.name = name
        if name:
            super().__init__(f"[{self.code}] Connection '{name}' failed: {message}")
        else:
            super().__init__(f"[{self.code}] {message}")


__all__ = ["TableDbError", "AdapterConnectionError"]
