# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Before/after hook pipeline run around every Table operation.

A Behavior is any object exposing optional methods named after events:
the event "before.insert" is handled by ``before_insert(context)``. Methods
may be plain functions or coroutines.

Usage:
    class Timestamps(Behavior):
        async def before_insert(self, context):
            context.data.set_data({"created": datetime.now()})
            return context

    chain = CommandChain([Timestamps()])
    await chain.run("before.insert", context)
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .sql.adapters import QueryResult
    from .sql.query import Query

logger = logging.getLogger(__name__)

OPERATIONS = ("select", "insert", "update", "delete")
EVENTS = frozenset(f"{when}.{op}" for when in ("before", "after") for op in OPERATIONS)


@dataclass
class OperationContext:
    """Mutable state of one Table operation, shared by every hook.

    Attributes:
        data: Row for insert/update/delete; mapped row data after select.
        table: Physical table name.
        query: Statement being built or executed.
        result: Raw execution result, set before the after.* hooks run.
    """

    data: Any = None
    table: str = ""
    query: Query | None = None
    result: QueryResult | None = None


class Behavior:
    """Base class for hook providers. Subclasses implement only what they need."""

    def handles(self, event: str) -> bool:
        return callable(getattr(self, _method_name(event), None))


def _method_name(event: str) -> str:
    return event.replace(".", "_")


def _check_event(event: str) -> None:
    if event not in EVENTS:
        raise ValueError(f"Unknown event '{event}'. Valid: {', '.join(sorted(EVENTS))}")


class CommandChain:
    """Ordered sequence of behaviors executed per event."""

    def __init__(self, behaviors: Iterable[Any] = ()):
        self._behaviors: list[Any] = []
        for behavior in behaviors:
            self.enqueue(behavior)

    def enqueue(self, behavior: Any) -> CommandChain:
        """Append a behavior; classes are instantiated without arguments."""
        if isinstance(behavior, type):
            behavior = behavior()
        self._behaviors.append(behavior)
        return self

    def dequeue(self, behavior: Any) -> bool:
        """Remove a behavior (instance, or every instance of a class)."""
        before = len(self._behaviors)
        if isinstance(behavior, type):
            self._behaviors = [b for b in self._behaviors if not isinstance(b, behavior)]
        else:
            self._behaviors = [b for b in self._behaviors if b is not behavior]
        return len(self._behaviors) != before

    async def run(self, event: str, context: OperationContext) -> OperationContext:
        """Run every handler of event in registration order.

        Each handler receives the context and returns it (or None). The
        first exception aborts the chain and propagates unchanged.

        Raises:
            ValueError: If event is not a known event name.
            TypeError: If a handler returns an object other than the context.
        """
        _check_event(event)
        method = _method_name(event)
        for behavior in self._behaviors:
            handler = getattr(behavior, method, None)
            if not callable(handler):
                continue
            logger.debug("%s → %s.%s", event, type(behavior).__name__, method)
            result = handler(context)
            if inspect.isawaitable(result):
                result = await result
            if result is not None and result is not context:
                raise TypeError(
                    f"{type(behavior).__name__}.{method} must return the context it received"
                )
        return context

    def __len__(self) -> int:
        return len(self._behaviors)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._behaviors)

    def __contains__(self, behavior: object) -> bool:
        if isinstance(behavior, type):
            return any(isinstance(b, behavior) for b in self._behaviors)
        return any(b is behavior for b in self._behaviors)


__all__ = ["Behavior", "CommandChain", "EVENTS", "OperationContext"]
