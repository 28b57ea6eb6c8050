# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Type filters: per-column-type validate/sanitize pairs.

A filter never rejects a value. Table.insert() and Table.update() call
validate() on every column value and, only when it fails, replace the value
with sanitize(value), which best-effort coerces it into the type's domain
and falls back to a safe default.

None is valid for every type: absent values are left to the backend.

Example:
    from tabledb.filters import filters

    f = filters.get("int")
    f.validate("abc")   # False
    f.sanitize("abc")   # 0
    f.sanitize("42")    # 42
"""

from __future__ import annotations

import math
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from pydantic import TypeAdapter, ValidationError


class TypeFilter:
    """Pass-through filter, used for unknown column types."""

    fallback: Any = None

    def validate(self, value: Any) -> bool:
        return True

    def sanitize(self, value: Any) -> Any:
        return value


class _CoercingFilter(TypeFilter):
    """Filter that coerces via a pydantic TypeAdapter in lax mode."""

    python_type: type = object

    def __init__(self) -> None:
        self._adapter = TypeAdapter(self.python_type)

    def _coerce(self, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
        return self._adapter.validate_python(value)

    def sanitize(self, value: Any) -> Any:
        try:
            return self._coerce(value)
        except ValidationError:
            return self.fallback


class IntFilter(_CoercingFilter):
    python_type = int
    fallback = 0

    def __init__(self) -> None:
        super().__init__()
        self._float = TypeAdapter(float)

    def validate(self, value: Any) -> bool:
        if value is None:
            return True
        return isinstance(value, int) and not isinstance(value, bool)

    def _coerce(self, value: Any) -> Any:
        if isinstance(value, bool):
            return int(value)
        try:
            return super()._coerce(value)
        except ValidationError:
            # "12.7" and 12.7 truncate, like a numeric cast would
            number = self._float.validate_python(value)
            if not math.isfinite(number):
                return self.fallback
            return int(number)


class FloatFilter(_CoercingFilter):
    python_type = float
    fallback = 0.0

    def validate(self, value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, Decimal):
            return value.is_finite()
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        return math.isfinite(value)

    def sanitize(self, value: Any) -> Any:
        result = super().sanitize(value)
        if not math.isfinite(result):
            return self.fallback
        return result


class StringFilter(TypeFilter):
    fallback = ""

    def validate(self, value: Any) -> bool:
        return value is None or isinstance(value, str)

    def sanitize(self, value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="replace")
        return str(value)


class BoolFilter(_CoercingFilter):
    python_type = bool
    fallback = False

    def validate(self, value: Any) -> bool:
        return value is None or isinstance(value, bool)


class TimeFilter(_CoercingFilter):
    python_type = datetime

    def validate(self, value: Any) -> bool:
        return value is None or isinstance(value, datetime)


class TimeOfDayFilter(_CoercingFilter):
    """TIME columns: datetime.time values or time-of-day text such as "10:30:00"."""

    python_type = time

    def validate(self, value: Any) -> bool:
        if value is None or isinstance(value, time):
            return True
        if not isinstance(value, str):
            return False
        try:
            self._adapter.validate_python(value)
        except ValidationError:
            return False
        return True

    def _coerce(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.time()
        return super()._coerce(value)


class DateFilter(_CoercingFilter):
    python_type = date

    def validate(self, value: Any) -> bool:
        if isinstance(value, datetime):
            return False
        return value is None or isinstance(value, date)

    def _coerce(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.date()
        return super()._coerce(value)


class FilterRegistry:
    """Maps normalized column types to TypeFilter instances.

    Unknown (or None) types resolve to a pass-through filter.
    """

    def __init__(self, filters: dict[str, TypeFilter] | None = None):
        self._filters: dict[str, TypeFilter] = dict(filters or {})
        self._default = TypeFilter()

    @classmethod
    def default(cls) -> FilterRegistry:
        """Registry with the built-in filters."""
        return cls(
            {
                "int": IntFilter(),
                "float": FloatFilter(),
                "string": StringFilter(),
                "bool": BoolFilter(),
                "time": TimeFilter(),
                "timeofday": TimeOfDayFilter(),
                "date": DateFilter(),
            }
        )

    def register(self, type_: str, type_filter: TypeFilter) -> None:
        """Register (or replace) the filter for a normalized type."""
        self._filters[type_] = type_filter

    def get(self, type_: str | None) -> TypeFilter:
        """Return the filter for a normalized type."""
        if type_ is None:
            return self._default
        return self._filters.get(type_, self._default)

    def __contains__(self, type_: object) -> bool:
        return type_ in self._filters


filters = FilterRegistry.default()


__all__ = [
    "TypeFilter",
    "IntFilter",
    "FloatFilter",
    "StringFilter",
    "BoolFilter",
    "TimeFilter",
    "TimeOfDayFilter",
    "DateFilter",
    "FilterRegistry",
    "filters",
]
