# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""English pluralization used to derive default table names."""

from __future__ import annotations

import re

_UNCOUNTABLE = frozenset(
    {"data", "equipment", "information", "media", "metadata", "news", "series", "sheep", "species"}
)

_IRREGULAR = {
    "child": "children",
    "man": "men",
    "woman": "women",
    "person": "people",
    "mouse": "mice",
    "goose": "geese",
    "tooth": "teeth",
    "foot": "feet",
}

# (pattern, replacement), first match wins
_RULES = [
    (re.compile(r"(quiz)$", re.I), r"\1zes"),
    (re.compile(r"(matr|vert|ind)(ix|ex)$", re.I), r"\1ices"),
    (re.compile(r"(x|ch|ss|sh|zz)$", re.I), r"\1es"),
    (re.compile(r"([^aeiouy]|qu)y$", re.I), r"\1ies"),
    (re.compile(r"(?:([^f])fe|([lr])f)$", re.I), r"\1\2ves"),
    (re.compile(r"(bu|statu|alia)s$", re.I), r"\1ses"),
    (re.compile(r"(octop|vir)us$", re.I), r"\1i"),
    (re.compile(r"(ax|test)is$", re.I), r"\1es"),
    (re.compile(r"(buffal|tomat|potat|her)o$", re.I), r"\1oes"),
    (re.compile(r"s$", re.I), "s"),
    (re.compile(r"$"), "s"),
]


def pluralize(name: str) -> str:
    """Plural of the last word of name ("user" → "users", "item_category" → "item_categories")."""
    if not name:
        return name
    head, sep, word = name.rpartition("_")
    lower = word.lower()
    if lower in _UNCOUNTABLE:
        return name
    if lower in _IRREGULAR:
        plural = _IRREGULAR[lower]
        if word[:1].isupper():
            plural = plural.capitalize()
        return f"{head}{sep}{plural}"
    for pattern, replacement in _RULES:
        if pattern.search(word):
            return f"{head}{sep}{pattern.sub(replacement, word, count=1)}"
    return name


__all__ = ["pluralize"]
