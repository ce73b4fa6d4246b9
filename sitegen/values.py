"""Tagged values handled by the template list functions.

List functions (sort, filter, limit, offset, paginate) accept sequences whose
items are one of a small closed set of variants:

- Source: a build unit (``Path``, ``Meta.date``, ...).
- KeyValue: a pair produced by ``select`` (``Key``, ``Value``, ``Value.x``).
- Mapping: a structured value from data files (``name``, ``a.b``).

``field_value`` is the one accessor they all share: it resolves a dotted key
and returns a comparable string.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Any, NamedTuple

from .content import Source


class KeyValue(NamedTuple):
    """One entry of a mapping turned into a list by ``select``."""

    Key: str
    Value: Any


def _lookup(value: Any, dotted: str) -> Any:
    for part in dotted.split("."):
        if isinstance(value, Mapping):
            value = value.get(part)
        else:
            return None
    return value


def _as_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return " ".join(f"{k}:{_as_string(v)}" for k, v in value.items())
    if is_sequence(value):
        return " ".join(_as_string(v) for v in value)
    return ""


def field_value(key: str, item: Any) -> str:
    """Return the string value of ``key`` on ``item``.

    Missing fields yield ``""``. Lists join their items with spaces and
    mappings join ``key:value`` pairs, so a YAML tag list can be filtered.

    Examples:
        >>> field_value("Key", KeyValue("title", "Home"))
        'title'
        >>> field_value("author.name", {"author": {"name": "Ada"}})
        'Ada'
    """
    if isinstance(item, Source):
        return _as_string(item.value(key))
    if isinstance(item, KeyValue):
        if key == "Key":
            return item.Key
        if key == "Value":
            return _as_string(item.Value)
        if key.startswith("Value."):
            return _as_string(_lookup(item.Value, key[len("Value.") :]))
        return ""
    if isinstance(item, Mapping):
        return _as_string(_lookup(item, key))
    return ""


def is_sequence(value: Any) -> bool:
    """Whether ``value`` is a list-like the list functions accept."""
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))
