"""Small, pure helpers for the dict payloads handlers pass around.

None of these touch threads; they are the kind of thing a handler calls
on its own input before returning a value.

Examples:
    >>> merge_objects({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}, "b": 4})
    {'a': {'x': 1, 'y': 3}, 'b': 4}

    >>> append_to_map({"a": 1}, {"b": 2})
    {'a': 1, 'b': 2}
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

from workpool.core.errors import MergeError, ValidationError

T = TypeVar("T")


def to_list(values: Iterable[T]) -> list[T]:
    """Copy any iterable into a new list."""
    return list(values)


def to_mapping(value: Any) -> Mapping[str, Any]:
    """Return *value* unchanged if it is a mapping.

    Raises:
        ValidationError: If value is not a mapping
    """
    if not isinstance(value, Mapping):
        raise ValidationError(f"expected a mapping, got {type(value).__name__}")
    return value


def append_to_map(base: dict[str, Any], extra: Mapping[str, Any]) -> dict[str, Any]:
    """Shallow-update *base* in place with *extra* and return it."""
    base.update(extra)
    return base


def add_metadata(
    object_type: str | Enum,
    obj: Any,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Stamp ``obj["metadata"]`` with the object type and export time.

    Args:
        object_type: Kind of object (plain string or string Enum)
        obj: Dict to stamp; modified in place
        now: Export timestamp, defaults to the current UTC time

    Raises:
        ValidationError: If obj is not a dict
    """
    if not isinstance(obj, dict):
        raise ValidationError(f"expected dict, got {type(obj).__name__}")

    type_name = object_type.value if isinstance(object_type, Enum) else str(object_type)
    obj["metadata"] = {
        "object_type": type_name,
        "exported_at": now or datetime.now(UTC),
    }
    return obj


def merge_objects(left: Any, right: Any) -> dict[str, Any]:
    """Recursively merge two dicts into a new dict.

    Keys from *right* win, except where both sides hold dicts: those are
    merged recursively. Neither argument is modified.

    Raises:
        MergeError: If either argument is not a dict
    """
    if not isinstance(left, dict):
        raise MergeError(f"base must be a dict, got {type(left).__name__}")
    if not isinstance(right, dict):
        raise MergeError(f"override must be a dict, got {type(right).__name__}")

    result = dict(left)
    for key, value in right.items():
        existing = result.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            result[key] = merge_objects(existing, value)
        else:
            result[key] = value
    return result


__all__ = [
    "to_list",
    "to_mapping",
    "append_to_map",
    "add_metadata",
    "merge_objects",
]
