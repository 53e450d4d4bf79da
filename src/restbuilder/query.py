"""Projection of object graphs onto ``root.path.to.leaf=value`` query pairs.

A GET endpoint that binds a complex model from the query string expects
parameters such as ``model.page=1&model.subObject.value=x``. This module walks
an arbitrary object (pydantic model, dataclass, mapping or plain object) and
emits those pairs in declaration order.

Values are concatenated as-is; no percent-encoding is applied.
"""

import dataclasses
import os
import sys
import sysconfig
from collections.abc import Iterator, Mapping
from datetime import date, time
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any
from uuid import UUID

from pydantic import BaseModel

LEAF_TYPES: tuple[type, ...] = (str, int, float, Decimal, Enum, date, time, UUID)

# Third-party namespaces treated like the standard library: never walked.
OPAQUE_MODULE_ROOTS: frozenset[str] = frozenset(
    {
        "builtins",
        "pydantic",
        "pydantic_core",
        "pydantic_settings",
        "httpx",
        "httpcore",
        "anyio",
        "loguru",
        "cachetools",
        "certifi",
    }
)


def lower_camel(name: str) -> str:
    """Converts an attribute name to lowerCamelCase.

    ``page_size`` -> ``pageSize``, ``PageSize`` -> ``pageSize``,
    ``subObject`` -> ``subObject``.
    """
    parts = [part for part in name.split("_") if part]
    if not parts:
        return name
    first, *rest = parts
    return first[:1].lower() + first[1:] + "".join(
        part[:1].upper() + part[1:] for part in rest
    )


def is_leaf(value: Any) -> bool:
    """Whether ``value`` is emitted directly as a query value."""
    return isinstance(value, LEAF_TYPES)


_STDLIB_DIRS: tuple[str, ...] = tuple(
    {
        os.path.realpath(sysconfig.get_paths()[key]) + os.sep
        for key in ("stdlib", "platstdlib")
    }
)


@lru_cache(maxsize=None)
def is_stdlib_module(root: str) -> bool:
    """Whether the loaded top-level module ``root`` is part of the standard library.

    A project package that shares a name with a standard library module
    (e.g. a local ``calendar`` package) is not, because it is loaded from
    outside the interpreter's library directories.
    """
    if root not in sys.stdlib_module_names:
        return False
    path = getattr(sys.modules.get(root), "__file__", None)
    if path is None:
        # Built-in and frozen modules.
        return True
    return os.path.realpath(path).startswith(_STDLIB_DIRS)


def is_opaque(value: Any) -> bool:
    """Whether ``value`` belongs to a library type that is never walked."""
    if isinstance(value, (list, tuple, set, frozenset, bytes, bytearray)):
        return True
    root = type(value).__module__.split(".", 1)[0]
    return root in OPAQUE_MODULE_ROOTS or is_stdlib_module(root)


def format_value(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


def _members(value: Any) -> Iterator[tuple[str, Any]] | None:
    """Yields (name, value) members of a walkable object, or None if opaque."""
    if isinstance(value, BaseModel):
        return iter(value.model_dump(mode="json", by_alias=True).items())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return (
            (field.name, getattr(value, field.name))
            for field in dataclasses.fields(value)
        )
    if isinstance(value, dict) or (
        isinstance(value, Mapping) and not is_opaque(value)
    ):
        return ((str(key), item) for key, item in value.items())
    if is_opaque(value) or not hasattr(value, "__dict__"):
        return None
    return (
        (key, item) for key, item in vars(value).items() if not key.startswith("_")
    )


def _walk(prefix: str, value: Any) -> Iterator[tuple[str, str]]:
    members = _members(value)
    if members is None:
        return
    for name, item in members:
        if item is None:
            continue
        path = f"{prefix}.{lower_camel(name)}"
        if is_leaf(item):
            yield path, format_value(item)
        else:
            yield from _walk(path, item)


def flatten_query_object(root_name: str, obj: Any) -> list[tuple[str, str]]:
    """Flattens ``obj`` into ordered ``(key, value)`` query pairs under ``root_name``.

    Args:
        root_name: Variable name the API binds the object to. It is lower-cased.
        obj: The object graph to project.

    Returns:
        list[tuple[str, str]]: Pairs in member declaration order. Empty when
            ``obj`` is None, a bare leaf value, or an opaque library type.
            Library types are those from the framework namespaces in
            `OPAQUE_MODULE_ROOTS` and from modules loaded out of the
            interpreter's standard library directories.
    """
    if obj is None or is_leaf(obj):
        return []
    return list(_walk(root_name.lower(), obj))


def build_query_string(root_name: str, obj: Any) -> str:
    """Joins the flattened pairs of ``obj`` as ``key=value`` with ``&``."""
    return "&".join(
        f"{key}={value}" for key, value in flatten_query_object(root_name, obj)
    )
