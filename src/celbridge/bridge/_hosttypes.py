"""Introspection helpers for host (Python) types.

Normalizes the many ways Python spells a type (``Optional``, ``X | None``,
``Annotated``, generic aliases, dataclasses, pydantic models, named
tuples) into the questions the bridge asks: is it a struct, what are its
fields and tags, is it supported at all.
"""

from __future__ import annotations

import asyncio
import collections.abc
import ctypes
import dataclasses
import inspect
import queue
import types
import typing
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from celbridge.engine import is_value_class


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

class Tags:
    """Field tags for ``Annotated`` hints, keyed by naming convention.

    ``name: Annotated[str, Tags(json="full_name,omitempty")]``
    """

    __slots__ = ("_values",)

    def __init__(self, **values: str) -> None:
        self._values = dict(values)

    def lookup(self, key: str) -> str | None:
        return self._values.get(key)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Tags) and other._values == self._values

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._values.items())))

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in self._values.items())
        return f"Tags({inner})"


@dataclasses.dataclass(frozen=True)
class HostField:
    """A declared struct attribute with its annotation and tags."""

    attribute: str
    annotation: Any
    tags: Mapping[str, str]


# ---------------------------------------------------------------------------
# Annotation normalization
# ---------------------------------------------------------------------------

_UNION_ORIGINS = (typing.Union, types.UnionType)


def strip_annotated(host_type: Any) -> tuple[Any, tuple[Any, ...]]:
    """Split ``Annotated[T, ...]`` into ``(T, metadata)``."""
    if typing.get_origin(host_type) is typing.Annotated:
        args = typing.get_args(host_type)
        inner, metadata = strip_annotated(args[0])
        return inner, tuple(args[1:]) + metadata
    return host_type, ()


def union_members(host_type: Any) -> tuple[Any, ...] | None:
    if typing.get_origin(host_type) in _UNION_ORIGINS:
        return typing.get_args(host_type)
    return None


def optional_target(host_type: Any) -> Any | None:
    """``T`` for ``Optional[T]`` / ``T | None``; ``None`` otherwise."""
    members = union_members(host_type)
    if members is None or type(None) not in members:
        return None
    rest = [m for m in members if m is not type(None)]
    if len(rest) == 1:
        return rest[0]
    return None


def qualified_name(cls: type) -> str:
    """Deterministic engine name for a host class: ``module.QualName``."""
    return f"{cls.__module__}.{cls.__qualname__}"


# ---------------------------------------------------------------------------
# Structs
# ---------------------------------------------------------------------------

def is_struct_class(cls: Any) -> bool:
    """Dataclasses, pydantic models, named tuples and annotated classes."""
    if not isinstance(cls, type) or is_value_class(cls):
        return False
    if getattr(cls, "_is_protocol", False):
        return False
    if dataclasses.is_dataclass(cls) or issubclass(cls, BaseModel):
        return True
    if issubclass(cls, tuple) and hasattr(cls, "_fields"):
        return True
    if cls.__module__ == "builtins" or issubclass(cls, BaseException):
        return False
    return any(inspect.get_annotations(klass) for klass in cls.__mro__[:-1])


def _type_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except (NameError, TypeError):
        hints: dict[str, Any] = {}
        for klass in reversed(cls.__mro__[:-1]):
            hints.update(inspect.get_annotations(klass))
        return hints


def _tags_from(metadata: tuple[Any, ...]) -> dict[str, str]:
    tags: dict[str, str] = {}
    for item in metadata:
        if isinstance(item, Tags):
            tags.update(item._values)
    return tags


def struct_fields(cls: type) -> list[HostField]:
    """Declared fields of a struct class, in declaration order."""
    hints = _type_hints(cls)
    result: list[HostField] = []

    if dataclasses.is_dataclass(cls):
        for f in dataclasses.fields(cls):
            annotation = hints.get(f.name, f.type)
            _, metadata = strip_annotated(annotation)
            tags = {k: v for k, v in f.metadata.items() if isinstance(v, str)}
            tags.update(_tags_from(metadata))
            result.append(HostField(f.name, annotation, tags))
        return result

    if issubclass(cls, BaseModel):
        for name, info in cls.model_fields.items():
            annotation = hints.get(name, info.annotation)
            _, metadata = strip_annotated(annotation)
            extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
            tags = {k: v for k, v in extra.items() if isinstance(v, str)}
            tags.update(_tags_from(tuple(info.metadata) + metadata))
            result.append(HostField(name, annotation, tags))
        return result

    if issubclass(cls, tuple) and hasattr(cls, "_fields"):
        names = list(cls._fields)
    else:
        names = [n for n in hints if typing.get_origin(hints[n]) is not typing.ClassVar]
    for name in names:
        annotation = hints.get(name, Any)
        _, metadata = strip_annotated(annotation)
        result.append(HostField(name, annotation, _tags_from(metadata)))
    return result


# ---------------------------------------------------------------------------
# Supported types
# ---------------------------------------------------------------------------

_CALLABLE_ORIGINS = {collections.abc.Callable}
_ITERATOR_ORIGINS = {
    collections.abc.Iterator,
    collections.abc.Generator,
    collections.abc.AsyncIterator,
    collections.abc.AsyncGenerator,
    collections.abc.Coroutine,
    collections.abc.Awaitable,
}
_CTYPES_POINTER = type(ctypes.POINTER(ctypes.c_char))
_FUNCTION_CLASSES = (
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.GeneratorType,
    types.CoroutineType,
)


def unsupported_part(host_type: Any) -> Any | None:
    """The (possibly nested) part of *host_type* that has no engine form."""
    host_type, _ = strip_annotated(host_type)
    origin = typing.get_origin(host_type)
    if origin is not None:
        if origin in _CALLABLE_ORIGINS or origin in _ITERATOR_ORIGINS:
            return host_type
        if origin is type:
            return None
        for arg in typing.get_args(host_type):
            if arg is Ellipsis or arg is type(None) or isinstance(arg, list):
                continue
            found = unsupported_part(arg)
            if found is not None:
                return found
        return None
    if host_type in _CALLABLE_ORIGINS or host_type in _ITERATOR_ORIGINS:
        return host_type
    if host_type is typing.Callable or host_type is complex:
        return host_type
    if isinstance(host_type, type):
        if issubclass(host_type, complex) or issubclass(host_type, _FUNCTION_CLASSES):
            return host_type
        if issubclass(host_type, (queue.Queue, queue.SimpleQueue, asyncio.Queue)):
            return host_type
        if isinstance(host_type, _CTYPES_POINTER) or host_type is ctypes.c_void_p:
            return host_type
    return None


def is_supported(host_type: Any) -> bool:
    return unsupported_part(host_type) is None


# ---------------------------------------------------------------------------
# Errors and signatures
# ---------------------------------------------------------------------------

def is_error_shaped(host_type: Any) -> bool:
    """Exception classes, optionally wrapped in ``Optional``."""
    host_type, _ = strip_annotated(host_type)
    members = union_members(host_type)
    if members is not None:
        rest = [m for m in members if m is not type(None)]
        return bool(rest) and all(is_error_shaped(m) for m in rest)
    return isinstance(host_type, type) and issubclass(host_type, BaseException)


def resolved_signature(fn: Any) -> tuple[inspect.Signature, dict[str, Any]]:
    """Signature of *fn* plus its evaluated annotations."""
    signature = inspect.signature(fn)
    try:
        hints = typing.get_type_hints(fn, include_extras=True)
    except (NameError, TypeError):
        hints = {}
    return signature, hints
