"""TypeMapper: host type annotation -> engine ``TypeDescriptor``.

Results are memoized per host type, so the same annotation always maps
to the same descriptor instance.  The engine identifies object types by
name, which makes this identity stability load-bearing.
"""

from __future__ import annotations

import collections.abc
import inspect
import logging
import threading
import typing
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from celbridge.engine import PRIMITIVE_CLASSES, is_value_class
from celbridge.model.types import (
    BOOL,
    BYTES,
    DOUBLE,
    DURATION,
    DYN,
    INT,
    NULL,
    STRING,
    STRUCT_TRAITS,
    TIMESTAMP,
    TYPE,
    Trait,
    TypeDescriptor,
    list_of,
    map_of,
    object_type,
)

from ._errors import UnsupportedTypeError
from ._hosttypes import (
    is_struct_class,
    qualified_name,
    strip_annotated,
    union_members,
    unsupported_part,
)

logger = logging.getLogger(__name__)



_SEQUENCE_ORIGINS = {
    list, tuple, set, frozenset,
    collections.abc.Sequence, collections.abc.MutableSequence,
    collections.abc.Set, collections.abc.MutableSet,
    collections.abc.Collection, collections.abc.Iterable,
}
_MAPPING_ORIGINS = {dict, collections.abc.Mapping, collections.abc.MutableMapping}


class TypeMapper:
    """Maps host annotations to engine type descriptors.

    Parameters
    ----------
    traits_of : callable
        Capability detector for host classes; contributes the trait
        bitmask of object types.
    on_struct : callable, optional
        Called once with each struct class the mapper encounters, so the
        owner can register it as a known object type.
    """

    def __init__(
        self,
        traits_of: Callable[[type], Trait],
        on_struct: Callable[[type, TypeDescriptor], None] | None = None,
    ) -> None:
        self._traits_of = traits_of
        self._on_struct = on_struct
        self._cache: dict[Any, TypeDescriptor] = {}
        self._lock = threading.RLock()

    def map_type(self, host_type: Any) -> TypeDescriptor:
        """Map *host_type*, raising ``UnsupportedTypeError`` when it has no engine form."""
        try:
            cached = self._cache.get(host_type)
        except TypeError:
            return self._map(host_type)
        if cached is not None:
            return cached
        with self._lock:
            cached = self._cache.get(host_type)
            if cached is None:
                cached = self._map(host_type)
                self._cache[host_type] = cached
        return cached

    def try_map_type(self, host_type: Any) -> tuple[TypeDescriptor | None, bool]:
        try:
            return self.map_type(host_type), True
        except UnsupportedTypeError:
            return None, False

    # -----------------------------------------------------------------------
    # Mapping rules
    # -----------------------------------------------------------------------

    def _map(self, host_type: Any) -> TypeDescriptor:
        bad = unsupported_part(host_type)
        if bad is not None:
            raise UnsupportedTypeError(bad)

        host_type, _ = strip_annotated(host_type)
        if host_type is None or host_type is type(None):
            return NULL
        if host_type is Any or host_type is object:
            return DYN
        if isinstance(host_type, typing.TypeVar):
            return DYN

        members = union_members(host_type)
        if members is not None:
            rest = [m for m in members if m is not type(None)]
            if len(rest) == 1:
                # Optional unwraps to its target, like a pointer to its pointee.
                return self.map_type(rest[0])
            return DYN

        origin = typing.get_origin(host_type)
        if origin is not None:
            return self._map_generic(host_type, origin)

        if not isinstance(host_type, type):
            return DYN
        return self._map_class(host_type)

    def _map_generic(self, host_type: Any, origin: Any) -> TypeDescriptor:
        args = typing.get_args(host_type)
        if origin in _MAPPING_ORIGINS:
            if len(args) != 2:
                return map_of(DYN, DYN)
            return map_of(self.map_type(args[0]), self.map_type(args[1]))
        if origin in _SEQUENCE_ORIGINS:
            if origin is tuple:
                if len(args) == 2 and args[1] is Ellipsis:
                    args = args[:1]
                elements = [self.map_type(a) for a in args]
                if elements and all(str(e) == str(elements[0]) for e in elements):
                    return list_of(elements[0])
                return list_of(DYN)
            if not args:
                return list_of(DYN)
            return list_of(self.map_type(args[0]))
        if origin is type:
            return TYPE
        if isinstance(origin, type):
            return self._map_class(origin)
        return DYN

    def _map_class(self, cls: type) -> TypeDescriptor:
        # Engine value classes subclass the host primitives they wrap.
        if is_value_class(cls):
            return self._map_value_class(cls)
        # bool before int: bool is an int subclass.
        if issubclass(cls, bool):
            return BOOL
        if issubclass(cls, int):
            return INT
        if issubclass(cls, float):
            return DOUBLE
        if issubclass(cls, str):
            return STRING
        if issubclass(cls, (bytes, bytearray, memoryview)):
            return BYTES
        if issubclass(cls, datetime):
            return TIMESTAMP
        if issubclass(cls, timedelta):
            return DURATION
        if cls is type:
            return TYPE
        if issubclass(cls, (list, tuple, set, frozenset)) and not hasattr(cls, "_fields"):
            return list_of(DYN)
        if issubclass(cls, dict):
            return map_of(DYN, DYN)
        if is_struct_class(cls):
            descriptor = object_type(qualified_name(cls), STRUCT_TRAITS | int(self._traits_of(cls)))
            if self._on_struct is not None:
                self._on_struct(cls, descriptor)
            logger.debug("mapped struct %s -> %s", cls.__qualname__, descriptor)
            return descriptor
        return DYN

    def _map_value_class(self, cls: type) -> TypeDescriptor:
        if isinstance(inspect.getattr_static(cls, "declared_type", None), (staticmethod, classmethod)):
            return cls.declared_type()
        for klass in cls.__mro__:
            if klass in PRIMITIVE_CLASSES:
                return PRIMITIVE_CLASSES[klass]
        return DYN
