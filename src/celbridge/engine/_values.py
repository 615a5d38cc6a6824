"""Host-side view of ``celpy.celtypes`` values.

The engine's runtime values are the ``celtypes`` classes; errors are
``CELEvalError`` instances carried as values.  The helpers here answer
what the bridge needs to know about a value: its type descriptor,
whether an overload parameter accepts it, and how it converts back to a
host type.
"""

from __future__ import annotations

import collections.abc
import types
import typing
from datetime import datetime, timedelta
from typing import Any, Union

from celpy import celtypes
from celpy.evaluation import CELEvalError

from celbridge.model.types import (
    BOOL,
    BYTES,
    DOUBLE,
    DURATION,
    DYN,
    INT,
    NULL,
    STRING,
    TIMESTAMP,
    TYPE,
    UINT,
    DynType,
    ListType,
    MapType,
    NullableType,
    TypeDescriptor,
    list_of,
    map_of,
)

from ._errors import ConversionError

Value = Union[celtypes.Value, CELEvalError]

PRIMITIVE_CLASSES: dict[type, TypeDescriptor] = {
    celtypes.BoolType: BOOL,
    celtypes.IntType: INT,
    celtypes.UintType: UINT,
    celtypes.DoubleType: DOUBLE,
    celtypes.StringType: STRING,
    celtypes.BytesType: BYTES,
    celtypes.TimestampType: TIMESTAMP,
    celtypes.DurationType: DURATION,
    celtypes.ListType: list_of(DYN),
    celtypes.MapType: map_of(DYN, DYN),
}

VALUE_CLASSES: tuple[type, ...] = (*PRIMITIVE_CLASSES, CELEvalError)

_UNION_ORIGINS = (Union, types.UnionType)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def is_value(value: Any) -> bool:
    return isinstance(value, VALUE_CLASSES)


def is_error(value: Any) -> bool:
    return isinstance(value, CELEvalError)


def is_value_class(target: Any) -> bool:
    """Whether *target* is an engine value class (or a subclass of one)."""
    return isinstance(target, type) and issubclass(target, VALUE_CLASSES)


def _resolve(annotation: Any) -> Any:
    # celtypes.Value spells its members as forward references.
    if isinstance(annotation, typing.ForwardRef):
        return getattr(celtypes, annotation.__forward_arg__, annotation)
    return annotation


def is_value_annotation(annotation: Any) -> bool:
    """A value class, or a union made only of value classes and ``None``."""
    if typing.get_origin(annotation) in _UNION_ORIGINS:
        members = [_resolve(a) for a in typing.get_args(annotation) if a is not type(None)]
        return bool(members) and all(is_value_annotation(a) for a in members)
    return is_value_class(_resolve(annotation))


def error(message: str) -> CELEvalError:
    return CELEvalError(message)


def error_message(err: CELEvalError) -> str:
    return str(err.args[0]) if err.args else "error"


def no_such_overload(function: str, *args: Any) -> CELEvalError:
    operands = ", ".join(str(type_of(a)) for a in args)
    return error(f"no such overload: {function}({operands})")


def type_of(value: Any) -> TypeDescriptor:
    """Engine type of a runtime value."""
    if value is None:
        return NULL
    if isinstance(value, type):
        return TYPE
    declared = getattr(value, "declared_type", None)
    if callable(declared):
        return declared()
    for cls in type(value).__mro__:
        descriptor = PRIMITIVE_CLASSES.get(cls)
        if descriptor is not None:
            return descriptor
    return DYN


def accepts(descriptor: TypeDescriptor, value: Any) -> bool:
    """Whether an overload parameter of type *descriptor* takes *value*."""
    if isinstance(descriptor, DynType):
        return True
    if isinstance(descriptor, NullableType):
        return value is None or accepts(descriptor.target_type, value)
    actual = type_of(value)
    if isinstance(descriptor, ListType):
        return isinstance(actual, ListType) and all(
            accepts(descriptor.element_type, v) for v in value
        )
    if isinstance(descriptor, MapType):
        return isinstance(actual, MapType) and all(
            accepts(descriptor.key_type, k) and accepts(descriptor.value_type, v)
            for k, v in value.items()
        )
    return str(actual) == str(descriptor)


# ---------------------------------------------------------------------------
# Conversion to host values
# ---------------------------------------------------------------------------

def to_native(value: Any) -> Any:
    """Plain Python form of an engine value; host objects come back unwrapped."""
    if value is None:
        return None
    unwrap = getattr(value, "unwrap", None)
    if callable(unwrap):
        return unwrap()
    if isinstance(value, celtypes.BoolType):
        return bool(value)
    if isinstance(value, (celtypes.IntType, celtypes.UintType)):
        return int(value)
    if isinstance(value, celtypes.DoubleType):
        return float(value)
    if isinstance(value, celtypes.StringType):
        return str(value)
    if isinstance(value, celtypes.BytesType):
        return bytes(value)
    if isinstance(value, celtypes.TimestampType):
        return datetime(
            value.year, value.month, value.day,
            value.hour, value.minute, value.second, value.microsecond,
            tzinfo=value.tzinfo,
        )
    if isinstance(value, celtypes.DurationType):
        return timedelta(days=value.days, seconds=value.seconds, microseconds=value.microseconds)
    if isinstance(value, celtypes.ListType):
        return [to_native(v) for v in value]
    if isinstance(value, celtypes.MapType):
        return {to_native(k): to_native(v) for k, v in value.items()}
    return value


def unwrap_optional(target: Any) -> Any:
    """``Optional[T]`` -> ``T``; anything else unchanged."""
    if typing.get_origin(target) in _UNION_ORIGINS:
        members = [a for a in typing.get_args(target) if a is not type(None)]
        if len(members) == 1:
            return members[0]
    return target


def _target_name(target: Any) -> str:
    return getattr(target, "__qualname__", None) or str(target)


def _mismatch(value: Any, target: Any) -> ConversionError:
    return ConversionError(
        f"type conversion error from '{type_of(value)}' to '{_target_name(target)}'"
    )


# host scalar type -> engine classes it may be converted from
_SCALAR_SOURCES: dict[type, tuple[type, ...]] = {
    bool: (celtypes.BoolType,),
    int: (celtypes.IntType, celtypes.UintType),
    float: (celtypes.DoubleType, celtypes.IntType, celtypes.UintType),
    str: (celtypes.StringType,),
    bytes: (celtypes.BytesType,),
    bytearray: (celtypes.BytesType,),
    datetime: (celtypes.TimestampType,),
    timedelta: (celtypes.DurationType,),
}

_SEQUENCE_ORIGINS = (list, tuple, set, frozenset, collections.abc.Sequence, collections.abc.Iterable)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping)


def convert_to_native(value: Any, target: Any) -> Any:
    """Convert engine *value* to host type *target*.

    Raises ``ConversionError`` when the value's type has no conversion
    to the target.
    """
    if isinstance(value, CELEvalError):
        raise ConversionError(error_message(value))
    optional = unwrap_optional(target)
    if value is None:
        if target in (None, type(None), Any, object) or optional is not target:
            return None
        raise _mismatch(value, target)
    target = optional
    if target is Any or target is object:
        return to_native(value)
    if is_value_class(target):
        if isinstance(value, target):
            return value
        raise _mismatch(value, target)
    hook = getattr(value, "convert_to_native", None)
    if callable(hook):
        return hook(target)

    sources = _SCALAR_SOURCES.get(target)
    if sources is not None:
        if isinstance(value, sources):
            return target(to_native(value)) if target in (float, bytearray) else to_native(value)
        raise _mismatch(value, target)

    origin = typing.get_origin(target) or target
    args = typing.get_args(target)
    if origin in _SEQUENCE_ORIGINS and isinstance(value, celtypes.ListType):
        if origin is tuple and args and args[-1] is not Ellipsis:
            if len(args) != len(value):
                raise _mismatch(value, target)
            return tuple(convert_to_native(v, a) for v, a in zip(value, args))
        element = args[0] if args else Any
        items = [convert_to_native(v, element) for v in value]
        if origin in (tuple, set, frozenset):
            return origin(items)
        return items
    if origin in _MAPPING_ORIGINS and isinstance(value, celtypes.MapType):
        key_type, value_type = args if len(args) == 2 else (Any, Any)
        return {
            convert_to_native(k, key_type): convert_to_native(v, value_type)
            for k, v in value.items()
        }
    raise _mismatch(value, target)
