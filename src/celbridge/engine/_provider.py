"""Default adapter and type provider.

``BaseProvider`` knows the JSON-shaped Python values celpy converts
natively and the built-in type names.  Host libraries delegate to it for
anything they do not handle themselves; on its own it is also the empty
library.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from celpy import celtypes
from celpy.adapter import json_to_cel

from celbridge.model.declarations import Declarations
from celbridge.model.types import TypeDescriptor

from ._protocols import FieldType
from ._values import Value, error


# Type names usable as identifiers, e.g. ``type(x) == int``.
BUILTIN_TYPE_NAMES: dict[str, Any] = {
    "bool": celtypes.BoolType,
    "bytes": celtypes.BytesType,
    "double": celtypes.DoubleType,
    "duration": celtypes.DurationType,
    "int": celtypes.IntType,
    "list": celtypes.ListType,
    "map": celtypes.MapType,
    "null_type": type(None),
    "string": celtypes.StringType,
    "timestamp": celtypes.TimestampType,
    "uint": celtypes.UintType,
}


class BaseProvider:
    """Adapter and provider for values with no host-specific handling."""

    def native_to_value(self, value: Any) -> Value:
        try:
            return json_to_cel(value)
        except (ValueError, TypeError):
            if isinstance(value, int):
                return error(f"integer overflow: {value}")
            return error(f"unsupported type conversion: '{type(value).__name__}'")

    def find_ident(self, name: str) -> Any | None:
        return BUILTIN_TYPE_NAMES.get(name)

    def find_struct_type(self, name: str) -> TypeDescriptor | None:
        return None

    def find_struct_field_type(self, type_name: str, field_name: str) -> FieldType | None:
        return None

    def new_value(self, type_name: str, fields: Mapping[str, Value]) -> Value:
        return error(f"unknown type: '{type_name}'")

    def compile_options(self) -> Declarations:
        return Declarations()

    def annotations(self) -> Mapping[str, Any]:
        return {}

    def functions(self) -> Mapping[str, Any]:
        return {}

    def activation(self) -> Mapping[str, Value]:
        return {}
