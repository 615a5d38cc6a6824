"""Type descriptors shared by the bridge and the expression engine.

A ``TypeDescriptor`` is the engine-facing description of a value's type.
Descriptors are frozen pydantic models discriminated by ``kind``; the
engine identifies types by their rendered name (``str(descriptor)``), so
two descriptors with the same name are the same type.
"""

from __future__ import annotations

from enum import Enum, IntFlag
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Capability traits
# ---------------------------------------------------------------------------

class Trait(IntFlag):
    """Operator capabilities a value may implement."""

    NONE = 0
    ADDER = 1 << 0
    COMPARER = 1 << 1
    CONTAINER = 1 << 2
    DIVIDER = 1 << 3
    FIELD_TESTER = 1 << 4
    INDEXER = 1 << 5
    MODDER = 1 << 6
    MULTIPLIER = 1 << 7
    NEGATER = 1 << 8
    SIZER = 1 << 9
    SUBTRACTOR = 1 << 10


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

class PrimitiveKind(str, Enum):
    """Engine primitive types, valued by their engine type name."""

    BOOL = "bool"
    INT = "int"
    UINT = "uint"
    DOUBLE = "double"
    STRING = "string"
    BYTES = "bytes"
    NULL = "null_type"
    TYPE = "type"
    TIMESTAMP = "google.protobuf.Timestamp"
    DURATION = "google.protobuf.Duration"


class _Descriptor(BaseModel):
    model_config = ConfigDict(frozen=True)


class PrimitiveType(_Descriptor):
    """A primitive engine type (int, string, timestamp, ...)."""

    kind: Literal["primitive"] = "primitive"
    primitive: PrimitiveKind

    def __str__(self) -> str:
        return self.primitive.value


class ListType(_Descriptor):
    """list(element_type)"""

    kind: Literal["list"] = "list"
    element_type: TypeDescriptor

    def __str__(self) -> str:
        return f"list({self.element_type})"


class MapType(_Descriptor):
    """map(key_type, value_type)"""

    kind: Literal["map"] = "map"
    key_type: TypeDescriptor
    value_type: TypeDescriptor

    def __str__(self) -> str:
        return f"map({self.key_type}, {self.value_type})"


class ObjectType(_Descriptor):
    """A named object type with its capability bitmask."""

    kind: Literal["object"] = "object"
    name: str
    traits: int = 0

    def has_trait(self, trait: Trait) -> bool:
        return self.traits & trait == trait

    def __str__(self) -> str:
        return self.name


class NullableType(_Descriptor):
    """A type whose values may also be null."""

    kind: Literal["nullable"] = "nullable"
    target_type: TypeDescriptor

    def __str__(self) -> str:
        return f"nullable({self.target_type})"


class DynType(_Descriptor):
    """The dynamic type: any value, checked at evaluation time."""

    kind: Literal["dyn"] = "dyn"

    def __str__(self) -> str:
        return "dyn"


TypeDescriptor = Annotated[
    Union[
        PrimitiveType,
        ListType,
        MapType,
        ObjectType,
        NullableType,
        DynType,
    ],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Rebuild models with recursive TypeDescriptor references
# ---------------------------------------------------------------------------

ListType.model_rebuild()
MapType.model_rebuild()
NullableType.model_rebuild()


# ---------------------------------------------------------------------------
# Well-known descriptors
# ---------------------------------------------------------------------------

BOOL = PrimitiveType(primitive=PrimitiveKind.BOOL)
INT = PrimitiveType(primitive=PrimitiveKind.INT)
UINT = PrimitiveType(primitive=PrimitiveKind.UINT)
DOUBLE = PrimitiveType(primitive=PrimitiveKind.DOUBLE)
STRING = PrimitiveType(primitive=PrimitiveKind.STRING)
BYTES = PrimitiveType(primitive=PrimitiveKind.BYTES)
NULL = PrimitiveType(primitive=PrimitiveKind.NULL)
TYPE = PrimitiveType(primitive=PrimitiveKind.TYPE)
TIMESTAMP = PrimitiveType(primitive=PrimitiveKind.TIMESTAMP)
DURATION = PrimitiveType(primitive=PrimitiveKind.DURATION)
DYN = DynType()

# Struct-backed objects support field selection and presence tests;
# indexing is a separate capability of the host class.
STRUCT_TRAITS = int(Trait.FIELD_TESTER)


def list_of(element_type: TypeDescriptor) -> ListType:
    return ListType(element_type=element_type)


def map_of(key_type: TypeDescriptor, value_type: TypeDescriptor) -> MapType:
    return MapType(key_type=key_type, value_type=value_type)


def nullable(target_type: TypeDescriptor) -> NullableType:
    return NullableType(target_type=target_type)


def object_type(name: str, traits: int = 0) -> ObjectType:
    return ObjectType(name=name, traits=int(traits))


def is_type_descriptor(obj: object) -> bool:
    return isinstance(obj, (PrimitiveType, ListType, MapType, ObjectType, NullableType, DynType))
