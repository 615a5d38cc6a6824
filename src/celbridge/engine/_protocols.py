"""Collaborator protocols of the expression engine.

An ``Environment`` talks to the host through these seams: an adapter
turns native values into engine values, a provider answers type and
identifier lookups, and a library supplies the annotations, function
table and variable bindings handed to celpy.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from celbridge.model.declarations import Declarations
from celbridge.model.types import TypeDescriptor

from ._values import Value


@dataclass(frozen=True)
class FieldType:
    """Type of a struct field plus accessors for reading and testing it."""

    type: TypeDescriptor
    is_set: Callable[[Any], bool]
    get_from: Callable[[Any], Value]


class TypeAdapter(Protocol):
    def native_to_value(self, value: Any) -> Value: ...


class TypeProvider(Protocol):
    def find_ident(self, name: str) -> Any | None: ...

    def find_struct_type(self, name: str) -> TypeDescriptor | None: ...

    def find_struct_field_type(self, type_name: str, field_name: str) -> FieldType | None: ...

    def new_value(self, type_name: str, fields: Mapping[str, Value]) -> Value: ...


class Library(TypeAdapter, TypeProvider, Protocol):
    """Everything an environment needs from a host library."""

    def compile_options(self) -> Declarations: ...

    def annotations(self) -> Mapping[str, Any]: ...

    def functions(self) -> Mapping[str, Callable[..., Value]]: ...

    def activation(self) -> Mapping[str, Value]: ...
