"""NativeObject: a host struct exposed to the engine as a message value."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

from celpy import celtypes
from pydantic import BaseModel

from celbridge.engine import (
    ConversionError,
    Value,
    error,
    no_such_overload,
    to_native,
    unwrap_optional,
)
from celbridge.model.types import ObjectType, Trait

from ._fields import FieldDescriptor

if TYPE_CHECKING:
    from ._adapter import ValueAdapter


# Host method implementing each operand capability.
CAPABILITY_METHODS: dict[Trait, str] = {
    Trait.ADDER: "add",
    Trait.SUBTRACTOR: "subtract",
    Trait.NEGATER: "negate",
    Trait.MULTIPLIER: "multiply",
    Trait.DIVIDER: "divide",
    Trait.MODDER: "modulo",
    Trait.COMPARER: "compare",
    Trait.INDEXER: "get",
    Trait.SIZER: "size",
    Trait.CONTAINER: "contains",
}


def is_zero(value: Any) -> bool:
    """Whether *value* is the zero value of its type (unset field)."""
    if value is None:
        return True
    if isinstance(value, (bool, int, float, complex)):
        return value == 0
    if isinstance(value, (str, bytes, bytearray, list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality of two host values."""
    if a is b:
        return True
    if type(a) is not type(b):
        return a == b if isinstance(a, (int, float)) and isinstance(b, (int, float)) else False
    if isinstance(a, Mapping):
        return a.keys() == b.keys() and all(deep_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and not hasattr(a, "_fields"):
        return len(a) == len(b) and all(deep_equal(x, y) for x, y in zip(a, b))
    if dataclasses.is_dataclass(a) or isinstance(a, BaseModel) or hasattr(a, "_fields"):
        return a == b
    if type(a).__eq__ is object.__eq__ and hasattr(a, "__dict__"):
        return deep_equal(vars(a), vars(b))
    return a == b


class NativeObject(celtypes.MessageType):
    """A host struct adapted for the engine.

    Created fresh per adaptation; holds a reference to the original host
    value and reads fields from it on demand, so the underlying dict is
    always empty.  ``get`` is field selection, as celpy uses it for
    ``e.f``; the host's own ``get`` indexer is reached through ``index``.
    Operand capabilities are only dispatched when the object type
    records them.
    """

    def __init__(
        self,
        value: Any,
        object_type: ObjectType,
        fields: dict[str, FieldDescriptor],
        adapter: ValueAdapter,
    ) -> None:
        super().__init__()
        self._value = value
        self._type = object_type
        self._fields = fields
        self._adapter = adapter

    def declared_type(self) -> ObjectType:
        return self._type

    def unwrap(self) -> Any:
        return self._value

    def convert_to_native(self, target: Any) -> Any:
        target = unwrap_optional(target)
        if target is Any or target is object:
            return self._value
        if isinstance(target, type):
            if isinstance(self._value, target):
                return self._value
            if isinstance(self, target):
                return self
        raise ConversionError(
            f"type conversion error from '{self._type}' to "
            f"'{getattr(target, '__qualname__', target)}'"
        )

    # -- fields ---------------------------------------------------------

    def _field(self, key: Any) -> FieldDescriptor | None:
        if not isinstance(key, str):
            return None
        return self._fields.get(str(key))

    def get(self, key: Any, default: Any = None) -> Value:
        if not isinstance(key, str):
            return no_such_overload("field", self, key)
        descriptor = self._field(key)
        if descriptor is None:
            return error(f"no such field: {key}")
        return self._adapter.native_to_value(getattr(self._value, descriptor.attribute, None))

    def is_set(self, key: Any) -> bool:
        descriptor = self._field(key)
        if descriptor is None:
            return False
        return not is_zero(getattr(self._value, descriptor.attribute, None))

    def __getitem__(self, key: Any) -> Value:
        descriptor = self._field(key)
        if descriptor is None:
            raise KeyError(key)
        return self._adapter.native_to_value(getattr(self._value, descriptor.attribute, None))

    def __contains__(self, key: object) -> bool:
        return self._field(key) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __bool__(self) -> bool:
        return True

    def keys(self):  # type: ignore[override]
        return self._fields.keys()

    # -- capabilities ----------------------------------------------------

    def call_capability(self, trait: Trait, *args: Any) -> Value:
        """Invoke the host method behind *trait*, adapting the result.

        Raises ``TypeError`` when the object type does not record the
        trait, which the engine reports as a missing overload.
        """
        method = CAPABILITY_METHODS[trait]
        if not self._type.has_trait(trait):
            raise TypeError(f"no such overload: {self._type.name}.{method}")
        impl = getattr(self._value, method)
        return self._adapter.native_to_value(impl(*(to_native(a) for a in args)))

    def index(self, key: Any) -> Value:
        return self.call_capability(Trait.INDEXER, key)

    # -- equality --------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NativeObject):
            return False
        return deep_equal(self._value, other._value)

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    def __repr__(self) -> str:
        return f"NativeObject({self._type.name}, {self._value!r})"
