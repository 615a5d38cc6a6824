"""celbridge host bridge: public API.

Users import everything from this single flat namespace::

    from celbridge.bridge import Registry, Tags
"""

from ._adapter import ConversionRule, ValueAdapter
from ._errors import (
    RegistrationError,
    SignatureError,
    UnsupportedTypeError,
)
from ._fields import FieldDescriptor, StructFieldIndex, external_name
from ._functions import FunctionBinder, FunctionBinding, FunctionTable, overload_id
from ._hosttypes import Tags, qualified_name
from ._objects import CAPABILITY_METHODS, NativeObject, deep_equal, is_zero
from ._protocols import ConvertsToValue, DeclaresType, ExposesMethods, hook
from ._registry import Registry, StructConstructor
from ._traits import CapabilityCache, TraitRegistrar
from ._type_mapper import TypeMapper
from ._variables import VariableEntry, VariableStore

__all__ = [
    # Composition root
    "Registry",
    # Components
    "CapabilityCache",
    "FunctionBinder",
    "StructFieldIndex",
    "TraitRegistrar",
    "TypeMapper",
    "ValueAdapter",
    "VariableStore",
    # Data
    "ConversionRule",
    "FieldDescriptor",
    "FunctionBinding",
    "FunctionTable",
    "NativeObject",
    "StructConstructor",
    "Tags",
    "VariableEntry",
    # Host hooks
    "ConvertsToValue",
    "DeclaresType",
    "ExposesMethods",
    "hook",
    # Errors
    "RegistrationError",
    "SignatureError",
    "UnsupportedTypeError",
    # Helpers
    "CAPABILITY_METHODS",
    "deep_equal",
    "external_name",
    "is_zero",
    "overload_id",
    "qualified_name",
]
