"""Registry: the composition root of the bridge.

Host code registers values, types, functions and conversions here; the
expression engine consumes the registry as its library: annotations for
the registered struct types, a function table dispatching to the
registered overloads, the adapted global variables, and the adapter and
type provider behind them.

Example::

    reg = Registry(tag_name="json")
    reg.register("p", Point(x=2, y=3))
    reg.register("concat", concat)
    Environment(reg).evaluate("p.x + p.y")
"""

from __future__ import annotations

import dataclasses
import logging
import re
import threading
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel

from celbridge import engine
from celbridge.engine import BaseProvider, ConversionError, FieldType, Value, error, is_value
from celbridge.model.declarations import Declarations, TypeDecl
from celbridge.model.types import ObjectType, TypeDescriptor, is_type_descriptor

from ._adapter import ValueAdapter
from ._errors import RegistrationError
from ._fields import StructFieldIndex
from ._functions import FunctionBinder, FunctionBinding, FunctionTable
from ._hosttypes import is_struct_class
from ._objects import NativeObject, is_zero
from ._protocols import hook
from ._traits import CapabilityCache, TraitRegistrar
from ._type_mapper import TypeMapper
from ._variables import VariableStore

logger = logging.getLogger(__name__)

# Names the engine can bind: dotted identifiers.
_NAME = re.compile(r"^[_a-zA-Z][_a-zA-Z0-9]*(?:\.[_a-zA-Z][_a-zA-Z0-9]*)*$")


class StructConstructor:
    """Builds a registered struct from an object literal, ``T{f: v}``."""

    def __init__(self, registry: Registry, type_name: str) -> None:
        self.registry = registry
        self.type_name = type_name

    def __call__(self, fields: Mapping[Any, Value] | None = None) -> Value:
        return self.registry.new_value(self.type_name, {str(k): v for k, v in (fields or {}).items()})

    def __repr__(self) -> str:
        return f"StructConstructor({self.type_name!r})"


class Registry:
    """Registers host values for use in expressions.

    Parameters
    ----------
    library_name : str
        Name of this library, for diagnostics.
    tag_name : str
        Naming convention for struct fields: the tag key whose value gives
        a field's external name.  Empty means declared attribute names.
    adapter : TypeAdapter, optional
        Adapter for host values the bridge has no rule for.  Defaults to
        the engine's ``BaseProvider``.
    provider : TypeProvider, optional
        Provider consulted for identifiers and types not registered here.
        Defaults to the engine's ``BaseProvider``.
    """

    def __init__(
        self,
        library_name: str = "",
        *,
        tag_name: str = "",
        adapter: engine.TypeAdapter | None = None,
        provider: engine.TypeProvider | None = None,
    ) -> None:
        self.library_name = library_name
        self.tag_name = tag_name
        base = BaseProvider()
        self.provider = provider if provider is not None else base

        self._lock = threading.RLock()
        self._types: dict[str, ObjectType] = {}
        self._struct_classes: dict[str, type] = {}
        self._aliases: dict[str, str] = {}
        self._walked: set[type] = set()

        self.capabilities = CapabilityCache()
        self.type_mapper = TypeMapper(self.capabilities.traits_of, on_struct=self._on_struct)
        self.field_index = StructFieldIndex()
        self.adapter = ValueAdapter(
            self.type_mapper,
            self.field_index,
            tag_name,
            fallback=adapter if adapter is not None else base,
        )
        self.binder = FunctionBinder(self.type_mapper, self.adapter.native_to_value)
        self.traits = TraitRegistrar(self.binder)
        self.variables = VariableStore()
        self._function_table = FunctionTable(self.binder)

    # -----------------------------------------------------------------------
    # Registration
    # -----------------------------------------------------------------------

    def register(self, name: str, value: Any, type_hint: Any = None) -> None:
        """Register *value* under *name*.

        Classes register as types, also resolvable as *name*; other
        callables register as functions, and anything else as a variable.
        """
        if isinstance(value, type):
            descriptor = self.register_type(value)
            if isinstance(descriptor, ObjectType):
                self.register_alias(name, descriptor.name)
        elif callable(value) and not is_value(value) and not is_struct_class(type(value)):
            self.register_function(name, value)
        else:
            self.register_variable(name, value, type_hint)

    def register_alias(self, name: str, type_name: str) -> None:
        """Make the registered type *type_name* resolvable as *name* too.

        The first alias registered under a name wins.
        """
        if type_name not in self._types:
            raise RegistrationError(f"unknown type: {type_name}")
        if name == type_name:
            return
        if not _NAME.match(name):
            raise RegistrationError(f"invalid type name: {name!r}")
        with self._lock:
            if name in self._aliases or name in self._types:
                logger.debug("type name %s already registered, ignoring", name)
                return
            self._aliases[name] = type_name
        logger.debug("registered type alias %s -> %s", name, type_name)

    def register_variable(self, name: str, value: Any, type_hint: Any = None) -> None:
        """Declare a global variable; later registrations of *name* are ignored.

        The declared type is, in order of priority: *type_hint* (an engine
        type descriptor or a host annotation), the value's own
        ``declared_type()``, or the type inferred from the value.
        """
        if name in self.variables:
            logger.debug("variable %s already registered, ignoring", name)
            return
        descriptor = self._variable_type(value, type_hint)
        self._discover_nested()
        if is_value(value) and isinstance(descriptor, ObjectType):
            self._add_type(descriptor)
        if hook(value, "exposed_methods") is not None:
            self._register_exposed_methods(value, type(value))
        self.variables.register(name, descriptor, value)

    def _variable_type(self, value: Any, type_hint: Any) -> TypeDescriptor:
        if type_hint is not None:
            if is_type_descriptor(type_hint):
                return type_hint
            return self.type_mapper.map_type(type_hint)
        declared = hook(value, "declared_type")
        if declared is not None:
            return declared()
        if is_value(value):
            return engine.type_of(value)
        return self.type_mapper.map_type(type(value))

    def register_type(self, obj: Any) -> TypeDescriptor:
        """Make a type known to expressions.

        Accepts an engine value, an engine value class, an object type
        descriptor, a host struct class, or a host struct instance.
        """
        if is_type_descriptor(obj):
            if isinstance(obj, ObjectType):
                self._add_type(obj)
            return obj
        if is_value(obj):
            descriptor = engine.type_of(obj)
            if isinstance(descriptor, ObjectType):
                self._add_type(descriptor)
            return descriptor
        if isinstance(obj, type):
            if not engine.is_value_class(obj) and not is_struct_class(obj):
                raise RegistrationError(f"cannot register {obj.__qualname__} as a type")
            descriptor = self.type_mapper.map_type(obj)
            if engine.is_value_class(obj) and isinstance(descriptor, ObjectType):
                self._add_type(descriptor)
            self._discover_nested()
            return descriptor
        if is_struct_class(type(obj)):
            descriptor = self.register_type(type(obj))
            if hook(obj, "exposed_methods") is not None:
                self._register_exposed_methods(obj, type(obj))
            return descriptor
        raise RegistrationError(f"cannot register a type for {type(obj).__qualname__}")

    def register_function(self, name: str, fn: Callable[..., Any]) -> FunctionBinding:
        """Register *fn* as a global overload of *name*."""
        return self.binder.register_function(name, fn, member=False)

    def register_method(self, name: str, fn: Callable[..., Any]) -> FunctionBinding:
        """Register *fn* as a member overload; its first parameter is the receiver."""
        return self.binder.register_function(name, fn, member=True)

    def register_conversion(self, fn: Callable[[Any], Value], source_type: type | None = None) -> type:
        """Register a host type -> engine value conversion overriding the generic rules."""
        return self.adapter.register_conversion(fn, source_type)

    # -- helpers --------------------------------------------------------

    def _on_struct(self, cls: type, descriptor: TypeDescriptor) -> None:
        if not isinstance(descriptor, ObjectType):
            return
        with self._lock:
            self._struct_classes.setdefault(descriptor.name, cls)
            self._add_type(descriptor)
        self.traits.register(descriptor, self.capabilities.traits_of(cls))

    def _add_type(self, descriptor: ObjectType) -> None:
        with self._lock:
            if descriptor.name not in self._types:
                self._types[descriptor.name] = descriptor
                logger.debug("registered type %s", descriptor.name)

    def _discover_nested(self) -> None:
        # Struct types reachable through fields of registered structs are
        # declared too; walk them breadth-first until no new ones appear.
        while True:
            with self._lock:
                pending = [c for c in self._struct_classes.values() if c not in self._walked]
                self._walked.update(pending)
            if not pending:
                return
            for cls in pending:
                for field in self.field_index.fields(cls, self.tag_name).values():
                    self.type_mapper.try_map_type(field.host_type)

    def _register_exposed_methods(self, value: Any, cls: type) -> None:
        for method in value.exposed_methods():
            fn = getattr(cls, method, None)
            if fn is None or not callable(fn):
                raise RegistrationError(f"{cls.__qualname__} has no method {method!r}")
            self.binder.register_function(method, fn, member=True, receiver=cls)

    # -----------------------------------------------------------------------
    # Library surface
    # -----------------------------------------------------------------------

    def compile_options(self) -> Declarations:
        """All declarations of this registry, each list sorted by name."""
        with self._lock:
            types = [TypeDecl(name=name, type=self._types[name]) for name in sorted(self._types)]
        return Declarations(
            types=types,
            functions=self.binder.function_decls(),
            variables=self.variables.declarations(),
        )

    def annotations(self) -> dict[str, Any]:
        """Type names bound for the engine, each to its constructor.

        Names the engine cannot bind, such as classes defined inside a
        function, are left out.
        """
        with self._lock:
            names = sorted({*self._struct_classes, *self._aliases})
        annotations: dict[str, Any] = {}
        for name in names:
            if not _NAME.match(name):
                logger.debug("type %s has no bindable name, skipping", name)
                continue
            constructor = self.find_ident(name)
            if constructor is not None:
                annotations[name] = constructor
        return annotations

    def functions(self) -> FunctionTable:
        """Live function table: name -> dispatcher over its overloads."""
        return self._function_table

    def activation(self) -> dict[str, Value]:
        """Global variables, adapted fresh for one evaluation."""
        bindings: dict[str, Value] = {}
        for entry in self.variables.entries():
            if not _NAME.match(entry.name):
                logger.debug("variable %s has no bindable name, skipping", entry.name)
                continue
            bindings[entry.name] = self.native_to_value(entry.value)
        return bindings

    def find_binding(self, overload_id: str) -> Callable[..., Value] | None:
        return self.binder.find_binding(overload_id)

    def native_to_value(self, value: Any) -> Value:
        return self.adapter.native_to_value(value)

    def resolve_name(self, name: str) -> tuple[Any, bool]:
        return self.variables.resolve_name(name)

    def _type_name(self, name: str) -> str:
        return self._aliases.get(name, name)

    def find_ident(self, name: str) -> Any | None:
        if self._type_name(name) in self._struct_classes:
            return StructConstructor(self, self._type_name(name))
        return self.provider.find_ident(name)

    def find_struct_type(self, name: str) -> TypeDescriptor | None:
        descriptor = self._types.get(self._type_name(name))
        if descriptor is not None:
            return descriptor
        return self.provider.find_struct_type(name)

    def find_struct_field_type(self, type_name: str, field_name: str) -> FieldType | None:
        cls = self._struct_classes.get(self._type_name(type_name))
        if cls is None:
            return self.provider.find_struct_field_type(type_name, field_name)
        field = self.field_index.field(cls, field_name, self.tag_name)
        if field is None:
            return None
        descriptor, ok = self.type_mapper.try_map_type(field.host_type)
        if not ok:
            return None
        attribute = field.attribute

        def host(obj: Any) -> Any:
            return obj.unwrap() if isinstance(obj, NativeObject) else obj

        return FieldType(
            type=descriptor,
            is_set=lambda obj: not is_zero(getattr(host(obj), attribute, None)),
            get_from=lambda obj: self.native_to_value(getattr(host(obj), attribute, None)),
        )

    def new_value(self, type_name: str, fields: Mapping[str, Value]) -> Value:
        """Construct a registered host struct from engine field values."""
        cls = self._struct_classes.get(self._type_name(type_name))
        if cls is None:
            return self.provider.new_value(type_name, fields)
        values: dict[str, Any] = {}
        for name, value in fields.items():
            field = self.field_index.field(cls, str(name), self.tag_name)
            if field is None:
                return error(f"no such field: {name}")
            try:
                values[field.attribute] = self.adapter.convert_to_native(value, field.host_type)
            except ConversionError as exc:
                return error(str(exc))
        try:
            obj = _construct(cls, values)
        except (TypeError, ValueError) as exc:
            return error(f"cannot construct {type_name}: {exc}")
        return self.native_to_value(obj)

    def __repr__(self) -> str:
        return f"Registry({self.library_name!r}, tag_name={self.tag_name!r})"


def _construct(cls: type, values: dict[str, Any]) -> Any:
    if dataclasses.is_dataclass(cls) or issubclass(cls, BaseModel) or hasattr(cls, "_fields"):
        return cls(**values)
    obj = cls()
    for attribute, value in values.items():
        setattr(obj, attribute, value)
    return obj
