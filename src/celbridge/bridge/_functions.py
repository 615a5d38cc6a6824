"""FunctionBinder: host callables -> engine overloads and calling thunks.

Each registration introspects the callable once, derives its overload
declaration, and builds a thunk that unwraps engine arguments, calls the
host function and re-adapts its result.  Overload ids are a function of
name, parameter types, result type and the member flag, so registering
the same signature twice is a no-op.

celpy calls functions by name with the receiver of a member call as the
first argument, so member and global overloads of a name share one
dispatcher, which picks the first overload whose parameter types accept
the arguments.
"""

from __future__ import annotations

import inspect
import logging
import threading
import typing
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from celpy.evaluation import CELEvalError, base_functions

from celbridge.engine import Value, accepts, error, is_value_annotation, to_native, type_of
from celbridge.model.declarations import FunctionDecl, OverloadDecl
from celbridge.model.types import NULL, Trait, TypeDescriptor

from ._errors import RegistrationError, SignatureError, UnsupportedTypeError
from ._hosttypes import is_error_shaped, resolved_signature, strip_annotated
from ._type_mapper import TypeMapper

logger = logging.getLogger(__name__)

Thunk = Callable[..., Value]


@dataclass(frozen=True)
class FunctionBinding:
    """A registered overload: its declaration plus the calling thunk.

    ``operand_trait`` is set for operator overloads implemented by a
    capability of the operand rather than by a registered function.
    """

    overload_id: str
    name: str
    params: tuple[TypeDescriptor, ...]
    result: TypeDescriptor
    member: bool
    thunk: Thunk
    operand_trait: int = 0

    def declaration(self) -> OverloadDecl:
        return OverloadDecl(
            overload_id=self.overload_id,
            params=list(self.params),
            result=self.result,
            member=self.member,
            operand_trait=self.operand_trait,
        )

    def accepts(self, args: tuple[Any, ...]) -> bool:
        return len(args) == len(self.params) and all(
            accepts(p, a) for p, a in zip(self.params, args)
        )


def overload_id(
    name: str,
    params: list[TypeDescriptor] | tuple[TypeDescriptor, ...],
    result: TypeDescriptor,
    member: bool = False,
) -> str:
    """``name|@|p1,p2|result``, or ``name|member@|...`` for member overloads."""
    marker = "member@" if member else "@"
    return f"{name}|{marker}|{','.join(str(p) for p in params)}|{result}"


def _is_value_annotation(annotation: Any) -> bool:
    annotation, _ = strip_annotated(annotation)
    return is_value_annotation(annotation)


# ---------------------------------------------------------------------------
# Result shape
# ---------------------------------------------------------------------------

def _result_shape(name: str, annotation: Any) -> tuple[Any, bool]:
    """Split a return annotation into ``(payload type, has error tail)``."""
    if annotation is inspect.Signature.empty:
        raise SignatureError(f"the result of function {name} is unspecified")
    if annotation is None or annotation is type(None):
        raise SignatureError(f"function {name}: result is required")
    bare, _ = strip_annotated(annotation)
    if typing.get_origin(bare) is tuple:
        args = typing.get_args(bare)
        if args and args[-1] is not Ellipsis and is_error_shaped(args[-1]):
            if len(args) == 1:
                raise SignatureError(f"function {name}: result is required")
            if len(args) > 2:
                raise SignatureError(f"function {name}: too many results")
            return args[0], True
    return annotation, False


# ---------------------------------------------------------------------------
# Thunks
# ---------------------------------------------------------------------------

def _build_thunk(
    fn: Callable[..., Any],
    passthrough: list[bool],
    has_error: bool,
    adapt: Callable[[Any], Value],
) -> Thunk:
    def finish(result: Any) -> Value:
        if has_error:
            payload, err = result
            if err is not None:
                return error(str(err))
            result = payload
        return adapt(result)

    arity = len(passthrough)
    if arity == 0:
        def call0() -> Value:
            return finish(fn())
        return call0

    if arity == 1:
        keep0 = passthrough[0]

        def call1(a: Value) -> Value:
            return finish(fn(a if keep0 else to_native(a)))
        return call1

    if arity == 2:
        keep0, keep1 = passthrough

        def call2(a: Value, b: Value) -> Value:
            return finish(fn(a if keep0 else to_native(a), b if keep1 else to_native(b)))
        return call2

    def call_n(*args: Value) -> Value:
        return finish(fn(*(a if keep else to_native(a) for a, keep in zip(args, passthrough))))
    return call_n


# ---------------------------------------------------------------------------
# Binder
# ---------------------------------------------------------------------------

class FunctionBinder:
    """Owns the overload table of a registry.

    Parameters
    ----------
    type_mapper : TypeMapper
        Maps parameter and result annotations to engine types.
    adapt : callable
        Converts host results to engine values.
    """

    def __init__(self, type_mapper: TypeMapper, adapt: Callable[[Any], Value]) -> None:
        self.type_mapper = type_mapper
        self.adapt = adapt
        self._bindings: dict[str, FunctionBinding] = {}
        # name -> overloads in registration order; replaced, never mutated
        self._by_name: dict[str, tuple[FunctionBinding, ...]] = {}
        self._dispatchers: dict[str, Thunk] = {}
        self._lock = threading.RLock()

    # -- registration ---------------------------------------------------

    def register_function(
        self,
        name: str,
        fn: Callable[..., Any],
        member: bool = False,
        receiver: Any = None,
    ) -> FunctionBinding:
        """Validate *fn* and declare it as an overload of *name*.

        Parameters
        ----------
        name : str
            Function name in expressions.
        fn : callable
            Host callable; every parameter and the result must be annotated.
        member : bool
            Declare a receiver-style overload (``x.name(...)``); the first
            parameter is the receiver.
        receiver : type, optional
            Host type of an unannotated first parameter, for methods taken
            from a class whose ``self`` carries no annotation.
        """
        if not callable(fn):
            raise RegistrationError(f"function {name} must be callable, not {type(fn).__name__}")
        try:
            signature, hints = resolved_signature(fn)
        except (TypeError, ValueError) as exc:
            raise SignatureError(f"function {name}: malformed signature: {exc}") from exc

        params = list(signature.parameters.values())
        for p in params:
            if p.kind not in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD):
                raise SignatureError(
                    f"function {name}: malformed signature: parameter '{p.name}' is not positional"
                )

        result_hint, has_error = _result_shape(
            name, hints.get("return", signature.return_annotation)
        )
        annotations = [hints.get(p.name, p.annotation) for p in params]
        if receiver is not None and annotations and annotations[0] is inspect.Parameter.empty:
            annotations[0] = receiver

        param_types = [
            self._map(name, annotation, f"parameter {i}")
            for i, annotation in enumerate(annotations)
        ]
        result_type = self._map(name, result_hint, "result")
        if member and not param_types:
            raise SignatureError(f"member function {name} must take at least one parameter")

        oid = overload_id(name, param_types, result_type, member)
        with self._lock:
            existing = self._bindings.get(oid)
            if existing is not None:
                logger.debug("overload %s already registered, ignoring", oid)
                return existing
            binding = FunctionBinding(
                overload_id=oid,
                name=name,
                params=tuple(param_types),
                result=result_type,
                member=member,
                thunk=_build_thunk(
                    fn, [_is_value_annotation(a) for a in annotations], has_error, self.adapt
                ),
            )
            self._add(binding)
        logger.debug("registered overload %s", oid)
        return binding

    def add_operator_overload(
        self,
        name: str,
        params: list[TypeDescriptor],
        result: TypeDescriptor,
        trait: Trait,
        implementation: Thunk,
        member: bool = False,
    ) -> bool:
        """Declare an overload implemented by an operand capability.

        Returns ``False`` when an identical overload already exists.
        """
        oid = overload_id(name, params, result, member)
        with self._lock:
            if oid in self._bindings:
                return False
            self._add(FunctionBinding(
                overload_id=oid,
                name=name,
                params=tuple(params),
                result=result,
                member=member,
                thunk=implementation,
                operand_trait=int(trait),
            ))
        logger.debug("registered operator overload %s", oid)
        return True

    def _add(self, binding: FunctionBinding) -> None:
        self._bindings[binding.overload_id] = binding
        self._by_name[binding.name] = (*self._by_name.get(binding.name, ()), binding)

    def _map(self, name: str, annotation: Any, what: str) -> TypeDescriptor:
        if annotation is inspect.Parameter.empty:
            raise SignatureError(f"the {what} of function {name} is unspecified")
        try:
            descriptor = self.type_mapper.map_type(annotation)
        except UnsupportedTypeError as exc:
            raise UnsupportedTypeError(exc.host_type, f"{what} of function {name}") from exc
        if descriptor == NULL:
            raise SignatureError(f"the {what} of function {name} is unspecified")
        return descriptor

    # -- lookup ---------------------------------------------------------

    def has_overload(self, oid: str) -> bool:
        return oid in self._bindings

    def has_function(self, name: str) -> bool:
        return name in self._by_name

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._by_name)

    def find_binding(self, oid: str) -> Thunk | None:
        binding = self._bindings.get(oid)
        return binding.thunk if binding is not None else None

    def function_decls(self) -> list[FunctionDecl]:
        """Declared functions sorted by name; overloads in registration order."""
        with self._lock:
            return [
                FunctionDecl(
                    name=name,
                    overloads=[b.declaration() for b in self._by_name[name]],
                )
                for name in sorted(self._by_name)
            ]

    # -- dispatch -------------------------------------------------------

    def dispatch(self, name: str, args: tuple[Any, ...]) -> Value:
        """Call the first overload of *name* accepting *args*.

        Names the engine also implements fall back to its standard
        function; otherwise a ``TypeError`` reports the missing overload.
        """
        for arg in args:
            if isinstance(arg, CELEvalError):
                return arg
        for binding in self._by_name.get(name, ()):
            if binding.accepts(args):
                return binding.thunk(*args)
        standard = base_functions.get(name)
        if standard is not None:
            return standard(*args)
        operands = ", ".join(str(type_of(a)) for a in args)
        raise TypeError(f"no such overload: {name}({operands})")

    def dispatcher(self, name: str) -> Thunk:
        with self._lock:
            found = self._dispatchers.get(name)
            if found is None:
                def dispatch(*args: Any) -> Value:
                    return self.dispatch(name, args)
                dispatch.__name__ = name
                found = self._dispatchers[name] = dispatch
            return found


class FunctionTable(Mapping):
    """Live name -> dispatcher view of a binder, handed to celpy.

    Registrations made after a program is built are visible to it.
    """

    def __init__(self, binder: FunctionBinder) -> None:
        self._binder = binder

    def __getitem__(self, name: str) -> Thunk:
        if not self._binder.has_function(name):
            raise KeyError(name)
        return self._binder.dispatcher(name)

    def __iter__(self) -> Iterator[str]:
        return iter(self._binder.names())

    def __len__(self) -> int:
        return len(self._binder.names())

    def copy(self) -> FunctionTable:
        return self
