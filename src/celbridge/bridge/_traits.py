"""Operator capability detection and overload synthesis.

``CapabilityCache`` checks a host class for the closed set of capability
methods once and remembers the answer; it is owned by a registry, so
separate registries never share results.  ``TraitRegistrar`` turns a
detected capability set into operator overloads, so values of that type
take part in ``+``, ``<``, ``[]``, ``in`` and ``size`` without
per-operator registration.  The overloads call back into the operand,
which only honours the capabilities recorded on its object type.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from celpy import celtypes
from celpy.evaluation import CELEvalError

from celbridge.engine import Value
from celbridge.model.operators import Operators
from celbridge.model.types import BOOL, DYN, INT, Trait, TypeDescriptor

from ._functions import FunctionBinder
from ._objects import CAPABILITY_METHODS

logger = logging.getLogger(__name__)

_BINARY_ARITHMETIC: dict[Trait, str] = {
    Trait.ADDER: Operators.ADD,
    Trait.SUBTRACTOR: Operators.SUBTRACT,
    Trait.MULTIPLIER: Operators.MULTIPLY,
    Trait.DIVIDER: Operators.DIVIDE,
    Trait.MODDER: Operators.MODULO,
}

_RELATIONS: dict[str, Callable[[int], bool]] = {
    Operators.LESS: lambda c: c < 0,
    Operators.LESS_EQUALS: lambda c: c <= 0,
    Operators.GREATER: lambda c: c > 0,
    Operators.GREATER_EQUALS: lambda c: c >= 0,
}


class CapabilityCache:
    """Per-class memo of implemented capabilities."""

    def __init__(self) -> None:
        self._cache: dict[type, Trait] = {}
        self._lock = threading.RLock()

    def traits_of(self, cls: type) -> Trait:
        cached = self._cache.get(cls)
        if cached is not None:
            return cached
        with self._lock:
            cached = self._cache.get(cls)
            if cached is None:
                cached = Trait.NONE
                for trait, method in CAPABILITY_METHODS.items():
                    # A data field that shadows a method name is not a capability.
                    if callable(getattr(cls, method, None)):
                        cached |= trait
                self._cache[cls] = cached
        return cached


# ---------------------------------------------------------------------------
# Operator implementations
# ---------------------------------------------------------------------------

def _unary(trait: Trait) -> Callable[[Any], Value]:
    def call(a: Any) -> Value:
        return a.call_capability(trait)
    return call


def _binary(trait: Trait) -> Callable[[Any, Any], Value]:
    def call(a: Any, b: Any) -> Value:
        return a.call_capability(trait, b)
    return call


def _relation(test: Callable[[int], bool]) -> Callable[[Any, Any], Value]:
    def call(a: Any, b: Any) -> Value:
        result = a.call_capability(Trait.COMPARER, b)
        if isinstance(result, CELEvalError):
            return result
        return celtypes.BoolType(test(int(result)))
    return call


def _index(a: Any, key: Any) -> Value:
    return a.index(key)


def _contains(item: Any, container: Any) -> Value:
    result = container.call_capability(Trait.CONTAINER, item)
    if isinstance(result, CELEvalError):
        return result
    return celtypes.BoolType(bool(result))


class TraitRegistrar:
    """Declares operator overloads for the capabilities of a type."""

    def __init__(self, binder: FunctionBinder) -> None:
        self.binder = binder

    def register(self, self_type: TypeDescriptor, traits: Trait) -> int:
        """Declare the overloads for *traits* on *self_type*.

        Returns the number of overloads newly declared; registering the
        same type and capability set again declares nothing.
        """
        declare = self.binder.add_operator_overload
        added = 0
        for trait, operator in _BINARY_ARITHMETIC.items():
            if traits & trait:
                added += declare(operator, [self_type, DYN], self_type, trait, _binary(trait))
        if traits & Trait.NEGATER:
            added += declare(
                Operators.NEGATE, [self_type], self_type, Trait.NEGATER, _unary(Trait.NEGATER)
            )
        if traits & Trait.COMPARER:
            added += declare(
                "compare", [self_type, DYN], INT, Trait.COMPARER,
                _binary(Trait.COMPARER), member=True,
            )
            for operator, test in _RELATIONS.items():
                added += declare(operator, [self_type, DYN], BOOL, Trait.COMPARER, _relation(test))
        if traits & Trait.INDEXER:
            added += declare(Operators.INDEX, [self_type, DYN], DYN, Trait.INDEXER, _index)
        if traits & Trait.SIZER:
            size = _unary(Trait.SIZER)
            added += declare(Operators.SIZE, [self_type], INT, Trait.SIZER, size)
            added += declare(Operators.SIZE, [self_type], INT, Trait.SIZER, size, member=True)
        if traits & Trait.CONTAINER:
            added += declare(Operators.IN, [DYN, self_type], BOOL, Trait.CONTAINER, _contains)
        if added:
            logger.debug("declared %d operator overloads for %s", added, self_type)
        return added
