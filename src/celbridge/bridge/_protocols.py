"""Optional hooks host values may implement to steer registration.

Hosts do not inherit from these protocols; the bridge looks the hook
method up on the instance with ``hook``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from celbridge.engine import Value
from celbridge.model.types import TypeDescriptor


class DeclaresType(Protocol):
    """Supplies the engine type to declare, overriding inference."""

    def declared_type(self) -> TypeDescriptor: ...


class ConvertsToValue(Protocol):
    """Supplies its own engine value when adapted."""

    def to_value(self) -> Value: ...


class ExposesMethods(Protocol):
    """Names the methods to register as member functions of its type."""

    def exposed_methods(self) -> list[str]: ...


def hook(value: Any, name: str) -> Callable[..., Any] | None:
    """Bound hook method *name* of a host instance, or ``None``."""
    if isinstance(value, type):
        return None
    method = getattr(value, name, None)
    return method if callable(method) else None
