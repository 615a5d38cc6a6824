"""Registration errors raised synchronously by ``Registry.register_*``.

A failed registration aborts only that item; everything registered
before it stays intact.
"""

from __future__ import annotations


class RegistrationError(Exception):
    """A value, type, function or conversion could not be registered."""


class UnsupportedTypeError(RegistrationError):
    """A host type has no engine representation (callables, complex, ...)."""

    def __init__(self, host_type: object, context: str = "") -> None:
        self.host_type = host_type
        name = getattr(host_type, "__qualname__", None) or repr(host_type)
        where = f" ({context})" if context else ""
        super().__init__(f"unsupported type: {name}{where}")


class SignatureError(RegistrationError):
    """A callable's signature cannot be bound as an overload."""
