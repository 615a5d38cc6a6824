"""ValueAdapter: host value <-> engine value conversion.

``native_to_value`` is total: anything it cannot represent becomes a
``CELEvalError`` value, never a host exception.  Resolution order:

1. ``None`` -> null
2. engine values pass through; values with ``to_value()`` supply their own
3. a registered conversion rule for the exact host type
4. bytes-likes -> bytes, other sequences -> list (elements adapted)
5. mappings -> map (keys and values adapted)
6. ``datetime`` -> timestamp, ``timedelta`` -> duration
7. struct instances -> ``NativeObject``
8. everything else -> the fallback adapter
"""

from __future__ import annotations

import inspect
import logging
import threading
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

from celpy import celtypes
from celpy.evaluation import CELEvalError

from celbridge import engine
from celbridge.engine import (
    ConversionError,
    Value,
    error,
    is_value,
    is_value_annotation,
    is_value_class,
)

from ._errors import RegistrationError, SignatureError
from ._fields import StructFieldIndex
from ._hosttypes import is_struct_class, resolved_signature, strip_annotated
from ._objects import NativeObject
from ._protocols import hook
from ._type_mapper import TypeMapper

logger = logging.getLogger(__name__)

ConversionRule = Callable[[Any], Value]

_SEQUENCES = (list, tuple, set, frozenset)
_BYTES_LIKE = (bytes, bytearray, memoryview)
_SCALARS = (bool, int, float, str)


def _is_value_annotation(annotation: Any) -> bool:
    annotation, _ = strip_annotated(annotation)
    return is_value_annotation(annotation)


class ValueAdapter:
    """Converts host values to engine values and back.

    Parameters
    ----------
    type_mapper : TypeMapper
        Source of the object types given to adapted structs.
    field_index : StructFieldIndex
        Field name index used by adapted structs.
    tag_name : str
        Naming convention for struct field names.
    fallback : TypeAdapter, optional
        Adapter for values no rule here handles.
    """

    def __init__(
        self,
        type_mapper: TypeMapper,
        field_index: StructFieldIndex,
        tag_name: str = "",
        fallback: engine.TypeAdapter | None = None,
    ) -> None:
        self.type_mapper = type_mapper
        self.field_index = field_index
        self.tag_name = tag_name
        self.fallback = fallback if fallback is not None else engine.BaseProvider()
        self._rules: dict[type, ConversionRule] = {}
        self._lock = threading.RLock()

    # -----------------------------------------------------------------------
    # Conversion rules
    # -----------------------------------------------------------------------

    def register_conversion(self, fn: ConversionRule, source_type: type | None = None) -> type:
        """Register *fn* as the conversion for instances of one host type.

        The source type is *source_type* or, when omitted, the annotation
        of *fn*'s single parameter.  Returns the source type.
        """
        if not callable(fn):
            raise RegistrationError(f"conversion must be callable, not {type(fn).__name__}")
        try:
            signature, hints = resolved_signature(fn)
        except (TypeError, ValueError) as exc:
            raise SignatureError(f"malformed signature: {exc}") from exc
        params = [
            p for p in signature.parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
        if len(params) != 1:
            raise SignatureError(
                f"conversion must take exactly one argument, got {len(params)}"
            )
        if source_type is None:
            annotation = hints.get(params[0].name, params[0].annotation)
            source_type, _ = strip_annotated(annotation)
        if source_type is inspect.Parameter.empty or not isinstance(source_type, type):
            raise SignatureError("conversion source type is unspecified")
        if is_value_class(source_type):
            raise SignatureError(
                f"conversion source must be a host type, not {source_type.__qualname__}"
            )
        result = hints.get("return", signature.return_annotation)
        if result is not inspect.Signature.empty and not _is_value_annotation(result):
            raise SignatureError(
                f"conversion must return an engine value, not {result!r}"
            )

        with self._lock:
            if source_type in self._rules:
                raise RegistrationError(
                    f"conversion for {source_type.__qualname__} already registered"
                )
            self._rules[source_type] = fn
        logger.debug("registered conversion for %s", source_type.__qualname__)
        return source_type

    def has_conversion(self, host_type: type) -> bool:
        return host_type in self._rules

    # -----------------------------------------------------------------------
    # Host -> engine
    # -----------------------------------------------------------------------

    def native_to_value(self, value: Any) -> Value:
        if value is None:
            return None
        if is_value(value):
            return value
        to_value = hook(value, "to_value")
        if to_value is not None:
            return self._checked(to_value(), type(value))

        rule = self._rules.get(type(value))
        if rule is not None:
            return self._checked(rule(value), type(value))

        if isinstance(value, _BYTES_LIKE):
            return celtypes.BytesType(bytes(value))
        if isinstance(value, _SEQUENCES) and not hasattr(value, "_fields"):
            return celtypes.ListType([self.native_to_value(v) for v in value])
        if isinstance(value, Mapping):
            return self._map(value)
        if isinstance(value, datetime):
            return celtypes.TimestampType(value)
        if isinstance(value, timedelta):
            try:
                return celtypes.DurationType(value)
            except ValueError:
                return error(f"duration out of range: {value}")
        if not isinstance(value, _SCALARS) and is_struct_class(type(value)):
            return self._struct(value)
        return self.fallback.native_to_value(value)

    def _checked(self, result: Any, source: type) -> Value:
        if result is None or is_value(result):
            return result
        return error(
            f"conversion for {source.__qualname__} returned "
            f"{type(result).__name__}, not an engine value"
        )

    def _map(self, value: Mapping) -> Value:
        entries: dict[Any, Value] = {}
        for k, v in value.items():
            key = self.native_to_value(k)
            if isinstance(key, CELEvalError):
                return key
            if not celtypes.MapType.valid_key_type(key):
                return error(f"unsupported map key type: '{engine.type_of(key)}'")
            entries[key] = self.native_to_value(v)
        return celtypes.MapType(entries)

    def _struct(self, value: Any) -> Value:
        cls = type(value)
        return NativeObject(
            value,
            self.type_mapper.map_type(cls),
            self.field_index.fields(cls, self.tag_name),
            self,
        )

    # -----------------------------------------------------------------------
    # Engine -> host
    # -----------------------------------------------------------------------

    def convert_to_native(self, value: Value, target: Any) -> Any:
        """Convert *value* to the host type *target*.

        Raises ``ConversionError`` when the types do not line up.
        """
        return engine.convert_to_native(value, target)

    def try_convert_to_native(self, value: Value, target: Any) -> Any:
        """Like ``convert_to_native`` but returns the failure as a ``CELEvalError``."""
        try:
            return self.convert_to_native(value, target)
        except ConversionError as exc:
            return error(str(exc))
