"""StructFieldIndex: externally visible field names of struct classes.

The index for a (naming convention, struct class) pair is computed once
and kept for the lifetime of the owning registry; struct shapes are
assumed not to change after definition.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from ._hosttypes import HostField, is_supported, struct_fields

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldDescriptor:
    """One externally visible struct field."""

    name: str
    attribute: str
    host_type: Any


def external_name(field: HostField, convention: str) -> str | None:
    """Name of *field* under *convention*, or ``None`` when it is excluded.

    - empty convention: the declared attribute name
    - tag ``"-"``: excluded
    - tag ``"name,opt,..."``: the text before the first comma
    - empty or missing tag: the declared attribute name
    """
    if not convention:
        return field.attribute
    tag = field.tags.get(convention)
    if tag is None:
        return field.attribute
    name = tag.split(",", 1)[0]
    if name == "-":
        return None
    return name or field.attribute


class StructFieldIndex:
    """Per-(convention, class) cache of ``external name -> FieldDescriptor``."""

    def __init__(self) -> None:
        self._cache: dict[tuple[str, type], dict[str, FieldDescriptor]] = {}
        self._lock = threading.RLock()

    def fields(self, struct_type: type, convention: str = "") -> dict[str, FieldDescriptor]:
        key = (convention, struct_type)
        entries = self._cache.get(key)
        if entries is not None:
            return entries
        with self._lock:
            entries = self._cache.get(key)
            if entries is None:
                entries = self._build(struct_type, convention)
                self._cache[key] = entries
        return entries

    def field(self, struct_type: type, name: str, convention: str = "") -> FieldDescriptor | None:
        return self.fields(struct_type, convention).get(name)

    def _build(self, struct_type: type, convention: str) -> dict[str, FieldDescriptor]:
        entries: dict[str, FieldDescriptor] = {}
        for field in struct_fields(struct_type):
            if field.attribute.startswith("_"):
                continue
            if not is_supported(field.annotation):
                logger.debug(
                    "skipping field %s.%s: unsupported type",
                    struct_type.__qualname__, field.attribute,
                )
                continue
            name = external_name(field, convention)
            if name is None:
                continue
            entries[name] = FieldDescriptor(name, field.attribute, field.annotation)
        return entries
