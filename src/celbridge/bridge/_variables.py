"""VariableStore: named global values and their declared types."""

from __future__ import annotations

import logging
import threading
from typing import Any, NamedTuple

from celbridge.model.declarations import VariableDecl
from celbridge.model.types import TypeDescriptor

logger = logging.getLogger(__name__)


class VariableEntry(NamedTuple):
    name: str
    type: TypeDescriptor
    value: Any


class VariableStore:
    """Name -> (type, value) table; the first registration of a name wins."""

    def __init__(self) -> None:
        self._entries: dict[str, VariableEntry] = {}
        self._lock = threading.RLock()

    def register(self, name: str, descriptor: TypeDescriptor, value: Any) -> bool:
        """Store *value* under *name*; returns ``False`` if the name is taken."""
        with self._lock:
            if name in self._entries:
                logger.debug("variable %s already registered, ignoring", name)
                return False
            self._entries[name] = VariableEntry(name, descriptor, value)
        logger.debug("registered variable %s: %s", name, descriptor)
        return True

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def get(self, name: str) -> VariableEntry | None:
        return self._entries.get(name)

    def resolve_name(self, name: str) -> tuple[Any, bool]:
        entry = self._entries.get(name)
        if entry is None:
            return None, False
        return entry.value, True

    def declarations(self) -> list[VariableDecl]:
        with self._lock:
            return [
                VariableDecl(name=name, type=self._entries[name].type)
                for name in sorted(self._entries)
            ]

    def entries(self) -> list[VariableEntry]:
        with self._lock:
            return list(self._entries.values())
