"""Shared host types and helpers for the celbridge test suite."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Annotated, NamedTuple, Optional

from celpy import celtypes
from pydantic import BaseModel, Field

from celbridge.bridge import Registry, Tags
from celbridge.engine import Environment, Value, to_native
from celbridge.model.types import object_type


# ---------------------------------------------------------------------------
# Host types
# ---------------------------------------------------------------------------

@dataclass
class Point:
    X: int = field(default=0, metadata={"json": "x"})
    Y: int = field(default=0, metadata={"json": "y"})


@dataclass
class Tagged:
    name: str = field(default="", metadata={"json": "foo,omitempty"})
    secret: str = field(default="", metadata={"json": "-"})
    plain: int = 0
    empty: int = field(default=0, metadata={"json": ""})
    _hidden: int = 0


@dataclass
class Shapes:
    points: list[Point] = field(default_factory=list)
    labels: dict[str, int] = field(default_factory=dict)
    origin: Optional[Point] = None


@dataclass
class Node:
    value: int = 0
    next: Optional["Node"] = None


class Pair(NamedTuple):
    left: int
    right: str


class User(BaseModel):
    name: str = Field(default="", json_schema_extra={"json": "user_name"})
    age: int = 0
    created: Optional[datetime] = None


class Account:
    owner: Annotated[str, Tags(json="account_owner")]
    balance: float

    def __init__(self, owner: str = "", balance: float = 0.0) -> None:
        self.owner = owner
        self.balance = balance


@dataclass
class Money:
    """Host value with add and compare capabilities."""

    cents: int = 0

    def add(self, other: "Money") -> "Money":
        return Money(self.cents + other.cents)

    def compare(self, other: "Money") -> int:
        return (self.cents > other.cents) - (self.cents < other.cents)


@dataclass
class Bag:
    """Host value with size and contains capabilities."""

    items: list[str] = field(default_factory=list)

    def size(self) -> int:
        return len(self.items)

    def contains(self, item: str) -> bool:
        return item in self.items


@dataclass
class Grid:
    """Host value whose ``get`` is a keyed lookup, distinct from its fields."""

    cells: dict[str, int] = field(default_factory=dict)

    def get(self, key: str) -> int:
        return self.cells[key]


COUNTER_TYPE = object_type("test.Counter")


class Counter(celtypes.IntType):
    """A custom engine value: an int declaring its own object type."""

    @staticmethod
    def declared_type():
        return COUNTER_TYPE


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_registry(tag_name: str = "json", **values) -> Registry:
    """Registry with *values* registered in keyword order."""
    registry = Registry("test", tag_name=tag_name)
    for name, value in values.items():
        registry.register(name, value)
    return registry


def evaluate(registry: Registry, source: str, **variables):
    """Compile and evaluate *source* against *registry*; returns the native result."""
    env = Environment(registry)
    return to_native(env.program(env.compile(source)).eval(variables))


def eval_value(registry: Registry, source: str, **variables) -> Value:
    """Like ``evaluate`` but returns the engine value, errors included."""
    env = Environment(registry)
    return env.program(env.compile(source)).eval_value(variables)


def message(err) -> str:
    """Message of an engine error value."""
    return str(err.args[0])
