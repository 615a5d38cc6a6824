"""Declarations a library exposes to the expression environment.

A declaration set is what a library hands to an ``Environment``: the
named object types it provides, the function overloads it implements,
and the variables it can resolve at evaluation time.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from .types import ObjectType, TypeDescriptor


class OverloadDecl(BaseModel):
    """One parameter/result signature of a function.

    ``operand_trait`` marks operator overloads that are implemented by a
    capability of the operand rather than by a registered binding.
    """

    overload_id: str
    params: list[TypeDescriptor] = []
    result: TypeDescriptor
    member: bool = False
    operand_trait: int = 0


class FunctionDecl(BaseModel):
    """All overloads registered under one function name."""

    name: str
    overloads: list[OverloadDecl] = []


class VariableDecl(BaseModel):
    name: str
    type: TypeDescriptor


class TypeDecl(BaseModel):
    """A named object type known to the type provider."""

    name: str
    type: ObjectType


class Declarations(BaseModel):
    """The full declaration set of a library, each list sorted by name."""

    types: list[TypeDecl] = Field(default_factory=list)
    functions: list[FunctionDecl] = Field(default_factory=list)
    variables: list[VariableDecl] = Field(default_factory=list)
