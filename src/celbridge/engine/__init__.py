"""celbridge expression engine: evaluate CEL expressions with celpy.

Entry point::

    from celbridge.engine import Environment

    env = Environment(library)
    prg = env.program(env.compile("p.x + p.y"))
    prg.eval({"p": point})
"""

from __future__ import annotations

from ._environment import Ast, Environment, Program, evaluate
from ._errors import CompileError, ConversionError, EvaluationError
from ._protocols import FieldType, Library, TypeAdapter, TypeProvider
from ._provider import BUILTIN_TYPE_NAMES, BaseProvider
from ._values import (
    PRIMITIVE_CLASSES,
    VALUE_CLASSES,
    Value,
    accepts,
    convert_to_native,
    error,
    error_message,
    is_error,
    is_value,
    is_value_annotation,
    is_value_class,
    no_such_overload,
    to_native,
    type_of,
    unwrap_optional,
)

__all__ = [
    # Environment
    "Ast",
    "BUILTIN_TYPE_NAMES",
    "BaseProvider",
    "Environment",
    "FieldType",
    "Library",
    "Program",
    "TypeAdapter",
    "TypeProvider",
    "evaluate",
    # Errors
    "CompileError",
    "ConversionError",
    "EvaluationError",
    # Values
    "PRIMITIVE_CLASSES",
    "VALUE_CLASSES",
    "Value",
    "accepts",
    "convert_to_native",
    "error",
    "error_message",
    "is_error",
    "is_value",
    "is_value_annotation",
    "is_value_class",
    "no_such_overload",
    "to_native",
    "type_of",
    "unwrap_optional",
]
