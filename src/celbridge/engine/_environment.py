"""Environment and program: the user-facing entry points of the engine.

An ``Environment`` wraps a ``celpy.Environment`` seeded with the
library's annotations.  ``compile`` parses source into an ``Ast``;
``program`` binds the library's function table to it, giving a
``Program`` that can be evaluated any number of times, concurrently,
against variable maps.  Variables are adapted by the library and layered
over the library's own bindings.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import celpy
from celpy.celparser import CELParseError
from celpy.evaluation import CELEvalError

from ._errors import CompileError, EvaluationError
from ._protocols import Library
from ._provider import BaseProvider
from ._values import Value, error_message, to_native


@dataclass
class Ast:
    """A parsed expression."""

    source: str
    tree: Any


class Program:
    """An evaluable expression bound to its library."""

    def __init__(self, ast: Ast, runner: celpy.Runner, library: Library) -> None:
        self.ast = ast
        self.library = library
        self._runner = runner

    def eval_value(self, variables: Mapping[str, Any] | None = None) -> Value:
        """Evaluate to an engine value; errors are returned as ``CELEvalError``."""
        context = dict(self.library.activation())
        for name, value in (variables or {}).items():
            context[name] = self.library.native_to_value(value)
        try:
            return self._runner.evaluate(context)
        except CELEvalError as err:
            return err

    def eval(self, variables: Mapping[str, Any] | None = None) -> Value:
        """Evaluate, raising ``EvaluationError`` if the result is an error."""
        result = self.eval_value(variables)
        if isinstance(result, CELEvalError):
            raise EvaluationError(error_message(result), self.ast.source) from result
        return result


class Environment:
    """celpy environment built from a library.

    Parameters
    ----------
    library : Library, optional
        Host library; when omitted only the standard functions are known.
    package : str, optional
        Package prefix used when resolving qualified names.
    """

    def __init__(self, library: Library | None = None, *, package: str | None = None) -> None:
        self.library: Library = library if library is not None else BaseProvider()
        # celpy folds its well-known types into the mapping it is given.
        self._env = celpy.Environment(
            package=package, annotations=dict(self.library.annotations())
        )

    def compile(self, source: str) -> Ast:
        try:
            tree = self._env.compile(source)
        except CELParseError as exc:
            message = str(exc.args[0]) if exc.args else "syntax error"
            raise CompileError(message, exc.line, exc.column) from exc
        return Ast(source=source, tree=tree)

    def program(self, ast: Ast) -> Program:
        runner = self._env.program(ast.tree, functions=self.library.functions())
        return Program(ast, runner, self.library)

    def evaluate(self, source: str, variables: Mapping[str, Any] | None = None) -> Any:
        """Compile and evaluate *source*, returning the native result."""
        return to_native(self.program(self.compile(source)).eval(variables))


def evaluate(
    source: str,
    library: Library | None = None,
    variables: Mapping[str, Any] | None = None,
) -> Any:
    """One-shot compile and evaluate."""
    return Environment(library).evaluate(source, variables)
