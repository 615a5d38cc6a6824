"""Exceptions raised by the expression engine."""

from __future__ import annotations


class CompileError(Exception):
    """Parse failure, with the 1-based source line and column when known."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None) -> None:
        self.line = line
        self.column = column
        loc = f" (line {line}, column {column})" if column is not None else ""
        super().__init__(f"{message}{loc}")
        self.message = message


class EvaluationError(Exception):
    """An expression evaluated to an error value."""

    def __init__(self, message: str, expression: str = "") -> None:
        self.expression = expression
        super().__init__(message)
        self.message = message


class ConversionError(Exception):
    """An engine value cannot be converted to the requested host type."""
