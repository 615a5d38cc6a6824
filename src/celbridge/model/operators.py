"""Reserved function names of the CEL operators.

The engine resolves operators through the same function table as
named functions, so a library overloads ``+`` by supplying ``_+_``.
"""


class Operators:
    ADD = "_+_"
    SUBTRACT = "_-_"
    MULTIPLY = "_*_"
    DIVIDE = "_/_"
    MODULO = "_%_"
    NEGATE = "-_"
    LOGICAL_NOT = "!_"
    EQUALS = "_==_"
    NOT_EQUALS = "_!=_"
    LESS = "_<_"
    LESS_EQUALS = "_<=_"
    GREATER = "_>_"
    GREATER_EQUALS = "_>=_"
    INDEX = "_[_]"
    IN = "_in_"
    SIZE = "size"

    RELATIONAL = (LESS, LESS_EQUALS, GREATER, GREATER_EQUALS)
