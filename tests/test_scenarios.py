"""End-to-end tests: host values registered, then used from expressions."""

from datetime import datetime, timezone
from typing import Optional

import pytest
from celpy import celtypes
from celpy.evaluation import CELEvalError

from celbridge.bridge import Registry
from celbridge.engine import CompileError, Environment, EvaluationError, to_native

from conftest import (
    Bag,
    Grid,
    Money,
    Point,
    Shapes,
    Tagged,
    User,
    eval_value,
    evaluate,
    make_registry,
    message,
)


def concat(a: str, b: str) -> str:
    return a + b


def concat_ints(a: int, b: int) -> str:
    return f"ints:{a}{b}"


def norm(p: Point) -> int:
    return abs(p.X) + abs(p.Y)


def make_point(x: int) -> Point:
    return Point(x, x)


def parse_int(text: str) -> tuple[int, Optional[Exception]]:
    try:
        return int(text), None
    except ValueError as exc:
        return 0, exc


class Celsius:
    def __init__(self, degrees: float) -> None:
        self.degrees = degrees


def celsius_to_value(c: Celsius) -> celtypes.DoubleType:
    return celtypes.DoubleType(c.degrees)


# ---------------------------------------------------------------------------
# Reference scenarios
# ---------------------------------------------------------------------------

class TestScenarios:
    def test_struct_fields_under_json_convention(self):
        registry = make_registry(p=Point(2, 3))
        assert evaluate(registry, "p.x + p.y") == 5

    def test_function_overloads_dispatch_by_argument_type(self):
        registry = make_registry(concat=concat)
        assert evaluate(registry, 'concat("foo", "bar")') == "foobar"
        registry.register_function("concat", concat_ints)
        assert evaluate(registry, 'concat("foo", "bar")') == "foobar"
        assert evaluate(registry, "concat(1, 2)") == "ints:12"

    def test_nil_struct_equals_null(self):
        registry = Registry(tag_name="json")
        registry.register_variable("p", None, type_hint=Optional[Point])
        assert evaluate(registry, "p == null") is True

    def test_first_registered_variable_wins(self):
        registry = Registry()
        registry.register("x", 1)
        registry.register("x", 2)
        assert evaluate(registry, "x") == 1
        assert evaluate(registry, "x + 1") == 2


# ---------------------------------------------------------------------------
# Field naming
# ---------------------------------------------------------------------------

class TestFieldNaming:
    def test_declared_names_without_convention(self):
        registry = make_registry(tag_name="", p=Point(2, 3))
        assert evaluate(registry, "p.X * p.Y") == 6

    def test_tag_names_replace_declared_names(self):
        registry = make_registry(p=Point(2, 3))
        result = eval_value(registry, "p.X")
        assert isinstance(result, CELEvalError)
        assert message(result) == "no such field: X"

    def test_tag_options_and_exclusions(self):
        registry = make_registry(t=Tagged(name="n", secret="s", plain=1, empty=2))
        assert evaluate(registry, "t.foo") == "n"
        assert evaluate(registry, "t.plain + t.empty") == 3
        with pytest.raises(EvaluationError, match="no such field: secret"):
            evaluate(registry, "t.secret")

    def test_pydantic_model_fields(self):
        registry = make_registry(u=User(name="ann", age=30))
        assert evaluate(registry, 'u.user_name + "!"') == "ann!"
        assert evaluate(registry, "u.age >= 18") is True


# ---------------------------------------------------------------------------
# Structs and collections
# ---------------------------------------------------------------------------

class TestStructs:
    def test_presence_test_is_field_existence(self):
        registry = make_registry(p=Point(0, 3))
        assert evaluate(registry, "has(p.x)") is True
        assert evaluate(registry, "has(p.y)") is True
        assert evaluate(registry, "has(p.z)") is False

    def test_construction(self):
        registry = make_registry(Point=Point)
        assert evaluate(registry, "conftest.Point{x: 1, y: 2}") == Point(1, 2)
        assert evaluate(registry, "conftest.Point{x: 4}.x") == 4
        assert evaluate(registry, "conftest.Point{}") == Point()

    def test_construction_checks_field_types(self):
        registry = make_registry(Point=Point)
        with pytest.raises(EvaluationError, match="type conversion error"):
            evaluate(registry, 'conftest.Point{x: "a"}')

    def test_construction_rejects_unknown_fields(self):
        registry = make_registry(Point=Point)
        with pytest.raises(EvaluationError, match="no such field: z"):
            evaluate(registry, "conftest.Point{z: 1}")

    def test_equality_is_structural(self):
        registry = make_registry(a=Point(1, 2), b=Point(1, 2), c=Point(2, 1))
        assert evaluate(registry, "a == b") is True
        assert evaluate(registry, "a != c") is True

    def test_nested_collections(self):
        registry = make_registry(s=Shapes(points=[Point(1, 2), Point(3, 4)], labels={"a": 7}))
        assert evaluate(registry, "s.points[1].x") == 3
        assert evaluate(registry, "size(s.points)") == 2
        assert evaluate(registry, 's.labels["a"]') == 7
        assert evaluate(registry, '"a" in s.labels') is True
        assert evaluate(registry, "s.origin == null") is True

    def test_list_variable_with_element_hint(self):
        registry = Registry(tag_name="json")
        registry.register_variable("pts", [Point(1, 2)], type_hint=list[Point])
        assert evaluate(registry, "pts[0].y + 1") == 3

    def test_missing_map_key_is_an_error(self):
        registry = make_registry(m={"a": 1})
        result = eval_value(registry, 'm["b"]')
        assert isinstance(result, CELEvalError)
        assert message(result) == "no such key"

    def test_timestamps(self):
        registry = make_registry(t=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
        assert evaluate(registry, "t.getFullYear()") == 2024
        assert evaluate(registry, 't == timestamp("2024-01-02T03:04:05Z")') is True


class TestIndexing:
    def test_index_calls_host_get(self):
        registry = make_registry(g=Grid({"a": 7, "b": 9}))
        assert evaluate(registry, 'g["a"]') == 7
        assert evaluate(registry, 'g["a"] + g["b"]') == 16

    def test_fields_stay_reachable(self):
        registry = make_registry(g=Grid({"a": 7}))
        assert evaluate(registry, "g.cells") == {"a": 7}
        assert evaluate(registry, 'g.cells["a"]') == 7
        assert evaluate(registry, "has(g.cells)") is True

    def test_host_key_error_is_no_such_key(self):
        registry = make_registry(g=Grid({"a": 7}))
        result = eval_value(registry, 'g["missing"]')
        assert isinstance(result, CELEvalError)
        assert message(result) == "no such key"


# ---------------------------------------------------------------------------
# Logical negation
# ---------------------------------------------------------------------------

class TestNegation:
    def test_literals(self):
        registry = Registry()
        assert evaluate(registry, "!true") is False
        assert evaluate(registry, "!false") is True
        assert evaluate(registry, "!!true") is True

    def test_relations(self):
        registry = make_registry(p=Point(1, 2))
        assert evaluate(registry, "!(1 == 2)") is True
        assert evaluate(registry, "!(p.x < p.y)") is False

    def test_membership(self):
        registry = make_registry(bag=Bag(["x"]))
        assert evaluate(registry, "!(3 in [1, 2])") is True
        assert evaluate(registry, '!("x" in bag)') is False
        assert evaluate(registry, '!("z" in bag)') is True

    def test_presence(self):
        registry = make_registry(p=Point(1, 2))
        assert evaluate(registry, "!has(p.z)") is True
        assert evaluate(registry, "!has(p.x)") is False

    def test_non_bool_operand(self):
        with pytest.raises(EvaluationError):
            evaluate(Registry(), "!1")


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------

class TestFunctions:
    def test_struct_argument(self):
        registry = make_registry(norm=norm, p=Point(-2, 3))
        assert evaluate(registry, "norm(p)") == 5

    def test_struct_result(self):
        registry = make_registry(make_point=make_point)
        assert evaluate(registry, "make_point(3).y") == 3

    def test_error_result(self):
        registry = make_registry(parse_int=parse_int)
        assert evaluate(registry, 'parse_int("41") + 1') == 42
        assert isinstance(eval_value(registry, 'parse_int("x")'), CELEvalError)
        with pytest.raises(EvaluationError):
            evaluate(registry, 'parse_int("x")')

    def test_error_absorbed_by_logical_or(self):
        registry = make_registry(parse_int=parse_int)
        assert evaluate(registry, 'parse_int("x") == 1 || true') is True

    def test_no_matching_overload(self):
        registry = make_registry(concat=concat)
        with pytest.raises(EvaluationError, match="no such overload"):
            evaluate(registry, "concat(1, 2)")

    def test_conversion_rule(self):
        registry = Registry()
        registry.register_conversion(celsius_to_value)
        registry.register("temp", Celsius(21.5))
        assert evaluate(registry, "temp + 0.5") == 22.0


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------

class TestCapabilities:
    def test_add(self):
        registry = make_registry(a=Money(5), b=Money(7))
        assert evaluate(registry, "a + b") == Money(12)

    def test_relational(self):
        registry = make_registry(a=Money(5), b=Money(7))
        assert evaluate(registry, "a < b") is True
        assert evaluate(registry, "a >= b") is False
        assert evaluate(registry, "a <= a") is True

    def test_compare_member(self):
        registry = make_registry(a=Money(5), b=Money(7))
        assert evaluate(registry, "a.compare(b)") == -1

    def test_missing_capability(self):
        registry = make_registry(a=Money(5), b=Money(7))
        with pytest.raises(EvaluationError, match="no matching overload"):
            evaluate(registry, "a - b")

    def test_builtin_operators_still_work(self):
        registry = make_registry(a=Money(5), bag=Bag(["x"]))
        assert evaluate(registry, "1 + 2") == 3
        assert evaluate(registry, "1 < 2") is True
        assert evaluate(registry, "size([1, 2, 3])") == 3
        assert evaluate(registry, '"x" in ["x"]') is True

    def test_size_and_contains(self):
        registry = make_registry(bag=Bag(["x", "y"]))
        assert evaluate(registry, "size(bag)") == 2
        assert evaluate(registry, "bag.size()") == 2
        assert evaluate(registry, '"x" in bag') is True
        assert evaluate(registry, '"z" in bag') is False
        assert evaluate(registry, "bag.items[0]") == "x"


# ---------------------------------------------------------------------------
# Programs
# ---------------------------------------------------------------------------

class TestPrograms:
    def test_evaluation_variables_override_registered(self):
        registry = make_registry(x=1)
        assert evaluate(registry, "x + 1", x=10) == 11

    def test_program_reuse(self):
        registry = make_registry(p=Point(1, 1))
        env = Environment(registry)
        program = env.program(env.compile("p.x + p.y"))
        assert program.eval() == 2
        assert program.eval({"p": Point(5, 6)}) == 11

    def test_program_sees_later_functions(self):
        registry = Registry()
        env = Environment(registry)
        program = env.program(env.compile('concat("a", "b")'))
        registry.register("concat", concat)
        assert to_native(program.eval()) == "ab"

    def test_syntax_error(self):
        with pytest.raises(CompileError) as info:
            Environment(Registry()).compile("1 +")
        assert info.value.line is not None

    def test_runtime_error_raises(self):
        registry = make_registry(p=Point(1, 0))
        with pytest.raises(EvaluationError, match="divide by zero"):
            evaluate(registry, "p.x / p.y")

    def test_environment_evaluate(self):
        registry = make_registry(p=Point(2, 3))
        assert Environment(registry).evaluate("p.x * 10 + p.y") == 23
