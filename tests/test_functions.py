"""Tests for value semantics and the built-in function registry."""

import math

import pytest

from piped_tables.errors import TypeMismatchError
from piped_tables.functions import AGGREGATE_FUNCTIONS, BUILTIN_FUNCTIONS, aggregate_over_group
from piped_tables.values import compare_values, is_number, is_truthy, to_number, to_text, values_equal


def call(name, *args):
    return BUILTIN_FUNCTIONS[name](list(args))


class TestValues:
    """Tests for coercion, truthiness, equality and ordering."""

    def test_bool_is_not_a_number(self):
        assert is_number(1)
        assert is_number(2.5)
        assert not is_number(True)
        assert not is_number("3")

    def test_to_number(self):
        assert to_number(3) == 3.0
        assert to_number(" 3.5 ") == 3.5
        with pytest.raises(ValueError):
            to_number("abc")
        with pytest.raises(ValueError):
            to_number(True)

    def test_to_text(self):
        assert to_text(None) == "null"
        assert to_text(True) == "true"
        assert to_text(False) == "false"
        assert to_text("x") == "x"

    def test_truthiness(self):
        assert not is_truthy(None)
        assert not is_truthy(0.0)
        assert not is_truthy("")
        assert is_truthy("x")
        assert is_truthy(-1)
        assert is_truthy(True)

    def test_equality_keeps_bools_apart(self):
        assert values_equal(1, 1.0)
        assert values_equal("a", "a")
        assert not values_equal(True, 1)
        assert not values_equal(1.0, "1")

    def test_ordering(self):
        """Numbers numerically, strings lexically, mixed pairs as text."""
        assert compare_values(2, 10) == -1
        assert compare_values("b", "a") == 1
        assert compare_values(5, 5.0) == 0
        # "10" < "9" as text
        assert compare_values(10, "9") == -1


class TestBuiltinFunctions:
    """Tests for the built-in function registry."""

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            BUILTIN_FUNCTIONS["nope"] = lambda args: None

    def test_aggregate_names_registered(self):
        assert AGGREGATE_FUNCTIONS <= set(BUILTIN_FUNCTIONS)

    def test_ungrouped_aggregates(self):
        """Outside a group, aggregates see only their own arguments."""
        assert call("count") == 1.0
        assert call("count", "x") == 1.0
        assert call("sum", 1, "x", None, 2.5) == 3.5
        assert call("sum") == 0.0
        assert call("avg", 2, 4) == 3.0
        assert call("avg") is None
        assert call("min", 3, 1, 2) == 1.0
        assert call("max", 3, 1, 2) == 3.0
        assert call("first", "a", "b") == "a"
        assert call("last", "a", "b") == "b"

    def test_string_functions(self):
        assert call("upper", "ab") == "AB"
        assert call("lower", "AB") == "ab"
        assert call("upper", None) is None
        assert call("length", "abc") == 3.0
        assert call("length", None) == 0.0
        assert call("concat", "a", None, "b") == "ab"

    def test_substring(self):
        """Start is 0-based; out-of-range bounds clamp."""
        assert call("substring", "hello", 1, 3) == "ell"
        assert call("substring", "hello", 2) == "llo"
        assert call("substring", "hi", 5) == ""
        assert call("substring", None, 1) is None

    def test_round_half_up(self):
        assert call("round", 2.5) == 3.0
        assert call("round", -2.5) == -2.0
        assert call("round", 2.4) == 2.0
        assert call("round", 3.14159, 2) == pytest.approx(3.14)
        assert call("round", None) is None

    @pytest.mark.parametrize("args", [
        ("round", 1, 400),
        ("round", 1, -400),
        ("round", 1, math.nan),
        ("round", 1, math.inf),
        ("substring", "abc", math.inf),
        ("substring", "abc", 0, math.nan),
    ])
    def test_non_finite_or_huge_integer_arguments(self, args):
        with pytest.raises(TypeMismatchError):
            call(*args)

    def test_round_to_many_decimals_keeps_value(self):
        assert call("round", 1e300, 300) == 1e300
        assert call("round", 2.5, 0) == 3.0

    def test_math_functions(self):
        assert call("abs", -3) == 3.0
        assert call("abs", "-3") == 3.0
        assert call("floor", 2.7) == 2.0
        assert call("ceil", 2.1) == 3.0
        assert call("sqrt", 16) == 4.0
        assert math.isnan(call("sqrt", -1))
        assert call("pow", 2, 10) == 1024.0
        assert math.isinf(call("floor", math.inf))

    def test_math_rejects_non_numeric(self):
        with pytest.raises(TypeMismatchError):
            call("abs", "abc")
        with pytest.raises(TypeMismatchError):
            call("pow", "x", 2)

    def test_conditionals(self):
        assert call("if", True, "y", "n") == "y"
        assert call("if", 0.0, "y", "n") == "n"
        assert call("if", None, "y", "n") == "n"
        assert call("coalesce", None, None, 3) == 3
        assert call("coalesce", None) is None

    def test_conversions(self):
        assert call("tostring", 1.5) == "1.5"
        assert call("tostring", True) == "true"
        assert call("tonumber", "12") == 12.0
        assert call("tonumber", "abc") is None


class TestGroupAggregates:
    """Tests for aggregates evaluated across a group's rows."""

    def test_skip_non_numeric(self):
        assert aggregate_over_group("avg", [1, None, "x", 3]) == 2.0
        assert aggregate_over_group("sum", [1, 2, 3]) == 6.0
        assert aggregate_over_group("min", [5, 2, 9]) == 2.0
        assert aggregate_over_group("max", [5, 2, 9]) == 9.0

    def test_no_numbers(self):
        assert aggregate_over_group("sum", [None, "x"]) is None
        assert aggregate_over_group("avg", []) is None

    def test_not_an_aggregate(self):
        with pytest.raises(ValueError):
            aggregate_over_group("upper", [1])
