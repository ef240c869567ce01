"""Built-in PTQ functions.

Every function takes the list of already-evaluated argument values and
returns a single value. Names are looked up case-insensitively. The registry
is frozen at import time; extra functions are layered on per context.
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Any, Callable, Mapping

from piped_tables.errors import TypeMismatchError
from piped_tables.values import is_number, is_truthy, to_number, to_text

Function = Callable[[list[Any]], Any]

# Aggregates that, inside a grouped select, run over every row of the group
AGGREGATE_FUNCTIONS = frozenset({"count", "sum", "avg", "min", "max", "first", "last"})


def _numeric_arg(name: str, value: Any) -> float:
    try:
        return to_number(value)
    except ValueError:
        raise TypeMismatchError(f"{name}() requires a numeric argument, got {to_text(value)!r}") from None


def _int_arg(name: str, value: Any) -> int:
    number = _numeric_arg(name, value)
    if not math.isfinite(number):
        raise TypeMismatchError(f"{name}() requires a finite number, got {to_text(value)!r}")
    return int(number)


def _numbers(values: list[Any]) -> list[float]:
    return [float(v) for v in values if is_number(v)]


# --- Aggregates (ungrouped fallback) ---


def _count(args: list[Any]) -> Any:
    return 1.0


def _sum(args: list[Any]) -> Any:
    return float(sum(_numbers(args)))


def _avg(args: list[Any]) -> Any:
    numbers = _numbers(args)
    if not numbers:
        return None
    return sum(numbers) / len(numbers)


def _min(args: list[Any]) -> Any:
    numbers = _numbers(args)
    return min(numbers) if numbers else None


def _max(args: list[Any]) -> Any:
    numbers = _numbers(args)
    return max(numbers) if numbers else None


def _first(args: list[Any]) -> Any:
    return args[0] if args else None


def _last(args: list[Any]) -> Any:
    return args[-1] if args else None


# --- String functions ---


def _upper(args: list[Any]) -> Any:
    if not args or args[0] is None:
        return None
    return to_text(args[0]).upper()


def _lower(args: list[Any]) -> Any:
    if not args or args[0] is None:
        return None
    return to_text(args[0]).lower()


def _length(args: list[Any]) -> Any:
    if not args or args[0] is None:
        return 0.0
    return float(len(to_text(args[0])))


def _substring(args: list[Any]) -> Any:
    """substring[text; start] or substring[text; start; length] (0-based)."""
    if len(args) < 2 or args[0] is None:
        return None
    text = to_text(args[0])
    start = max(0, _int_arg("substring", args[1]))
    if len(args) >= 3:
        length = _int_arg("substring", args[2])
        return text[start:start + max(0, length)]
    return text[start:]


def _concat(args: list[Any]) -> Any:
    return "".join(to_text(arg) for arg in args if arg is not None)


# --- Math functions ---


def _unary_math(name: str, fn: Callable[[float], float]) -> Function:
    def apply(args: list[Any]) -> Any:
        if not args or args[0] is None:
            return None
        return fn(_numeric_arg(name, args[0]))
    return apply


def _sqrt(x: float) -> float:
    return math.sqrt(x) if x >= 0 else math.nan


def _floor(x: float) -> float:
    return float(math.floor(x)) if math.isfinite(x) else x


def _ceil(x: float) -> float:
    return float(math.ceil(x)) if math.isfinite(x) else x


# Largest power of ten a float can hold
_MAX_ROUND_DIGITS = 308


def _round(args: list[Any]) -> Any:
    """Round half up, optionally to a number of decimals."""
    if not args or args[0] is None:
        return None
    value = _numeric_arg("round", args[0])
    if not math.isfinite(value):
        return value
    if len(args) >= 2 and args[1] is not None:
        digits = _int_arg("round", args[1])
        if abs(digits) > _MAX_ROUND_DIGITS:
            raise TypeMismatchError(f"round() decimals out of range: {digits}")
        factor = 10.0 ** digits
        scaled = value * factor
        if not math.isfinite(scaled):
            # Already exact at that many decimals
            return value
        return math.floor(scaled + 0.5) / factor
    return float(math.floor(value + 0.5))


def _pow(args: list[Any]) -> Any:
    if len(args) < 2 or args[0] is None or args[1] is None:
        return None
    base = _numeric_arg("pow", args[0])
    exponent = _numeric_arg("pow", args[1])
    try:
        return math.pow(base, exponent)
    except (OverflowError, ValueError):
        return math.nan


# --- Conditional functions ---


def _if(args: list[Any]) -> Any:
    if len(args) < 3:
        return None
    return args[1] if is_truthy(args[0]) else args[2]


def _coalesce(args: list[Any]) -> Any:
    for arg in args:
        if arg is not None:
            return arg
    return None


# --- Conversion functions ---


def _tostring(args: list[Any]) -> Any:
    if not args or args[0] is None:
        return None
    return to_text(args[0])


def _tonumber(args: list[Any]) -> Any:
    if not args or args[0] is None:
        return None
    try:
        return to_number(args[0])
    except ValueError:
        return None


BUILTIN_FUNCTIONS: Mapping[str, Function] = MappingProxyType({
    # Aggregates
    "count": _count,
    "sum": _sum,
    "avg": _avg,
    "min": _min,
    "max": _max,
    "first": _first,
    "last": _last,
    # String
    "upper": _upper,
    "lower": _lower,
    "length": _length,
    "substring": _substring,
    "concat": _concat,
    # Math
    "abs": _unary_math("abs", abs),
    "round": _round,
    "floor": _unary_math("floor", _floor),
    "ceil": _unary_math("ceil", _ceil),
    "sqrt": _unary_math("sqrt", _sqrt),
    "pow": _pow,
    # Conditional
    "if": _if,
    "coalesce": _coalesce,
    # Conversion
    "tostring": _tostring,
    "tonumber": _tonumber,
})


def aggregate_over_group(name: str, values: list[Any]) -> Any:
    """Aggregate one argument's values, evaluated on every row of a group.

    Only sum/avg/min/max go through here: ``count`` needs just the group
    size and ``first``/``last`` just the boundary rows.
    """
    numbers = _numbers(values)
    if not numbers:
        return None
    if name == "sum":
        return float(sum(numbers))
    if name == "avg":
        return sum(numbers) / len(numbers)
    if name == "min":
        return min(numbers)
    if name == "max":
        return max(numbers)
    raise ValueError(f"Not a grouped aggregate: {name}")
