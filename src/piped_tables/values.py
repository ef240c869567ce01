"""Dynamic value semantics shared by the evaluator, the functions and sorting.

A PTQ value is a float, a str, a bool or None. Rows handed in by callers may
also carry ints; they behave like the equivalent float. A bool is never
treated as a number.
"""

from __future__ import annotations

from typing import Any


def is_number(value: Any) -> bool:
    """Return True for int/float values (bools excluded)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> float:
    """Coerce a value to float, accepting numeric-looking text.

    Raises ValueError when the value has no numeric reading; callers wrap it
    into the error type that fits their context.
    """
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise ValueError(f"{value!r} is not a number")


def to_text(value: Any) -> str:
    """Render a value as text."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def is_truthy(value: Any) -> bool:
    """False for None, numeric zero and the empty string; bools pass through."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if is_number(value):
        return value != 0
    if isinstance(value, str):
        return value != ""
    return True


def values_equal(left: Any, right: Any) -> bool:
    """Equality without bool/number cross-over (True never equals 1)."""
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def compare_values(left: Any, right: Any) -> int:
    """Three-way comparison of two non-null values.

    Numbers compare numerically, strings lexically and bools as bools; any
    other pairing falls back to comparing the text renderings.
    """
    if is_number(left) and is_number(right):
        a, b = left, right
    elif isinstance(left, str) and isinstance(right, str):
        a, b = left, right
    elif isinstance(left, bool) and isinstance(right, bool):
        a, b = left, right
    else:
        a, b = to_text(left), to_text(right)
    if a < b:
        return -1
    if a > b:
        return 1
    return 0
