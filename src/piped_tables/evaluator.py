"""Expression evaluation against a row (and, in grouped selects, a group)."""

from __future__ import annotations

import math
from typing import Any

from piped_tables.context import ExecutionContext, GroupScope, Row
from piped_tables.errors import TypeMismatchError
from piped_tables.functions import AGGREGATE_FUNCTIONS, aggregate_over_group
from piped_tables.parsing.query_ast import (
    ARITHMETIC_OPERATORS,
    BinaryOp,
    BinaryOperator,
    Expression,
    FunctionCall,
    Literal,
    UnaryOp,
    UnaryOperator,
    Variable,
)
from piped_tables.values import compare_values, is_number, is_truthy, to_number, to_text, values_equal


def resolve_column(row: Row, name: str) -> Any:
    """Look a column up, falling back from ``a.b`` to ``b``."""
    if name in row:
        return row[name]
    parts = name.split(".")
    if len(parts) == 2 and parts[1] in row:
        return row[parts[1]]
    return None


class Evaluator:
    """Evaluates PTQ expressions.

    ``group`` is only passed by the grouped select. When it is present, calls
    to count/sum/avg/min/max/first/last aggregate over that group's rows
    instead of going through the function registry.
    """

    def __init__(self, context: ExecutionContext) -> None:
        self.context = context

    def evaluate(self, expr: Expression, row: Row, group: GroupScope | None = None) -> Any:
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, Variable):
            return resolve_column(row, expr.name)
        if isinstance(expr, BinaryOp):
            left = self.evaluate(expr.left, row, group)
            right = self.evaluate(expr.right, row, group)
            return self._apply_binary(expr.op, left, right)
        if isinstance(expr, UnaryOp):
            operand = self.evaluate(expr.operand, row, group)
            return self._apply_unary(expr.op, operand)
        if isinstance(expr, FunctionCall):
            if group is not None and expr.name.lower() in AGGREGATE_FUNCTIONS:
                return self._evaluate_aggregate(expr, group)
            args = [self.evaluate(arg, row, group) for arg in expr.args]
            return self.context.call_function(expr.name, args)
        raise ValueError(f"Unknown expression type: {type(expr)}")

    def _evaluate_aggregate(self, call: FunctionCall, group: GroupScope) -> Any:
        """Evaluate a grouped aggregate over every row of ``group``."""
        name = call.name.lower()
        if name == "count":
            return float(len(group.rows))
        if not call.args:
            return None
        arg = call.args[0]
        # Aggregate arguments see plain rows; nesting doesn't re-aggregate.
        if name == "first":
            return self.evaluate(arg, group.first)
        if name == "last":
            return self.evaluate(arg, group.last)
        values = [self.evaluate(arg, r) for r in group.rows]
        return aggregate_over_group(name, values)

    @staticmethod
    def _apply_binary(op: BinaryOperator, left: Any, right: Any) -> Any:
        """Apply a binary operator to two evaluated operands."""
        if left is None or right is None:
            if op is BinaryOperator.EQ:
                return left is None and right is None
            if op is BinaryOperator.NE:
                return not (left is None and right is None)
            return None

        if op in ARITHMETIC_OPERATORS:
            try:
                lv = to_number(left)
                rv = to_number(right)
            except ValueError:
                raise TypeMismatchError(
                    f"Cannot apply '{op.value}' to non-numeric values: {to_text(left)!r}, {to_text(right)!r}"
                ) from None
            if op is BinaryOperator.ADD:
                return lv + rv
            if op is BinaryOperator.SUB:
                return lv - rv
            if op is BinaryOperator.MUL:
                return lv * rv
            return _divide(lv, rv)

        if op is BinaryOperator.EQ:
            return values_equal(left, right)
        if op is BinaryOperator.NE:
            return not values_equal(left, right)
        if op is BinaryOperator.LT:
            return compare_values(left, right) < 0
        if op is BinaryOperator.GT:
            return compare_values(left, right) > 0
        if op is BinaryOperator.LE:
            return compare_values(left, right) <= 0
        if op is BinaryOperator.GE:
            return compare_values(left, right) >= 0
        # Both sides are always evaluated; no short-circuit.
        if op is BinaryOperator.AND:
            return is_truthy(left) and is_truthy(right)
        if op is BinaryOperator.OR:
            return is_truthy(left) or is_truthy(right)
        raise ValueError(f"Unknown binary operator: {op}")

    @staticmethod
    def _apply_unary(op: UnaryOperator, operand: Any) -> Any:
        if op is UnaryOperator.NOT:
            return not is_truthy(operand)
        if op is UnaryOperator.NEGATE:
            if not is_number(operand):
                raise TypeMismatchError(f"Cannot negate non-numeric value: {to_text(operand)!r}")
            return -float(operand)
        raise ValueError(f"Unknown unary operator: {op}")


def _divide(left: float, right: float) -> float:
    """IEEE-754 division: x/0 is +/-inf, 0/0 is nan."""
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right
