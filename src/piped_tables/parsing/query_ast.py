"""Abstract syntax tree for the PTQ (Piped Tables Query) language."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class BinaryOperator(Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "%"
    EQ = "="
    NE = "<>"
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    AND = "and"
    OR = "or"


ARITHMETIC_OPERATORS = frozenset({
    BinaryOperator.ADD, BinaryOperator.SUB, BinaryOperator.MUL, BinaryOperator.DIV,
})

COMPARISON_OPERATORS = frozenset({
    BinaryOperator.EQ, BinaryOperator.NE,
    BinaryOperator.LT, BinaryOperator.GT, BinaryOperator.LE, BinaryOperator.GE,
})

LOGICAL_OPERATORS = frozenset({BinaryOperator.AND, BinaryOperator.OR})


class UnaryOperator(Enum):
    NOT = "not"
    NEGATE = "-"


# --- Expressions ---


@dataclass(frozen=True)
class Literal:
    """A constant: a float, a string (quoted or `symbol), or None."""

    value: Any

    def __str__(self) -> str:
        if isinstance(self.value, str):
            return f'"{self.value}"'
        return repr(self.value)


@dataclass(frozen=True)
class Variable:
    """A column reference resolved against the current row."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class BinaryOp:
    op: BinaryOperator
    left: Expression
    right: Expression

    def __str__(self) -> str:
        return f"({self.left} {self.op.value} {self.right})"


@dataclass(frozen=True)
class UnaryOp:
    op: UnaryOperator
    operand: Expression

    def __str__(self) -> str:
        if self.op is UnaryOperator.NOT:
            return f"not {self.operand}"
        return f"-{self.operand}"


@dataclass(frozen=True)
class FunctionCall:
    """A call like avg[salary] or round[x; 2]."""

    name: str
    args: tuple[Expression, ...] = ()

    def __str__(self) -> str:
        return f"{self.name}[{'; '.join(str(a) for a in self.args)}]"


Expression = Union[Literal, Variable, BinaryOp, UnaryOp, FunctionCall]


def referenced_columns(expr: Expression) -> set[str]:
    """Return every column name an expression may read.

    Dotted names contribute both the full name and the trailing part, since
    variable lookup falls back from ``a.b`` to ``b``.
    """
    if isinstance(expr, Literal):
        return set()
    if isinstance(expr, Variable):
        names = {expr.name}
        parts = expr.name.split(".")
        if len(parts) == 2:
            names.add(parts[1])
        return names
    if isinstance(expr, BinaryOp):
        return referenced_columns(expr.left) | referenced_columns(expr.right)
    if isinstance(expr, UnaryOp):
        return referenced_columns(expr.operand)
    if isinstance(expr, FunctionCall):
        names: set[str] = set()
        for arg in expr.args:
            names |= referenced_columns(arg)
        return names
    raise ValueError(f"Unknown expression type: {type(expr)}")


# --- Operations ---


@dataclass(frozen=True)
class ColumnSpec:
    """One entry of a select: a wildcard, or an expression with an optional alias."""

    expression: Expression | None = None
    alias: str | None = None
    wildcard: bool = False

    @property
    def output_name(self) -> str | None:
        """Column name produced for a plain row projection (None for wildcards)."""
        if self.wildcard:
            return None
        if self.alias is not None:
            return self.alias
        if isinstance(self.expression, Variable):
            return self.expression.name
        return "col"

    def __str__(self) -> str:
        if self.wildcard:
            return "*"
        if self.alias is not None:
            return f"{self.alias}:{self.expression}"
        return str(self.expression)


@dataclass(frozen=True)
class FilterOp:
    """?[condition]"""

    condition: Expression

    def __str__(self) -> str:
        return f"?[{self.condition}]"


@dataclass(frozen=True)
class SelectOp:
    """![col; alias:expr; *]"""

    columns: tuple[ColumnSpec, ...]

    @property
    def has_wildcard(self) -> bool:
        return any(c.wildcard for c in self.columns)

    def __str__(self) -> str:
        return f"![{'; '.join(str(c) for c in self.columns)}]"


@dataclass(frozen=True)
class SortOp:
    """^[col] (ascending) or v[col] (descending)"""

    column: str
    ascending: bool = True

    def __str__(self) -> str:
        return f"{'^' if self.ascending else 'v'}[{self.column}]"


@dataclass(frozen=True)
class GroupOp:
    """@[col; col]"""

    columns: tuple[str, ...]

    def __str__(self) -> str:
        return f"@[{'; '.join(self.columns)}]"


@dataclass(frozen=True)
class LimitOp:
    """#[n]; a negative n keeps the last |n| rows."""

    count: int

    def __str__(self) -> str:
        return f"#[{self.count}]"


@dataclass(frozen=True)
class DropOp:
    """_[n]"""

    count: int

    def __str__(self) -> str:
        return f"_[{self.count}]"


Operation = Union[FilterOp, SelectOp, SortOp, GroupOp, LimitOp, DropOp]


@dataclass(frozen=True)
class Pipeline:
    """A parsed query: a source table piped through operations."""

    table: str
    operations: tuple[Operation, ...] = ()

    def __str__(self) -> str:
        return " | ".join([self.table] + [str(op) for op in self.operations])
