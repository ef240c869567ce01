"""Public entry point: QueryEngine plus helpers for building and printing tables."""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Sequence

from piped_tables.context import ExecutionContext, Row
from piped_tables.functions import Function
from piped_tables.parsing.query_ast import Pipeline
from piped_tables.parsing.query_parser import QueryParser
from piped_tables.planner import ExecutionPlan, QueryPlanner
from piped_tables.query_executor import QueryExecutor
from piped_tables.values import is_number, to_text

logger = logging.getLogger(__name__)


class QueryEngine:
    """Parses and runs PTQ queries against registered tables.

    ``optimize`` picks the default route for :meth:`execute`: the direct
    pipeline route (False) or the planned and rewritten route (True). Both
    return the same rows; the planned route also leaves instrumentation on
    the plan it ran.

    An engine runs one query at a time. The parser keeps per-parse state, so
    share an engine across threads only behind a lock.
    """

    def __init__(self, functions: Mapping[str, Function] | None = None, optimize: bool = False) -> None:
        self.context = ExecutionContext(functions)
        self.parser = QueryParser()
        self.planner = QueryPlanner()
        self.executor = QueryExecutor(self.context)
        self.optimize = optimize

    def register_table(self, name: str, rows: list[Row]) -> None:
        self.context.register_table(name, rows)
        logger.info("Registered table %r with %d rows", name, len(rows))

    def table_names(self) -> list[str]:
        return self.context.table_names()

    def parse(self, text: str) -> Pipeline:
        return self.parser.parse(text)

    def execute(self, text: str, optimize: bool | None = None) -> list[Row]:
        """Run a query and return its rows.

        Raises LexError/ParseError for malformed text and an EvaluationError
        subclass when execution fails.
        """
        if optimize is None:
            optimize = self.optimize
        pipeline = self.parse(text)
        if optimize:
            logger.info("Executing optimized plan for %s", pipeline)
            return self.executor.execute(self.planner.create_plan(pipeline))
        logger.info("Executing %s", pipeline)
        return self.executor.execute(pipeline)

    def explain(self, text: str) -> ExecutionPlan:
        """Return the optimized plan for a query without running it."""
        return self.planner.create_plan(self.parse(text))


def _format_cell(value: Any) -> str:
    if value is None:
        return "null"
    if is_number(value):
        number = float(value)
        if math.isfinite(number) and number == math.floor(number):
            return f"{number:.0f}"
        return f"{number:.2f}"
    return to_text(value)


def format_results(rows: Sequence[Row]) -> str:
    """Render rows as a pipe-delimited text table.

    Columns are the union of every row's keys in first-seen order; a row
    missing a column shows ``null`` there.
    """
    if not rows:
        return "No results"

    columns: list[str] = []
    for row in rows:
        for name in row:
            if name not in columns:
                columns.append(name)

    cells = [[_format_cell(row.get(name)) for name in columns] for row in rows]
    widths = [len(name) for name in columns]
    for line in cells:
        for i, cell in enumerate(line):
            widths[i] = max(widths[i], len(cell))

    def render(values: list[str]) -> str:
        return "".join(f"| {value.ljust(width)} " for value, width in zip(values, widths)) + "|"

    lines = [render(columns), "".join(f"|-{'-' * width}-" for width in widths) + "|"]
    lines.extend(render(line) for line in cells)
    return "\n".join(lines) + "\n"


def create_table(columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> list[Row]:
    """Zip column names with positional rows; extra values on either side are dropped."""
    return [dict(zip(columns, values)) for values in rows]


class TableBuilder:
    """Fluent builder for small tables.

        table().columns("name", "age").row("Ann", 31).row("Bo", 27).build()
    """

    def __init__(self) -> None:
        self._columns: list[str] = []
        self._rows: list[Row] = []

    def columns(self, *names: str) -> TableBuilder:
        self._columns.extend(names)
        return self

    def row(self, *values: Any) -> TableBuilder:
        self._rows.append(dict(zip(self._columns, values)))
        return self

    def build(self) -> list[Row]:
        return self._rows


def table() -> TableBuilder:
    return TableBuilder()
