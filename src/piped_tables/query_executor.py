"""Query executor for PTQ pipelines and execution plans."""

from __future__ import annotations

import json
import logging
import time
from functools import cmp_to_key
from typing import Any

from piped_tables.context import ExecutionContext, GroupScope, Row
from piped_tables.evaluator import Evaluator, resolve_column
from piped_tables.parsing.query_ast import (
    ColumnSpec,
    DropOp,
    FilterOp,
    FunctionCall,
    GroupOp,
    LimitOp,
    Operation,
    Pipeline,
    SelectOp,
    SortOp,
    Variable,
)
from piped_tables.planner import ExecutionPlan, NodeKind, PlanNode
from piped_tables.values import compare_values

logger = logging.getLogger(__name__)

# One unit of work: the operation to run and, on the plan route, the node
# that receives its instrumentation.
Step = tuple[Operation, PlanNode | None]


class QueryExecutor:
    """Executes pipelines against the tables of an ExecutionContext.

    A bare Pipeline runs its operations in written order. An ExecutionPlan
    runs its (possibly rewritten) node chain and records row counts and
    timings on every node. Both go through the same step runner, so a group
    followed by a select behaves identically on either route.
    """

    def __init__(self, context: ExecutionContext) -> None:
        self.context = context
        self.evaluator = Evaluator(context)

    def execute(self, query: Pipeline | ExecutionPlan) -> list[Row]:
        """Execute a pipeline or an execution plan and return the result rows."""
        if isinstance(query, Pipeline):
            rows = self.context.get_table(query.table)
            steps: list[Step] = [(op, None) for op in query.operations]
            return self._run_steps(list(rows), steps)
        if isinstance(query, ExecutionPlan):
            return self._execute_plan(query)
        raise ValueError(f"Unknown query type: {type(query)}")

    def _execute_plan(self, plan: ExecutionPlan) -> list[Row]:
        nodes = plan.nodes()
        scan = nodes[0]
        if scan.kind is not NodeKind.TABLE_SCAN:
            raise ValueError(f"Plan must start with a TableScan, not {scan.kind.value}")

        start = time.perf_counter()
        rows = list(self.context.get_table(scan.metadata["table"]))
        _record(scan, len(rows), len(rows), start)

        steps: list[Step] = [(node.operation, node) for node in nodes[1:]]
        return self._run_steps(rows, steps)

    def _run_steps(self, rows: list[Row], steps: list[Step]) -> list[Row]:
        i = 0
        while i < len(steps):
            op, node = steps[i]

            if isinstance(op, GroupOp) and i + 1 < len(steps) and isinstance(steps[i + 1][0], SelectOp):
                select, select_node = steps[i + 1]
                start = time.perf_counter()
                groups = self._build_groups(rows, op)
                summary = [_group_summary(group, op) for group in groups]
                _record(node, len(rows), len(summary), start)

                start = time.perf_counter()
                result = [self._select_group(group, select) for group in groups]
                _record(select_node, len(summary), len(result), start)
                logger.debug("%s | %s: %d rows -> %d groups", op, select, len(rows), len(result))
                rows = result
                i += 2
                continue

            start = time.perf_counter()
            result = self._apply_operation(op, rows)
            _record(node, len(rows), len(result), start)
            logger.debug("%s: %d rows -> %d rows", op, len(rows), len(result))
            rows = result
            i += 1
        return rows

    def _apply_operation(self, op: Operation, rows: list[Row]) -> list[Row]:
        if isinstance(op, FilterOp):
            return self._apply_filter(rows, op)
        if isinstance(op, SelectOp):
            return self._apply_select(rows, op)
        if isinstance(op, SortOp):
            return _apply_sort(rows, op)
        if isinstance(op, GroupOp):
            return [_group_summary(group, op) for group in self._build_groups(rows, op)]
        if isinstance(op, LimitOp):
            return _apply_limit(rows, op.count)
        if isinstance(op, DropOp):
            return rows[max(0, op.count):]
        raise ValueError(f"Unknown operation type: {type(op)}")

    def _apply_filter(self, rows: list[Row], op: FilterOp) -> list[Row]:
        return [row for row in rows if self.evaluator.evaluate(op.condition, row) is True]

    def _apply_select(self, rows: list[Row], op: SelectOp) -> list[Row]:
        result = []
        for row in rows:
            new_row: Row = {}
            for column in op.columns:
                if column.wildcard:
                    new_row.update(row)
                else:
                    new_row[column.output_name] = self.evaluator.evaluate(column.expression, row)
            result.append(new_row)
        return result

    @staticmethod
    def _build_groups(rows: list[Row], op: GroupOp) -> list[GroupScope]:
        """Partition rows by the group-by values, keeping first-seen order."""
        groups: dict[tuple, list[Row]] = {}
        for row in rows:
            key = tuple(_group_key_part(resolve_column(row, name)) for name in op.columns)
            groups.setdefault(key, []).append(row)
        return [GroupScope(tuple(members)) for members in groups.values()]

    def _select_group(self, group: GroupScope, op: SelectOp) -> Row:
        """Run a select once for a whole group; aggregates see every row of it."""
        new_row: Row = {}
        for column in op.columns:
            if column.wildcard:
                new_row.update(group.first)
            else:
                value = self.evaluator.evaluate(column.expression, group.first, group)
                new_row[_group_column_name(column)] = value
        return new_row


def _record(node: PlanNode | None, input_rows: int, output_rows: int, start: float) -> None:
    if node is None:
        return
    node.metadata["input_rows"] = input_rows
    node.metadata["output_rows"] = output_rows
    node.metadata["execution_time_ms"] = (time.perf_counter() - start) * 1000.0
    node.metadata["selectivity"] = output_rows / input_rows if input_rows else 1.0


def _group_key_part(value: Any) -> tuple:
    # 1 and 1.0 group together; True stays apart from 1
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, (int, float)):
        return ("number", float(value))
    if isinstance(value, (list, dict)):
        # Unhashable JSON values group by their canonical text
        return ("json", json.dumps(value, sort_keys=True, default=str))
    return ("value", value)


def _group_summary(group: GroupScope, op: GroupOp) -> Row:
    return {name: resolve_column(group.first, name) for name in op.columns}


def _group_column_name(column: ColumnSpec) -> str:
    if column.alias is not None:
        return column.alias
    if isinstance(column.expression, Variable):
        return column.expression.name
    if isinstance(column.expression, FunctionCall):
        return column.expression.name
    return "col"


def _compare_nullable(left: Any, right: Any) -> int:
    if left is None or right is None:
        if left is None and right is None:
            return 0
        return -1 if left is None else 1
    return compare_values(left, right)


def _apply_sort(rows: list[Row], op: SortOp) -> list[Row]:
    """Stable sort on one column; nulls sort lowest."""
    key = cmp_to_key(_compare_nullable)
    return sorted(rows, key=lambda row: key(resolve_column(row, op.column)), reverse=not op.ascending)


def _apply_limit(rows: list[Row], count: int) -> list[Row]:
    if count >= 0:
        return rows[:count]
    return rows[max(0, len(rows) + count):]
