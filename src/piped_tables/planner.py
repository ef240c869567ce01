"""Query planner: turns a Pipeline into a rewritable plan tree.

The plan is a chain of nodes rooted at a TABLE_SCAN. A node runs before its
child, so walking ``children[0]`` from the root visits operations in
execution order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from piped_tables.parsing.query_ast import (
    COMPARISON_OPERATORS,
    LOGICAL_OPERATORS,
    BinaryOp,
    BinaryOperator,
    ColumnSpec,
    DropOp,
    Expression,
    FilterOp,
    GroupOp,
    LimitOp,
    Literal,
    Operation,
    Pipeline,
    SelectOp,
    SortOp,
    UnaryOp,
    UnaryOperator,
    Variable,
    referenced_columns,
)

logger = logging.getLogger(__name__)


class NodeKind(Enum):
    TABLE_SCAN = "TableScan"
    FILTER = "Filter"
    SELECT = "Select"
    SORT = "Sort"
    GROUP = "Group"
    LIMIT = "Limit"
    DROP = "Drop"


_KIND_BY_OPERATION = {
    FilterOp: NodeKind.FILTER,
    SelectOp: NodeKind.SELECT,
    SortOp: NodeKind.SORT,
    GroupOp: NodeKind.GROUP,
    LimitOp: NodeKind.LIMIT,
    DropOp: NodeKind.DROP,
}


@dataclass
class PlanNode:
    """One node of the plan tree."""

    kind: NodeKind
    operation: Operation | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    children: list[PlanNode] = field(default_factory=list)

    @property
    def child(self) -> PlanNode | None:
        return self.children[0] if self.children else None

    def chain(self) -> Iterator[PlanNode]:
        """Yield this node and its descendants in execution order.

        Raises ValueError on a branching plan; only linear chains execute.
        """
        node: PlanNode | None = self
        while node is not None:
            if len(node.children) > 1:
                raise ValueError(f"{node.kind.value} node has {len(node.children)} children; plans must be linear")
            yield node
            node = node.child

    def render(self, indent: int = 0) -> str:
        line = "  " * indent + self.kind.value
        if self.operation is not None:
            line += f": {self.operation}"
        if self.metadata:
            line += f" {self.metadata}"
        lines = [line]
        for child in self.children:
            lines.append(child.render(indent + 1))
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()


@dataclass
class ExecutionPlan:
    """An optimized plan plus the statistics gathered after optimization."""

    table: str
    root: PlanNode
    statistics: dict[str, Any] = field(default_factory=dict)

    def nodes(self) -> list[PlanNode]:
        return list(self.root.chain())

    def __str__(self) -> str:
        lines = [
            f"Execution Plan for table: {self.table}",
            "-" * 37,
            self.root.render(),
        ]
        if self.statistics:
            lines.append("")
            lines.append("Statistics:")
            for key, value in self.statistics.items():
                lines.append(f"  {key}: {value}")
        return "\n".join(lines)


def is_total_predicate(expr: Expression) -> bool:
    """True if ``expr`` can never raise and only yields True, False or None.

    Comparisons, and/or and not over literals and variables qualify.
    """
    if isinstance(expr, BinaryOp):
        if expr.op not in COMPARISON_OPERATORS and expr.op not in LOGICAL_OPERATORS:
            return False
        return _is_total_operand(expr.left) and _is_total_operand(expr.right)
    if isinstance(expr, UnaryOp):
        return expr.op is UnaryOperator.NOT and _is_total_operand(expr.operand)
    return False


def _is_total_operand(expr: Expression) -> bool:
    if isinstance(expr, (Literal, Variable)):
        return True
    return is_total_predicate(expr)


def _cannot_raise(column: ColumnSpec) -> bool:
    return column.wildcard or _is_total_operand(column.expression)


class QueryPlanner:
    """Builds and optimizes execution plans."""

    def create_plan(self, pipeline: Pipeline, optimize: bool = True) -> ExecutionPlan:
        """Create a plan for ``pipeline``; rewrite passes run unless ``optimize`` is False."""
        root = PlanNode(NodeKind.TABLE_SCAN, metadata={"table": pipeline.table})
        current = root
        for op in pipeline.operations:
            node = self._create_plan_node(op)
            current.children.append(node)
            current = node

        plan = ExecutionPlan(table=pipeline.table, root=root)
        eliminated: list[Operation] = []
        if optimize:
            plan.root = self._optimize(plan.root, eliminated)
        self._analyze_statistics(plan, len(eliminated))
        return plan

    @staticmethod
    def _create_plan_node(op: Operation) -> PlanNode:
        kind = _KIND_BY_OPERATION.get(type(op))
        if kind is None:
            raise ValueError(f"Unknown operation type: {type(op)}")
        return PlanNode(kind, operation=op)

    def _optimize(self, root: PlanNode, eliminated: list[Operation]) -> PlanNode:
        root = self._push_down_filters(root, parent=None)
        root = self._combine_filters(root)
        root = self._optimize_limits(root)
        self._remove_redundant_ops(root, None, eliminated)
        return root

    # --- Rewrite 1: filter pushdown ---

    def _push_down_filters(self, node: PlanNode, parent: PlanNode | None) -> PlanNode:
        """Move filters ahead of sorts and of wildcard selects that don't feed them.

        Post-order: a filter lifted past one node is reconsidered against
        the next node up when the recursion unwinds, so it keeps moving
        towards the table scan as far as the rules allow.
        """
        if node.children:
            node.children[0] = self._push_down_filters(node.children[0], parent=node)

        child = node.child
        if child is None or child.kind is not NodeKind.FILTER:
            return node
        if not self._can_run_filter_first(child.operation, node, parent):
            return node

        logger.debug("Pushing %s ahead of %s", child.operation, node.operation)
        node.children = child.children
        child.children = [node]
        child.metadata["optimization"] = "filter_pushdown"
        return child

    @staticmethod
    def _can_run_filter_first(filter_op: FilterOp, node: PlanNode, parent: PlanNode | None) -> bool:
        if node.kind is NodeKind.SORT:
            return True
        if node.kind is not NodeKind.SELECT:
            return False
        select: SelectOp = node.operation
        if not select.has_wildcard:
            return False
        # A select straight after a group is the group's aggregate projection
        if parent is not None and parent.kind is NodeKind.GROUP:
            return False
        # The select must not fail on rows the filter would drop
        if not all(_cannot_raise(c) for c in select.columns):
            return False
        defined = {c.output_name for c in select.columns if not c.wildcard}
        return not (referenced_columns(filter_op.condition) & defined)

    # --- Rewrite 2: filter combination ---

    def _combine_filters(self, node: PlanNode) -> PlanNode:
        if node.children:
            node.children[0] = self._combine_filters(node.children[0])

        child = node.child
        if node.kind is not NodeKind.FILTER or child is None or child.kind is not NodeKind.FILTER:
            return node
        first: FilterOp = node.operation
        second: FilterOp = child.operation
        if not (is_total_predicate(first.condition) and is_total_predicate(second.condition)):
            return node

        combined = PlanNode(
            NodeKind.FILTER,
            operation=FilterOp(BinaryOp(BinaryOperator.AND, first.condition, second.condition)),
            metadata={"optimized": "combined_filters"},
            children=child.children,
        )
        logger.debug("Combined filters into %s", combined.operation)
        return combined

    # --- Rewrite 3: limit/drop merging ---

    def _optimize_limits(self, node: PlanNode) -> PlanNode:
        if node.children:
            node.children[0] = self._optimize_limits(node.children[0])

        child = node.child
        if child is None or child.kind is not node.kind:
            return node

        if node.kind is NodeKind.LIMIT:
            first, second = node.operation.count, child.operation.count
            if first >= 0 and second >= 0:
                merged = LimitOp(min(first, second))
            elif first < 0 and second < 0:
                merged = LimitOp(max(first, second))
            else:
                return node
            tag = "combined_limits"
        elif node.kind is NodeKind.DROP:
            merged = DropOp(node.operation.count + child.operation.count)
            tag = "combined_drops"
        else:
            return node

        logger.debug("Merged %s and %s into %s", node.operation, child.operation, merged)
        return PlanNode(node.kind, operation=merged, metadata={"optimized": tag}, children=child.children)

    # --- Rewrite 4: redundancy removal ---

    def _remove_redundant_ops(
        self, node: PlanNode, parent: PlanNode | None, eliminated: list[Operation]
    ) -> PlanNode | None:
        """Drop no-op nodes; returns the node that takes ``node``'s place (None for nothing)."""
        if node.children:
            replacement = self._remove_redundant_ops(node.children[0], node, eliminated)
            node.children = [replacement] if replacement is not None else []

        child = node.child
        if node.kind is NodeKind.DROP and node.operation.count == 0:
            # Removing it would turn a plain select into the group's aggregate projection
            if parent is not None and parent.kind is NodeKind.GROUP and child is not None and child.kind is NodeKind.SELECT:
                return node
            logger.debug("Removing no-op %s", node.operation)
            eliminated.append(node.operation)
            return child

        if (
            node.kind is NodeKind.SORT
            and child is not None
            and child.kind is NodeKind.SORT
            and child.operation.column == node.operation.column
        ):
            # The later stable sort on the same column fixes the final order by itself
            logger.debug("Removing %s superseded by %s", node.operation, child.operation)
            eliminated.append(node.operation)
            return child
        return node

    # --- Statistics ---

    @staticmethod
    def _analyze_statistics(plan: ExecutionPlan, eliminated: int = 0) -> None:
        kinds = [n.kind for n in plan.nodes()]
        plan.statistics["total_operations"] = sum(1 for k in kinds if k is not NodeKind.TABLE_SCAN)
        plan.statistics["filter_operations"] = kinds.count(NodeKind.FILTER)
        plan.statistics["select_operations"] = kinds.count(NodeKind.SELECT)
        plan.statistics["has_grouping"] = NodeKind.GROUP in kinds
        plan.statistics["has_sorting"] = NodeKind.SORT in kinds
        plan.statistics["eliminated_operations"] = eliminated
