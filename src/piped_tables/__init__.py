"""Piped Tables - An embeddable pipelined query engine for in-memory tables."""

from piped_tables.context import ExecutionContext, GroupScope
from piped_tables.engine import QueryEngine, TableBuilder, create_table, format_results, table
from piped_tables.errors import (
    EvaluationError,
    LexError,
    ParseError,
    QueryError,
    TypeMismatchError,
    UnknownFunctionError,
    UnknownTableError,
)
from piped_tables.parsing import Pipeline, QueryParser
from piped_tables.planner import ExecutionPlan, PlanNode, QueryPlanner
from piped_tables.query_executor import QueryExecutor

__all__ = [
    # Main API
    "QueryEngine",
    "format_results",
    "create_table",
    "table",
    "TableBuilder",
    # Building blocks
    "ExecutionContext",
    "GroupScope",
    "QueryParser",
    "Pipeline",
    "QueryPlanner",
    "ExecutionPlan",
    "PlanNode",
    "QueryExecutor",
    # Errors
    "QueryError",
    "LexError",
    "ParseError",
    "EvaluationError",
    "UnknownTableError",
    "UnknownFunctionError",
    "TypeMismatchError",
]

__version__ = "0.1.0"
