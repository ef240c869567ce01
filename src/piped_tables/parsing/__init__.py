"""Parsing module for the PTQ query language."""

from piped_tables.parsing.query_ast import (
    ColumnSpec,
    Expression,
    Operation,
    Pipeline,
)
from piped_tables.parsing.query_lexer import QueryLexer
from piped_tables.parsing.query_parser import QueryParser

__all__ = [
    "ColumnSpec",
    "Expression",
    "Operation",
    "Pipeline",
    "QueryLexer",
    "QueryParser",
]
