"""Exception types raised while lexing, parsing and executing PTQ queries."""

from __future__ import annotations


class QueryError(Exception):
    """Base class for every failure surfaced by the query engine."""


class LexError(QueryError, SyntaxError):
    """Raised when the query text contains something the lexer cannot tokenize."""

    def __init__(self, message: str, line: int, column: int) -> None:
        super().__init__(f"Lex error at line {line}, column {column}: {message}")
        self.line = line
        self.column = column


class ParseError(QueryError, SyntaxError):
    """Raised when the token stream does not match the PTQ grammar."""

    def __init__(self, line: int, column: int, expected: str, found: str) -> None:
        super().__init__(f"Parse error at line {line}, column {column}: expected {expected} (found {found})")
        self.line = line
        self.column = column
        self.expected = expected
        self.found = found


class EvaluationError(QueryError, RuntimeError):
    """Raised when a parsed query fails while it is being executed."""


class UnknownTableError(EvaluationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Table not found: {name}")
        self.name = name


class UnknownFunctionError(EvaluationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown function: {name}")
        self.name = name


class TypeMismatchError(EvaluationError):
    """Raised when an operator or function receives a value of the wrong kind."""
