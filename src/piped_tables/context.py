"""Execution context: registered tables and the function registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from piped_tables.errors import UnknownFunctionError, UnknownTableError
from piped_tables.functions import BUILTIN_FUNCTIONS, Function

logger = logging.getLogger(__name__)

Row = dict[str, Any]


@dataclass(frozen=True)
class GroupScope:
    """The rows of the one group an expression is being evaluated against.

    Built fresh for each group by the grouped select and handed down to the
    evaluator as an argument; nothing keeps it after that group is done.
    """

    rows: tuple[Row, ...]

    @property
    def first(self) -> Row:
        return self.rows[0]

    @property
    def last(self) -> Row:
        return self.rows[-1]


class ExecutionContext:
    """Holds the tables a query can read and the functions it can call.

    The function registry is fixed when the context is created: built-ins
    first, then any ``functions`` passed in (which may shadow a built-in).
    """

    def __init__(self, functions: Mapping[str, Function] | None = None) -> None:
        self._tables: dict[str, list[Row]] = {}
        registry = dict(BUILTIN_FUNCTIONS)
        for name, fn in (functions or {}).items():
            registry[name.lower()] = fn
        self.functions: Mapping[str, Function] = MappingProxyType(registry)

    def register_table(self, name: str, rows: list[Row]) -> None:
        """Register (or replace) a table under ``name``."""
        self._tables[name] = rows
        logger.debug("Registered table %r (%d rows)", name, len(rows))

    def get_table(self, name: str) -> list[Row]:
        table = self._tables.get(name)
        if table is None:
            raise UnknownTableError(name)
        return table

    def table_names(self) -> list[str]:
        return sorted(self._tables)

    def call_function(self, name: str, args: list[Any]) -> Any:
        fn = self.functions.get(name.lower())
        if fn is None:
            raise UnknownFunctionError(name)
        return fn(args)
