"""Interactive REPL for PTQ (Piped Tables Query) language."""

from __future__ import annotations

import argparse
import json
import logging
import readline  # noqa: F401 - enables line editing in input()
import sys
from pathlib import Path
from typing import Any

from piped_tables.context import Row
from piped_tables.engine import QueryEngine
from piped_tables.errors import QueryError

logger = logging.getLogger(__name__)


def load_tables(path: Path) -> dict[str, list[Row]]:
    """Read tables from a JSON file.

    A top-level array is one table named after the file stem; a top-level
    object maps table names to arrays of rows.
    """
    data = json.loads(path.read_text())
    if isinstance(data, list):
        tables = {path.stem: data}
    elif isinstance(data, dict):
        tables = data
    else:
        raise ValueError(f"{path}: expected a JSON array or object, got {type(data).__name__}")

    for name, rows in tables.items():
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise ValueError(f"{path}: table {name!r} must be an array of objects")
    return tables


def format_value(value: Any, max_width: int = 40) -> str:
    """Format a value for display.

    Args:
        value: The value to format
        max_width: Maximum character width before truncating
    """
    if value is None:
        return "NULL"
    elif isinstance(value, bool):
        return "true" if value else "false"
    elif isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:.6g}"
    elif isinstance(value, str):
        if len(value) > max_width:
            return repr(value[:max_width - 3] + "...")
        return repr(value)
    else:
        s = str(value)
        if len(s) > max_width:
            return s[:max_width - 3] + "..."
        return s


def print_result(rows: list[Row]) -> None:
    """Print query results in a formatted table."""
    if not rows:
        print("(no results)")
        return

    columns: list[str] = []
    for row in rows:
        for col in row:
            if col not in columns:
                columns.append(col)

    # Calculate column widths
    col_widths = {col: len(col) for col in columns}
    for row in rows:
        for col in columns:
            col_widths[col] = max(col_widths[col], len(format_value(row.get(col))))

    # Cap column widths
    max_col_width = 40
    for col in col_widths:
        col_widths[col] = min(col_widths[col], max_col_width)

    header = " | ".join(col.ljust(col_widths[col])[:col_widths[col]] for col in columns)
    print(header)
    print("-" * len(header))

    for row in rows:
        values = []
        for col in columns:
            val = format_value(row.get(col))
            if len(val) > col_widths[col]:
                val = val[: col_widths[col] - 3] + "..."
            values.append(val.ljust(col_widths[col]))
        print(" | ".join(values))

    print(f"\n({len(rows)} row{'s' if len(rows) != 1 else ''})")


def run_query(engine: QueryEngine, text: str, explain: bool = False) -> None:
    """Run (or explain) one query and print what it produced."""
    if explain:
        print(engine.explain(text))
    else:
        print_result(engine.execute(text))


def print_help() -> None:
    print("""
PTQ - Piped Tables Query Language

A query names a table and pipes it through operations:

  employees | ?[salary > 50000] | ![name; salary] | v[salary] | #[3]

Operations:
  ?[cond]             Keep rows where cond is true
  ![col; name:expr]   Project columns (* keeps every column)
  ^[col]  v[col]      Sort ascending / descending
  @[col; col]         Group; a following ![...] aggregates per group
  #[n]                First n rows (last |n| when n is negative)
  _[n]                Skip the first n rows

Commands:
  tables              List loaded tables
  explain <query>     Show the optimized plan for a query
  optimize on|off     Switch between the planned and direct routes
  help                Show this help
  exit                Leave the REPL
""")


def run_repl(engine: QueryEngine) -> int:
    """Run the interactive REPL."""
    print("PTQ REPL - Piped Tables Query Language")
    names = engine.table_names()
    if names:
        print(f"Tables: {', '.join(names)}")
    else:
        print("No tables loaded. Pass JSON files on the command line.")
    print("Type 'help' for commands, 'exit' to quit.\n")

    # Command history
    history_file = Path.home() / ".ptq_history"
    try:
        readline.read_history_file(history_file)
    except FileNotFoundError:
        pass

    try:
        while True:
            try:
                line = input("ptq> ").strip()
            except EOFError:
                print()
                break

            if not line:
                continue

            lower = line.lower()
            if lower in ("exit", "quit"):
                break
            if lower == "help":
                print_help()
                continue
            if lower == "tables":
                for name in engine.table_names():
                    print(name)
                print()
                continue
            if lower in ("optimize on", "optimize off"):
                engine.optimize = lower.endswith("on")
                print(f"Optimization {'enabled' if engine.optimize else 'disabled'}")
                print()
                continue

            explain = lower.startswith("explain ")
            text = line[len("explain "):] if explain else line
            try:
                run_query(engine, text, explain)
            except QueryError as e:
                print(f"Error: {e}")
            print()
    finally:
        try:
            readline.write_history_file(history_file)
        except OSError:
            logger.debug("Could not write history file %s", history_file)

    return 0


def run_file(engine: QueryEngine, file_path: Path, explain: bool = False) -> int:
    """Execute queries from a file, one per line.

    Blank lines and lines starting with // are skipped.

    Returns:
        0 on success, 1 on the first failing query
    """
    try:
        content = file_path.read_text()
    except OSError as e:
        print(f"Error reading file: {e}", file=sys.stderr)
        return 1

    queries = [
        line.strip()
        for line in content.splitlines()
        if line.strip() and not line.strip().startswith("//")
    ]
    if not queries:
        print("No queries found in file", file=sys.stderr)
        return 1

    for query_text in queries:
        print(f">>> {query_text}")
        try:
            run_query(engine, query_text, explain)
        except QueryError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    arg_parser = argparse.ArgumentParser(
        description="Interactive REPL for Piped Tables Query Language"
    )
    arg_parser.add_argument(
        "tables",
        type=Path,
        nargs="*",
        help="JSON files to load as tables",
    )
    arg_parser.add_argument(
        "-c", "--command",
        type=str,
        help="Execute a single query and exit",
    )
    arg_parser.add_argument(
        "-f", "--file",
        type=Path,
        help="Execute queries from a file (one per line) and exit",
    )
    arg_parser.add_argument(
        "--optimize",
        action="store_true",
        help="Run queries through the planner and its rewrites",
    )
    arg_parser.add_argument(
        "--explain",
        action="store_true",
        help="Print the execution plan instead of running queries",
    )
    arg_parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log engine activity (-vv for debug detail)",
    )

    args = arg_parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose > 1 else logging.INFO,
            format="%(levelname)s %(name)s: %(message)s",
        )

    engine = QueryEngine(optimize=args.optimize)
    for path in args.tables:
        if not path.exists():
            print(f"Error: File not found: {path}", file=sys.stderr)
            return 1
        try:
            tables = load_tables(path)
        except (ValueError, OSError) as e:
            print(f"Error loading {path}: {e}", file=sys.stderr)
            return 1
        for name, rows in tables.items():
            engine.register_table(name, rows)

    if args.file:
        if not args.file.exists():
            print(f"Error: File not found: {args.file}", file=sys.stderr)
            return 1
        return run_file(engine, args.file, args.explain)

    if args.command:
        try:
            run_query(engine, args.command, args.explain)
        except QueryError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        return 0

    return run_repl(engine)


if __name__ == "__main__":
    sys.exit(main())
