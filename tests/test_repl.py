"""Tests for the PTQ REPL."""

import json
from pathlib import Path

import pytest

from piped_tables.repl import format_value, load_tables, main


@pytest.fixture
def employees_file(tmp_path: Path, employees) -> Path:
    path = tmp_path / "employees.json"
    path.write_text(json.dumps(employees))
    return path


class TestHelperFunctions:
    """Tests for REPL helper functions."""

    def test_format_value(self):
        assert format_value(None) == "NULL"
        assert format_value(True) == "true"
        assert format_value(3.0) == "3"
        assert format_value(2.5) == "2.5"
        assert format_value("Ann") == "'Ann'"
        assert format_value("x" * 50).endswith("...'")

    def test_load_array_file(self, employees_file: Path):
        tables = load_tables(employees_file)

        assert list(tables) == ["employees"]
        assert len(tables["employees"]) == 10

    def test_load_object_file(self, tmp_path: Path):
        path = tmp_path / "data.json"
        path.write_text(json.dumps({"a": [{"x": 1}], "b": []}))

        assert load_tables(path) == {"a": [{"x": 1}], "b": []}

    def test_load_rejects_other_shapes(self, tmp_path: Path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"a": [1, 2]}))

        with pytest.raises(ValueError, match="array of objects"):
            load_tables(path)


class TestCommand:
    """Tests for -c execution."""

    def test_command(self, employees_file: Path, capsys):
        result = main([str(employees_file), "-c", "employees | ?[salary > 100000] | ![name]"])

        out = capsys.readouterr().out
        assert result == 0
        assert "'Diana'" in out
        assert "(1 row)" in out

    def test_command_optimized(self, employees_file: Path, capsys):
        result = main([str(employees_file), "--optimize", "-c", "employees | @[dept] | ![dept; n: count[]]"])

        out = capsys.readouterr().out
        assert result == 0
        assert "(3 rows)" in out

    def test_explain(self, employees_file: Path, capsys):
        result = main([str(employees_file), "--explain", "-c", "employees | ^[age] | ?[age > 30]"])

        out = capsys.readouterr().out
        assert result == 0
        assert "Execution Plan for table: employees" in out
        assert "filter_pushdown" in out

    def test_no_results(self, employees_file: Path, capsys):
        assert main([str(employees_file), "-c", "employees | #[0]"]) == 0
        assert "(no results)" in capsys.readouterr().out

    def test_query_error(self, employees_file: Path, capsys):
        result = main([str(employees_file), "-c", "nope | #[1]"])

        assert result == 1
        assert "Error: Table not found: nope" in capsys.readouterr().err

    def test_syntax_error(self, employees_file: Path, capsys):
        result = main([str(employees_file), "-c", "employees | ?["])

        assert result == 1
        assert "Parse error" in capsys.readouterr().err

    def test_missing_table_file(self, tmp_path: Path, capsys):
        result = main([str(tmp_path / "nope.json"), "-c", "t"])

        assert result == 1
        assert "File not found" in capsys.readouterr().err


class TestRunFile:
    """Tests for -f execution."""

    def test_run_file(self, employees_file: Path, tmp_path: Path, capsys):
        script = tmp_path / "queries.ptq"
        script.write_text(
            "// top earners\n"
            "employees | v[salary] | #[2] | ![name]\n"
            "\n"
            "employees | @[dept] | ![dept; avg: avg[salary]]\n"
        )

        result = main([str(employees_file), "-f", str(script)])

        out = capsys.readouterr().out
        assert result == 0
        assert ">>> employees | v[salary] | #[2] | ![name]" in out
        assert "'Diana'" in out
        assert "'engineering'" in out
        assert "top earners" not in out

    def test_run_file_stops_at_error(self, employees_file: Path, tmp_path: Path, capsys):
        script = tmp_path / "queries.ptq"
        script.write_text("employees | #[1]\nemployees | ![x: nope[1]]\nemployees | #[2]\n")

        result = main([str(employees_file), "-f", str(script)])

        captured = capsys.readouterr()
        assert result == 1
        assert "Unknown function: nope" in captured.err
        assert ">>> employees | #[2]" not in captured.out

    def test_empty_file(self, employees_file: Path, tmp_path: Path, capsys):
        script = tmp_path / "empty.ptq"
        script.write_text("// nothing here\n")

        assert main([str(employees_file), "-f", str(script)]) == 1
        assert "No queries found" in capsys.readouterr().err
