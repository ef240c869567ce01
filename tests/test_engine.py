"""Tests for the QueryEngine entry point and table helpers."""

import pytest

from piped_tables.engine import QueryEngine, TableBuilder, create_table, format_results, table
from piped_tables.errors import ParseError, QueryError, TypeMismatchError, UnknownTableError
from piped_tables.planner import ExecutionPlan


class TestQueryEngine:
    """Tests for the engine API."""

    def test_register_and_list_tables(self, engine):
        engine.register_table("sales", [])

        assert engine.table_names() == ["employees", "sales"]

    def test_parse(self, engine):
        pipeline = engine.parse("employees | #[1]")

        assert pipeline.table == "employees"
        assert len(pipeline.operations) == 1

    def test_execute_direct_and_optimized(self, engine):
        query = "employees | ^[age] | ?[salary > 90000] | ![name]"

        direct = engine.execute(query, optimize=False)
        optimized = engine.execute(query, optimize=True)

        assert direct == optimized == [{"name": "Bob"}, {"name": "Grace"}, {"name": "Diana"}]

    def test_default_route(self, employees):
        engine = QueryEngine(optimize=True)
        engine.register_table("employees", employees)

        assert engine.optimize
        assert len(engine.execute("employees | ?[age < 30]")) == 3

    def test_explain(self, engine):
        plan = engine.explain("employees | ^[age] | ?[age > 30]")

        assert isinstance(plan, ExecutionPlan)
        assert plan.statistics["total_operations"] == 2
        assert "filter_pushdown" in str(plan)

    def test_explain_does_not_execute(self, engine):
        plan = engine.explain("missing | #[1]")

        assert plan.table == "missing"
        with pytest.raises(UnknownTableError):
            engine.execute("missing | #[1]")

    def test_custom_functions(self, employees):
        engine = QueryEngine(functions={"Double": lambda args: args[0] * 2})
        engine.register_table("employees", employees)

        rows = engine.execute("employees | #[1] | ![d: double[age]]")

        assert rows == [{"d": 64}]
        assert "double" in engine.context.functions
        assert "upper" in engine.context.functions

    def test_errors_are_query_errors(self, engine):
        with pytest.raises(ParseError):
            engine.execute("employees | ?[")
        with pytest.raises(QueryError):
            engine.execute("employees | ![x: name * 2]")


class TestRouteAgreement:
    """The direct and optimized routes return the same rows."""

    def test_group_scenario(self):
        engine = QueryEngine()
        engine.register_table("t", [
            {"dept": "sales", "salary": 75000},
            {"dept": "sales", "salary": 65000},
            {"dept": "eng", "salary": 95000},
        ])
        query = "t | @[dept] | ![dept; avg: avg[salary]; cnt: count[id]]"
        expected = [
            {"dept": "sales", "avg": 70000, "cnt": 2},
            {"dept": "eng", "avg": 95000, "cnt": 1},
        ]

        assert engine.execute(query, optimize=False) == expected
        assert engine.execute(query, optimize=True) == expected

    @pytest.mark.parametrize("query", [
        "employees | ^[age] | ?[salary > 70000] | ![name; age]",
        "employees | ![*; double: salary * 2] | ?[salary > 90000] | v[double]",
        "employees | ?[dept = `sales] | ?[age > 35]",
        "employees | #[8] | #[5] | _[1] | _[1]",
        "employees | #[-8] | #[-3]",
        "employees | @[city] | ![city; n: count[]; top: max[salary]] | v[n]",
        "employees | @[dept] | _[0] | ![dept; n: count[]]",
        "employees | ^[name] | v[name] | #[-3]",
        "employees | _[0] | @[dept] | ![*] | ?[age > 30]",
    ])
    def test_routes_agree(self, engine, query):
        assert engine.execute(query, optimize=False) == engine.execute(query, optimize=True)

    @pytest.mark.parametrize("optimize", [False, True])
    def test_select_failure_is_not_filtered_away(self, optimize):
        engine = QueryEngine()
        engine.register_table("t", [{"a": "x"}, {"a": 1}])

        with pytest.raises(TypeMismatchError):
            engine.execute("t | ![*; b: a * 2] | ?[a = 1]", optimize=optimize)


class TestTableHelpers:
    """Tests for building and printing tables."""

    def test_create_table(self):
        rows = create_table(["a", "b"], [[1, 2], [3]])

        assert rows == [{"a": 1, "b": 2}, {"a": 3}]

    def test_table_builder(self):
        builder = table()
        rows = builder.columns("name", "age").row("Ann", 31).row("Bo").build()

        assert isinstance(builder, TableBuilder)
        assert rows == [{"name": "Ann", "age": 31}, {"name": "Bo"}]

    def test_format_results(self):
        text = format_results([
            {"name": "Ann", "salary": 75000.0},
            {"name": "Bo", "salary": None},
        ])

        assert text == (
            "| name | salary |\n"
            "|------|--------|\n"
            "| Ann  | 75000  |\n"
            "| Bo   | null   |\n"
        )

    def test_format_values(self):
        text = format_results([{"x": 2.5, "y": True}, {"z": "a"}])
        lines = text.splitlines()

        assert lines[0] == "| x    | y    | z    |"
        assert lines[2] == "| 2.50 | true | null |"
        assert lines[3] == "| null | null | a    |"

    def test_format_no_results(self):
        assert format_results([]) == "No results"
