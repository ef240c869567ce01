"""Shared fixtures: the employees table used across the executor tests."""

import pytest

from piped_tables.engine import QueryEngine, table


@pytest.fixture
def employees():
    return (
        table()
        .columns("id", "name", "dept", "salary", "age", "city")
        .row(1, "Alice", "sales", 75000.0, 32, "New York")
        .row(2, "Bob", "engineering", 95000.0, 28, "San Francisco")
        .row(3, "Charlie", "sales", 68000.0, 45, "Boston")
        .row(4, "Diana", "engineering", 105000.0, 35, "Seattle")
        .row(5, "Eve", "marketing", 62000.0, 29, "Chicago")
        .row(6, "Frank", "sales", 82000.0, 41, "New York")
        .row(7, "Grace", "engineering", 98000.0, 31, "San Francisco")
        .row(8, "Henry", "marketing", 59000.0, 26, "Austin")
        .row(9, "Iris", "sales", 71000.0, 38, "Boston")
        .row(10, "Jack", "engineering", 89000.0, 33, "Seattle")
        .build()
    )


@pytest.fixture
def engine(employees):
    engine = QueryEngine()
    engine.register_table("employees", employees)
    return engine
