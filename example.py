"""Example usage of the piped_tables library."""

import json
from pathlib import Path

from piped_tables import QueryEngine, format_results, table

# Build an in-memory table of employees
employees = (
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

engine = QueryEngine()
engine.register_table("employees", employees)

queries = [
    "employees | ?[salary > 80000] | ![name; salary]",
    "employees | v[salary] | #[3] | ![name; salary]",
    "employees | @[dept] | ![dept; headcount: count[]; avg_salary: avg[salary]]",
    "employees | ?[age < 35 and dept = `engineering] | ![name; raise: salary * 0.05]",
]

for query in queries:
    print(query)
    print(format_results(engine.execute(query)))

# The planner moves the filter ahead of the sort
print(engine.explain("employees | ^[age] | ?[salary > 70000] | #[5]"))

# Save the table so it can be loaded into the REPL
data_file = Path("./employees.json")
data_file.write_text(json.dumps(employees, indent=2))

print("\n" + "=" * 60)
print("You can now query this data using the PTQ REPL:")
print(f"  ptq {data_file}")
print("\nExample queries:")
print("  employees | ?[city = `Boston]")
print("  employees | @[city] | ![city; n: count[]] | v[n]")
