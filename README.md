# colplan

`colplan` holds the data structures of a small analytical query engine:

- **Paged columnar tables** (`colplan.plan`). Every column is a list of 8192-byte pages.
  A page holds a row count, a count of non-null values, the packed values and a null
  bitmap at the end of the page. Strings too long for one page are split across a chain
  of pages marked `0xffff` (first) and `0xfffe` (continuation).
- **Query plans** (`colplan.plan`). A `Plan` holds scan nodes and join nodes, each with
  its list of output attributes, plus the input tables.
- **Filter predicates** (`colplan.statement`). Comparisons (`=`, `<`, `LIKE`, `IS NULL`,
  ...) combined with `AND`, `OR` and `NOT`, which can be pretty-printed.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Row tables and columnar tables

A `Table` (`colplan.table`) holds rows of Python values in `data`, with `None` standing
for NULL, and the column types in `types`. It converts to the paged format and back:

```python
from colplan.plan import DataType
from colplan.table import Table

table = Table([[1, "xxx"], [None, "yyy"], [3, None]], [DataType.INT32, DataType.VARCHAR])
columnar = table.to_columnar()
print(columnar.num_rows)               # 3
print(len(columnar.columns[0].pages))  # 1

restored = Table.from_columnar(columnar)
Table.print_rows(restored.data)
# 1|"xxx"
# NULL|"yyy"
# 3|NULL
```

`Table.format_rows(data)` returns the same lines as a list instead of printing them;
`print_rows` also takes a `file` to write to. `number_rows()` and `number_cols()` give
the table's size.

The lower-level functions are:

- `colplan.encode.encode_rows(rows, types)` builds a `ColumnarTable`. A `VARCHAR` column
  raises `TypeError` for a value that is neither a string nor `None`; a fixed-width column
  raises `ValueError` for a number out of its range and passes over values of another
  kind (an `FP64` column takes only `float`, `INT32`/`INT64` only `int`).
- `colplan.decode.decode_columnar(table)` returns the rows and the column types, raising
  `ValueError` on pages that hold more values than the table has rows or on a continuation
  page that does not follow a string.
- `colplan.decode.copy_columnar(table)` makes a copy that shares no pages with the original.
- `set_bit`/`unset_bit` (in `colplan.encode`) and `get_bit` (in `colplan.decode`) work on
  little-endian bitmaps.

Columns can also be filled one value at a time with a `ColumnInserter`, directly or as a
context manager that finalizes on a clean exit:

```python
from colplan.plan import Column, ColumnInserter, DataType

column = Column(DataType.INT64)
with ColumnInserter(column) as inserter:
    for value in range(10_000):
        inserter.insert(value)
    inserter.insert_null()
```

## Plans

```python
from colplan.plan import DataType, Plan
from colplan.table import Table

table = Table([[1, "xxx"], [2, "yyy"]], [DataType.INT32, DataType.VARCHAR])

plan = Plan()
left = plan.new_scan_node(0, [(0, DataType.INT32)])
right = plan.new_scan_node(1, [(1, DataType.VARCHAR), (0, DataType.INT32)])
plan.root = plan.new_join_node(
    True, left, right, 0, 1,
    [(0, DataType.INT32), (2, DataType.INT32), (1, DataType.VARCHAR)],
)
plan.new_input(table.to_columnar())
plan.new_input(table.to_columnar())
```

Each `new_*` method returns the index of what it added.

## Predicates

```python
from colplan.statement import Comparison, LogicalOperation, Op

pred = LogicalOperation.make_and(
    Comparison(0, Op.GT, 10),
    LogicalOperation.make_not(Comparison(1, Op.LIKE, "a%")),
)
print(pred.pretty_print(0))
# [AND]
#   0 > 10
#   [NOT]
#     1 LIKE 'a%'

Comparison.like_match("abc", "a_c")   # True
Comparison.get_numeric_value(3)       # 3.0
```

## What the package does not do

It describes plans but does not execute them: there is no join operator and no query
runner. Predicates can be built and printed but are not evaluated against rows or
columns. There is no loading of tables from CSV files, no command-line program and no
persistent storage.