# rmexec

The query-execution core of a small relational database: typed values and
conditions, pull-based executors over fixed-length records, an external merge
sorter, joins, grouping with aggregates, and the table printer that renders
query results.

## What is inside

- `rmexec.types` – column types (`ColType`), aggregate kinds
  (`AggregationType`), column metadata (`ColMeta`), column references
  (`TabCol`) and the errors `RMDBError`, `InternalError`,
  `ColumnNotFoundError` and `StringOverflowError`.
- `rmexec.value` – `Value`, a typed int, float, string or date with its raw
  little-endian fixed-width encoding (`init_raw`, `from_column`), date packing
  (`set_date`, `date_to_str`), int/float conversion (`try_cast_to`) and edge
  values for index ranges (`edge`); plus `CompOp`, `Condition` and
  `SetClause`.
- `rmexec.printer` – `RecordPrinter`, which lays result rows out as a
  bordered table of 16-character columns into a size-limited `OutputBuffer`,
  dropping rows that no longer fit and marking the cut with `... ...` before
  the record count.
- `rmexec.sorting` – `ExternalMergeSorter`, which sorts fixed-size records by
  writing sorted runs to temporary files and merging them back in order. It
  is a context manager; `close()` removes any remaining run files.
- `rmexec.executors` – the `Executor` interface (iterable over its records),
  `find_col`, and the `ProjectionExecutor`, `SortExecutor` and
  `NestedLoopJoinExecutor` operators.
- `rmexec.aggregation` – `AggregationExecutor` for `GROUP BY`, `HAVING` and
  `COUNT`/`SUM`/`MAX`/`MIN`, with `make_count_star_col` for `COUNT(*)`.
- `rmexec.merge_join` – `MergeJoinExecutor`, a sort-merge equi-join that
  traces every record it reads to `sorted_results.txt`, with the helpers
  `format_table_header` and `format_record`.
- `rmexec.output` – `select_from`, which drives an executor tree, prints the
  table into an `OutputBuffer`, appends the same rows to `output.txt` (or a
  path you give) and returns the record count; `format_column` and
  `help_text`.

## Example

```python
import struct

from rmexec.executors import Executor, ProjectionExecutor
from rmexec.output import select_from
from rmexec.printer import OutputBuffer
from rmexec.types import ColMeta, ColType, TabCol


class Rows(Executor):
    def __init__(self, records):
        self._records = records
        self._pos = 0
        self._cols = [ColMeta("t", "id", ColType.INT, 4, 0)]

    def cols(self):
        return self._cols

    def tuple_len(self):
        return 4

    def begin_tuple(self):
        self._pos = 0

    def next_tuple(self):
        self._pos += 1

    def is_end(self):
        return self._pos >= len(self._records)

    def next(self):
        return self._records[self._pos]


scan = Rows([struct.pack("<i", n) for n in (3, 1, 2)])
sel = [TabCol("t", "id")]
out = OutputBuffer()
select_from(ProjectionExecutor(scan, sel), sel, out, "result.txt")
print(out.getvalue())
```

## What it does not do

The package executes operator trees that you build; it has no SQL parser,
planner, table storage, index, transaction handling or network server, and no
command-line program. Leaf executors that read records (for example from a
table file) are supplied by the caller by subclassing `Executor`.

## Installing

```
pip install .
```

Python 3.10 or later is required; there are no third-party dependencies.

## Running the tests

```
pip install ".[test]"
pytest
```