"""Sort-merge equi-join of two executors with a trace of the sorted inputs."""

from __future__ import annotations

import dataclasses
import os
import struct
from typing import IO, Sequence

from .executors import Executor, ExecutorType, find_col
from .sorting import ExternalMergeSorter
from .types import ColMeta, ColType, InternalError, TabCol
from .value import CompOp, Condition, Value

MERGE_MEMORY_USAGE = 1024 * 8
SORTED_RESULTS = "sorted_results.txt"

_INT = struct.Struct("<i")
_FLOAT = struct.Struct("<f")


def _compare_values(lvalue: Value, rvalue: Value) -> int:
    if lvalue < rvalue:
        return -1
    if lvalue > rvalue:
        return 1
    return 0


def _format_column(col: ColMeta, record: bytes) -> str:
    if col.type is ColType.INT:
        return str(_INT.unpack_from(record, col.offset)[0])
    if col.type is ColType.FLOAT:
        return f"{_FLOAT.unpack_from(record, col.offset)[0]:.6f}"
    if col.type is ColType.STRING:
        chunk = bytes(record[col.offset:col.offset + col.length]).split(b"\0", 1)[0]
        return chunk.decode("utf-8", "replace")
    if col.type is ColType.NULL:
        return "NULL"
    return ""


def format_table_header(cols: Sequence[ColMeta]) -> str:
    """One ``| caption |`` line, preferring each column's alias."""
    captions = (col.alias or col.name for col in cols)
    return "|" + "".join(f" {caption} |" for caption in captions) + "\n"


def format_record(cols: Sequence[ColMeta], record: bytes) -> str:
    """One ``| value |`` line for a record."""
    return "|" + "".join(f" {_format_column(col, record)} |" for col in cols) + "\n"


class MergeJoinExecutor(Executor):
    """Joins two inputs on an equality condition by merging them in key order.

    Without ``use_index`` both inputs are sorted first; with it they are
    expected to arrive already ordered. Every record read from either side is
    traced to ``sorted_results.txt`` in ``output_dir``: the left side first,
    then the right.
    """

    def __init__(
        self,
        left: Executor,
        right: Executor,
        conds: Sequence[Condition],
        use_index: bool = False,
        memory: int = MERGE_MEMORY_USAGE,
        output_dir: str | os.PathLike[str] = ".",
        directory: str | os.PathLike[str] | None = None,
    ) -> None:
        self._left = left
        self._right = right
        self._conds = list(conds)
        self._use_index = use_index
        self._memory = memory
        self._output_path = os.path.join(output_dir, SORTED_RESULTS)
        self._directory = directory
        self._left_col: ColMeta | None = None
        self._right_col: ColMeta | None = None
        left_cols = left.cols()
        right_cols = right.cols()
        for cond in self._conds:
            if cond.is_rhs_val or cond.op is not CompOp.EQ or cond.rhs_col is None:
                continue
            lhs_tab, rhs_tab = cond.lhs_col.tab_name, cond.rhs_col.tab_name
            if lhs_tab == left.table_name() and rhs_tab == right.table_name():
                self._left_col = left_cols[find_col(left_cols, cond.lhs_col)]
                self._right_col = right_cols[find_col(right_cols, cond.rhs_col)]
            elif lhs_tab == right.table_name() and rhs_tab == left.table_name():
                self._left_col = left_cols[find_col(left_cols, cond.rhs_col)]
                self._right_col = right_cols[find_col(right_cols, cond.lhs_col)]
        if self._left_col is None or self._right_col is None:
            raise InternalError("merge join needs an equality condition between both tables")
        left_len = left.tuple_len()
        self._len = left_len + right.tuple_len()
        self._cols = list(left_cols) + [
            dataclasses.replace(col, offset=col.offset + left_len) for col in right_cols
        ]
        self._records: list[bytes | None] = [None, None]
        self._sorters: list[ExternalMergeSorter] = []
        self._buffer: bytes | None = None
        self._is_end = False
        self._started = False
        self._finished = False
        self._left_out: IO[str] | None = None
        self._right_lines: list[str] = []

    def _sort(self, executor: Executor, col: ColMeta) -> ExternalMergeSorter:
        def cmp(a: bytes, b: bytes) -> int:
            return _compare_values(Value.from_column(a, col), Value.from_column(b, col))

        sorter = ExternalMergeSorter(self._memory, executor.tuple_len(), cmp, self._directory)
        for record in executor:
            sorter.write(record)
        sorter.end_write()
        sorter.begin_read()
        return sorter

    def _side_end(self, side: int) -> bool:
        if self._use_index:
            return (self._left if side == 0 else self._right).is_end()
        return self._sorters[side].is_end()

    def _any_end(self) -> bool:
        return self._side_end(0) or self._side_end(1)

    def _trace(self, side: int, record: bytes) -> None:
        if side == 0:
            if self._left_out is not None:
                self._left_out.write(format_record(self._left.cols(), record))
        else:
            self._right_lines.append(format_record(self._right.cols(), record))

    def _compare_current(self) -> int:
        left_rec, right_rec = self._records
        if left_rec is None or right_rec is None:
            raise InternalError("no current records to compare")
        return _compare_values(
            Value.from_column(left_rec, self._left_col),
            Value.from_column(right_rec, self._right_col),
        )

    def read_record(self, side: int) -> bytes:
        """Advance one side (0 for left, 1 for right) and return its new record."""
        if side not in (0, 1):
            raise ValueError(f"side must be 0 or 1, got {side}")
        if self._use_index:
            executor = self._left if side == 0 else self._right
            record = executor.next()
            executor.next_tuple()
        else:
            record = self._sorters[side].read()
        if record is None:
            raise InternalError("child produced no record")
        self._records[side] = record
        return record

    def begin_tuple(self) -> None:
        self._finish()
        self._left_out = open(self._output_path, "w", encoding="utf-8")
        self._left_out.write(format_table_header(self._left.cols()))
        self._right_lines = [format_table_header(self._right.cols())]
        self._records = [None, None]
        self._buffer = None
        self._is_end = False
        self._finished = False
        self._started = True
        if self._use_index:
            self._left.begin_tuple()
            self._right.begin_tuple()
        else:
            self._sorters = [
                self._sort(self._left, self._left_col),
                self._sort(self._right, self._right_col),
            ]
        self.next_tuple()

    def next_tuple(self) -> None:
        if not self._started:
            raise InternalError("begin_tuple has not been called")
        if self._is_end:
            return
        if self._any_end():
            self._is_end = True
            self._finish()
            return
        self._trace(0, self.read_record(0))
        self._trace(1, self.read_record(1))
        result = self._compare_current()
        while result != 0 and not self._any_end():
            side = 0 if result < 0 else 1
            self._trace(side, self.read_record(side))
            result = self._compare_current()
        if result != 0:
            self._is_end = True
            self._finish()
            return
        self._buffer = self._records[0] + self._records[1]

    def _finish(self) -> None:
        """Trace what is left of both inputs and close the trace file."""
        if not self._started or self._finished:
            return
        self._finished = True
        for side in (0, 1):
            while not self._side_end(side):
                self._trace(side, self.read_record(side))
        if self._left_out is not None:
            self._left_out.writelines(self._right_lines)
            self._left_out.close()
            self._left_out = None
        self._right_lines = []
        for sorter in self._sorters:
            sorter.close()

    def is_end(self) -> bool:
        return self._is_end

    def next(self) -> bytes | None:
        record, self._buffer = self._buffer, None
        return record

    def cols(self) -> list[ColMeta]:
        return self._cols

    def tuple_len(self) -> int:
        return self._len

    def get_col_offset(self, target: TabCol) -> ColMeta:
        return self._cols[find_col(self._cols, target)]

    def executor_type(self) -> ExecutorType:
        return ExecutorType.MERGE_JOIN