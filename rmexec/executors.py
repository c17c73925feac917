"""Executor interface and the projection, sort and nested-loop join operators."""

from __future__ import annotations

import abc
import dataclasses
import enum
import itertools
import os
from typing import Iterator, Sequence

from .sorting import ExternalMergeSorter
from .types import ColMeta, ColumnNotFoundError, InternalError, TabCol
from .value import Condition, Value

_NOT_IMPLEMENTED = "virtual member function not implemented"
SORT_MEMORY = 1024 * 1024 * 800


class ExecutorType(enum.Enum):
    """Kind of operator in an execution tree."""

    AGGREGATION = enum.auto()
    DELETE = enum.auto()
    PROJECTION = enum.auto()
    SEQ_SCAN = enum.auto()
    UPDATE = enum.auto()
    NESTEDLOOP_JOIN = enum.auto()
    MERGE_JOIN = enum.auto()
    SORT = enum.auto()
    INSERT = enum.auto()
    INDEX_SCAN = enum.auto()


def find_col(cols: Sequence[ColMeta], target: TabCol, aggr: bool = False) -> int:
    """Return the position of ``target`` in ``cols``.

    With ``aggr`` set, the aggregate function must match as well.
    """
    for index, col in enumerate(cols):
        if col.tab_name != target.tab_name or col.name != target.col_name:
            continue
        if aggr and col.aggr is not target.aggr:
            continue
        return index
    raise ColumnNotFoundError(f"{target.tab_name}.{target.col_name}")


class Executor(abc.ABC):
    """An operator producing fixed-length records one at a time."""

    def tuple_len(self) -> int:
        raise InternalError(_NOT_IMPLEMENTED)

    def cols(self) -> list[ColMeta]:
        raise InternalError(_NOT_IMPLEMENTED)

    def executor_type(self) -> ExecutorType:
        raise InternalError(_NOT_IMPLEMENTED)

    def begin_tuple(self) -> None:
        raise InternalError(_NOT_IMPLEMENTED)

    def next_tuple(self) -> None:
        raise InternalError(_NOT_IMPLEMENTED)

    def is_end(self) -> bool:
        raise InternalError(_NOT_IMPLEMENTED)

    def table_name(self) -> str:
        raise InternalError(_NOT_IMPLEMENTED)

    @abc.abstractmethod
    def next(self) -> bytes | None:
        """Return the current record."""

    def get_col_offset(self, target: TabCol) -> ColMeta:
        raise InternalError(_NOT_IMPLEMENTED)

    def __iter__(self) -> Iterator[bytes]:
        self.begin_tuple()
        while not self.is_end():
            record = self.next()
            if record is not None:
                yield record
            self.next_tuple()


class ProjectionExecutor(Executor):
    """Keeps only the selected columns of each record of its child."""

    def __init__(self, prev: Executor, sel_cols: Sequence[TabCol]) -> None:
        self._prev = prev
        prev_cols = prev.cols()
        self._sel_idxs: list[int] = []
        self._cols: list[ColMeta] = []
        offset = 0
        for sel_col in sel_cols:
            index = find_col(prev_cols, sel_col, aggr=True)
            self._sel_idxs.append(index)
            col = dataclasses.replace(prev_cols[index], offset=offset)
            offset += col.length
            self._cols.append(col)
        self._len = offset

    def begin_tuple(self) -> None:
        self._prev.begin_tuple()

    def next_tuple(self) -> None:
        self._prev.next_tuple()

    def is_end(self) -> bool:
        return self._prev.is_end()

    def tuple_len(self) -> int:
        return self._len

    def cols(self) -> list[ColMeta]:
        if self._prev.executor_type() is ExecutorType.AGGREGATION:
            return self._prev.cols()
        return self._cols

    def next(self) -> bytes:
        raw = self._prev.next()
        if raw is None:
            raise InternalError("no current record to project")
        prev_cols = self._prev.cols()
        picked = (prev_cols[index] for index in self._sel_idxs)
        return b"".join(raw[col.offset:col.offset + col.length] for col in picked)

    def executor_type(self) -> ExecutorType:
        return ExecutorType.PROJECTION


class SortExecutor(Executor):
    """Orders the records of its child by one column."""

    def __init__(
        self,
        prev: Executor,
        sel_col: TabCol,
        is_desc: bool = False,
        memory: int = SORT_MEMORY,
        directory: str | os.PathLike[str] | None = None,
    ) -> None:
        self._prev = prev
        self._key_col = prev.get_col_offset(sel_col)
        self._is_desc = is_desc
        self._memory = memory
        self._directory = directory
        self._sorter: ExternalMergeSorter | None = None
        self._buffer: bytes | None = None
        self._is_end = False

    def _compare(self, a: bytes, b: bytes) -> int:
        lvalue = Value.from_column(a, self._key_col)
        rvalue = Value.from_column(b, self._key_col)
        if lvalue < rvalue:
            result = -1
        elif lvalue > rvalue:
            result = 1
        else:
            result = 0
        return -result if self._is_desc else result

    def begin_tuple(self) -> None:
        if self._sorter is not None:
            self._sorter.close()
        self._sorter = ExternalMergeSorter(
            self._memory, self._prev.tuple_len(), self._compare, self._directory
        )
        self._buffer = None
        self._is_end = False
        for record in self._prev:
            self._sorter.write(record)
        self._sorter.end_write()
        self._sorter.begin_read()
        self.next_tuple()

    def next_tuple(self) -> None:
        if self._sorter is None:
            raise InternalError("begin_tuple has not been called")
        if self._sorter.is_end():
            self._is_end = True
            return
        self._buffer = self._sorter.read()

    def next(self) -> bytes | None:
        record, self._buffer = self._buffer, None
        return record

    def is_end(self) -> bool:
        return self._is_end

    def tuple_len(self) -> int:
        return self._prev.tuple_len()

    def cols(self) -> list[ColMeta]:
        return self._prev.cols()

    def executor_type(self) -> ExecutorType:
        return ExecutorType.SORT


class NestedLoopJoinExecutor(Executor):
    """Inner join of two children by comparing every pair of records."""

    def __init__(self, left: Executor, right: Executor, conds: Sequence[Condition]) -> None:
        self._left = left
        self._right = right
        left_len = left.tuple_len()
        self._len = left_len + right.tuple_len()
        self._cols = list(left.cols()) + [
            dataclasses.replace(col, offset=col.offset + left_len) for col in right.cols()
        ]
        self._conds = list(conds)
        self._matches: Iterator[bytes] = iter(())
        self._result: bytes | None = None
        self._is_end = False

    def begin_tuple(self) -> None:
        left_records = list(self._left)
        right_records = list(self._right)
        self._matches = (
            lrec + rrec
            for lrec, rrec in itertools.product(left_records, right_records)
            if self._eval_conditions(lrec, rrec)
        )
        self._advance()

    def next_tuple(self) -> None:
        if self._is_end:
            raise InternalError("join is already exhausted")
        self._advance()

    def _advance(self) -> None:
        self._result = next(self._matches, None)
        self._is_end = self._result is None

    def _eval_conditions(self, lbase: bytes, rbase: bytes) -> bool:
        left_cols = self._left.cols()
        right_cols = self._right.cols()
        for cond in self._conds:
            if cond.is_rhs_val or cond.rhs_col is None:
                raise InternalError("join condition must compare two columns")
            lvalue = Value.from_column(lbase, left_cols[find_col(left_cols, cond.lhs_col)])
            rvalue = Value.from_column(rbase, right_cols[find_col(right_cols, cond.rhs_col)])
            if not cond.eval(lvalue, rvalue):
                return False
        return True

    def is_end(self) -> bool:
        return self._is_end

    def cols(self) -> list[ColMeta]:
        return self._cols

    def tuple_len(self) -> int:
        return self._len

    def next(self) -> bytes | None:
        record, self._result = self._result, None
        return record

    def get_col_offset(self, target: TabCol) -> ColMeta:
        return self._cols[find_col(self._cols, target)]

    def executor_type(self) -> ExecutorType:
        return ExecutorType.NESTEDLOOP_JOIN