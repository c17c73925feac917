"""Grouping and aggregate functions over the records of a child executor."""

from __future__ import annotations

import dataclasses
import math
import re
import struct
from typing import Sequence

from .executors import Executor, ExecutorType, find_col
from .types import (
    INT_SIZE,
    AggregationType,
    ColMeta,
    ColType,
    InternalError,
    TabCol,
)
from .value import Condition, Value

_INT = struct.Struct("<i")
_FLOAT = struct.Struct("<f")
_NUMERIC_CHARS = re.compile(rb"[0-9.]*")
_NUMBER_PREFIX = re.compile(r"\d+\.?\d*|\.\d+")


def _f32(number: float) -> float:
    try:
        return _FLOAT.unpack(_FLOAT.pack(number))[0]
    except OverflowError:
        return math.copysign(math.inf, number)


def _is_count_star(col: TabCol) -> bool:
    return col.aggr is AggregationType.COUNT and col.col_name == "*"


def _parse_number(text: str) -> float:
    match = _NUMBER_PREFIX.match(text)
    if match is None:
        raise InternalError(f"cannot convert {text!r} to a number")
    return _f32(float(match.group()))


def make_count_star_col(target: TabCol) -> ColMeta:
    """Column metadata standing for ``COUNT(*)``."""
    return ColMeta(
        tab_name="",
        name="*",
        type=ColType.INT,
        length=INT_SIZE,
        offset=0,
        alias=target.alias,
        aggr=AggregationType.COUNT,
    )


class AggregationExecutor(Executor):
    """Groups child records and computes one output row per group."""

    def __init__(
        self,
        prev: Executor,
        sel_cols: Sequence[TabCol],
        group_cols: Sequence[TabCol],
        having_conds: Sequence[Condition] = (),
    ) -> None:
        self._prev = prev
        prev_cols = prev.cols()
        self._group_cols = [prev_cols[find_col(prev_cols, col)] for col in group_cols]
        self._sel_cols_initial: list[ColMeta] = []
        self._sel_cols: list[ColMeta] = []
        for sel_col in sel_cols:
            if _is_count_star(sel_col):
                col = make_count_star_col(sel_col)
                self._sel_cols_initial.append(col)
                self._sel_cols.append(dataclasses.replace(col))
                continue
            col = dataclasses.replace(prev_cols[find_col(prev_cols, sel_col)], aggr=sel_col.aggr)
            self._sel_cols_initial.append(col)
            out = dataclasses.replace(col)
            if sel_col.aggr is AggregationType.COUNT or (
                sel_col.aggr is AggregationType.SUM and out.type is ColType.STRING
            ):
                out.type = ColType.INT
                out.length = INT_SIZE
            self._sel_cols.append(out)
        offset = 0
        for col in self._sel_cols:
            col.offset = offset
            offset += col.length
        self._len = offset
        self._having = list(having_conds)
        self._group_index: dict[bytes, int] = {}
        self._groups: list[list[bytes]] = []
        self._curr_idx = -1
        self._curr_records: list[bytes] = []
        self._empty_table_aggr = False

    def store_group(self, record: bytes) -> None:
        """File a record under the key built from its group-by columns."""
        record = bytes(record)
        key = b"".join(record[col.offset:col.offset + col.length] for col in self._group_cols)
        index = self._group_index.get(key)
        if index is None:
            index = len(self._groups)
            self._group_index[key] = index
            self._groups.append([])
        self._groups[index].append(record)

    def begin_tuple(self) -> None:
        for record in self._prev:
            self.store_group(record)
        self.next_tuple()

    def next_tuple(self) -> None:
        while True:
            if not self._groups and not self._group_cols and not self._empty_table_aggr:
                # Aggregates over an empty input still yield a single row.
                self._empty_table_aggr = True
                return
            self._curr_idx += 1
            if self.is_end():
                return
            self._curr_records = list(self._groups[self._curr_idx])
            if self.eval_conditions():
                return

    def eval_conditions(self) -> bool:
        """Keep the current group's records that satisfy every HAVING condition."""
        kept = [
            record
            for record in self._curr_records
            if all(self._eval_having(cond, record) for cond in self._having)
        ]
        if not kept:
            return False
        self._curr_records = kept
        return True

    def _eval_having(self, cond: Condition, base: bytes) -> bool:
        lhs = cond.lhs_col
        if lhs.aggr is AggregationType.NONE:
            col = self._sel_cols_initial[find_col(self._sel_cols_initial, lhs, aggr=True)]
            return cond.eval_with_rvalue(Value.from_column(base, col))
        if _is_count_star(lhs):
            col = make_count_star_col(lhs)
        else:
            col = self._sel_cols_initial[find_col(self._sel_cols_initial, lhs, aggr=True)]
        return cond.eval_with_rvalue(self.aggregate_value(col))

    def aggregate_value(self, sel_col: ColMeta) -> Value:
        """Compute ``sel_col`` over the records of the current group."""
        records = self._curr_records
        val = Value()
        if not records:
            val.type = sel_col.type
            val.init_raw(sel_col.length)
            val.type = ColType.NULL
            return val
        aggr = sel_col.aggr
        if aggr is AggregationType.NONE:
            val = Value.from_column(records[0], sel_col)
            val.init_raw(sel_col.length)
        elif aggr is AggregationType.COUNT:
            val.set_int(len(records))
            val.init_raw(INT_SIZE)
        elif aggr in (AggregationType.MAX, AggregationType.MIN):
            val = Value.from_column(records[0], sel_col)
            for record in records:
                candidate = Value.from_column(record, sel_col)
                better = candidate > val if aggr is AggregationType.MAX else candidate < val
                if better:
                    val = candidate
            val.init_raw(sel_col.length)
        elif aggr is AggregationType.SUM:
            val = self._sum(sel_col)
        else:
            raise InternalError("Unknown AggrType")
        return val

    def _sum(self, sel_col: ColMeta) -> Value:
        records = self._curr_records
        val = Value()
        if sel_col.type is ColType.INT:
            val.set_int(sum(_INT.unpack_from(record, sel_col.offset)[0] for record in records))
        elif sel_col.type is ColType.FLOAT:
            total = 0.0
            for record in records:
                total = _f32(total + _FLOAT.unpack_from(record, sel_col.offset)[0])
            val.set_float(total)
        elif sel_col.type is ColType.STRING:
            total = 0.0
            is_float = False
            for record in records:
                chunk = record[sel_col.offset:sel_col.offset + sel_col.length]
                digits = _NUMERIC_CHARS.match(chunk).group()
                if b"." in digits:
                    is_float = True
                if not digits:
                    continue
                total = _f32(total + _parse_number(digits.decode("ascii")))
            val.set_float(total)
            if not is_float:
                val.float2int()
        else:
            raise InternalError("Unknown AggrType")
        val.init_raw(INT_SIZE)
        return val

    def is_end(self) -> bool:
        return self._curr_idx >= len(self._groups)

    def cols(self) -> list[ColMeta]:
        return self._sel_cols

    def tuple_len(self) -> int:
        return self._len

    def next(self) -> bytes:
        parts = []
        for initial, out_col in zip(self._sel_cols_initial, self._sel_cols):
            val = self.aggregate_value(initial)
            if val.type is ColType.NULL:
                out_col.type = ColType.NULL
            raw = val.raw or b""
            parts.append(raw[:out_col.length].ljust(out_col.length, b"\0"))
        return b"".join(parts)

    def executor_type(self) -> ExecutorType:
        return ExecutorType.AGGREGATION