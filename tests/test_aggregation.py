import struct

import pytest

from rmexec.aggregation import AggregationExecutor, make_count_star_col
from rmexec.executors import Executor, ExecutorType
from rmexec.types import (
    INT_SIZE,
    AggregationType,
    ColMeta,
    ColType,
    ColumnNotFoundError,
    InternalError,
    TabCol,
)
from rmexec.value import CompOp, Condition, Value


class _Rows(Executor):
    def __init__(self, table, cols, records):
        self._table = table
        self._cols = cols
        self._records = list(records)
        self._pos = 0

    def begin_tuple(self):
        self._pos = 0

    def next_tuple(self):
        self._pos += 1

    def is_end(self):
        return self._pos >= len(self._records)

    def next(self):
        return self._records[self._pos]

    def cols(self):
        return self._cols

    def tuple_len(self):
        return sum(col.length for col in self._cols)

    def table_name(self):
        return self._table

    def executor_type(self):
        return ExecutorType.SEQ_SCAN


COLS = [
    ColMeta("t", "id", ColType.INT, 4, 0),
    ColMeta("t", "name", ColType.STRING, 8, 4),
    ColMeta("t", "score", ColType.FLOAT, 4, 12),
]
DATA = [(1, "a", 1.5), (2, "b", 2.5), (3, "a", 0.25)]

NAME = TabCol("t", "name")
COUNT_STAR = TabCol("", "*", aggr=AggregationType.COUNT)


def _pack(row):
    return struct.pack("<i8sf", row[0], row[1].encode(), row[2])


def _child(rows=DATA):
    return _Rows("t", COLS, [_pack(row) for row in rows])


def _decode(agg):
    rows = []
    for record in agg:
        rows.append(tuple(Value.from_column(record, col) for col in agg.cols()))
    return rows


def test_count_star_per_group():
    agg = AggregationExecutor(_child(), [NAME, COUNT_STAR], [NAME])
    rows = [(name.str_val, count.int_val) for name, count in _decode(agg)]
    assert rows == [("a", 2), ("b", 1)]


def test_sum_of_int_without_grouping():
    agg = AggregationExecutor(_child(), [TabCol("t", "id", aggr=AggregationType.SUM)], [])
    rows = _decode(agg)
    assert len(rows) == 1
    assert rows[0][0].int_val == sum(row[0] for row in DATA)


def test_sum_of_float():
    agg = AggregationExecutor(_child(), [TabCol("t", "score", aggr=AggregationType.SUM)], [])
    (row,) = _decode(agg)
    assert row[0].float_val == sum(row[2] for row in DATA)


def test_max_and_min():
    sel = [
        TabCol("t", "score", aggr=AggregationType.MAX),
        TabCol("t", "score", aggr=AggregationType.MIN),
        TabCol("t", "name", aggr=AggregationType.MAX),
        TabCol("t", "name", aggr=AggregationType.MIN),
    ]
    (row,) = _decode(AggregationExecutor(_child(), sel, []))
    assert row[0].float_val == max(r[2] for r in DATA)
    assert row[1].float_val == min(r[2] for r in DATA)
    assert row[2].str_val == max(r[1] for r in DATA)
    assert row[3].str_val == min(r[1] for r in DATA)


def test_having_on_count():
    rhs = Value()
    rhs.set_int(1)
    having = [Condition(COUNT_STAR, CompOp.GT, is_rhs_val=True, rhs_val=rhs)]
    agg = AggregationExecutor(_child(), [NAME], [NAME], having)
    assert [row[0].str_val for row in _decode(agg)] == ["a"]


def test_having_on_plain_column():
    rhs = Value()
    rhs.set_str("b")
    having = [Condition(NAME, CompOp.EQ, is_rhs_val=True, rhs_val=rhs)]
    agg = AggregationExecutor(_child(), [NAME], [NAME], having)
    assert [row[0].str_val for row in _decode(agg)] == ["b"]


def test_empty_input_without_grouping_yields_null_row():
    agg = AggregationExecutor(_child([]), [COUNT_STAR], [])
    records = list(agg)
    assert records == [b"\0" * INT_SIZE]
    assert agg.cols()[0].type is ColType.NULL


def test_empty_input_with_grouping_yields_nothing():
    agg = AggregationExecutor(_child([]), [NAME, COUNT_STAR], [NAME])
    assert list(agg) == []


def _string_child(values):
    cols = [ColMeta("s", "v", ColType.STRING, 8, 0)]
    return _Rows("s", cols, [v.encode().ljust(8, b"\0") for v in values])


def test_sum_of_strings_with_decimal_point():
    agg = AggregationExecutor(
        _string_child(["12", "3.5x", "abc"]), [TabCol("s", "v", aggr=AggregationType.SUM)], []
    )
    (record,) = list(agg)
    assert struct.unpack("<f", record)[0] == 15.5


def test_sum_of_integer_strings():
    agg = AggregationExecutor(
        _string_child(["12", "30"]), [TabCol("s", "v", aggr=AggregationType.SUM)], []
    )
    (record,) = list(agg)
    assert struct.unpack("<i", record)[0] == 42


def test_sum_of_date_is_rejected():
    cols = [ColMeta("d", "day", ColType.DATE, 4, 0)]
    child = _Rows("d", cols, [struct.pack("<i", 1)])
    agg = AggregationExecutor(child, [TabCol("d", "day", aggr=AggregationType.SUM)], [])
    out_col = agg.cols()[0]
    assert (out_col.type, out_col.length, out_col.offset) == (ColType.DATE, 4, 0)
    with pytest.raises(InternalError) as info:
        list(agg)
    assert "AggrType" in str(info.value)


def test_unknown_column_is_rejected():
    with pytest.raises(ColumnNotFoundError):
        AggregationExecutor(_child(), [TabCol("t", "missing")], [])


def test_output_columns_are_packed():
    sel = [NAME, TabCol("t", "name", aggr=AggregationType.COUNT), TabCol("t", "name", aggr=AggregationType.SUM)]
    agg = AggregationExecutor(_child(), sel, [NAME])
    cols = agg.cols()
    assert cols[0].offset == 0
    for before, after in zip(cols, cols[1:]):
        assert after.offset == before.offset + before.length
    assert agg.tuple_len() == cols[-1].offset + cols[-1].length
    assert (cols[1].type, cols[1].length) == (ColType.INT, INT_SIZE)
    assert (cols[2].type, cols[2].length) == (ColType.INT, INT_SIZE)
    assert agg.executor_type() is ExecutorType.AGGREGATION


def test_make_count_star_col():
    col = make_count_star_col(TabCol("", "*", alias="n", aggr=AggregationType.COUNT))
    assert col.name == "*"
    assert col.tab_name == ""
    assert col.alias == "n"
    assert col.type is ColType.INT
    assert col.length == INT_SIZE
    assert col.aggr is AggregationType.COUNT


def test_store_group_collects_records_by_key():
    agg = AggregationExecutor(_child([]), [NAME, COUNT_STAR], [NAME])
    stored = [DATA[0], DATA[1], DATA[2]]
    for row in stored:
        agg.store_group(_pack(row))
    rows = [(name.str_val, count.int_val) for name, count in _decode(agg)]
    assert [name for name, _ in rows] == list(dict.fromkeys(row[1] for row in stored))
    assert sum(count for _, count in rows) == len(stored)