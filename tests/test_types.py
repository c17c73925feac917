import dataclasses

import pytest

from rmexec.types import (
    AggregationType,
    ColMeta,
    ColType,
    ColumnNotFoundError,
    InternalError,
    RMDBError,
    TabCol,
)


def test_tabcol_orders_by_table_then_column():
    cols = [TabCol("b", "a"), TabCol("a", "z"), TabCol("a", "c")]
    assert sorted(cols) == [TabCol("a", "c"), TabCol("a", "z"), TabCol("b", "a")]


def test_tabcol_ordering_ignores_alias_and_aggr():
    left = TabCol("t", "x", alias="zzz", aggr=AggregationType.SUM)
    right = TabCol("t", "x")
    assert not left < right
    assert not right < left
    assert left != right


def test_tabcol_defaults():
    col = TabCol("t", "x")
    assert col.alias == ""
    assert col.aggr is AggregationType.NONE


def test_colmeta_replace_keeps_other_fields():
    meta = ColMeta("t", "x", ColType.INT, 4, offset=0)
    moved = dataclasses.replace(meta, offset=12)
    assert moved.offset == 12
    assert meta.offset == 0
    assert (moved.tab_name, moved.name, moved.type, moved.length) == ("t", "x", ColType.INT, 4)


def test_column_not_found_carries_name():
    error = ColumnNotFoundError("t.x")
    assert error.column == "t.x"
    assert "t.x" in str(error)


def test_internal_error_keeps_message():
    assert "boom" in str(InternalError("boom"))


@pytest.mark.parametrize(
    "error, text",
    [(InternalError("boom"), "boom"), (ColumnNotFoundError("t.x"), "t.x")],
)
def test_errors_caught_as_base(error, text):
    with pytest.raises(RMDBError) as info:
        raise error
    assert info.value is error
    assert text in str(info.value)