"""Column types, column metadata, shared limits and the engine's errors."""

from __future__ import annotations

import enum
from dataclasses import dataclass

BUFFER_LENGTH = 8192
PAGE_SIZE = 4096
INT_SIZE = 4
FLOAT_SIZE = 4

INT_MAX = 2**31 - 1
INT_MIN = -(2**31)
FLT_MAX = 3.4028234663852886e38
FLT_MIN = 1.1754943508222875e-38


class ColType(enum.Enum):
    """Storage type of a column or value."""

    INT = "INT"
    FLOAT = "FLOAT"
    STRING = "STRING"
    DATE = "DATE"
    NULL = "NULL"

    def __str__(self) -> str:
        return self.value


class AggregationType(enum.Enum):
    """Aggregate function applied to a selected column."""

    NONE = "NONE"
    COUNT = "COUNT"
    MAX = "MAX"
    MIN = "MIN"
    SUM = "SUM"


@dataclass
class ColMeta:
    """Layout of one column inside a fixed-length record."""

    tab_name: str
    name: str
    type: ColType
    length: int
    offset: int = 0
    alias: str = ""
    aggr: AggregationType = AggregationType.NONE


@dataclass(frozen=True)
class TabCol:
    """A column reference as written in a query."""

    tab_name: str
    col_name: str
    alias: str = ""
    aggr: AggregationType = AggregationType.NONE

    def __lt__(self, other: TabCol) -> bool:
        if not isinstance(other, TabCol):
            return NotImplemented
        return (self.tab_name, self.col_name) < (other.tab_name, other.col_name)


class RMDBError(Exception):
    """Base class of all engine errors."""


class InternalError(RMDBError):
    """An operation reached a state the engine does not support."""


class ColumnNotFoundError(RMDBError):
    """A referenced column does not exist."""

    def __init__(self, column: str) -> None:
        super().__init__(f"column not found: {column}")
        self.column = column


class StringOverflowError(RMDBError):
    """A string does not fit into its column."""

    def __init__(self) -> None:
        super().__init__("string is too long for the column")