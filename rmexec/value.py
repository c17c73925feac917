"""Typed values, comparison conditions and set clauses."""

from __future__ import annotations

import math
import operator
import re
import struct
from dataclasses import dataclass, field
from typing import Callable

import enum

from .types import (
    FLOAT_SIZE,
    FLT_MAX,
    FLT_MIN,
    INT_MAX,
    INT_MIN,
    INT_SIZE,
    ColMeta,
    ColType,
    InternalError,
    RMDBError,
    StringOverflowError,
    TabCol,
)

_INT = struct.Struct("<i")
_FLOAT = struct.Struct("<f")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


def _to_int32(number: int) -> int:
    number = int(number) & 0xFFFFFFFF
    return number - (1 << 32) if number >= 1 << 31 else number


def _to_float32(number: float) -> float:
    try:
        return _FLOAT.unpack(_FLOAT.pack(number))[0]
    except OverflowError:
        return math.copysign(math.inf, number)


def _leading_int(text: str) -> int:
    match = _LEADING_INT.match(text)
    if match is None:
        raise RMDBError("invalid date")
    return int(match.group(1))


@dataclass(eq=False)
class Value:
    """A single typed value, optionally with its raw record encoding."""

    type: ColType | None = None
    int_val: int = 0
    float_val: float = 0.0
    str_val: str = ""
    raw: bytes | None = field(default=None, repr=False)

    def set_int(self, value: int) -> None:
        self.type = ColType.INT
        self.int_val = _to_int32(value)

    def set_float(self, value: float) -> None:
        self.type = ColType.FLOAT
        self.float_val = _to_float32(value)

    def set_str(self, value: str) -> None:
        self.type = ColType.STRING
        self.str_val = value

    def set_date(self, text: str) -> None:
        """Parse YYYY-MM-DD and pack it as year<<9 | month<<5 | day."""
        self.type = ColType.DATE
        if len(text) != 10 or text[4] != "-" or text[7] != "-":
            raise RMDBError("invalid date")
        year = _leading_int(text[0:4])
        month = _leading_int(text[5:7])
        day = _leading_int(text[8:10])
        if year < 0 or not 1 <= month <= 12 or not 1 <= day <= 31:
            raise RMDBError("invalid date")
        self.int_val = _to_int32((year << 9) | (month << 5) | day)

    def float2int(self) -> None:
        if self.type is not ColType.FLOAT:
            raise InternalError("value is not a float")
        truncated = math.trunc(self.float_val) if math.isfinite(self.float_val) else INT_MIN
        self.int_val = truncated if INT_MIN <= truncated <= INT_MAX else INT_MIN
        self.type = ColType.INT

    def int2float(self) -> None:
        if self.type is not ColType.INT:
            raise InternalError("value is not an int")
        self.float_val = _to_float32(self.int_val)
        self.type = ColType.FLOAT

    def try_cast_to(self, target_type: ColType) -> bool:
        """Convert between int and float in place; report whether the type now matches."""
        if self.type is target_type:
            return True
        if self.type is ColType.INT and target_type is ColType.FLOAT:
            self.int2float()
            return True
        if self.type is ColType.FLOAT and target_type is ColType.INT:
            self.float2int()
            return True
        return False

    def init_raw(self, length: int) -> None:
        """Encode the value into ``raw``; a value already encoded is left alone."""
        if self.raw is not None:
            return
        if self.type in (ColType.INT, ColType.DATE):
            if length != INT_SIZE:
                raise InternalError(f"int value needs {INT_SIZE} bytes, got {length}")
            self.raw = _INT.pack(self.int_val)
        elif self.type is ColType.FLOAT:
            if length != FLOAT_SIZE:
                raise InternalError(f"float value needs {FLOAT_SIZE} bytes, got {length}")
            self.raw = _FLOAT.pack(self.float_val)
        elif self.type is ColType.STRING:
            encoded = self.str_val.encode(_ENCODING, _ERRORS)
            if length < len(encoded):
                raise StringOverflowError()
            self.raw = encoded.ljust(length, b"\0")
        else:
            raise InternalError("not implemented")

    @staticmethod
    def from_column(base: bytes, meta: ColMeta) -> Value:
        """Read the column described by ``meta`` out of a record."""
        value = Value()
        start = meta.offset
        if meta.type in (ColType.INT, ColType.DATE):
            value.set_int(_INT.unpack_from(base, start)[0])
        elif meta.type is ColType.FLOAT:
            value.set_float(_FLOAT.unpack_from(base, start)[0])
        elif meta.type is ColType.STRING:
            chunk = bytes(base[start:start + meta.length])
            chunk = chunk.split(b"\0", 1)[0]
            value.set_str(chunk.decode(_ENCODING, _ERRORS))
        else:
            raise InternalError("not implemented")
        return value

    @staticmethod
    def date_to_str(date: int) -> str:
        year = date >> 9
        month = (date >> 5) & 0xF
        day = date & 0x1F
        return f"{year:04d}-{month:02d}-{day:02d}"

    @staticmethod
    def edge(col_type: ColType, length: int, is_max: bool) -> Value:
        """The smallest or largest encodable value of a column type."""
        value = Value()
        if col_type in (ColType.INT, ColType.DATE):
            value.set_int(INT_MAX if is_max else INT_MIN)
            value.init_raw(INT_SIZE)
        elif col_type is ColType.FLOAT:
            value.set_float(FLT_MAX if is_max else FLT_MIN)
            value.init_raw(FLOAT_SIZE)
        elif col_type is ColType.STRING:
            value.type = ColType.STRING
            value.raw = (b"\xff" if is_max else b"\0") * length
        else:
            raise InternalError("extreme value of this type is not implemented")
        return value

    def _mixed_numeric(self, other: Value) -> tuple[float, float] | None:
        if (self.type is ColType.STRING) != (other.type is ColType.STRING):
            raise InternalError("cannot compare numeric type with string type")
        if self.type is ColType.INT and other.type is ColType.FLOAT:
            return _to_float32(self.int_val), other.float_val
        if self.type is ColType.FLOAT and other.type is ColType.INT:
            return self.float_val, _to_float32(other.int_val)
        return None

    def _compare(self, other: Value, op: Callable[[object, object], bool]) -> bool:
        pair = self._mixed_numeric(other)
        if pair is not None:
            return op(*pair)
        if self.type in (ColType.INT, ColType.DATE):
            return op(self.int_val, other.int_val)
        if self.type is ColType.FLOAT:
            return op(self.float_val, other.float_val)
        if self.type is ColType.STRING:
            return op(self.str_val, other.str_val)
        raise InternalError("not implemented")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return self._compare(other, operator.eq)

    def __ne__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return not self == other

    def __gt__(self, other: Value) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return self._compare(other, operator.gt)

    def __lt__(self, other: Value) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return not (self == other or self > other)

    def __ge__(self, other: Value) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return self == other or self > other

    def __le__(self, other: Value) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return not self > other

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        if self.type is ColType.INT:
            return str(self.int_val)
        if self.type is ColType.FLOAT:
            return f"{self.float_val:g}"
        if self.type is ColType.STRING:
            return self.str_val
        if self.type is ColType.DATE:
            date = self.int_val
            return f"{date >> 9}-{(date >> 5) & 0xF}-{date & 0x1F}"
        raise InternalError("not implemented")


class CompOp(enum.Enum):
    """Comparison operators of a condition."""

    EQ = "="
    NE = "<>"
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="


_OPERATORS: dict[CompOp, Callable[[Value, Value], bool]] = {
    CompOp.EQ: operator.eq,
    CompOp.NE: operator.ne,
    CompOp.LT: operator.lt,
    CompOp.GT: operator.gt,
    CompOp.LE: operator.le,
    CompOp.GE: operator.ge,
}


@dataclass
class Condition:
    """A comparison between a column and a value or another column."""

    lhs_col: TabCol
    op: CompOp
    is_rhs_val: bool = False
    rhs_col: TabCol | None = None
    rhs_val: Value | None = None

    def eval(self, lhs: Value, rhs: Value) -> bool:
        return _OPERATORS[self.op](lhs, rhs)

    def eval_with_rvalue(self, lhs: Value) -> bool:
        if not self.is_rhs_val or self.rhs_val is None:
            raise InternalError("condition has no right-hand value")
        return self.eval(lhs, self.rhs_val)


@dataclass
class SetClause:
    """One ``column = value`` assignment of an update."""

    lhs: TabCol
    rhs: Value