"""Bounded text buffer and the table printer that fills it."""

from __future__ import annotations

from typing import Sequence

from .types import BUFFER_LENGTH

COL_WIDTH = 16
RECORD_COUNT_LENGTH = 40


class OutputBuffer:
    """Text sent back to a client, limited to ``capacity`` bytes for table rows."""

    def __init__(self, capacity: int = BUFFER_LENGTH) -> None:
        self.capacity = capacity
        self.ellipsis = False
        self._parts: list[str] = []
        self._size = 0

    @property
    def offset(self) -> int:
        """Number of bytes written so far."""
        return self._size

    def write(self, text: str) -> None:
        self._parts.append(text)
        self._size += len(text.encode("utf-8"))

    def getvalue(self) -> str:
        return "".join(self._parts)

    def _fits(self, text: str) -> bool:
        size = len(text.encode("utf-8"))
        return not self.ellipsis and self._size + RECORD_COUNT_LENGTH + size < self.capacity


class RecordPrinter:
    """Writes result rows as a fixed-width ASCII table."""

    def __init__(self, num_cols: int) -> None:
        if num_cols <= 0:
            raise ValueError("a table needs at least one column")
        self.num_cols = num_cols

    @staticmethod
    def _emit(text: str, out: OutputBuffer, mark_ellipsis: bool = True) -> None:
        if out._fits(text):
            out.write(text)
        elif mark_ellipsis:
            out.ellipsis = True

    def print_separator(self, out: OutputBuffer) -> None:
        for _ in range(self.num_cols):
            self._emit("+" + "-" * (COL_WIDTH + 2), out)
        self._emit("+\n", out)

    def print_record(self, row: Sequence[str], out: OutputBuffer) -> None:
        if len(row) != self.num_cols:
            raise ValueError(f"expected {self.num_cols} columns, got {len(row)}")
        for col in row:
            if len(col) > COL_WIDTH:
                col = col[: COL_WIDTH - 3] + "..."
            self._emit(f"| {col:>{COL_WIDTH}} ", out)
        self._emit("|\n", out, mark_ellipsis=False)

    @staticmethod
    def print_record_count(num_rec: int, out: OutputBuffer) -> None:
        text = "... ...\n" if out.ellipsis else ""
        out.write(f"{text}Total record(s): {num_rec}\n")