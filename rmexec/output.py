"""Rendering of query results for the client and the result file."""

from __future__ import annotations

import os
import struct
from typing import Sequence

from .executors import Executor
from .printer import OutputBuffer, RecordPrinter
from .types import ColMeta, ColType, InternalError, TabCol
from .value import Value

OUTPUT_FILE = "output.txt"

_INT = struct.Struct("<i")
_FLOAT = struct.Struct("<f")

# Grammar summary: each section title is followed by its indented entries.
_SYNTAX_SECTIONS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Supported SQL syntax", ("command ;",)),
    (
        "command",
        (
            "CREATE TABLE table_name (column_name type [, column_name type ...])",
            "DROP TABLE table_name",
            "CREATE INDEX table_name (column_name)",
            "DROP INDEX table_name (column_name)",
            "INSERT INTO table_name VALUES (value [, value ...])",
            "DELETE FROM table_name [WHERE where_clause]",
            "UPDATE table_name SET column_name = value [, column_name = value ...] [WHERE where_clause]",
            "SELECT selector FROM table_name [WHERE where_clause]",
        ),
    ),
    ("type", ("{INT | FLOAT | CHAR(n)}",)),
    ("where_clause", ("condition [AND condition ...]",)),
    ("condition", ("column op {column | value}",)),
    ("column", ("[table_name.]column_name",)),
    ("op", ("{= | <> | < | > | <= | >=}",)),
    ("selector", ("{* | column [, column ...]}",)),
)


def help_text() -> str:
    """The summary of supported SQL syntax shown by ``help``."""
    return "".join(
        f"{title}:\n" + "".join(f"  {entry}\n" for entry in entries)
        for title, entries in _SYNTAX_SECTIONS
    )


def format_column(col: ColMeta, data: bytes) -> str:
    """Render the column ``col`` of the record ``data`` as text."""
    if col.type is ColType.INT:
        return str(_INT.unpack_from(data, col.offset)[0])
    if col.type is ColType.FLOAT:
        return f"{_FLOAT.unpack_from(data, col.offset)[0]:.6f}"
    if col.type is ColType.STRING:
        chunk = bytes(data[col.offset:col.offset + col.length]).split(b"\0", 1)[0]
        return chunk.decode("utf-8", "replace")
    if col.type is ColType.NULL:
        return "NULL"
    if col.type is ColType.DATE:
        return Value.date_to_str(_INT.unpack_from(data, col.offset)[0])
    raise InternalError("Unexpected field type")


def _file_line(fields: Sequence[str]) -> str:
    return "|" + "".join(f" {field} |" for field in fields) + "\n"


def select_from(
    root: Executor,
    sel_cols: Sequence[TabCol],
    out: OutputBuffer,
    output_path: str | os.PathLike[str] = OUTPUT_FILE,
) -> int:
    """Run ``root`` and print its rows to ``out`` and, appended, to ``output_path``.

    Returns the number of records produced.
    """
    captions = [col.alias or col.col_name for col in sel_cols]
    printer = RecordPrinter(len(sel_cols))
    printer.print_separator(out)
    printer.print_record(captions, out)
    printer.print_separator(out)

    num_rec = 0
    with open(output_path, "a", encoding="utf-8") as outfile:
        outfile.write(_file_line(captions))
        for record in root:
            # The column list is read after each record: aggregates may turn a
            # column into NULL while producing it.
            columns = [format_column(col, record) for col in root.cols()]
            printer.print_record(columns, out)
            outfile.write(_file_line(columns))
            num_rec += 1

    printer.print_separator(out)
    RecordPrinter.print_record_count(num_rec, out)
    return num_rec