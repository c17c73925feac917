"""External merge sort of fixed-length records through temporary run files."""

from __future__ import annotations

import contextlib
import enum
import functools
import heapq
import os
import tempfile
from typing import Callable, Iterator

from .types import InternalError

Comparator = Callable[[bytes, bytes], int]


class _State(enum.Enum):
    WRITING = enum.auto()
    WRITTEN = enum.auto()
    READING = enum.auto()
    CLOSED = enum.auto()


class ExternalMergeSorter:
    """Sorts records larger than memory by writing sorted runs and merging them.

    ``total_mem`` is the approximate memory budget in bytes. It is rounded down
    to a whole number of records and bounds the size of each sorted run.
    ``cmp`` returns a negative, zero or positive number like a C comparator.
    """

    def __init__(
        self,
        total_mem: int,
        record_size: int,
        cmp: Comparator,
        directory: str | os.PathLike[str] | None = None,
    ) -> None:
        if record_size <= 0:
            raise ValueError("record size must be positive")
        self._total_mem = total_mem - total_mem % record_size
        if self._total_mem < record_size:
            raise ValueError("memory budget is smaller than one record")
        self._record_size = record_size
        self._capacity = self._total_mem // record_size
        self._key = functools.cmp_to_key(cmp)
        self._directory = directory
        self._run: list[bytes] = []
        self._filenames: list[str] = []
        self._readers: list[Iterator[bytes]] = []
        self._merged: Iterator[bytes] | None = None
        self._remaining = 0
        self._state = _State.WRITING

    def __enter__(self) -> ExternalMergeSorter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def record_size(self) -> int:
        return self._record_size

    def write(self, record: bytes) -> None:
        """Add one record; a full run is sorted and spilled to a file."""
        if self._state is not _State.WRITING:
            raise InternalError("sorter no longer accepts records")
        record = bytes(record)
        if len(record) != self._record_size:
            raise ValueError(f"record must be {self._record_size} bytes, got {len(record)}")
        self._run.append(record)
        self._remaining += 1
        if len(self._run) == self._capacity:
            self._flush_run()

    def end_write(self) -> None:
        """Spill the last, possibly partial, run."""
        if self._state is not _State.WRITING:
            raise InternalError("writing has already ended")
        self._flush_run()
        self._state = _State.WRITTEN

    def begin_read(self) -> None:
        """Open every run and start merging them."""
        if self._state is _State.WRITING:
            self.end_write()
        if self._state is not _State.WRITTEN:
            raise InternalError("sorter is not ready to be read")
        if self._filenames:
            share = self._total_mem // len(self._filenames)
            buffer_size = max(share - share % self._record_size, self._record_size)
        else:
            buffer_size = self._record_size
        self._readers = [self._read_run(path, buffer_size) for path in self._filenames]
        self._merged = heapq.merge(*self._readers, key=self._key)
        self._state = _State.READING
        if self._remaining == 0:
            self.close()

    def read(self) -> bytes:
        """Return the smallest record not yet read."""
        if self.is_end():
            raise InternalError("no records left to read")
        if self._merged is None:
            raise InternalError("begin_read has not been called")
        record = next(self._merged)
        self._remaining -= 1
        if self._remaining == 0:
            self.close()
        return record

    def is_end(self) -> bool:
        return self._remaining == 0

    def close(self) -> None:
        """Release open run files and delete them."""
        for reader in self._readers:
            reader.close()  # type: ignore[attr-defined]
        self._readers = []
        self._merged = None
        for path in self._filenames:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(path)
        self._filenames = []
        self._run = []
        self._remaining = 0
        self._state = _State.CLOSED

    def _flush_run(self) -> None:
        if not self._run:
            return
        self._run.sort(key=self._key)
        fd, path = tempfile.mkstemp(prefix="auxiliary_sort_file", dir=self._directory)
        self._filenames.append(path)
        with os.fdopen(fd, "wb") as run_file:
            run_file.write(b"".join(self._run))
        self._run = []

    def _read_run(self, path: str, buffer_size: int) -> Iterator[bytes]:
        try:
            with open(path, "rb", buffering=buffer_size) as run_file:
                while chunk := run_file.read(self._record_size):
                    if len(chunk) != self._record_size:
                        raise InternalError("sort run ends with a partial record")
                    yield chunk
        finally:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(path)