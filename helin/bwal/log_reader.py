"""Reads log records back from the write-ahead log."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import Optional, Tuple

from helin.bwal.errors import (
    AtFirstError,
    AtLastError,
    NoSegmentFileError,
    OutOfBoundsError,
    PartialLogError,
    WalError,
)
from helin.bwal.segment_fs import SegmentFS

_RECORD_HEADER = struct.Struct(">HQ")
LOG_RECORD_HEADER_SIZE = _RECORD_HEADER.size
MAX_RECORD_SIZE = 0xFFFF


@dataclass(frozen=True)
class LogRecordHeader:
    """Header preceding every log record: payload size and the previous record's LSN."""

    size: int
    prev_lsn: int

    def to_bytes(self) -> bytes:
        return _RECORD_HEADER.pack(self.size, self.prev_lsn)

    @classmethod
    def from_bytes(cls, data: bytes) -> "LogRecordHeader":
        if len(data) < LOG_RECORD_HEADER_SIZE:
            raise ValueError(
                f"log record header needs {LOG_RECORD_HEADER_SIZE} bytes, got {len(data)}"
            )
        size, prev_lsn = _RECORD_HEADER.unpack_from(data)
        return cls(size=size, prev_lsn=prev_lsn)


class BufferedLogReader:
    """A cursor moving forwards and backwards over log records."""

    def __init__(self, segment_reader) -> None:
        self._reader = segment_reader
        self._curr_lsn: Optional[int] = None
        self._curr_header: Optional[LogRecordHeader] = None

    def _end_of_current(self) -> int:
        return self._curr_lsn + self._curr_header.size + LOG_RECORD_HEADER_SIZE

    def skip_to_lsn(self, lsn: int) -> bytes:
        """Read the record at ``lsn`` and make it the current one."""
        self._reader.seek(lsn)

        header_bytes = self._reader.read(LOG_RECORD_HEADER_SIZE)
        if not header_bytes:
            raise AtLastError()
        if len(header_bytes) != LOG_RECORD_HEADER_SIZE:
            raise PartialLogError("partial log record header found")

        header = LogRecordHeader.from_bytes(header_bytes)
        record = self._reader.read(header.size)
        if len(record) != header.size:
            raise PartialLogError()

        self._curr_lsn = lsn
        self._curr_header = header
        return record

    def next(self) -> Tuple[bytes, int]:
        """Return the record after the current one, with its LSN."""
        if self._curr_lsn is not None:
            next_lsn = self._end_of_current()
        else:
            next_lsn = self._reader.front_truncated_size()
        try:
            return self.skip_to_lsn(next_lsn), next_lsn
        except OutOfBoundsError as exc:
            raise AtLastError() from exc

    def prev(self) -> Tuple[bytes, int]:
        """Return the record before the current one, with its LSN."""
        if self._curr_lsn is None or self._curr_lsn == 0:
            raise AtFirstError()
        prev_lsn = self._curr_header.prev_lsn
        try:
            record = self.skip_to_lsn(prev_lsn)
        except OutOfBoundsError as exc:
            raise AtFirstError() from exc
        return record, prev_lsn

    def reset(self) -> None:
        self._curr_lsn = None
        self._curr_header = None

    def last_lsn(self) -> bytes:
        """Move to the last complete record and return it."""
        header = self._reader.last_segment_header()
        record = self.skip_to_lsn(header.last_lsn)
        while True:
            try:
                record, _ = self.next()
            except AtLastError:
                return record

    def repair_wal(self) -> None:
        """Cut off a partially written record left at the end of the log."""
        try:
            self.last_lsn()
        except (NoSegmentFileError, AtLastError):
            pass
        except PartialLogError as exc:
            if self._curr_lsn is None:
                raise WalError("wal cannot be repaired: no complete record") from exc
            self._reader.truncate(self._end_of_current())
        except WalError as exc:
            raise WalError(f"wal cannot be repaired: {exc}") from exc
        finally:
            self.reset()

    def truncate_until(self, lsn: int) -> None:
        """Drop every record before ``lsn``."""
        self._reader.truncate_front(lsn)

    def close(self) -> None:
        self._reader.close()

    def __enter__(self) -> "BufferedLogReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def open_buffered_log_reader(directory: str | os.PathLike, segment_size: int) -> BufferedLogReader:
    """Open a reader over the log in ``directory``."""
    return BufferedLogReader(SegmentFS().open_segment_reader(str(directory), segment_size))