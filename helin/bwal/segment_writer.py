"""Appends raw log blocks to numbered segment files of a fixed target size."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import Optional

from helin.bwal.fs import BlockFile, OSFileSystem, segment_to_str
from helin.bwal.options import DEFAULT_OPTIONS

SEGMENT_HEADER_SIZE = 16

_HEADER = struct.Struct(">QQ")


@dataclass
class SegmentHeader:
    """Header stored at the start of every segment file."""

    # LSN of the last log record written before this segment was started.
    last_lsn: int = 0
    # Payload offset of the first live byte; grows when the log is truncated from the front.
    start_at: int = 0

    def to_bytes(self) -> bytes:
        return _HEADER.pack(self.last_lsn, self.start_at)

    @classmethod
    def from_bytes(cls, data: bytes) -> "SegmentHeader":
        if len(data) < SEGMENT_HEADER_SIZE:
            raise ValueError(
                f"segment header needs {SEGMENT_HEADER_SIZE} bytes, got {len(data)}"
            )
        last_lsn, start_at = _HEADER.unpack_from(data)
        return cls(last_lsn=last_lsn, start_at=start_at)


class SegmentWriter:
    """Writes blocks into segment files, starting a new segment when one is full."""

    def __init__(
        self,
        directory: str,
        segment_size: int,
        *,
        fs: Optional[OSFileSystem] = None,
        file: Optional[BlockFile] = None,
        current_segment: Optional[int] = None,
        last_lsn: int = 0,
        written: int = 0,
    ) -> None:
        if segment_size <= 0:
            raise ValueError("segment size must be positive")
        self.directory = directory
        self.segment_size = segment_size
        self.last_lsn = last_lsn
        self._fs = fs or OSFileSystem()
        self._file = file
        self._current_segment = current_segment
        self._written = written

    @property
    def current_segment(self) -> Optional[int]:
        return self._current_segment

    def cycle(self) -> None:
        """Close the current segment and start the next one with a fresh header."""
        if self._file is not None:
            self._file.close()
            self._file = None

        seg = 0 if self._current_segment is None else self._current_segment + 1
        path = os.path.join(self.directory, segment_to_str(seg))
        self._file = self._fs.open_file(
            path, os.O_CREAT | os.O_RDWR | os.O_TRUNC, DEFAULT_OPTIONS.file_perms
        )
        self._current_segment = seg
        self._file.write(SegmentHeader(last_lsn=self.last_lsn).to_bytes())
        self._written = 0

    def overflow(self) -> bool:
        """Tell whether the current segment holds more than the target size."""
        return self._written > self.segment_size

    def offset(self) -> int:
        """Absolute log offset at which the next byte will be written."""
        if self._current_segment is None:
            raise ValueError("no segment is open")
        return self.segment_size * self._current_segment + self._written

    def write(self, block: bytes, last_lsn: int) -> int:
        """Write ``block``, spilling into new segments as needed.

        ``last_lsn`` is the LSN of the last log record contained in ``block``.
        """
        if self._file is None:
            raise ValueError("segment writer has no open segment")

        view = memoryview(block)
        total = 0
        while True:
            end = min(total + (self.segment_size - self._written), len(view))
            n = self._file.write(view[total:end]) if end > total else self._file.write(b"")
            total += n
            self._written += n

            if total == len(view):
                break
            if total > len(view):
                raise ValueError("corrupt: wrote more than the block holds")

            self.cycle()

        self.last_lsn = last_lsn
        return total

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "SegmentWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def new_segment_writer(path: str, start_lsn: int, segment_size: int) -> SegmentWriter:
    """Create a writer in ``path`` and start its first segment."""
    writer = SegmentWriter(path, segment_size, last_lsn=start_lsn)
    writer.cycle()
    return writer