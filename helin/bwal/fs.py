"""Durable file access for log segments and segment-numbering helpers."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import List

_BINARY = getattr(os, "O_BINARY", 0)
_SEGMENT_NAME = re.compile(r"[+-]?[0-9]+")
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1


@dataclass(frozen=True)
class FileInfo:
    size: int


class BlockFile:
    """A file whose writes are flushed to stable storage before returning."""

    def __init__(self, fd: int, name: str, writable: bool) -> None:
        self._fd: int | None = fd
        self.name = name
        self._writable = writable

    def _require_open(self) -> int:
        if self._fd is None:
            raise ValueError(f"file is closed: {self.name}")
        return self._fd

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes; fewer only at end of file."""
        fd = self._require_open()
        parts = []
        remaining = size
        while remaining > 0:
            chunk = os.read(fd, remaining)
            if not chunk:
                break
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)

    def write(self, data: bytes) -> int:
        """Write all of ``data``, fsync, and return the number of bytes written."""
        fd = self._require_open()
        view = memoryview(data)
        written = 0
        while written < len(view):
            written += os.write(fd, view[written:])
        os.fsync(fd)
        return written

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        return os.lseek(self._require_open(), offset, whence)

    def truncate(self, size: int) -> None:
        os.ftruncate(self._require_open(), size)

    def close(self) -> None:
        """Sync and close the file; closing twice is harmless."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            if self._writable:
                os.fsync(fd)
        finally:
            os.close(fd)

    def __enter__(self) -> "BlockFile":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class OSFileSystem:
    """File system operations backed by the operating system."""

    def open(self, name: str) -> BlockFile:
        """Open ``name`` read-only."""
        fd = os.open(name, os.O_RDONLY | _BINARY)
        return BlockFile(fd, name, writable=False)

    def open_file(self, name: str, flags: int, perm: int) -> BlockFile:
        """Open ``name`` with ``os.O_*`` flags and the given permission bits."""
        fd = os.open(name, flags | _BINARY, perm)
        writable = (flags & (os.O_WRONLY | os.O_RDWR)) != 0
        return BlockFile(fd, name, writable=writable)

    def remove(self, name: str) -> None:
        os.remove(name)

    def read_dir(self, name: str) -> List[str]:
        """Return the entry names of directory ``name`` sorted by name."""
        return sorted(os.listdir(name))

    def stat(self, name: str) -> FileInfo:
        return FileInfo(size=os.stat(name).st_size)


def lsn_to_segment(lsn: int, segment_size: int) -> int:
    return lsn // segment_size


def lsn_to_segment_offset(lsn: int, segment_size: int) -> int:
    return lsn % segment_size


def segment_to_str(segment: int) -> str:
    return str(segment)


def lsn_to_segment_str(lsn: int, segment_size: int) -> str:
    return segment_to_str(lsn_to_segment(lsn, segment_size))


def segment_name_to_segment(name: str) -> int:
    """Parse a segment file name; raise ValueError if it is not a segment number."""
    if not _SEGMENT_NAME.fullmatch(name):
        raise ValueError(f"not a segment name: {name!r}")
    value = int(name)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"segment number out of range: {name!r}")
    return value % 2**64