"""Reads, seeks and truncates the log stored across segment files."""

from __future__ import annotations

import os
from typing import List, Optional, Tuple

from helin.bwal.errors import (
    NoSegmentFileError,
    OutOfBoundsError,
    UninitializedSegmentFileError,
    WalError,
)
from helin.bwal.fs import (
    BlockFile,
    FileInfo,
    OSFileSystem,
    lsn_to_segment,
    lsn_to_segment_offset,
    segment_name_to_segment,
    segment_to_str,
)
from helin.bwal.options import DEFAULT_OPTIONS
from helin.bwal.segment_writer import SEGMENT_HEADER_SIZE, SegmentHeader


def _read_header(f: BlockFile, segment: int) -> SegmentHeader:
    data = f.read(SEGMENT_HEADER_SIZE)
    if not data:
        raise UninitializedSegmentFileError()
    if len(data) != SEGMENT_HEADER_SIZE:
        raise WalError(f"corrupt header in segment {segment}")
    return SegmentHeader.from_bytes(data)


class SegmentReader:
    """A cursor over the log bytes stored in a directory of segment files."""

    def __init__(
        self, directory: str, segment_size: int, fs: Optional[OSFileSystem] = None
    ) -> None:
        if segment_size <= 0:
            raise ValueError("segment size must be positive")
        self.directory = directory
        self.segment_size = segment_size
        self._fs = fs or OSFileSystem()
        self._current_segment: Optional[int] = None
        self._current_header: Optional[SegmentHeader] = None
        self._current_file: Optional[BlockFile] = None

    def seek(self, offset: int) -> None:
        """Move the cursor to absolute log offset ``offset``.

        Raises OutOfBoundsError if the segment does not exist or the offset lies
        before the segment's truncated start.
        """
        seg = lsn_to_segment(offset, self.segment_size)
        if self._current_segment != seg:
            try:
                self._open_as_current_segment(seg)
            except FileNotFoundError as exc:
                raise OutOfBoundsError() from exc

        seg_offset = lsn_to_segment_offset(offset, self.segment_size)
        if seg_offset < self._current_header.start_at:
            raise OutOfBoundsError()

        self._current_file.seek(seg_offset + SEGMENT_HEADER_SIZE, os.SEEK_SET)

    def read(self, size: int) -> bytes:
        """Read ``size`` bytes across segments; fewer only at the end of the log."""
        if self._current_file is None and not self._next_segment():
            return b""

        parts: List[bytes] = []
        total = 0
        while True:
            chunk = self._current_file.read(size - total)
            parts.append(chunk)
            total += len(chunk)

            if total == size:
                break
            if not self._next_segment():
                break

        return b"".join(parts)

    def truncate(self, size: int) -> None:
        """Drop every log byte at or after absolute offset ``size``."""
        seg = lsn_to_segment(size, self.segment_size)

        current = self.last_segment()
        if seg > current:
            return

        while current != seg:
            try:
                self._del_segment(current)
            except FileNotFoundError:
                pass
            current -= 1

        _, f = self._open_segment(seg)
        with f:
            offset = lsn_to_segment_offset(size, self.segment_size)
            f.truncate(offset + SEGMENT_HEADER_SIZE)

    def truncate_front(self, size: int) -> None:
        """Drop every log byte before absolute offset ``size``."""
        seg = lsn_to_segment(size, self.segment_size)
        seg_offset = lsn_to_segment_offset(size, self.segment_size)

        try:
            current = self.first_segment()
        except NoSegmentFileError:
            return
        if current > seg:
            return

        while current != seg:
            try:
                self._del_segment(current)
            except FileNotFoundError:
                return
            current += 1

        if seg_offset == self.segment_size - 1:
            try:
                self._del_segment(seg)
            except FileNotFoundError:
                pass
            return

        header, f = self._open_segment(seg)
        with f:
            header.start_at = seg_offset
            f.seek(0, os.SEEK_SET)
            f.write(header.to_bytes())

    def _segments(self) -> List[int]:
        segments = []
        for name in self._fs.read_dir(self.directory):
            try:
                segments.append(segment_name_to_segment(name))
            except ValueError:
                continue
        return segments

    def last_segment(self) -> int:
        segments = self._segments()
        if not segments:
            raise NoSegmentFileError()
        return max(segments)

    def last_segment_header(self) -> SegmentHeader:
        return self._segment_header(self.last_segment())

    def first_segment(self) -> int:
        segments = self._segments()
        if not segments:
            raise NoSegmentFileError()
        return min(segments)

    def first_segment_header(self) -> SegmentHeader:
        return self._segment_header(self.first_segment())

    def size(self) -> int:
        """Absolute log offset just past the last written byte; 0 with no segments."""
        segments = self._segments()
        if not segments:
            return 0
        last = max(segments)
        stat = self._segment_stat(last)
        return stat.size - SEGMENT_HEADER_SIZE + last * self.segment_size

    def front_truncated_size(self) -> int:
        """Absolute log offset of the first byte still kept."""
        first = self.first_segment()
        header = self._segment_header(first)
        return first * self.segment_size + header.start_at

    def close(self) -> None:
        if self._current_file is not None:
            self._current_file.close()

    def __enter__(self) -> "SegmentReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _path(self, segment: int) -> str:
        return os.path.join(self.directory, segment_to_str(segment))

    def _del_segment(self, segment: int) -> None:
        self._fs.remove(self._path(segment))

    def _open_segment(self, segment: int) -> Tuple[SegmentHeader, BlockFile]:
        """Open a segment and place the cursor at the start of its live payload."""
        f = self._fs.open_file(self._path(segment), os.O_RDWR, DEFAULT_OPTIONS.file_perms)
        try:
            header = _read_header(f, segment)
            f.seek(SEGMENT_HEADER_SIZE + header.start_at, os.SEEK_SET)
        except BaseException:
            f.close()
            raise
        return header, f

    def _open_as_current_segment(self, segment: int) -> BlockFile:
        if self._current_file is not None:
            self._current_file.close()

        self._current_segment = None
        self._current_file = None
        self._current_header = None

        header, f = self._open_segment(segment)
        self._current_segment = segment
        self._current_file = f
        self._current_header = header
        return f

    def _segment_header(self, segment: int) -> SegmentHeader:
        with self._fs.open(self._path(segment)) as f:
            return _read_header(f, segment)

    def _next_segment(self) -> bool:
        """Advance to the next segment; return False at the end of the log."""
        if self._current_segment is not None:
            seg = self._current_segment + 1
        else:
            try:
                seg = self.first_segment()
            except NoSegmentFileError:
                return False

        try:
            self._open_as_current_segment(seg)
        except FileNotFoundError:
            return False
        return True

    def _segment_stat(self, segment: int) -> FileInfo:
        return self._fs.stat(self._path(segment))