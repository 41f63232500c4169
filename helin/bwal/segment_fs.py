"""Opens segment readers and writers over a log directory, repairing it first."""

from __future__ import annotations

import os
from typing import Optional

from helin.bwal.fs import OSFileSystem, segment_name_to_segment, segment_to_str
from helin.bwal.options import DEFAULT_OPTIONS
from helin.bwal.segment_reader import SegmentReader
from helin.bwal.segment_writer import SEGMENT_HEADER_SIZE, SegmentWriter


class SegmentFS:
    """Factory for segment readers and writers on a log directory."""

    def __init__(self, fs: Optional[OSFileSystem] = None) -> None:
        self._fs = fs or OSFileSystem()

    def open_segment_writer(self, directory: str, segment_size: int) -> SegmentWriter:
        """Open a writer that appends after the last byte of the last segment."""
        self._repair(directory)

        last = self._last_segment(directory)
        if last is None:
            writer = SegmentWriter(directory, segment_size, fs=self._fs)
            writer.cycle()
            return writer

        path = os.path.join(directory, segment_to_str(last))
        sfile = self._fs.open_file(path, os.O_RDWR, DEFAULT_OPTIONS.file_perms)
        try:
            info = self._fs.stat(path)
            sfile.seek(info.size, os.SEEK_SET)
        except BaseException:
            sfile.close()
            raise

        return SegmentWriter(
            directory,
            segment_size,
            fs=self._fs,
            file=sfile,
            current_segment=last,
            last_lsn=0,
            written=info.size - SEGMENT_HEADER_SIZE,
        )

    def open_segment_reader(self, directory: str, segment_size: int) -> SegmentReader:
        """Open a reader positioned before the first segment."""
        self._repair(directory)
        return SegmentReader(directory, segment_size, fs=self._fs)

    def _repair(self, directory: str) -> None:
        """Delete the last segment if a crash left it without a complete header."""
        last = self._last_segment(directory)
        if last is None:
            return

        path = os.path.join(directory, segment_to_str(last))
        if self._fs.stat(path).size >= SEGMENT_HEADER_SIZE:
            return

        self._fs.remove(path)

    def _last_segment(self, directory: str) -> Optional[int]:
        last: Optional[int] = None
        for name in self._fs.read_dir(directory):
            try:
                seg = segment_name_to_segment(name)
            except ValueError:
                continue
            if last is None or seg > last:
                last = seg
        return last