"""Buffered, group-committing writer for the write-ahead log."""

from __future__ import annotations

import os
import queue
import threading
from concurrent.futures import Future
from typing import Optional

from helin.bwal.broker import Broker
from helin.bwal.errors import AtLastError, NoSegmentFileError, WalError, WriterClosedError
from helin.bwal.log_reader import (
    LOG_RECORD_HEADER_SIZE,
    MAX_RECORD_SIZE,
    BufferedLogReader,
    LogRecordHeader,
)
from helin.bwal.segment_fs import SegmentFS

_WAIT_POLL = 0.005


class BufferedLogWriter:
    """Collects log records in memory and flushes them in batches.

    Two buffers are used: writers fill one while the other is being flushed.
    A background flusher swaps and flushes them periodically; :meth:`wait`
    blocks until a given record has reached storage.
    """

    def __init__(
        self,
        size: int,
        total_written: int,
        prev_lsn: int,
        writer,
        log_timeout: float = 0.008,
    ) -> None:
        if size <= 0:
            raise ValueError("buffer size must be positive")
        self._buf = bytearray(size)
        self._offset = 0
        self._total_written = total_written
        self._latest_in_buf = prev_lsn
        self._buf_complete = False

        self._flush_buf = bytearray(size)
        self._flush_offset = 0
        self._latest_in_flush_buf = 0
        self._flush_buf_complete = False

        self._latest_flushed: Optional[int] = None
        self._w = writer

        # Held for the whole swap-and-flush; only one flush runs at a time.
        self._swap_lock = threading.Lock()
        # Keeps the buffer from being swapped in the middle of a write.
        self._buf_lock = threading.Lock()
        # Only one writer at a time.
        self._writer_lock = threading.Lock()

        self._log_timeout = log_timeout
        self._flush_err: Optional[BaseException] = None
        self._closed = False
        self._closed_event = threading.Event()

        self._flusher_done: Optional[threading.Event] = None
        self._flusher_result: Optional[Future] = None
        self._flusher_thread: Optional[threading.Thread] = None

        self._broker: Broker[int] = Broker()
        threading.Thread(target=self._broker.start, daemon=True).start()

    def _available(self) -> int:
        return len(self._buf) - self._offset

    def write(self, record: bytes) -> int:
        """Append ``record`` to the buffer and return its LSN."""
        if len(record) > MAX_RECORD_SIZE:
            raise ValueError(f"log record larger than {MAX_RECORD_SIZE} bytes")

        with self._writer_lock:
            self._buf_lock.acquire()
            if self._closed:
                self._buf_lock.release()
                raise WriterClosedError()

            data = (
                LogRecordHeader(size=len(record), prev_lsn=self._latest_in_buf).to_bytes()
                + bytes(record)
            )
            size = len(data)

            if size <= self._available():
                self._buf[self._offset:self._offset + size] = data
                self._offset += size
                self._total_written += size
                lsn = self._total_written - size
                self._latest_in_buf = lsn
                self._buf_complete = True
                self._buf_lock.release()
                return lsn

            acc = 0
            while True:
                n = min(self._available(), size - acc)
                self._buf[self._offset:self._offset + n] = data[acc:acc + n]
                self._offset += n
                self._total_written += n
                acc += n

                if acc >= size:
                    lsn = self._total_written - size
                    self._latest_in_buf = lsn
                    self._buf_complete = True
                    break

                self._buf_complete = False
                self._buf_lock.release()
                self._swap()
                self._buf_lock.acquire()

            self._buf_lock.release()
            return lsn

    def flush(self) -> None:
        """Swap buffers and block until the swapped buffer is written."""
        self._swap().result()

    def get_flushed_lsn(self) -> int:
        """LSN of the latest record known to be on storage."""
        with self._swap_lock:
            if self._latest_flushed is None:
                raise WalError("nothing is flushed")
            return self._latest_flushed

    def wait(self, lsn: int) -> None:
        """Block until the record at ``lsn`` is flushed."""
        sub = self._broker.subscribe()
        try:
            while True:
                try:
                    if sub.get(timeout=_WAIT_POLL) >= lsn:
                        return
                    continue
                except queue.Empty:
                    pass

                latest = self._latest_flushed
                if latest is not None and latest >= lsn:
                    return
                if self._closed_event.is_set():
                    latest = self._latest_flushed
                    if latest is not None and latest >= lsn:
                        return
                    raise WalError("writer was closed before flushing")
        finally:
            self._broker.unsubscribe(sub)

    def run_flusher(self) -> None:
        """Start the background thread that flushes periodically."""
        with self._buf_lock:
            if self._closed:
                raise WriterClosedError()

        with self._swap_lock:
            if self._flusher_thread is not None:
                raise RuntimeError("flusher was already running")
            self._flusher_done = threading.Event()
            self._flusher_result = Future()
            self._flusher_thread = threading.Thread(target=self._flusher_loop, daemon=True)
            self._flusher_thread.start()

    def _flusher_loop(self) -> None:
        done, result = self._flusher_done, self._flusher_result
        while not done.wait(self._log_timeout):
            try:
                self._swap()
            except Exception as exc:
                self.exit()
                result.set_exception(exc)
                return

        try:
            self._swap().result()
        except Exception as exc:
            result.set_exception(exc)
        else:
            result.set_result(None)

    def stop_flusher(self) -> None:
        """Refuse new writes, flush what is buffered and stop the flusher."""
        with self._buf_lock:
            self._closed = True
        self._closed_event.set()

        try:
            if self._flusher_done is None:
                raise WalError("flusher is not running")
            self._flusher_done.set()
            self._flusher_result.result()
            self._w.close()
        finally:
            self._broker.stop()

    def exit(self) -> None:
        """Close the writer after a failed flush, releasing the held flush lock."""
        with self._buf_lock:
            self._closed = True
        self._closed_event.set()
        if self._swap_lock.locked():
            self._swap_lock.release()
        self._broker.stop()

    def _swap(self) -> Future:
        self._swap_lock.acquire()

        # A failed flush is retried synchronously; on failure the lock stays
        # held so nothing newer can be written past the missing data.
        if self._flush_err is not None:
            self._flush()

        with self._buf_lock:
            self._buf, self._flush_buf = self._flush_buf, self._buf
            self._flush_offset = self._offset
            self._flush_buf_complete = self._buf_complete
            self._latest_in_flush_buf = self._latest_in_buf
            self._offset = 0

        future: Future = Future()

        def run() -> None:
            try:
                self._flush()
            except Exception as exc:
                future.set_exception(exc)
            else:
                future.set_result(None)
            finally:
                self._swap_lock.release()

        threading.Thread(target=run, daemon=True).start()
        return future

    def _flush(self) -> None:
        data = bytes(self._flush_buf[:self._flush_offset])
        try:
            self._w.write(data, self._latest_in_flush_buf)
        except Exception as exc:
            self._flush_err = exc
            raise

        self._latest_flushed = self._latest_in_flush_buf
        self._flush_err = None
        self._broker.publish(self._latest_flushed)


def open_buffered_log_writer(
    buf_size: int, segment_size: int, directory: str | os.PathLike
) -> BufferedLogWriter:
    """Open a writer that appends to the log in ``directory``, repairing it first."""
    directory = str(directory)
    sfs = SegmentFS()

    reader = BufferedLogReader(sfs.open_segment_reader(directory, segment_size))
    try:
        reader.repair_wal()
        total = sfs.open_segment_reader(directory, segment_size).size()
        try:
            last = reader.last_lsn()
        except (NoSegmentFileError, AtLastError):
            prev_lsn = 0
        else:
            prev_lsn = total - len(last) - LOG_RECORD_HEADER_SIZE
    finally:
        reader.close()

    sw = sfs.open_segment_writer(directory, segment_size)
    return BufferedLogWriter(buf_size, total, prev_lsn, sw)