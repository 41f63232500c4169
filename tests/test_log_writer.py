import os
import queue
import threading

import pytest

from helin.bwal.errors import AtFirstError, AtLastError, WalError, WriterClosedError
from helin.bwal.log_reader import BufferedLogReader, open_buffered_log_reader
from helin.bwal.log_writer import BufferedLogWriter, open_buffered_log_writer
from helin.bwal.segment_writer import SegmentHeader


class _FlatLog:
    """A single flat file acting as both segment writer and segment reader."""

    def __init__(self, path, fail_after=None, fail_once_at=None):
        self._f = open(path, "r+b")
        self._fail_after = fail_after
        self._fail_once_at = fail_once_at
        self.calls = 0

    def write(self, block, last_lsn):
        self.calls += 1
        if self._fail_after is not None and self.calls > self._fail_after:
            raise OSError("failed")
        if self._fail_once_at == self.calls:
            raise OSError("failed")
        self._f.write(block)
        self._f.flush()
        return len(block)

    def seek(self, offset):
        self._f.seek(offset)

    def read(self, size):
        return self._f.read(size)

    def truncate(self, size):
        self._f.truncate(size)

    def truncate_front(self, size):
        raise NotImplementedError

    def last_segment_header(self):
        return SegmentHeader()

    def first_segment_header(self):
        return SegmentHeader()

    def size(self):
        return os.fstat(self._f.fileno()).st_size

    def front_truncated_size(self):
        return 0

    def close(self):
        self._f.close()


def _run_writers(lw, count, threads=8):
    feed = queue.Queue()
    for i in range(count):
        feed.put(f"log_{i + 1}")
    logs, lock = [], threading.Lock()

    def work():
        while True:
            try:
                msg = feed.get_nowait()
            except queue.Empty:
                return
            try:
                lsn = lw.write(msg.encode())
                lw.wait(lsn)
            except WalError:
                return
            with lock:
                logs.append((msg, lsn))

    workers = [threading.Thread(target=work) for _ in range(threads)]
    for w in workers:
        w.start()
    for w in workers:
        w.join(timeout=60)
    return logs


def test_write_with_occasional_failure_retries(tmp_path):
    path = tmp_path / "test"
    path.touch()
    lw = BufferedLogWriter(8192 * 4, 0, 0, _FlatLog(path, fail_once_at=3))
    lw.run_flusher()
    logs = _run_writers(lw, 400)
    lw.stop_flusher()

    assert len(logs) == 400
    br = BufferedLogReader(_FlatLog(path))
    for msg, lsn in logs:
        assert br.skip_to_lsn(lsn) == msg.encode()


def test_write_after_permanent_failure_closes_writer(tmp_path):
    path = tmp_path / "test"
    path.touch()
    lw = BufferedLogWriter(8192, 0, 0, _FlatLog(path, fail_after=2))
    lw.run_flusher()
    logs = _run_writers(lw, 2000)

    with pytest.raises(WriterClosedError):
        lw.write(b"late")

    br = BufferedLogReader(_FlatLog(path))
    br.repair_wal()
    for msg, lsn in logs:
        assert br.skip_to_lsn(lsn) == msg.encode()


def test_get_flushed_lsn(tmp_path):
    lw = open_buffered_log_writer(1024, 8192, str(tmp_path))
    with pytest.raises(WalError):
        lw.get_flushed_lsn()
    lsn = lw.write(b"a")
    last = lw.write(b"b")
    lw.flush()
    assert lsn == 0
    assert lw.get_flushed_lsn() == last


def test_write_after_stop_raises(tmp_path):
    lw = open_buffered_log_writer(1024, 8192, str(tmp_path))
    lw.run_flusher()
    lw.stop_flusher()
    with pytest.raises(WriterClosedError):
        lw.write(b"x")


def test_run_flusher_twice_raises(tmp_path):
    lw = open_buffered_log_writer(1024, 8192, str(tmp_path))
    lw.run_flusher()
    with pytest.raises(RuntimeError):
        lw.run_flusher()
    lw.stop_flusher()


def test_wait_returns_after_flush(tmp_path):
    lw = open_buffered_log_writer(1024, 8192, str(tmp_path))
    lw.run_flusher()
    lsn = lw.write(b"payload")
    lw.wait(lsn)
    assert lw.get_flushed_lsn() >= lsn
    lw.stop_flusher()


def test_record_too_large(tmp_path):
    lw = open_buffered_log_writer(1024, 8192, str(tmp_path))
    with pytest.raises(ValueError):
        lw.write(b"x" * 70000)


def test_reopen_appends_and_keeps_chain(tmp_path):
    lw = open_buffered_log_writer(1024, 4096, str(tmp_path))
    lw.run_flusher()
    for i in range(500):
        lw.write(f"log_{i + 1}".encode())
    lw.stop_flusher()

    lw = open_buffered_log_writer(1024, 4096, str(tmp_path))
    lw.run_flusher()
    for i in range(500, 1000):
        lw.write(f"log_{i + 1}".encode())
    lw.stop_flusher()

    br = open_buffered_log_reader(tmp_path, 4096)
    forward = []
    with pytest.raises(AtLastError):
        while True:
            forward.append(br.next()[0].decode())
    assert forward == [f"log_{i + 1}" for i in range(1000)]

    assert br.last_lsn() == b"log_1000"
    backward = []
    with pytest.raises(AtFirstError):
        while True:
            backward.append(br.prev()[0].decode())
    assert backward == [f"log_{i}" for i in range(999, 0, -1)]