import os

import pytest

from helin.bwal.segment_writer import (
    SEGMENT_HEADER_SIZE,
    SegmentHeader,
    SegmentWriter,
    new_segment_writer,
)


def _segment_bytes(directory, segment):
    return (directory / str(segment)).read_bytes()


def test_header_wire_format_is_big_endian():
    assert SegmentHeader(last_lsn=1, start_at=2).to_bytes() == bytes.fromhex(
        "0000000000000001" "0000000000000002"
    )


def test_header_round_trip():
    header = SegmentHeader(last_lsn=2**64 - 1, start_at=12345)
    data = header.to_bytes()
    assert len(data) == SEGMENT_HEADER_SIZE
    assert SegmentHeader.from_bytes(data) == header


def test_header_from_short_data_raises():
    with pytest.raises(ValueError):
        SegmentHeader.from_bytes(b"\x00" * (SEGMENT_HEADER_SIZE - 1))


def test_new_writer_creates_first_segment_with_header(tmp_path):
    writer = new_segment_writer(str(tmp_path), 7, 100)
    try:
        assert writer.current_segment == 0
        data = _segment_bytes(tmp_path, 0)
        assert len(data) == SEGMENT_HEADER_SIZE
        assert SegmentHeader.from_bytes(data) == SegmentHeader(last_lsn=7, start_at=0)
    finally:
        writer.close()


def test_write_spills_into_new_segments(tmp_path):
    segment_size = 100
    block = bytes(range(250))
    writer = new_segment_writer(str(tmp_path), 7, segment_size)
    try:
        assert writer.write(block, 42) == len(block)
        assert writer.current_segment == 2
        assert writer.last_lsn == 42
        assert writer.offset() == len(block)
        assert not writer.overflow()
    finally:
        writer.close()

    assert sorted(os.listdir(tmp_path)) == ["0", "1", "2"]
    for seg in range(3):
        data = _segment_bytes(tmp_path, seg)
        # lastLSN is only updated after the whole block is written.
        assert SegmentHeader.from_bytes(data).last_lsn == 7
        start = seg * segment_size
        assert data[SEGMENT_HEADER_SIZE:] == block[start:start + segment_size]


def test_exact_fill_cycles_on_next_write(tmp_path):
    segment_size = 100
    writer = new_segment_writer(str(tmp_path), 0, segment_size)
    try:
        writer.write(b"a" * segment_size, 5)
        assert writer.current_segment == 0
        assert sorted(os.listdir(tmp_path)) == ["0"]

        writer.write(b"b", 6)
        assert writer.current_segment == 1
        data = _segment_bytes(tmp_path, 1)
        assert SegmentHeader.from_bytes(data).last_lsn == 5
        assert data[SEGMENT_HEADER_SIZE:] == b"b"
        assert writer.offset() == segment_size + 1
    finally:
        writer.close()


def test_empty_write_adds_nothing(tmp_path):
    writer = new_segment_writer(str(tmp_path), 0, 100)
    try:
        assert writer.write(b"", 3) == 0
        assert writer.offset() == 0
        assert writer.last_lsn == 3
        assert sorted(os.listdir(tmp_path)) == ["0"]
    finally:
        writer.close()


def test_cycle_uses_latest_lsn(tmp_path):
    writer = new_segment_writer(str(tmp_path), 0, 100)
    try:
        writer.write(b"x" * 10, 99)
        writer.cycle()
        assert writer.current_segment == 1
        assert writer.offset() == 100
        header = SegmentHeader.from_bytes(_segment_bytes(tmp_path, 1))
        assert header.last_lsn == 99
    finally:
        writer.close()


def test_overflow_reports_oversized_segment(tmp_path):
    writer = SegmentWriter(str(tmp_path), 100, current_segment=0, written=101)
    assert writer.overflow()


def test_offset_without_segment_raises(tmp_path):
    writer = SegmentWriter(str(tmp_path), 100)
    with pytest.raises(ValueError):
        writer.offset()


def test_write_without_segment_raises(tmp_path):
    writer = SegmentWriter(str(tmp_path), 100)
    with pytest.raises(ValueError):
        writer.write(b"data", 1)


def test_invalid_segment_size_raises(tmp_path):
    with pytest.raises(ValueError):
        SegmentWriter(str(tmp_path), 0)