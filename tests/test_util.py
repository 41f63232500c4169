import io

import pytest

from helin.common.util import (
    Key,
    StatReader,
    assert_that,
    chunks,
    clone,
    contains,
    exists,
    index_of_int,
    one_of,
    rand_str,
    remove_at_indices,
    remove_idx,
    reverse,
    ternary,
    uint64_as_bytes,
    zero_bytes,
)


class IntKey(Key):
    def __init__(self, v):
        self.v = v

    def less(self, than):
        return self.v < than.v


def test_key_ordering_uses_less():
    assert Key.__lt__(IntKey(1), IntKey(2))
    assert not Key.__lt__(IntKey(2), IntKey(1))
    keys = [IntKey(3), IntKey(1), IntKey(2)]
    assert [k.v for k in sorted(keys)] == [1, 2, 3]


def test_stat_reader_counts_bytes():
    data = b"abcdefghij"
    r = StatReader(io.BytesIO(data))
    first = r.read(4)
    rest = r.read()
    assert first + rest == data
    assert r.total_read == len(data)


def test_contains_and_index():
    arr = [4, 7, 9]
    assert contains(arr, 7)
    assert not contains(arr, 5)
    assert index_of_int(9, arr) == 2
    assert index_of_int(5, arr) == -1


@pytest.mark.parametrize("n,size", [(0, 3), (5, 2), (6, 3), (7, 10)])
def test_chunks_invariants(n, size):
    arr = list(range(n))
    parts = chunks(arr, size)
    assert [x for p in parts for x in p] == arr
    assert all(1 <= len(p) <= size for p in parts)
    assert all(len(p) == size for p in parts[:-1])


def test_chunks_rejects_bad_size():
    with pytest.raises(ValueError):
        chunks([1], 0)


def test_rand_str_length_and_alphabet():
    for _ in range(50):
        s = rand_str(5, 10)
        assert 5 <= len(s) < 10
        assert s.isalpha() and s.isascii()


def test_rand_str_empty_range():
    with pytest.raises(ValueError):
        rand_str(4, 4)


def test_clone_is_independent():
    src = [1, 2, 3]
    c = clone(src)
    c.append(4)
    assert src == [1, 2, 3]
    assert c[:3] == src


def test_ternary_and_one_of():
    assert ternary(True, "a", "b") == "a"
    assert ternary(False, "a", "b") == "b"
    assert one_of(3, 1, 2, 3)
    assert not one_of(4, 1, 2, 3)


def test_reverse_round_trip():
    src = [1, 2, 3, 4]
    r = reverse(src)
    assert r[0] == src[-1]
    assert reverse(r) == src


def test_remove_idx():
    src = ["a", "b", "c"]
    assert remove_idx(src, 1) == ["a", "c"]
    assert src == ["a", "b", "c"]
    with pytest.raises(IndexError):
        remove_idx(src, 3)


def test_remove_at_indices():
    assert remove_at_indices(list("abcde"), [3, 0]) == list("bce")
    assert remove_at_indices([1, 2], []) == [1, 2]


def test_uint64_as_bytes():
    assert uint64_as_bytes(1) == b"\x00" * 7 + b"\x01"
    big = 2**64 - 1
    assert int.from_bytes(uint64_as_bytes(big), "big") == big
    with pytest.raises(OverflowError):
        uint64_as_bytes(2**64)


def test_assert_that():
    assert assert_that(True, "never") is None
    with pytest.raises(AssertionError) as excinfo:
        assert_that(False, "value %s", 5)
    assert str(excinfo.value) == "assertion failed: value 5"


def test_exists(tmp_path):
    f = tmp_path / "x"
    assert not exists(f)
    f.write_bytes(b"1")
    assert exists(f)
    assert exists(tmp_path)


def test_zero_bytes():
    buf = bytearray(b"\x01\x02\x03")
    zero_bytes(buf)
    assert buf == bytearray(len(b"\x01\x02\x03"))