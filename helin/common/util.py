"""Small helpers shared across the storage engine."""

from __future__ import annotations

import os
import random
import string
from abc import ABC, abstractmethod
from typing import IO, Any, Iterable, List, Sequence, TypeVar

T = TypeVar("T")

ENABLE_LOGGING = True

# Seconds between log flushes; ideally aligned with the disk's IOPS rate.
LOG_TIMEOUT = 0.003

_LETTERS = string.ascii_lowercase + string.ascii_uppercase


class Key(ABC):
    """An orderable key; ordering is defined by :meth:`less`."""

    @abstractmethod
    def less(self, than: "Key") -> bool:
        """Return True if this key sorts before ``than``."""

    def __lt__(self, other: "Key") -> bool:
        return self.less(other)


class StatReader:
    """Wraps a readable object and counts the bytes read through it."""

    def __init__(self, reader: IO[bytes]) -> None:
        self._reader = reader
        self.total_read = 0

    def read(self, size: int = -1) -> bytes:
        data = self._reader.read(size)
        self.total_read += len(data)
        return data


def contains(arr: Iterable[int], x: int) -> bool:
    """Tell whether ``arr`` holds ``x``."""
    return x in arr


def index_of_int(element: int, data: Sequence[int]) -> int:
    """Return the index of ``element`` in ``data``, or -1 if it is absent."""
    return next((i for i, v in enumerate(data) if v == element), -1)


def chunks(arr: Sequence[T], chunk_size: int) -> List[Sequence[T]]:
    """Split ``arr`` into consecutive slices of at most ``chunk_size`` items."""
    if chunk_size <= 0:
        raise ValueError("chunk size must be positive")
    return [arr[i:i + chunk_size] for i in range(0, len(arr), chunk_size)]


def rand_str(min_len: int, max_len: int) -> str:
    """Return a random ASCII-letter string with length in [min_len, max_len)."""
    if max_len <= min_len:
        raise ValueError("max_len must be greater than min_len")
    n = random.randrange(max_len - min_len) + min_len
    return "".join(random.choice(_LETTERS) for _ in range(n))


def clone(v: Sequence[T]) -> List[T]:
    """Return a shallow copy of ``v`` as a new list."""
    return list(v)


def ternary(exp: bool, a: T, b: T) -> T:
    """Return ``a`` if ``exp`` holds, otherwise ``b``."""
    return a if exp else b


def reverse(a: Sequence[T]) -> List[T]:
    """Return a new list with the items of ``a`` in reverse order."""
    return list(reversed(a))


def one_of(a: Any, *args: Any) -> bool:
    """Tell whether ``a`` equals any of the remaining arguments."""
    return a in args


def remove_idx(arr: Sequence[T], idx: int) -> List[T]:
    """Return a new list without the item at ``idx``."""
    if not -len(arr) <= idx < len(arr):
        raise IndexError("index out of range")
    result = list(arr)
    del result[idx]
    return result


def remove_at_indices(seq: Sequence[T], indices: Iterable[int]) -> List[T]:
    """Return a new list without the items at any of ``indices``."""
    skip = set(indices)
    if not skip:
        return list(seq)
    return [item for i, item in enumerate(seq) if i not in skip]


def uint64_as_bytes(x: int) -> bytes:
    """Encode ``x`` as an 8-byte big-endian unsigned integer."""
    return x.to_bytes(8, "big", signed=False)


def assert_that(condition: bool, msg: str, *args: Any) -> None:
    """Raise AssertionError with a formatted message unless ``condition`` holds."""
    if not condition:
        text = msg % args if args else msg
        raise AssertionError("assertion failed: " + text)


def exists(path: str | os.PathLike) -> bool:
    """Tell whether a file or directory exists; other stat errors propagate."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    return True


def zero_bytes(buf: bytearray) -> None:
    """Overwrite every byte of ``buf`` with zero in place."""
    buf[:] = bytes(len(buf))