"""Synchronisation primitives: broadcast events, per-key locks, stats and a locked map."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Hashable, Iterator, Optional, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class Event:
    """Lets any number of threads wait for the next broadcast."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._generation = 0

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the next broadcast; return False if ``timeout`` elapses first."""
        with self._cond:
            generation = self._generation
            return self._cond.wait_for(lambda: self._generation != generation, timeout)

    def broadcast(self) -> None:
        """Wake every thread currently waiting."""
        with self._cond:
            self._generation += 1
            self._cond.notify_all()


@dataclass
class _KeyLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class KeyMutex(Generic[K]):
    """A mutex per key; unused mutexes are collected every thousandth lock call."""

    GC_INTERVAL = 1000

    def __init__(self) -> None:
        self._mutexes: Dict[K, _KeyLock] = {}
        self._gc_lock = threading.Lock()
        self._counter = 0

    def lock(self, key: K) -> Callable[[], None]:
        """Acquire the lock for ``key`` and return a function that releases it."""
        with self._gc_lock:
            self._counter += 1
            if self._counter % self.GC_INTERVAL == 0:
                self._gc()
            entry = self._mutexes.get(key)
            if entry is None:
                entry = self._mutexes[key] = _KeyLock()
            entry.users += 1

        entry.lock.acquire()

        def release() -> None:
            entry.lock.release()
            with self._gc_lock:
                entry.users -= 1

        return release

    def _gc(self) -> None:
        for key in [k for k, e in self._mutexes.items() if e.users == 0]:
            del self._mutexes[key]

    def __len__(self) -> int:
        with self._gc_lock:
            return len(self._mutexes)


class Stats:
    """Accumulates samples per key for averaging."""

    def __init__(self) -> None:
        self._totals: Dict[str, float] = {}
        self._counts: Dict[str, int] = {}
        self._lock = threading.Lock()

    def avg(self, key: str, val: float) -> None:
        """Record one sample for ``key``."""
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1
            self._totals[key] = self._totals.get(key, 0.0) + val

    def count(self, key: str) -> int:
        """Number of samples recorded for ``key``."""
        with self._lock:
            return self._counts.get(key, 0)

    def average(self, key: str) -> float:
        """Mean of the samples recorded for ``key``."""
        with self._lock:
            if key not in self._counts:
                raise KeyError(key)
            return self._totals[key] / self._counts[key]


class SyncMap(Generic[K, V]):
    """A dictionary safe for use from several threads."""

    def __init__(self) -> None:
        self._data: Dict[K, V] = {}
        self._lock = threading.Lock()

    def delete(self, key: K) -> None:
        with self._lock:
            self._data.pop(key, None)

    def load(self, key: K) -> Tuple[Optional[V], bool]:
        """Return ``(value, True)`` if present, else ``(None, False)``."""
        with self._lock:
            if key in self._data:
                return self._data[key], True
            return None, False

    def must_load(self, key: K) -> V:
        """Return the value for ``key``; raise KeyError if it is absent."""
        with self._lock:
            try:
                return self._data[key]
            except KeyError:
                raise KeyError(f"key not found: {key!r}") from None

    def load_and_delete(self, key: K) -> Tuple[Optional[V], bool]:
        """Remove ``key`` and return ``(old value, True)``, or ``(None, False)``."""
        with self._lock:
            if key in self._data:
                return self._data.pop(key), True
            return None, False

    def load_or_store(self, key: K, value: V) -> Tuple[V, bool]:
        """Return the existing value and True, or store ``value`` and return it with False."""
        with self._lock:
            if key in self._data:
                return self._data[key], True
            self._data[key] = value
            return value, False

    def items(self) -> Iterator[Tuple[K, V]]:
        """Iterate over a snapshot of the entries."""
        with self._lock:
            snapshot = list(self._data.items())
        return iter(snapshot)

    def store(self, key: K, value: V) -> None:
        with self._lock:
            self._data[key] = value

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)