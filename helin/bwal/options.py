"""Tunable settings of the write-ahead log."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Options:
    """Write-ahead log settings."""

    # Skip fsync after writes; faster but may lose data on a crash.
    no_sync: bool = False
    # Target size of each segment in bytes.
    segment_size: int = 20971520
    # Maximum number of segments held in memory.
    segment_cache_size: int = 2
    # Return the underlying data from reads instead of a copy.
    no_copy: bool = False
    dir_perms: int = 0o750
    file_perms: int = 0o640


DEFAULT_OPTIONS = Options()