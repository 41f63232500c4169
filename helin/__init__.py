"""Storage engine building blocks: write-ahead log, typed values, schemas and tuples."""

__version__ = "0.1.0"