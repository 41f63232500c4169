"""Columns and the schemas that lay them out within a tuple."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Iterator, Tuple

from helin.catalog.db_types import TypeID

# Bytes a variable-length column takes inline: 2 for length, 2 for offset.
UN_INLINED_COLUMN_SIZE = 4


@dataclass(frozen=True)
class Column:
    """A named, typed column; ``offset`` is its position within a tuple."""

    name: str
    type_id: TypeID
    offset: int = 0

    def is_inlined(self) -> bool:
        """Tell whether the column's value is stored in place."""
        return self.type_id.size > 0

    def inlined_size(self) -> int:
        """Bytes the column takes in the fixed part of a tuple."""
        return self.type_id.size if self.is_inlined() else UN_INLINED_COLUMN_SIZE


class Schema:
    """An ordered set of columns with their offsets computed."""

    def __init__(self, columns: Iterable[Column]) -> None:
        laid_out = []
        offset = 0
        for col in columns:
            laid_out.append(replace(col, offset=offset))
            offset += col.inlined_size()
        self._columns: Tuple[Column, ...] = tuple(laid_out)

    @property
    def columns(self) -> Tuple[Column, ...]:
        return self._columns

    def get_column(self, idx: int) -> Column:
        return self._columns[idx]

    def get_col_idx(self, name: str) -> int:
        """Index of the column called ``name``; raise KeyError if there is none."""
        for i, col in enumerate(self._columns):
            if col.name == name:
                return i
        raise KeyError(f"column does not exist: {name!r}")

    def __len__(self) -> int:
        return len(self._columns)

    def __iter__(self) -> Iterator[Column]:
        return iter(self._columns)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Schema):
            return NotImplemented
        return self._columns == other._columns

    def __hash__(self) -> int:
        return hash(self._columns)

    def __repr__(self) -> str:
        return f"Schema({list(self._columns)!r})"