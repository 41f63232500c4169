"""Tuples interpreted through a schema, tuple keys and key serialisers."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional, Sequence

from helin.catalog.db_types import CHAR_TYPE_ID, Value, deserialize
from helin.catalog.schema import UN_INLINED_COLUMN_SIZE, Schema
from helin.common.util import Key

_U16 = struct.Struct(">H")
_MAX_U16 = 0xFFFF


@dataclass(frozen=True)
class Tuple:
    """Raw row bytes that a schema can interpret.

    Inlined columns are stored in schema order; a variable-length column
    stores its length and start offset inline and its bytes at the end.
    """

    data: bytes

    def get_value(self, schema: Schema, column_idx: int) -> Optional[Value]:
        """Value of column ``column_idx``, or None if the tuple is too short to hold it."""
        col = schema.get_column(column_idx)
        data = self.data
        if col.is_inlined():
            if col.offset >= len(data):
                return None
            return deserialize(col.type_id, data[col.offset:])

        if col.offset + UN_INLINED_COLUMN_SIZE > len(data):
            return None
        length = _U16.unpack_from(data, col.offset)[0]
        start = _U16.unpack_from(data, col.offset + 2)[0]
        return deserialize(col.type_id, data[start:start + length])


def new_tuple_with_schema(values: Sequence[Value], schema: Schema) -> Tuple:
    """Lay ``values`` out according to ``schema``."""
    columns = schema.columns
    if len(values) != len(columns):
        raise ValueError("schema column count is not equal to values' length")

    total = sum(
        v.size() if c.is_inlined() else UN_INLINED_COLUMN_SIZE + v.size()
        for c, v in zip(columns, values)
    )
    if total > _MAX_U16:
        raise ValueError(f"tuple too large: {total} bytes")

    data = bytearray(total)
    it = 0
    last = total
    for col, val in zip(columns, values):
        encoded = val.serialize()
        if col.is_inlined():
            data[it:it + len(encoded)] = encoded
            it += len(encoded)
        else:
            size = len(encoded)
            start = last - size
            data[it:it + 2] = _U16.pack(size)
            data[it + 2:it + 4] = _U16.pack(start)
            data[start:last] = encoded
            it += UN_INLINED_COLUMN_SIZE
            last = start

    if it != last:
        raise RuntimeError("tuple layout is inconsistent")
    return Tuple(bytes(data))


@dataclass(frozen=True)
class TupleKey(Tuple, Key):
    """A tuple ordered column by column, the first column most significant.

    A key holding fewer columns whose columns all equal the other's sorts first.
    """

    schema: Schema = None  # type: ignore[assignment]

    def less(self, than: "TupleKey") -> bool:
        schema = self.schema
        if len(self.schema) < len(than.schema):
            schema = than.schema

        for idx in range(len(schema)):
            v1 = self.get_value(schema, idx)
            v2 = than.get_value(schema, idx)
            if v1 is None or v2 is None:
                return v1 is None and v2 is not None
            if v1.less(v2):
                return True
            if v2.less(v1):
                return False
        return False

    def __str__(self) -> str:
        return "-".join(
            str(self.get_value(self.schema, idx).value) for idx in range(len(self.schema))
        )


def new_tuple_key(schema: Schema, *args: Value) -> TupleKey:
    """Build a key from ``args`` laid out by ``schema``."""
    t = new_tuple_with_schema(args, schema)
    return TupleKey(data=t.data, schema=schema)


@dataclass(frozen=True)
class CharTypeKeySerializer:
    """Serialises character values used as keys."""

    key_size: int

    def serialize(self, key: Value) -> bytes:
        return key.serialize()

    def deserialize(self, data: bytes) -> Value:
        return deserialize(CHAR_TYPE_ID, data)

    def size(self) -> int:
        return self.key_size


@dataclass(frozen=True)
class TupleKeySerializer:
    """Serialises tuple keys as their raw bytes."""

    schema: Schema

    def serialize(self, key: TupleKey) -> bytes:
        return bytes(key.data)

    def deserialize(self, data: bytes) -> TupleKey:
        return TupleKey(data=bytes(data), schema=self.schema)

    def size(self) -> int:
        """Keys have no fixed size."""
        return -1