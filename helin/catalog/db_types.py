"""Value types the database can store, compare and serialise."""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict

from helin.common.util import Key

_INT32 = struct.Struct(">i")
_FLOAT64 = struct.Struct(">d")
_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1


@dataclass(frozen=True)
class TypeID:
    """Identifies a type; ``size`` is its fixed serialised width, 0 if variable."""

    kind_id: int
    size: int


INTEGER_TYPE_ID = TypeID(kind_id=1, size=4)
CHAR_TYPE_ID = TypeID(kind_id=2, size=0)
FLOAT64_TYPE_ID = TypeID(kind_id=4, size=8)
BOOL_TYPE_ID = TypeID(kind_id=5, size=1)


def fixed_len_char_type_id(size: int) -> TypeID:
    """Type id of a character column padded to ``size`` bytes."""
    return TypeID(kind_id=3, size=size)


def _wrap_int32(x: int) -> int:
    return ((x - _INT32_MIN) % 2**32) + _INT32_MIN


def _require(src: bytes, n: int, what: str) -> None:
    if len(src) < n:
        raise ValueError(f"{what} needs {n} bytes, got {len(src)}")


class DbType(ABC):
    """Behaviour shared by every value of one type."""

    def less(self, this: "Value", than: "Value") -> bool:
        return this.value < than.value

    def add(self, right: "Value", left: "Value") -> "Value":
        raise TypeError(f"addition is not supported for {type(self).__name__}")

    @abstractmethod
    def serialize(self, src: "Value") -> bytes:
        """Encode ``src`` to bytes."""

    @abstractmethod
    def deserialize(self, src: bytes) -> "Value":
        """Decode a value from the start of ``src``."""

    @abstractmethod
    def length(self, val: "Value") -> int:
        """Number of bytes ``val`` takes when serialised."""

    @abstractmethod
    def type_id(self) -> TypeID:
        """The type id this type handles."""


class IntegerType(DbType):
    """Signed 32-bit integers, big-endian."""

    def add(self, right: "Value", left: "Value") -> "Value":
        return new_value(_wrap_int32(right.value + left.value))

    def serialize(self, src: "Value") -> bytes:
        return _INT32.pack(src.value)

    def deserialize(self, src: bytes) -> "Value":
        _require(src, _INT32.size, "integer")
        return new_value(_INT32.unpack_from(src)[0])

    def length(self, val: "Value") -> int:
        return _INT32.size

    def type_id(self) -> TypeID:
        return INTEGER_TYPE_ID


class CharType(DbType):
    """Variable-length UTF-8 strings; deserialising takes the whole input."""

    def serialize(self, src: "Value") -> bytes:
        return src.value.encode("utf-8")

    def deserialize(self, src: bytes) -> "Value":
        return new_value(bytes(src).decode("utf-8", errors="replace"))

    def length(self, val: "Value") -> int:
        return len(val.value.encode("utf-8"))

    def type_id(self) -> TypeID:
        return CHAR_TYPE_ID


class FixedLenCharType(DbType):
    """Strings stored in exactly ``size`` bytes, zero padded."""

    def __init__(self, size: int) -> None:
        self.size = size

    def serialize(self, src: "Value") -> bytes:
        raw = src.value if isinstance(src.value, (bytes, bytearray)) else src.value.encode("utf-8")
        return bytes(raw[: self.size]).ljust(self.size, b"\x00")

    def deserialize(self, src: bytes) -> "Value":
        _require(src, self.size, "fixed length char")
        text = bytes(src[: self.size]).decode("utf-8", errors="replace")
        return Value(self.type_id(), text)

    def length(self, val: "Value") -> int:
        return self.size

    def type_id(self) -> TypeID:
        return fixed_len_char_type_id(self.size)


class Float64Type(DbType):
    """IEEE 754 double precision floats, big-endian."""

    def add(self, right: "Value", left: "Value") -> "Value":
        return new_value(float(right.value + left.value))

    def serialize(self, src: "Value") -> bytes:
        return _FLOAT64.pack(src.value)

    def deserialize(self, src: bytes) -> "Value":
        _require(src, _FLOAT64.size, "float64")
        return new_value(_FLOAT64.unpack_from(src)[0])

    def length(self, val: "Value") -> int:
        return _FLOAT64.size

    def type_id(self) -> TypeID:
        return FLOAT64_TYPE_ID


class BoolType(DbType):
    """Booleans stored as a single byte."""

    def serialize(self, src: "Value") -> bytes:
        return b"\x01" if src.value else b"\x00"

    def deserialize(self, src: bytes) -> "Value":
        _require(src, 1, "bool")
        return new_value(src[0] != 0)

    def length(self, val: "Value") -> int:
        return 1

    def type_id(self) -> TypeID:
        return BOOL_TYPE_ID


_TYPES: Dict[int, Callable[[TypeID], DbType]] = {
    1: lambda _: IntegerType(),
    2: lambda _: CharType(),
    3: lambda tid: FixedLenCharType(tid.size),
    4: lambda _: Float64Type(),
    5: lambda _: BoolType(),
}


def get_type(type_id: TypeID) -> DbType:
    """Return the type handling ``type_id``; raise ValueError if it is unknown."""
    factory = _TYPES.get(type_id.kind_id)
    if factory is None:
        raise ValueError(f"unknown type kind: {type_id.kind_id}")
    return factory(type_id)


@dataclass(frozen=True)
class Value(Key):
    """A typed database value."""

    type_id: TypeID
    value: Any

    def less(self, than: "Value") -> bool:
        return get_type(self.type_id).less(self, than)

    def serialize(self) -> bytes:
        return get_type(self.type_id).serialize(self)

    def size(self) -> int:
        """Size of the value when serialised."""
        return get_type(self.type_id).length(self)

    def __str__(self) -> str:
        return str(self.value)


def deserialize(type_id: TypeID, src: bytes) -> Value:
    """Decode a value of type ``type_id`` from ``src``."""
    return get_type(type_id).deserialize(src)


def new_value(src: Any) -> Value:
    """Wrap a Python bool, int (32-bit), str or float in a Value."""
    if isinstance(src, bool):
        return Value(BOOL_TYPE_ID, src)
    if isinstance(src, int):
        if not _INT32_MIN <= src <= _INT32_MAX:
            raise ValueError(f"integer out of 32-bit range: {src}")
        return Value(INTEGER_TYPE_ID, src)
    if isinstance(src, str):
        return Value(CHAR_TYPE_ID, src)
    if isinstance(src, float):
        return Value(FLOAT64_TYPE_ID, src)
    raise TypeError(f"not supported type: {type(src).__name__}")