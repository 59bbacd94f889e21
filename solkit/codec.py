"""Binary wire codec.

Provides a cursor-based reader and an append-only writer for the
little-endian layouts used by transactions and program instructions,
plus the compact-u16 length prefix.
"""

from __future__ import annotations

import struct
from collections.abc import Callable
from typing import TypeVar

from solkit.errors import CodecError
from solkit.keys import Hash, PublicKey, Signature

T = TypeVar("T")

COMPACT_U16_MAX = 0xFFFF
COMPACT_U16_MAX_BYTES = 3

_INT_FORMATS = {
    "u8": "<B",
    "u16": "<H",
    "u32": "<I",
    "u64": "<Q",
    "i8": "<b",
    "i16": "<h",
    "i32": "<i",
    "i64": "<q",
}


# ---------------------------------------------------------------------------
# compact-u16
# ---------------------------------------------------------------------------


def encode_compact_u16(value: int) -> bytes:
    """Encode ``value`` as 7-bit groups, low first, high bit = continuation."""
    if not 0 <= value <= COMPACT_U16_MAX:
        raise CodecError(f"compact-u16 value out of range: {value}")
    out = bytearray()
    while True:
        elem = value & 0x7F
        value >>= 7
        if value == 0:
            out.append(elem)
            return bytes(out)
        out.append(elem | 0x80)


def decode_compact_u16(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode a compact-u16 at ``offset``. Returns ``(value, bytes_consumed)``."""
    value = 0
    for i in range(COMPACT_U16_MAX_BYTES):
        pos = offset + i
        if pos >= len(data):
            raise CodecError(f"compact-u16: not enough data at offset {pos}")
        elem = data[pos]
        if elem == 0 and i > 0:
            raise CodecError(f"compact-u16: non-canonical encoding at offset {offset}")
        value |= (elem & 0x7F) << (7 * i)
        if elem & 0x80 == 0:
            if value > COMPACT_U16_MAX:
                raise CodecError(f"compact-u16: value overflows u16 at offset {offset}")
            return value, i + 1
    raise CodecError(
        f"compact-u16: continuation bit set on byte {COMPACT_U16_MAX_BYTES} at offset {offset}"
    )


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class BinaryReader:
    """Strict cursor-based reader. Every read raises CodecError on short data."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def _need(self, n: int, what: str) -> None:
        if self._offset + n > len(self._data):
            raise CodecError(f"not enough data for {what} at offset {self._offset}")

    def _unpack(self, kind: str) -> int:
        fmt = _INT_FORMATS[kind]
        size = struct.calcsize(fmt)
        self._need(size, kind)
        (v,) = struct.unpack_from(fmt, self._data, self._offset)
        self._offset += size
        return v

    def read_u8(self) -> int:
        return self._unpack("u8")

    def read_u16(self) -> int:
        return self._unpack("u16")

    def read_u32(self) -> int:
        return self._unpack("u32")

    def read_u64(self) -> int:
        return self._unpack("u64")

    def read_i8(self) -> int:
        return self._unpack("i8")

    def read_i16(self) -> int:
        return self._unpack("i16")

    def read_i32(self) -> int:
        return self._unpack("i32")

    def read_i64(self) -> int:
        return self._unpack("i64")

    def read_u128(self) -> int:
        self._need(16, "u128")
        low, high = struct.unpack_from("<QQ", self._data, self._offset)
        self._offset += 16
        return low | (high << 64)

    def read_bool(self) -> bool:
        offset = self._offset
        v = self.read_u8()
        if v > 1:
            raise CodecError(f"invalid bool byte {v} at offset {offset}")
        return v == 1

    def read_bytes(self, n: int) -> bytes:
        self._need(n, f"{n} bytes")
        v = self._data[self._offset : self._offset + n]
        self._offset += n
        return v

    def read_public_key(self) -> PublicKey:
        return PublicKey(self.read_bytes(PublicKey.LENGTH))

    def read_hash(self) -> Hash:
        return Hash(self.read_bytes(Hash.LENGTH))

    def read_signature(self) -> Signature:
        return Signature(self.read_bytes(Signature.LENGTH))

    def read_compact_u16(self) -> int:
        value, consumed = decode_compact_u16(self._data, self._offset)
        self._offset += consumed
        return value

    def read_compact_bytes(self) -> bytes:
        """Read a compact-u16 length followed by that many bytes."""
        return self.read_bytes(self.read_compact_u16())

    def read_compact_array(self, read_item: Callable[[], T]) -> list[T]:
        return [read_item() for _ in range(self.read_compact_u16())]

    def read_string(self) -> str:
        """Read a u64 length-prefixed UTF-8 string."""
        length = self.read_u64()
        raw = self.read_bytes(length)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CodecError(f"invalid utf-8 string ending at offset {self._offset}") from exc

    def read_option(self, read_item: Callable[[], T]) -> T | None:
        if self.read_bool():
            return read_item()
        return None

    def expect_end(self) -> None:
        if self.remaining:
            raise CodecError(
                f"{self.remaining} trailing bytes at offset {self._offset}"
            )


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


class BinaryWriter:
    """Append-only little-endian writer."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def __len__(self) -> int:
        return len(self._buf)

    def to_bytes(self) -> bytes:
        return bytes(self._buf)

    def _pack(self, kind: str, value: int) -> BinaryWriter:
        try:
            self._buf += struct.pack(_INT_FORMATS[kind], value)
        except struct.error as exc:
            raise CodecError(f"{kind} value out of range: {value}") from exc
        return self

    def write_u8(self, value: int) -> BinaryWriter:
        return self._pack("u8", value)

    def write_u16(self, value: int) -> BinaryWriter:
        return self._pack("u16", value)

    def write_u32(self, value: int) -> BinaryWriter:
        return self._pack("u32", value)

    def write_u64(self, value: int) -> BinaryWriter:
        return self._pack("u64", value)

    def write_i8(self, value: int) -> BinaryWriter:
        return self._pack("i8", value)

    def write_i16(self, value: int) -> BinaryWriter:
        return self._pack("i16", value)

    def write_i32(self, value: int) -> BinaryWriter:
        return self._pack("i32", value)

    def write_i64(self, value: int) -> BinaryWriter:
        return self._pack("i64", value)

    def write_u128(self, value: int) -> BinaryWriter:
        if not 0 <= value < 1 << 128:
            raise CodecError(f"u128 value out of range: {value}")
        self._buf += struct.pack("<QQ", value & ((1 << 64) - 1), value >> 64)
        return self

    def write_bool(self, value: bool) -> BinaryWriter:
        return self.write_u8(1 if value else 0)

    def write_bytes(self, value: bytes) -> BinaryWriter:
        self._buf += value
        return self

    def write_public_key(self, key: PublicKey | Hash) -> BinaryWriter:
        return self.write_bytes(key.raw)

    def write_compact_u16(self, value: int) -> BinaryWriter:
        self._buf += encode_compact_u16(value)
        return self

    def write_compact_bytes(self, value: bytes) -> BinaryWriter:
        return self.write_compact_u16(len(value)).write_bytes(value)

    def write_string(self, value: str) -> BinaryWriter:
        raw = value.encode("utf-8")
        return self.write_u64(len(raw)).write_bytes(raw)

    def write_option(
        self, value: T | None, write_item: Callable[[T], object]
    ) -> BinaryWriter:
        if value is None:
            return self.write_bool(False)
        self.write_bool(True)
        write_item(value)
        return self
