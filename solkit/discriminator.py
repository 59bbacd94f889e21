"""Instruction and account discriminators.

Native programs tag instruction variants with a fixed-width little-endian
integer (u8 for token and compute budget, u32 for the system program).
Anchor programs use the first 8 bytes of a SHA-256 over a namespaced name.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Literal

from solkit.codec import BinaryReader, BinaryWriter
from solkit.errors import CodecError, ValidationError

ANCHOR_DISCRIMINATOR_SIZE = 8

_WIDTHS = (1, 2, 4, 8)


def anchor_discriminator(namespace: str, name: str) -> bytes:
    """``sha256("<namespace>:<name>")[:8]``, e.g. ("global", "initialize")."""
    return hashlib.sha256(f"{namespace}:{name}".encode()).digest()[
        :ANCHOR_DISCRIMINATOR_SIZE
    ]


def validate_discriminator(data: bytes, expected: bytes) -> None:
    """Validate a discriminator prefix. Raises CodecError on mismatch."""
    if len(data) < len(expected):
        raise CodecError(
            f"data too short: {len(data)} bytes, need at least {len(expected)}"
        )
    got = data[: len(expected)]
    if got != expected:
        raise CodecError(f"invalid discriminator: got {got.hex()}, want {expected.hex()}")


@dataclass(frozen=True)
class Discriminator:
    """A tagged-variant index with an explicit width and byte order."""

    value: int
    width: Literal[1, 2, 4, 8] = 1
    byteorder: Literal["little", "big"] = "little"

    def __post_init__(self) -> None:
        if self.width not in _WIDTHS:
            raise ValidationError(f"unsupported discriminator width: {self.width}")
        if not 0 <= self.value < 1 << (8 * self.width):
            raise ValidationError(
                f"discriminator {self.value} does not fit in {self.width} bytes"
            )

    def to_bytes(self) -> bytes:
        return self.value.to_bytes(self.width, self.byteorder)

    def write(self, writer: BinaryWriter) -> BinaryWriter:
        return writer.write_bytes(self.to_bytes())

    def read(self, reader: BinaryReader) -> None:
        """Consume the tag from ``reader``, raising CodecError if it differs."""
        got = int.from_bytes(reader.read_bytes(self.width), self.byteorder)
        if got != self.value:
            raise CodecError(f"invalid discriminator: got {got}, want {self.value}")

    def matches(self, data: bytes) -> bool:
        return data[: self.width] == self.to_bytes()


def u8_tag(value: int) -> Discriminator:
    return Discriminator(value, 1)


def u32_tag(value: int) -> Discriminator:
    return Discriminator(value, 4)
