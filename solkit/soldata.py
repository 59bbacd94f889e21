"""Binary blob fields as they appear in JSON-RPC payloads."""

from __future__ import annotations

import base64
import binascii
import enum
from typing import Any

import base58  # type: ignore[import-untyped]
import zstandard

from solkit.errors import CodecError


class Encoding(str, enum.Enum):
    BASE58 = "base58"
    BASE64 = "base64"
    BASE64_ZSTD = "base64+zstd"
    JSON_PARSED = "jsonParsed"

    def __str__(self) -> str:
        return self.value


class SolData:
    """Raw bytes tagged with the encoding they travelled in.

    Accounts fetched with ``jsonParsed`` carry the parsed object in ``parsed``
    and an empty ``data``.
    """

    __slots__ = ("data", "encoding", "parsed")

    def __init__(
        self,
        data: bytes = b"",
        encoding: Encoding = Encoding.BASE64,
        parsed: Any = None,
    ) -> None:
        self.data = bytes(data)
        self.encoding = Encoding(encoding)
        self.parsed = parsed

    @classmethod
    def from_json(cls, value: Any) -> SolData:
        if isinstance(value, str):
            # Bare strings predate the [payload, encoding] form and are base58.
            return cls(_decode(value, Encoding.BASE58), Encoding.BASE58)
        if isinstance(value, (list, tuple)):
            if len(value) != 2 or not all(isinstance(v, str) for v in value):
                raise CodecError(f"blob must be [payload, encoding], got {value!r}")
            payload, name = value
            try:
                encoding = Encoding(name)
            except ValueError as exc:
                raise CodecError(f"unknown blob encoding: {name!r}") from exc
            return cls(_decode(payload, encoding), encoding)
        if isinstance(value, dict):
            return cls(b"", Encoding.JSON_PARSED, value)
        raise CodecError(f"unsupported blob value: {type(value).__name__}")

    def to_json(self) -> list[str]:
        """Encode as ``[payload, encoding]`` using base58 or base64."""
        if self.encoding is Encoding.JSON_PARSED:
            raise CodecError("parsed account data cannot be re-encoded")
        if self.encoding is Encoding.BASE58:
            return [base58.b58encode(self.data).decode(), Encoding.BASE58.value]
        return [base64.b64encode(self.data).decode(), Encoding.BASE64.value]

    def __bytes__(self) -> bytes:
        return self.data

    def __len__(self) -> int:
        return len(self.data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SolData):
            return NotImplemented
        return (self.data, self.encoding, self.parsed) == (
            other.data,
            other.encoding,
            other.parsed,
        )

    def __repr__(self) -> str:
        if self.encoding is Encoding.JSON_PARSED:
            return f"SolData(parsed={self.parsed!r})"
        return f"SolData({len(self.data)} bytes, encoding={self.encoding.value!r})"


def _decode(payload: str, encoding: Encoding) -> bytes:
    if encoding is Encoding.BASE58:
        try:
            return base58.b58decode(payload)
        except ValueError as exc:
            raise CodecError("invalid base58 blob") from exc
    if encoding is Encoding.JSON_PARSED:
        raise CodecError("jsonParsed blob must be an object")
    try:
        raw = base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise CodecError("invalid base64 blob") from exc
    if encoding is Encoding.BASE64_ZSTD:
        try:
            return zstandard.ZstdDecompressor().decompressobj().decompress(raw)
        except zstandard.ZstdError as exc:
            raise CodecError("invalid zstd blob") from exc
    return raw
