"""JSON-RPC 2.0 envelopes and the JSON codec shared by every RPC module."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import msgspec

from solkit.errors import CodecError, ServerError, SolkitError
from solkit.keys import Hash, PublicKey, Signature
from solkit.soldata import SolData


class Request(msgspec.Struct):
    method: str
    params: list[Any]
    id: int
    jsonrpc: str = "2.0"


class ErrorObject(msgspec.Struct):
    code: int
    message: str
    data: Any = None

    def to_exception(self) -> ServerError:
        return ServerError(self.code, self.message, self.data)


class NotificationParams(msgspec.Struct):
    subscription: int
    result: msgspec.Raw = msgspec.Raw(b"null")


class Frame(msgspec.Struct):
    """Any inbound message: a response (``id`` set) or a notification."""

    jsonrpc: str = "2.0"
    id: int | None = None
    result: msgspec.Raw = msgspec.Raw(b"null")
    error: ErrorObject | None = None
    method: str | None = None
    params: NotificationParams | None = None


def enc_hook(obj: Any) -> Any:
    if isinstance(obj, (PublicKey, Hash, Signature)):
        return obj.to_base58()
    if isinstance(obj, SolData):
        return obj.to_json()
    raise NotImplementedError(f"cannot encode {type(obj).__name__}")


def dec_hook(type_: type, obj: Any) -> Any:
    try:
        if type_ in (PublicKey, Hash, Signature):
            if not isinstance(obj, str):
                raise ValueError(f"expected a base58 string, got {type(obj).__name__}")
            return type_.from_string(obj)
        if type_ is SolData:
            return SolData.from_json(obj)
    except SolkitError as exc:
        raise ValueError(str(exc)) from exc
    raise NotImplementedError(f"cannot decode {type_.__name__}")


encoder = msgspec.json.Encoder(enc_hook=enc_hook)

_frame_decoder = msgspec.json.Decoder(Frame | list[Frame])


def encode_request(method: str, params: list[Any], request_id: int) -> bytes:
    return encoder.encode(Request(method=method, params=params, id=request_id))


def encode_batch(requests: Sequence[Request]) -> bytes:
    return encoder.encode(list(requests))


def decode_payload(payload: bytes | str) -> Frame | list[Frame]:
    """Decode one inbound message: a single frame or a batch array."""
    try:
        return _frame_decoder.decode(payload)
    except msgspec.DecodeError as exc:
        raise CodecError(f"malformed json-rpc payload: {exc}") from exc


def decode_result(raw: msgspec.Raw | bytes, type_: Any) -> Any:
    """Decode a deferred ``result`` payload into ``type_``."""
    try:
        return msgspec.json.decode(raw, type=type_, dec_hook=dec_hook, strict=False)
    except msgspec.DecodeError as exc:
        raise CodecError(f"unexpected result shape: {exc}") from exc
