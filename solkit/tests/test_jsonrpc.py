"""JSON-RPC envelope and result decoding tests."""

import base64

import msgspec
import pytest

from solkit.errors import CodecError, ServerError
from solkit.keys import Hash, PublicKey, Signature
from solkit.rpc.config import (
    AccountInfoConfig,
    Commitment,
    DataSizeFilter,
    DataSlice,
    MemcmpFilter,
    ProgramAccountsConfig,
    with_config,
)
from solkit.rpc.jsonrpc import Frame, decode_payload, decode_result, encode_request
from solkit.rpc.types import AccountInfo, SignatureNotification, SignatureResult, WithContext
from solkit.soldata import Encoding

KEY = PublicKey(bytes(range(32)))


def _decode(data: bytes):
    return msgspec.json.decode(data)


class TestEncodeRequest:
    def test_envelope(self):
        body = _decode(encode_request("getSlot", [], 7))
        assert body == {"method": "getSlot", "params": [], "id": 7, "jsonrpc": "2.0"}

    def test_keys_are_base58(self):
        body = _decode(encode_request("getBalance", [KEY, Hash(KEY.raw)], 1))
        assert body["params"] == [str(KEY), str(KEY)]

    def test_signature_is_base58(self):
        sig = Signature(bytes(64))
        body = _decode(encode_request("getTransaction", [sig], 1))
        assert body["params"] == ["1" * 64]

    def test_config_is_camel_case_and_sparse(self):
        config = AccountInfoConfig(
            commitment=Commitment.CONFIRMED,
            encoding=Encoding.BASE64_ZSTD,
            data_slice=DataSlice(offset=0, length=32),
        )
        body = _decode(encode_request("getAccountInfo", [KEY, config], 1))
        assert body["params"][1] == {
            "commitment": "confirmed",
            "encoding": "base64+zstd",
            "dataSlice": {"offset": 0, "length": 32},
        }

    def test_filters(self):
        config = ProgramAccountsConfig(
            encoding=Encoding.BASE64,
            filters=[MemcmpFilter.of(32, KEY), DataSizeFilter(data_size=165)],
        )
        body = _decode(encode_request("getProgramAccounts", [KEY, config], 1))
        assert body["params"][1]["filters"] == [
            {"memcmp": {"offset": 32, "bytes": str(KEY)}},
            {"dataSize": 165},
        ]


class TestWithConfig:
    def test_empty_config_is_dropped(self):
        assert with_config([1], AccountInfoConfig()) == [1]
        assert with_config([1], None) == [1]

    def test_config_is_appended(self):
        config = AccountInfoConfig(encoding=Encoding.BASE64)
        assert with_config([1], config) == [1, config]


class TestDecodePayload:
    def test_response(self):
        frame = decode_payload(b'{"jsonrpc":"2.0","id":3,"result":{"a":1}}')
        assert isinstance(frame, Frame)
        assert frame.id == 3
        assert bytes(frame.result) == b'{"a":1}'

    def test_error(self):
        frame = decode_payload(
            b'{"jsonrpc":"2.0","id":3,"error":{"code":-32602,"message":"Invalid params"}}'
        )
        err = frame.error.to_exception()
        assert isinstance(err, ServerError)
        assert (err.code, err.message) == (-32602, "Invalid params")
        assert str(err) == "rpc error -32602: Invalid params"

    def test_notification(self):
        frame = decode_payload(
            b'{"jsonrpc":"2.0","method":"slotNotification",'
            b'"params":{"subscription":5,"result":{"slot":1}}}'
        )
        assert frame.id is None
        assert frame.params.subscription == 5

    def test_batch(self):
        frames = decode_payload(b'[{"jsonrpc":"2.0","id":1,"result":1},{"jsonrpc":"2.0","id":2,"result":2}]')
        assert [f.id for f in frames] == [1, 2]

    def test_malformed(self):
        with pytest.raises(CodecError):
            decode_payload(b"not json")
        with pytest.raises(CodecError):
            decode_payload(b'"just a string"')


class TestDecodeResult:
    def test_account_info(self):
        raw = msgspec.json.encode(
            {
                "context": {"slot": 99, "apiVersion": "1.18.0"},
                "value": {
                    "lamports": 5,
                    "owner": str(KEY),
                    "data": [base64.b64encode(b"abc").decode(), "base64"],
                    "executable": False,
                    "rentEpoch": 18446744073709551615,
                    "space": 3,
                },
            }
        )
        result = decode_result(raw, WithContext[AccountInfo | None])
        assert result.context.slot == 99
        assert result.value.owner == KEY
        assert result.value.data.data == b"abc"
        assert result.value.rent_epoch == 2**64 - 1

    def test_null_value(self):
        raw = b'{"context":{"slot":1},"value":null}'
        assert decode_result(raw, WithContext[AccountInfo | None]).value is None

    def test_unknown_fields_ignored(self):
        raw = b'{"context":{"slot":1,"extra":true},"value":3,"more":[1]}'
        assert decode_result(raw, WithContext[int]).value == 3

    def test_numeric_strings_accepted(self):
        assert decode_result(b'"42"', int) == 42

    def test_invalid_key(self):
        with pytest.raises(CodecError):
            decode_result(b'"not-a-key"', PublicKey)
        with pytest.raises(CodecError):
            decode_result(b"12", PublicKey)

    def test_wrong_shape(self):
        with pytest.raises(CodecError, match="unexpected result shape"):
            decode_result(b'{"slot":1}', list[int])

    def test_signature_notification_variants(self):
        processed = decode_result(b'{"context":{"slot":1},"value":{"err":null}}', SignatureNotification)
        assert isinstance(processed.value, SignatureResult)
        received = decode_result(
            b'{"context":{"slot":1},"value":"receivedSignature"}', SignatureNotification
        )
        assert received.value == "receivedSignature"
