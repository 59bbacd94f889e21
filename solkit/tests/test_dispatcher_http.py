"""HTTP dispatcher tests against an in-process mock transport."""

import asyncio

import httpx
import msgspec
import pytest

from solkit.errors import (
    BatchRejectedError,
    CodecError,
    LimitExceededError,
    RpcCancelledError,
    RpcTimeoutError,
    ServerError,
    TransportError,
    ValidationError,
)
from solkit.rpc.dispatcher import HttpDispatcher
from solkit.rpc.transport import HttpTransport


def _dispatcher(handler, *, timeout=1.0, batch_request_limit=100, response_max_size=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    transport = HttpTransport(
        "http://rpc.test", client=client, response_max_size=response_max_size
    )
    return HttpDispatcher(transport, timeout=timeout, batch_request_limit=batch_request_limit)


def _body(request: httpx.Request):
    return msgspec.json.decode(request.content)


def _result(request_id, value):
    return {"jsonrpc": "2.0", "id": request_id, "result": value}


def _error(request_id, code, message):
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


class TestCall:
    def test_returns_raw_result(self):
        seen = []

        def handler(request):
            body = _body(request)
            seen.append((request.headers["content-type"], body))
            return httpx.Response(200, json=_result(body["id"], {"slot": 5}))

        async def run():
            d = _dispatcher(handler)
            return await d.call("getSlot", [])

        raw = asyncio.run(run())
        assert msgspec.json.decode(raw) == {"slot": 5}
        content_type, body = seen[0]
        assert content_type == "application/json"
        assert body["method"] == "getSlot"
        assert body["jsonrpc"] == "2.0"

    def test_ids_increase(self):
        ids = []

        def handler(request):
            body = _body(request)
            ids.append(body["id"])
            return httpx.Response(200, json=_result(body["id"], 0))

        async def run():
            d = _dispatcher(handler)
            await d.call("getSlot", [])
            await d.call("getSlot", [])

        asyncio.run(run())
        assert ids[1] > ids[0]

    def test_server_error(self):
        def handler(request):
            return httpx.Response(200, json=_error(_body(request)["id"], -32602, "Invalid params"))

        with pytest.raises(ServerError) as exc_info:
            asyncio.run(_dispatcher(handler).call("getBalance", ["bad"]))
        assert exc_info.value.code == -32602
        assert exc_info.value.message == "Invalid params"

    def test_json_error_body_with_http_error_status(self):
        def handler(request):
            return httpx.Response(500, json=_error(_body(request)["id"], -32005, "Node is unhealthy"))

        with pytest.raises(ServerError, match="-32005"):
            asyncio.run(_dispatcher(handler).call("getHealth", []))

    def test_non_json_http_error(self):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(_dispatcher(handler).call("getSlot", []))
        assert exc_info.value.status_code == 502

    def test_mismatched_id(self):
        def handler(request):
            return httpx.Response(200, json=_result(_body(request)["id"] + 100, 1))

        with pytest.raises(CodecError, match="does not match"):
            asyncio.run(_dispatcher(handler).call("getSlot", []))

    def test_malformed_body(self):
        def handler(request):
            return httpx.Response(200, content=b"{not json")

        with pytest.raises(CodecError):
            asyncio.run(_dispatcher(handler).call("getSlot", []))

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError, match="refused"):
            asyncio.run(_dispatcher(handler).call("getSlot", []))

    def test_transport_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(RpcTimeoutError):
            asyncio.run(_dispatcher(handler).call("getSlot", []))


class TestDeadlinesAndCancellation:
    def test_deadline(self):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200, json=_result(1, 1))

        async def run():
            d = _dispatcher(handler, timeout=None)
            await d.call("getSlot", [], timeout=0.05)

        with pytest.raises(RpcTimeoutError):
            asyncio.run(run())

    def test_default_deadline(self):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200, json=_result(1, 1))

        with pytest.raises(TimeoutError):
            asyncio.run(_dispatcher(handler, timeout=0.05).call("getSlot", []))

    def test_cancel_signal(self):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200, json=_result(1, 1))

        async def run():
            d = _dispatcher(handler)
            cancel = asyncio.Event()
            asyncio.get_running_loop().call_later(0.02, cancel.set)
            await d.call("getSlot", [], cancel=cancel)

        with pytest.raises(RpcCancelledError) as exc_info:
            asyncio.run(run())
        assert not isinstance(exc_info.value, RpcTimeoutError)

    def test_already_cancelled_sends_nothing(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_result(1, 1))

        async def run():
            cancel = asyncio.Event()
            cancel.set()
            await _dispatcher(handler).call("getSlot", [], cancel=cancel)

        with pytest.raises(RpcCancelledError):
            asyncio.run(run())
        assert calls == []


class TestResponseSize:
    def test_oversized_response(self):
        def handler(request):
            return httpx.Response(200, json=_result(_body(request)["id"], "x" * 1000))

        with pytest.raises(LimitExceededError):
            asyncio.run(_dispatcher(handler, response_max_size=100).call("getSlot", []))

    def test_response_within_limit(self):
        def handler(request):
            return httpx.Response(200, json=_result(_body(request)["id"], 1))

        raw = asyncio.run(_dispatcher(handler, response_max_size=100).call("getSlot", []))
        assert bytes(raw) == b"1"


class TestBatch:
    def test_results_follow_request_order(self):
        def handler(request):
            body = _body(request)
            replies = [_result(req["id"], req["method"]) for req in body]
            replies[1] = _error(body[1]["id"], -32601, "Method not found")
            return httpx.Response(200, json=list(reversed(replies)))

        async def run():
            d = _dispatcher(handler)
            return await d.batch([("getSlot", []), ("nope", []), ("getHealth", [])])

        first, second, third = asyncio.run(run())
        assert msgspec.json.decode(first) == "getSlot"
        assert isinstance(second, ServerError)
        assert second.code == -32601
        assert msgspec.json.decode(third) == "getHealth"

    def test_limit_checked_before_sending(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=[])

        d = _dispatcher(handler, batch_request_limit=2)
        with pytest.raises(LimitExceededError):
            asyncio.run(d.batch([("getSlot", [])] * 3))
        assert calls == []

    def test_empty_batch(self):
        d = _dispatcher(lambda request: httpx.Response(200, json=[]))
        with pytest.raises(ValidationError, match="empty"):
            asyncio.run(d.batch([]))

    def test_whole_batch_rejected(self):
        def handler(request):
            return httpx.Response(200, json=_error(None, -32600, "Invalid request"))

        with pytest.raises(BatchRejectedError) as exc_info:
            asyncio.run(_dispatcher(handler).batch([("getSlot", [])]))
        assert exc_info.value.code == -32600

    def test_missing_entry(self):
        def handler(request):
            body = _body(request)
            return httpx.Response(200, json=[_result(body[0]["id"], 1)])

        with pytest.raises(CodecError, match="no entry"):
            asyncio.run(_dispatcher(handler).batch([("getSlot", []), ("getSlot", [])]))
