"""Websocket dispatcher and subscription tests over an in-memory channel."""

import asyncio

import msgspec
import pytest

from solkit.config import ClientConfig, OverflowPolicy
from solkit.errors import (
    BatchRejectedError,
    CodecError,
    RpcCancelledError,
    RpcTimeoutError,
    ServerError,
    SubscriptionLagged,
    TransportError,
)
from solkit.rpc import RpcCall, WsClient

# ---------------------------------------------------------------------------
# Fake server side
# ---------------------------------------------------------------------------


class FakeChannel:
    """Duplex channel whose far end is driven by the test.

    ``None`` in the inbound queue means the server hung up.
    """

    def __init__(self):
        self.inbound = asyncio.Queue()
        self.requests = asyncio.Queue()
        self.closed = False

    async def send(self, message):
        if self.closed:
            raise TransportError("channel closed")
        self.requests.put_nowait(msgspec.json.decode(message))

    async def recv(self):
        item = await self.inbound.get()
        if item is None:
            raise TransportError("server hung up")
        return item

    async def close(self):
        self.closed = True

    # --- server helpers ---

    def push(self, obj):
        self.inbound.put_nowait(msgspec.json.encode(obj).decode())

    def push_raw(self, text):
        self.inbound.put_nowait(text)

    def reply(self, request_id, result):
        self.push({"jsonrpc": "2.0", "id": request_id, "result": result})

    def reply_error(self, request_id, code, message):
        self.push(
            {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}
        )

    def notify(self, method, subscription, result):
        self.push(
            {
                "jsonrpc": "2.0",
                "method": method,
                "params": {"subscription": subscription, "result": result},
            }
        )

    def hang_up(self):
        self.inbound.put_nowait(None)

    async def next_request(self):
        return await asyncio.wait_for(self.requests.get(), 1.0)


def _slot(n):
    return {"slot": n, "parent": n - 1, "root": 0}


def _client(chan):
    return WsClient.over(chan, ClientConfig(timeout=1.0))


async def _open_slot_subscription(client, chan, sub_id=7, **opts):
    task = asyncio.ensure_future(client.slot_subscribe(**opts))
    req = await chan.next_request()
    assert req["method"] == "slotSubscribe"
    chan.reply(req["id"], sub_id)
    return await task


async def _sync(client, chan):
    """Round-trip one call so every frame pushed before it has been routed."""
    call = asyncio.ensure_future(client.get_slot())
    req = await chan.next_request()
    chan.reply(req["id"], 0)
    await call


# ===========================================================================
# Calls
# ===========================================================================


class TestCalls:
    def test_call(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                call = asyncio.ensure_future(client.get_slot())
                req = await chan.next_request()
                assert req["method"] == "getSlot"
                assert req["params"] == []
                chan.reply(req["id"], 321)
                return await call

        assert asyncio.run(run()) == 321

    def test_out_of_order_replies(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                slot = asyncio.ensure_future(client.get_slot())
                first = await chan.next_request()
                height = asyncio.ensure_future(client.get_block_height())
                second = await chan.next_request()
                chan.reply(second["id"], 200)
                chan.reply(first["id"], 100)
                return await slot, await height

        assert asyncio.run(run()) == (100, 200)

    def test_server_error(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                call = asyncio.ensure_future(client.get_health())
                req = await chan.next_request()
                chan.reply_error(req["id"], -32005, "Node is behind")
                await call

        with pytest.raises(ServerError) as exc_info:
            asyncio.run(run())
        assert exc_info.value.code == -32005

    def test_batch(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                call = asyncio.ensure_future(
                    client.batch([RpcCall("getSlot", [], int), RpcCall("getHealth", [], str)])
                )
                reqs = await chan.next_request()
                assert [r["method"] for r in reqs] == ["getSlot", "getHealth"]
                chan.push(
                    [
                        {
                            "jsonrpc": "2.0",
                            "id": reqs[1]["id"],
                            "error": {"code": -32005, "message": "unhealthy"},
                        },
                        {"jsonrpc": "2.0", "id": reqs[0]["id"], "result": 9},
                    ]
                )
                return await call

        slot, health = asyncio.run(run())
        assert slot == 9
        assert isinstance(health, ServerError)

    def test_rejected_batch(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                call = asyncio.ensure_future(client.batch([RpcCall("getSlot", [], int)] * 2))
                await chan.next_request()
                chan.push(
                    {
                        "jsonrpc": "2.0",
                        "id": None,
                        "error": {"code": -32600, "message": "batch too large"},
                    }
                )
                with pytest.raises(BatchRejectedError) as exc_info:
                    await call
                return exc_info.value.code, client._dispatcher._pending

        code, pending = asyncio.run(run())
        assert code == -32600
        assert pending == {}

    def test_batch_timeout_leaves_connection_usable(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                with pytest.raises(RpcTimeoutError):
                    await client.batch([RpcCall("getSlot", [], int)] * 2, timeout=0.05)
                stale = await chan.next_request()
                chan.reply_error(stale[0]["id"], -32005, "late")
                call = asyncio.ensure_future(client.get_slot())
                req = await chan.next_request()
                chan.reply(req["id"], 3)
                return await call

        assert asyncio.run(run()) == 3

    def test_malformed_frame_is_skipped(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                call = asyncio.ensure_future(client.get_slot())
                req = await chan.next_request()
                chan.push_raw("{definitely not json")
                chan.reply(req["id"], 4)
                return await call

        assert asyncio.run(run()) == 4

    def test_late_reply_is_discarded(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                with pytest.raises(RpcTimeoutError):
                    await client.get_slot(timeout=0.05)
                stale = await chan.next_request()
                chan.reply(stale["id"], 1)
                call = asyncio.ensure_future(client.get_slot())
                req = await chan.next_request()
                assert req["id"] != stale["id"]
                chan.reply(req["id"], 2)
                return await call

        assert asyncio.run(run()) == 2

    def test_cancel(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                cancel = asyncio.Event()
                call = asyncio.ensure_future(client.get_slot(cancel=cancel))
                await chan.next_request()
                cancel.set()
                await call

        with pytest.raises(RpcCancelledError):
            asyncio.run(run())

    def test_calls_after_close_fail(self):
        async def run():
            chan = FakeChannel()
            client = _client(chan)
            await client.close()
            assert client.closed
            assert chan.closed
            await client.get_slot()

        with pytest.raises(TransportError, match="client closed"):
            asyncio.run(run())

    def test_close_fails_pending_calls(self):
        async def run():
            chan = FakeChannel()
            client = _client(chan)
            call = asyncio.ensure_future(client.get_slot())
            await chan.next_request()
            await client.close()
            await call

        with pytest.raises(TransportError):
            asyncio.run(run())


# ===========================================================================
# Subscriptions
# ===========================================================================


class TestSubscriptionLifecycle:
    def test_notifications_then_unsubscribe(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                sub = await _open_slot_subscription(client, chan)
                assert sub.id == 7
                for n in (1, 2, 3):
                    chan.notify("slotNotification", 7, _slot(n))
                slots = [(await sub.recv()).slot for _ in range(3)]

                unsubscribing = asyncio.ensure_future(sub.unsubscribe())
                req = await chan.next_request()
                assert req["method"] == "slotUnsubscribe"
                assert req["params"] == [7]
                chan.reply(req["id"], True)
                await unsubscribing

                chan.notify("slotNotification", 7, _slot(4))
                await _sync(client, chan)
                remaining = [item async for item in sub]
                return slots, await sub.wait_closed(), remaining, client._dispatcher.subscription_count

        slots, closed_with, remaining, count = asyncio.run(run())
        assert slots == [1, 2, 3]
        assert closed_with is None
        assert remaining == []
        assert count == 0

    def test_notification_right_after_reply_is_kept(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                task = asyncio.ensure_future(client.slot_subscribe())
                req = await chan.next_request()
                chan.reply(req["id"], 11)
                chan.notify("slotNotification", 11, _slot(50))
                sub = await task
                return (await sub.recv()).slot

        assert asyncio.run(run()) == 50

    def test_subscription_abandoned_after_reply_is_dropped(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                task = asyncio.ensure_future(client.slot_subscribe())
                req = await chan.next_request()
                chan.reply(req["id"], 7)
                # The reader registers the subscription before the caller resumes.
                await asyncio.sleep(0)
                task.cancel()
                with pytest.raises(asyncio.CancelledError):
                    await task
                unsub = await chan.next_request()
                chan.reply(unsub["id"], True)
                await _sync(client, chan)
                return unsub, client._dispatcher.subscription_count

        unsub, count = asyncio.run(run())
        assert unsub["method"] == "slotUnsubscribe"
        assert unsub["params"] == [7]
        assert count == 0

    def test_notifications_for_other_subscriptions_are_ignored(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                sub = await _open_slot_subscription(client, chan)
                chan.notify("slotNotification", 99, _slot(1))
                chan.notify("slotNotification", 7, _slot(2))
                return (await sub.recv()).slot

        assert asyncio.run(run()) == 2

    def test_subscription_request_params(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                task = asyncio.ensure_future(client.logs_subscribe())
                req = await chan.next_request()
                chan.reply(req["id"], 1)
                await task
                return req

        req = asyncio.run(run())
        assert req["method"] == "logsSubscribe"
        assert req["params"] == ["all"]

    def test_undecodable_notification_closes_subscription(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                sub = await _open_slot_subscription(client, chan)
                chan.notify("slotNotification", 7, "not a slot")
                unsub = await chan.next_request()
                assert unsub["method"] == "slotUnsubscribe"
                chan.reply(unsub["id"], True)
                await sub.recv()

        with pytest.raises(CodecError):
            asyncio.run(run())


class TestOverflow:
    def test_lag_closes_subscription(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                sub = await _open_slot_subscription(client, chan, max_pending=2)
                for n in (1, 2, 3):
                    chan.notify("slotNotification", 7, _slot(n))
                unsub = await chan.next_request()
                chan.reply(unsub["id"], True)
                closed_with = await sub.wait_closed()
                received = [(await sub.recv()).slot, (await sub.recv()).slot]
                with pytest.raises(SubscriptionLagged):
                    await sub.recv()
                return unsub, closed_with, received

        unsub, closed_with, received = asyncio.run(run())
        assert unsub["method"] == "slotUnsubscribe"
        assert unsub["params"] == [7]
        assert isinstance(closed_with, SubscriptionLagged)
        assert closed_with.capacity == 2
        assert received == [1, 2]

    def test_drop_counts_discarded_notifications(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                sub = await _open_slot_subscription(
                    client, chan, max_pending=1, overflow=OverflowPolicy.DROP
                )
                for n in (1, 2, 3):
                    chan.notify("slotNotification", 7, _slot(n))
                await _sync(client, chan)
                return sub.dropped, (await sub.recv()).slot, sub.closed

        assert asyncio.run(run()) == (2, 1, False)

    def test_block_delivers_everything(self):
        async def run():
            chan = FakeChannel()
            async with _client(chan) as client:
                sub = await _open_slot_subscription(
                    client, chan, max_pending=1, overflow=OverflowPolicy.BLOCK
                )
                for n in range(1, 6):
                    chan.notify("slotNotification", 7, _slot(n))
                return [(await sub.recv()).slot for _ in range(5)]

        assert asyncio.run(run()) == [1, 2, 3, 4, 5]


class TestTeardown:
    def test_hang_up_fails_calls_and_subscriptions(self):
        async def run():
            chan = FakeChannel()
            client = _client(chan)
            sub = await _open_slot_subscription(client, chan)
            chan.notify("slotNotification", 7, _slot(1))
            call = asyncio.ensure_future(client.get_slot())
            await chan.next_request()
            chan.hang_up()

            with pytest.raises(TransportError):
                await call
            first = (await sub.recv()).slot
            with pytest.raises(TransportError, match="hung up"):
                await sub.recv()
            closed_with = await sub.wait_closed()
            with pytest.raises(TransportError):
                await client.get_slot()
            closed = client.closed
            await client.close()
            return first, closed_with, closed

        first, closed_with, closed = asyncio.run(run())
        assert first == 1
        assert isinstance(closed_with, TransportError)
        assert closed
