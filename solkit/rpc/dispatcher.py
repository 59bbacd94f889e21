"""JSON-RPC dispatchers.

``HttpDispatcher`` runs one request per POST. ``WsDispatcher`` multiplexes
calls and subscriptions over one duplex channel: a single reader task owns
the inbound side and routes each frame by request id or subscription id.
Every call takes an optional deadline and an ``asyncio.Event`` used as a
cancellation signal. Nothing is retried.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import msgspec
from loguru import logger

from solkit.config import OverflowPolicy
from solkit.errors import (
    BatchRejectedError,
    CodecError,
    LimitExceededError,
    RpcCancelledError,
    RpcTimeoutError,
    ServerError,
    SolkitError,
    TransportError,
    ValidationError,
)
from solkit.rpc.jsonrpc import (
    ErrorObject,
    Frame,
    Request,
    decode_payload,
    decode_result,
    encode_batch,
    encode_request,
)
from solkit.rpc.subscription import Subscription
from solkit.rpc.transport import DuplexTransport, HttpTransport

BatchResult = list["msgspec.Raw | ServerError"]


async def wait_for_reply(
    fut: asyncio.Future[Any],
    timeout: float | None,
    cancel: asyncio.Event | None,
) -> Any:
    """Wait for ``fut`` unless the deadline passes or ``cancel`` is set."""
    waiters: set[asyncio.Future[Any]] = {fut}
    cancel_waiter = None
    if cancel is not None:
        cancel_waiter = asyncio.ensure_future(cancel.wait())
        waiters.add(cancel_waiter)
    try:
        done, _ = await asyncio.wait(
            waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()
    if fut in done:
        return fut.result()
    if cancel_waiter is not None and cancel_waiter in done:
        raise RpcCancelledError("request cancelled")
    raise RpcTimeoutError(f"no reply within {timeout}s")


def _check_cancelled(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise RpcCancelledError("request cancelled")


def _check_batch(calls: Sequence[tuple[str, list[Any]]], limit: int) -> None:
    if not calls:
        raise ValidationError("batch is empty")
    if len(calls) > limit:
        raise LimitExceededError(f"batch of {len(calls)} requests exceeds limit of {limit}")


def _unwrap(frame: Frame, request_id: int) -> msgspec.Raw:
    if frame.error is not None:
        raise frame.error.to_exception()
    if frame.id != request_id:
        raise CodecError(f"response id {frame.id} does not match request id {request_id}")
    return frame.result


def _match_batch(requests: Sequence[Request], payload: Frame | list[Frame]) -> BatchResult:
    if isinstance(payload, Frame):
        if payload.error is not None:
            err = payload.error
            raise BatchRejectedError(err.code, err.message, err.data)
        raise CodecError("batch answered with a single response")
    by_id = {f.id: f for f in payload if f.id is not None}
    results: BatchResult = []
    for req in requests:
        frame = by_id.get(req.id)
        if frame is None:
            raise CodecError(f"batch response has no entry for id {req.id}")
        results.append(frame.error.to_exception() if frame.error else frame.result)
    return results


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


class HttpDispatcher:
    def __init__(
        self,
        transport: HttpTransport,
        *,
        timeout: float | None = None,
        batch_request_limit: int = 100,
    ) -> None:
        self.transport = transport
        self.timeout = timeout
        self.batch_request_limit = batch_request_limit
        self._ids = itertools.count(1)

    async def _exchange(
        self, payload: bytes, timeout: float | None, cancel: asyncio.Event | None
    ) -> bytes:
        _check_cancelled(cancel)
        task = asyncio.ensure_future(self.transport.post(payload))
        try:
            return await wait_for_reply(
                task, timeout if timeout is not None else self.timeout, cancel
            )
        finally:
            task.cancel()

    async def call(
        self,
        method: str,
        params: list[Any],
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> msgspec.Raw:
        """Send one request and return its raw ``result`` JSON."""
        request_id = next(self._ids)
        logger.debug("rpc -> {} id={}", method, request_id)
        body = await self._exchange(encode_request(method, params, request_id), timeout, cancel)
        payload = decode_payload(body)
        if isinstance(payload, list):
            raise CodecError("single request answered with a batch")
        return _unwrap(payload, request_id)

    async def batch(
        self,
        calls: Sequence[tuple[str, list[Any]]],
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> BatchResult:
        """Send calls as one batch. Results follow request order.

        Per-entry server errors are returned as ServerError values.
        """
        _check_batch(calls, self.batch_request_limit)
        requests = [Request(method=m, params=list(p), id=next(self._ids)) for m, p in calls]
        logger.debug("rpc -> batch of {} ids={}..{}", len(requests), requests[0].id, requests[-1].id)
        body = await self._exchange(encode_batch(requests), timeout, cancel)
        return _match_batch(requests, decode_payload(body))

    async def close(self) -> None:
        await self.transport.close()


# ---------------------------------------------------------------------------
# Duplex
# ---------------------------------------------------------------------------


@dataclass
class _Pending:
    future: asyncio.Future[Any]
    on_result: Callable[[msgspec.Raw], Any] | None = None
    errors_as_values: bool = False


@dataclass
class _Registered:
    subscription: Subscription[Any]
    unsubscribe_method: str


class WsDispatcher:
    """Multiplexes calls and subscriptions over a duplex transport.

    Must be created inside a running event loop; the reader task starts
    immediately.
    """

    def __init__(
        self,
        transport: DuplexTransport,
        *,
        timeout: float | None = None,
        batch_request_limit: int = 100,
        subscription_queue_size: int = 1024,
        overflow: OverflowPolicy = OverflowPolicy.LAG,
    ) -> None:
        self.transport = transport
        self.timeout = timeout
        self.batch_request_limit = batch_request_limit
        self.subscription_queue_size = subscription_queue_size
        self.overflow = overflow
        self._ids = itertools.count(1)
        self._pending: dict[int, _Pending] = {}
        self._subscriptions: dict[int, _Registered] = {}
        # Request ids of in-flight batches, oldest first.
        self._batches: list[list[int]] = []
        self._background: set[asyncio.Task[None]] = set()
        self._closed: SolkitError | None = None
        self._reader = asyncio.get_running_loop().create_task(self._read_loop())

    @property
    def closed(self) -> bool:
        return self._closed is not None

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def _ensure_open(self) -> None:
        if self._closed is not None:
            raise TransportError(f"connection is closed: {self._closed}")

    def _deadline(self, timeout: float | None) -> float | None:
        return timeout if timeout is not None else self.timeout

    async def _send(self, payload: bytes) -> None:
        await self.transport.send(payload.decode())

    async def _request(
        self,
        method: str,
        params: list[Any],
        on_result: Callable[[msgspec.Raw], Any] | None,
        timeout: float | None,
        cancel: asyncio.Event | None,
    ) -> Any:
        self._ensure_open()
        _check_cancelled(cancel)
        request_id = next(self._ids)
        fut = asyncio.get_running_loop().create_future()
        self._pending[request_id] = _Pending(fut, on_result)
        try:
            logger.debug("ws -> {} id={}", method, request_id)
            await self._send(encode_request(method, params, request_id))
            return await wait_for_reply(fut, self._deadline(timeout), cancel)
        except BaseException:
            self._discard_unclaimed(fut)
            raise
        finally:
            # A reply that arrives after this point is discarded by the reader.
            self._pending.pop(request_id, None)
            fut.cancel()

    async def call(
        self,
        method: str,
        params: list[Any],
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> msgspec.Raw:
        return await self._request(method, params, None, timeout, cancel)

    async def batch(
        self,
        calls: Sequence[tuple[str, list[Any]]],
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> BatchResult:
        _check_batch(calls, self.batch_request_limit)
        self._ensure_open()
        _check_cancelled(cancel)
        loop = asyncio.get_running_loop()
        requests = [Request(method=m, params=list(p), id=next(self._ids)) for m, p in calls]
        futures = []
        for req in requests:
            fut = loop.create_future()
            self._pending[req.id] = _Pending(fut, errors_as_values=True)
            futures.append(fut)
        gathered = asyncio.gather(*futures)
        # The outcome is unobserved once the caller has given up.
        gathered.add_done_callback(lambda f: f.cancelled() or f.exception())
        ids = [req.id for req in requests]
        self._batches.append(ids)
        try:
            await self._send(encode_batch(requests))
            return list(await wait_for_reply(gathered, self._deadline(timeout), cancel))
        finally:
            self._batches.remove(ids)
            for request_id in ids:
                self._pending.pop(request_id, None)
            gathered.cancel()

    async def subscribe(
        self,
        method: str,
        params: list[Any],
        decode: Callable[[msgspec.Raw], Any],
        *,
        unsubscribe_method: str | None = None,
        max_pending: int | None = None,
        overflow: OverflowPolicy | None = None,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> Subscription[Any]:
        """Open a subscription; notifications are decoded with ``decode``."""
        unsub_method = unsubscribe_method or method.replace("Subscribe", "Unsubscribe")

        def register(raw: msgspec.Raw) -> Subscription[Any]:
            # Runs in the reader so that notifications following the reply
            # already find their subscription.
            sub_id = decode_result(raw, int)
            sub: Subscription[Any] = Subscription(
                sub_id,
                method,
                decode,
                self._unsubscribe,
                max_pending=max_pending or self.subscription_queue_size,
                overflow=overflow or self.overflow,
            )
            self._subscriptions[sub_id] = _Registered(sub, unsub_method)
            logger.debug("subscribed {} id={}", method, sub_id)
            return sub

        return await self._request(method, params, register, timeout, cancel)

    def _discard_unclaimed(self, fut: asyncio.Future[Any]) -> None:
        # The reply registered a subscription but the caller gave up first.
        if not fut.done() or fut.cancelled() or fut.exception() is not None:
            return
        sub = fut.result()
        if not isinstance(sub, Subscription):
            return
        registered = self._subscriptions.pop(sub.id, None)
        sub._close(None)
        if registered is not None and self._closed is None:
            logger.debug("dropping unclaimed subscription {} id={}", sub.method, sub.id)
            self._drop_server_side(registered)

    async def _unsubscribe(self, sub: Subscription[Any]) -> None:
        registered = self._subscriptions.pop(sub.id, None)
        if registered is None or self._closed is not None:
            return
        await self.call(registered.unsubscribe_method, [sub.id])
        logger.debug("unsubscribed {} id={}", sub.method, sub.id)

    def _drop_server_side(self, registered: _Registered) -> None:
        async def run() -> None:
            sub = registered.subscription
            try:
                await self.call(registered.unsubscribe_method, [sub.id])
            except SolkitError as exc:
                logger.warning("subscription {}: server-side unsubscribe failed: {}", sub.id, exc)

        task = asyncio.get_running_loop().create_task(run())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # --- Reader ---

    async def _read_loop(self) -> None:
        error: SolkitError = TransportError("connection closed")
        try:
            while True:
                message = await self.transport.recv()
                try:
                    payload = decode_payload(message)
                except CodecError as exc:
                    logger.warning("discarding malformed frame: {}", exc)
                    continue
                for frame in payload if isinstance(payload, list) else [payload]:
                    await self._route(frame)
        except TransportError as exc:
            error = exc
        except Exception as exc:
            logger.opt(exception=exc).error("websocket reader failed")
            error = TransportError(f"reader failed: {exc}")
        finally:
            self._teardown(error)

    async def _route(self, frame: Frame) -> None:
        if frame.id is not None:
            self._resolve(frame)
        elif frame.params is not None:
            await self._notify(frame.params.subscription, frame.params.result)
        elif frame.error is not None:
            self._reject_batch(frame.error)
        else:
            logger.debug("ignoring frame without id or params")

    def _resolve(self, frame: Frame) -> None:
        pending = self._pending.pop(frame.id, None)
        if pending is None or pending.future.done():
            logger.warning("discarding reply for unknown or abandoned request id={}", frame.id)
            return
        if frame.error is not None:
            err = frame.error.to_exception()
            if pending.errors_as_values:
                pending.future.set_result(err)
            else:
                pending.future.set_exception(err)
            return
        try:
            value = pending.on_result(frame.result) if pending.on_result else frame.result
        except SolkitError as exc:
            pending.future.set_exception(exc)
            return
        pending.future.set_result(value)

    def _reject_batch(self, error: ErrorObject) -> None:
        """Fail the oldest in-flight batch with an error that carries no id.

        Nodes answer a batch they refuse outright (too large, malformed)
        with one such error instead of an array.
        """
        ids = next(
            (ids for ids in self._batches if any(i in self._pending for i in ids)), None
        )
        if ids is None:
            logger.warning("server error without request id: {}", error.message)
            return
        logger.debug("batch of {} rejected: {}", len(ids), error.message)
        for request_id in ids:
            pending = self._pending.pop(request_id, None)
            if pending is not None and not pending.future.done():
                pending.future.set_exception(
                    BatchRejectedError(error.code, error.message, error.data)
                )

    async def _notify(self, sub_id: int, result: msgspec.Raw) -> None:
        registered = self._subscriptions.get(sub_id)
        if registered is None:
            logger.debug("notification for unknown subscription {}", sub_id)
            return
        sub = registered.subscription
        await sub._deliver(result)
        if sub.closed and self._subscriptions.get(sub_id) is registered:
            del self._subscriptions[sub_id]
            self._drop_server_side(registered)

    def _teardown(self, error: SolkitError) -> None:
        if self._closed is None:
            self._closed = error
        logger.debug("websocket dispatcher closed: {}", self._closed)
        for pending in self._pending.values():
            if not pending.future.done():
                pending.future.set_exception(TransportError(str(self._closed)))
        self._pending.clear()
        for registered in self._subscriptions.values():
            registered.subscription._close(TransportError(str(self._closed)))
        self._subscriptions.clear()

    async def close(self) -> None:
        """Close the channel; outstanding calls and subscriptions fail."""
        if self._closed is None:
            self._closed = TransportError("client closed")
        self._reader.cancel()
        await asyncio.gather(self._reader, return_exceptions=True)
        for task in list(self._background):
            task.cancel()
        await self.transport.close()
