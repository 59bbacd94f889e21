"""Subscription handles for server-pushed notifications."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

import msgspec
from loguru import logger

from solkit.config import OverflowPolicy
from solkit.errors import SolkitError, SubscriptionLagged

T = TypeVar("T")

_END = object()


class Subscription(Generic[T]):
    """A live subscription.

    Iterate with ``async for`` to receive notifications in arrival order.
    The iteration ends after ``unsubscribe()``, or raises the terminal
    error once queued notifications are drained. ``wait_closed()`` is the
    error channel: it resolves exactly once, to ``None`` on a clean
    unsubscribe or to the terminal error.
    """

    def __init__(
        self,
        subscription_id: int,
        method: str,
        decode: Callable[[msgspec.Raw], T],
        unsubscribe: Callable[[Subscription[Any]], Awaitable[None]],
        max_pending: int = 1024,
        overflow: OverflowPolicy = OverflowPolicy.LAG,
    ) -> None:
        self.id = subscription_id
        self.method = method
        self.dropped = 0
        self._decode = decode
        self._unsubscribe = unsubscribe
        self._max_pending = max_pending
        self._overflow = overflow
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._space = asyncio.Event()
        self._done: asyncio.Future[SolkitError | None] = (
            asyncio.get_running_loop().create_future()
        )
        self._unsubscribed = False

    def __repr__(self) -> str:
        return f"Subscription(id={self.id}, method={self.method!r}, closed={self.closed})"

    @property
    def closed(self) -> bool:
        return self._done.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # --- Consumer side ---

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> T:
        if self._unsubscribed:
            raise StopAsyncIteration
        item = await self._queue.get()
        self._space.set()
        if item is _END:
            self._queue.put_nowait(_END)
            err = self._done.result() if self._done.done() else None
            if err is not None:
                raise err
            raise StopAsyncIteration
        if self._unsubscribed:
            raise StopAsyncIteration
        return item

    async def recv(self) -> T:
        """Wait for the next notification."""
        return await self.__anext__()

    async def wait_closed(self) -> SolkitError | None:
        return await asyncio.shield(self._done)

    async def unsubscribe(self) -> None:
        """Stop delivery and tell the server. Safe to call more than once."""
        if self.closed:
            return
        self._unsubscribed = True
        self._close(None)
        await self._unsubscribe(self)

    # --- Producer side, called by the dispatcher's reader ---

    async def _deliver(self, raw: msgspec.Raw) -> None:
        if self.closed:
            return
        try:
            item = self._decode(raw)
        except SolkitError as exc:
            logger.warning("subscription {}: undecodable notification: {}", self.id, exc)
            self._close(exc)
            return
        if self._queue.qsize() >= self._max_pending:
            if self._overflow is OverflowPolicy.DROP:
                self.dropped += 1
                logger.debug("subscription {}: dropped notification ({} total)", self.id, self.dropped)
                return
            if self._overflow is OverflowPolicy.LAG:
                logger.warning("subscription {}: subscriber lagged, closing", self.id)
                self._close(SubscriptionLagged(self.id, self._max_pending))
                return
            while self._queue.qsize() >= self._max_pending and not self.closed:
                self._space.clear()
                await self._space.wait()
            if self.closed:
                return
        self._queue.put_nowait(item)

    def _close(self, error: SolkitError | None) -> None:
        if self._done.done():
            return
        self._done.set_result(error)
        self._queue.put_nowait(_END)
        self._space.set()
