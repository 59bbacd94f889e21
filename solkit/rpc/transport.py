"""Transports: request/response over HTTP and a persistent websocket."""

from __future__ import annotations

import asyncio
from typing import Protocol

import httpx
from loguru import logger
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from solkit.errors import LimitExceededError, RpcTimeoutError, TransportError

JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


class HttpTransport:
    """POSTs JSON payloads to one endpoint and returns raw response bodies."""

    def __init__(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        response_max_size: int | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.response_max_size = response_max_size
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=None)
        self._headers = {**JSON_HEADERS, **(headers or {})}

    async def post(self, payload: bytes) -> bytes:
        try:
            async with self._client.stream(
                "POST", self.url, content=payload, headers=self._headers
            ) as resp:
                body = await self._read_body(resp)
        except httpx.TimeoutException as exc:
            raise RpcTimeoutError(f"http timeout: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"http request failed: {exc}") from exc
        if resp.is_error and not body.lstrip().startswith((b"{", b"[")):
            # JSON bodies carry a JSON-RPC error and are decoded by the caller.
            raise TransportError(
                f"http {resp.status_code}: {body[:200].decode(errors='replace')}",
                status_code=resp.status_code,
            )
        return body

    async def _read_body(self, resp: httpx.Response) -> bytes:
        limit = self.response_max_size
        chunks: list[bytes] = []
        size = 0
        async for chunk in resp.aiter_bytes():
            size += len(chunk)
            if limit is not None and size > limit:
                raise LimitExceededError(f"response exceeds {limit} bytes")
            chunks.append(chunk)
        return b"".join(chunks)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class DuplexTransport(Protocol):
    """A message-oriented full-duplex channel.

    ``recv`` raises TransportError once the channel is closed.
    """

    async def send(self, message: str) -> None: ...

    async def recv(self) -> str | bytes: ...

    async def close(self) -> None: ...


class WebSocketTransport:
    def __init__(self, connection: ClientConnection) -> None:
        self._conn = connection

    @classmethod
    async def connect(
        cls,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        max_size: int | None = None,
        open_timeout: float | None = 10.0,
    ) -> WebSocketTransport:
        try:
            conn = await connect(
                url,
                additional_headers=headers,
                max_size=max_size,
                open_timeout=open_timeout,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise TransportError(f"websocket connect to {url} failed: {exc}") from exc
        logger.debug("websocket connected to {}", url)
        return cls(conn)

    async def send(self, message: str) -> None:
        try:
            await self._conn.send(message)
        except ConnectionClosed as exc:
            raise TransportError(f"websocket closed: {exc}") from exc

    async def recv(self) -> str | bytes:
        try:
            return await self._conn.recv()
        except ConnectionClosed as exc:
            raise TransportError(f"websocket closed: {exc}") from exc

    async def close(self) -> None:
        await self._conn.close()
