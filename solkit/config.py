"""Cluster endpoints and client settings."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from solkit.errors import ValidationError

RPC_URLS = {
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
    "testnet": "https://api.testnet.solana.com",
    "devnet": "https://api.devnet.solana.com",
    "localnet": "http://localhost:8899",
}

WS_URLS = {
    "mainnet-beta": "wss://api.mainnet-beta.solana.com",
    "testnet": "wss://api.testnet.solana.com",
    "devnet": "wss://api.devnet.solana.com",
    "localnet": "ws://localhost:8900",
}

DEFAULT_TIMEOUT = 30.0
DEFAULT_BATCH_REQUEST_LIMIT = 100
DEFAULT_RESPONSE_MAX_SIZE = 64 * 1024 * 1024
DEFAULT_SUBSCRIPTION_QUEUE_SIZE = 1024


class OverflowPolicy(str, enum.Enum):
    """What to do when a subscriber's queue is full.

    LAG ends the subscription with SubscriptionLagged. BLOCK stalls the
    connection reader until the subscriber catches up. DROP discards the
    newest notification and counts it.
    """

    LAG = "lag"
    BLOCK = "block"
    DROP = "drop"


@dataclass(frozen=True)
class ClientConfig:
    url: str = RPC_URLS["mainnet-beta"]
    ws_url: str | None = None
    timeout: float | None = DEFAULT_TIMEOUT
    batch_request_limit: int = DEFAULT_BATCH_REQUEST_LIMIT
    response_max_size: int = DEFAULT_RESPONSE_MAX_SIZE
    subscription_queue_size: int = DEFAULT_SUBSCRIPTION_QUEUE_SIZE
    overflow: OverflowPolicy = OverflowPolicy.LAG
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.batch_request_limit < 1:
            raise ValidationError("batch_request_limit must be at least 1")
        if self.response_max_size < 1:
            raise ValidationError("response_max_size must be positive")
        if self.subscription_queue_size < 1:
            raise ValidationError("subscription_queue_size must be at least 1")

    @classmethod
    def for_cluster(cls, env: str, **overrides) -> ClientConfig:
        if env not in RPC_URLS:
            raise ValidationError(
                f"unknown cluster {env!r}, expected one of {', '.join(RPC_URLS)}"
            )
        return cls(url=RPC_URLS[env], ws_url=WS_URLS[env], **overrides)

    @classmethod
    def from_environ(cls) -> ClientConfig:
        """Read ``SOLKIT_*`` variables, loading a ``.env`` file first if present."""
        load_dotenv()
        cluster = os.getenv("SOLKIT_CLUSTER", "mainnet-beta")
        base = cls.for_cluster(cluster)
        timeout = os.getenv("SOLKIT_TIMEOUT")
        batch_limit = os.getenv("SOLKIT_BATCH_LIMIT")
        try:
            return cls(
                url=os.getenv("SOLKIT_RPC_URL", base.url),
                ws_url=os.getenv("SOLKIT_WS_URL", base.ws_url),
                timeout=float(timeout) if timeout else base.timeout,
                batch_request_limit=int(batch_limit) if batch_limit else base.batch_request_limit,
            )
        except ValueError as exc:
            raise ValidationError(f"invalid SOLKIT_* setting: {exc}") from exc

    def websocket_url(self) -> str:
        """The configured websocket endpoint, or one derived from ``url``."""
        if self.ws_url:
            return self.ws_url
        if self.url.startswith("https://"):
            return "wss://" + self.url[len("https://") :]
        if self.url.startswith("http://"):
            host = self.url[len("http://") :]
            # A local validator serves websockets on the RPC port + 1.
            if host.startswith(("localhost:8899", "127.0.0.1:8899")):
                host = host.replace(":8899", ":8900", 1)
            return "ws://" + host
        return self.url
