"""Error kinds raised across the toolkit.

Every error derives from :class:`SolkitError`. Malformed input surfaces as
:class:`ValidationError` or :class:`CodecError`, both of which are also
``ValueError`` so callers that only know about the builtin keep working.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class SolkitError(Exception):
    """Base class for every error raised by solkit."""


class ValidationError(SolkitError, ValueError):
    """A value violates a local precondition (missing field, limit, size)."""

    def __init__(self, message: str, missing: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.missing = tuple(missing)


class LimitExceededError(ValidationError):
    """A local batch, argument-count or response-size limit was exceeded."""


class CodecError(SolkitError, ValueError):
    """Binary or text decoding failed."""


class CryptoError(SolkitError):
    """Key parsing, signing or address derivation failed."""


class OnCurveError(CryptoError):
    """A derived address lies on the ed25519 curve; try another bump."""


class TransportError(SolkitError):
    """The connection to the node failed or was closed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ServerError(SolkitError):
    """A JSON-RPC error object returned by the node, carried verbatim."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"rpc error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code}, message={self.message!r})"


class BatchRejectedError(ServerError):
    """The node answered a batch with one error object instead of an array."""


class RpcCancelledError(SolkitError):
    """The caller's cancellation signal fired before a reply arrived."""


class RpcTimeoutError(RpcCancelledError, TimeoutError):
    """The caller's deadline elapsed before a reply arrived."""


class SubscriptionLagged(SolkitError):
    """A subscriber fell behind and its bounded event queue overflowed."""

    def __init__(self, subscription_id: int, capacity: int) -> None:
        super().__init__(
            f"subscription {subscription_id} lagged: more than {capacity} pending events"
        )
        self.subscription_id = subscription_id
        self.capacity = capacity
