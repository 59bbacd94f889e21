from loguru import logger

from solkit.config import RPC_URLS, WS_URLS, ClientConfig, OverflowPolicy
from solkit.errors import (
    BatchRejectedError,
    CodecError,
    CryptoError,
    LimitExceededError,
    OnCurveError,
    RpcCancelledError,
    RpcTimeoutError,
    ServerError,
    SolkitError,
    SubscriptionLagged,
    TransportError,
    ValidationError,
)
from solkit.instruction import AccountMeta, Instruction, InstructionBuilder
from solkit.keys import (
    Hash,
    Keypair,
    PublicKey,
    Signature,
    create_program_address,
    create_with_seed,
    find_program_address,
    is_on_curve,
    verify,
)
from solkit.lookup_table import AddressLookupTableAccount, AddressLookupTableState
from solkit.message import Message, MessageVersion, compile_message
from solkit.pda import find_associated_token_address
from solkit.rpc import Client, RpcCall, Subscription, WsClient
from solkit.transaction import Transaction

# Library code stays quiet unless the application opts in with
# logger.enable("solkit").
logger.disable("solkit")

__all__ = [
    "Client",
    "ClientConfig",
    "OverflowPolicy",
    "RPC_URLS",
    "RpcCall",
    "Subscription",
    "WS_URLS",
    "WsClient",
    "AccountMeta",
    "AddressLookupTableAccount",
    "AddressLookupTableState",
    "Hash",
    "Instruction",
    "InstructionBuilder",
    "Keypair",
    "Message",
    "MessageVersion",
    "PublicKey",
    "Signature",
    "Transaction",
    "compile_message",
    "create_program_address",
    "create_with_seed",
    "find_associated_token_address",
    "find_program_address",
    "is_on_curve",
    "verify",
    "BatchRejectedError",
    "CodecError",
    "CryptoError",
    "LimitExceededError",
    "OnCurveError",
    "RpcCancelledError",
    "RpcTimeoutError",
    "ServerError",
    "SolkitError",
    "SubscriptionLagged",
    "TransportError",
    "ValidationError",
]
