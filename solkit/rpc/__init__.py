from solkit.rpc.api import Client, RpcCall, WsClient
from solkit.rpc.config import (
    AccountInfoConfig,
    AccountSubscribeConfig,
    BlockConfig,
    BlockSubscribeConfig,
    Commitment,
    CommitmentConfig,
    ContextConfig,
    DataSizeFilter,
    DataSlice,
    MemcmpFilter,
    MentionsAccountOrProgramFilter,
    MentionsFilter,
    MintFilter,
    ProgramAccountsConfig,
    ProgramIdFilter,
    ProgramSubscribeConfig,
    SendTransactionConfig,
    SignatureStatusesConfig,
    SignatureSubscribeConfig,
    SignaturesForAddressConfig,
    SimulateTransactionConfig,
    TransactionConfig,
    TransactionDetails,
)
from solkit.rpc.dispatcher import HttpDispatcher, WsDispatcher
from solkit.rpc.subscription import Subscription
from solkit.rpc.transport import DuplexTransport, HttpTransport, WebSocketTransport

__all__ = [
    "Client",
    "RpcCall",
    "WsClient",
    "HttpDispatcher",
    "WsDispatcher",
    "Subscription",
    "DuplexTransport",
    "HttpTransport",
    "WebSocketTransport",
    "AccountInfoConfig",
    "AccountSubscribeConfig",
    "BlockConfig",
    "BlockSubscribeConfig",
    "Commitment",
    "CommitmentConfig",
    "ContextConfig",
    "DataSizeFilter",
    "DataSlice",
    "MemcmpFilter",
    "MentionsAccountOrProgramFilter",
    "MentionsFilter",
    "MintFilter",
    "ProgramAccountsConfig",
    "ProgramIdFilter",
    "ProgramSubscribeConfig",
    "SendTransactionConfig",
    "SignatureStatusesConfig",
    "SignatureSubscribeConfig",
    "SignaturesForAddressConfig",
    "SimulateTransactionConfig",
    "TransactionConfig",
    "TransactionDetails",
]
