"""Typed JSON-RPC clients.

``Client`` talks HTTP; ``WsClient`` shares the same call catalog over a
websocket and adds subscriptions. Every call accepts keyword-only
``timeout`` (seconds) and ``cancel`` (an ``asyncio.Event``) options.
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Sequence
from typing import Any, Literal, NamedTuple

import base58  # type: ignore[import-untyped]
import msgspec
from loguru import logger

from solkit.config import ClientConfig, OverflowPolicy
from solkit.errors import LimitExceededError, ServerError, ValidationError
from solkit.keys import Hash, PublicKey, Signature
from solkit.lookup_table import AddressLookupTableAccount
from solkit.message import Message
from solkit.program_ids import ADDRESS_LOOKUP_TABLE_PROGRAM_ID
from solkit.rpc.config import (
    AccountInfoConfig,
    AccountSubscribeConfig,
    AirdropConfig,
    BlockConfig,
    BlockProductionConfig,
    BlockSubscribeConfig,
    CommitmentConfig,
    ContextConfig,
    InflationRewardConfig,
    LargestAccountsConfig,
    LeaderScheduleConfig,
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
    SupplyConfig,
    TransactionConfig,
    VoteAccountsConfig,
    with_config,
)
from solkit.rpc.dispatcher import HttpDispatcher, WsDispatcher
from solkit.rpc.jsonrpc import decode_result
from solkit.rpc.subscription import Subscription
from solkit.rpc.transport import DuplexTransport, HttpTransport, WebSocketTransport
from solkit.rpc.types import (
    AccountInfo,
    AccountNotification,
    Block,
    BlockCommitment,
    BlockNotification,
    BlockProduction,
    ClusterNode,
    EpochInfo,
    EpochSchedule,
    HighestSnapshotSlot,
    Identity,
    InflationGovernor,
    InflationRate,
    InflationReward,
    KeyedAccount,
    LargestAccount,
    LatestBlockhash,
    LogsNotification,
    PerformanceSample,
    PrioritizationFee,
    ProgramNotification,
    SignatureInfo,
    SignatureNotification,
    SignatureStatus,
    SimulateResult,
    SlotInfo,
    Supply,
    TokenAmount,
    TokenLargestAccount,
    TransactionWithMeta,
    Version,
    VoteAccounts,
    WithContext,
    lookup_table_from_account,
)
from solkit.soldata import Encoding
from solkit.transaction import Transaction

MAX_MULTIPLE_ACCOUNTS = 100
MAX_SIGNATURE_STATUSES = 256
MAX_PRIORITIZATION_FEE_ACCOUNTS = 128
MAX_PERFORMANCE_SAMPLES = 720
MAX_SLOT_LEADERS = 5000

TxEncoding = Literal["base58", "base64"]


class RpcCall(NamedTuple):
    """One entry of a typed batch."""

    method: str
    params: list[Any]
    result_type: Any = Any


def _limit(name: str, count: int, maximum: int) -> None:
    if count > maximum:
        raise LimitExceededError(f"{name}: {count} items exceeds limit of {maximum}")


def _encode_wire(data: bytes, encoding: TxEncoding) -> str:
    if encoding == "base64":
        return base64.b64encode(data).decode()
    if encoding == "base58":
        return base58.b58encode(data).decode()
    raise ValidationError(f"unsupported transaction encoding: {encoding!r}")


class _RpcApi:
    """The call catalog, shared by the HTTP and websocket clients."""

    _dispatcher: HttpDispatcher | WsDispatcher

    async def _call(self, method: str, params: list[Any], result_type: Any, **opts: Any) -> Any:
        raw = await self._dispatcher.call(method, params, **opts)
        return decode_result(raw, result_type)

    async def call_raw(self, method: str, params: list[Any], **opts: Any) -> msgspec.Raw:
        """Escape hatch for methods missing from the catalog."""
        return await self._dispatcher.call(method, params, **opts)

    async def batch(self, calls: Sequence[RpcCall], **opts: Any) -> list[Any]:
        """Run calls as one batch; failed entries come back as ServerError values."""
        raws = await self._dispatcher.batch([(c.method, c.params) for c in calls], **opts)
        return [
            raw if isinstance(raw, ServerError) else decode_result(raw, call.result_type)
            for raw, call in zip(raws, calls)
        ]

    # --- Accounts ---

    async def get_account_info(
        self, account: PublicKey, config: AccountInfoConfig | None = None, **opts: Any
    ) -> WithContext[AccountInfo | None]:
        config = config or AccountInfoConfig(encoding=Encoding.BASE64)
        return await self._call(
            "getAccountInfo",
            with_config([account], config),
            WithContext[AccountInfo | None],
            **opts,
        )

    async def get_balance(
        self, account: PublicKey, config: ContextConfig | None = None, **opts: Any
    ) -> WithContext[int]:
        return await self._call(
            "getBalance", with_config([account], config), WithContext[int], **opts
        )

    async def get_multiple_accounts(
        self,
        accounts: Sequence[PublicKey],
        config: AccountInfoConfig | None = None,
        **opts: Any,
    ) -> WithContext[list[AccountInfo | None]]:
        _limit("getMultipleAccounts", len(accounts), MAX_MULTIPLE_ACCOUNTS)
        config = config or AccountInfoConfig(encoding=Encoding.BASE64)
        return await self._call(
            "getMultipleAccounts",
            with_config([list(accounts)], config),
            WithContext[list[AccountInfo | None]],
            **opts,
        )

    async def get_program_accounts(
        self, program_id: PublicKey, config: ProgramAccountsConfig | None = None, **opts: Any
    ) -> list[KeyedAccount]:
        config = config or ProgramAccountsConfig(encoding=Encoding.BASE64)
        params = with_config([program_id], config)
        if config.with_context:
            result = await self._call(
                "getProgramAccounts", params, WithContext[list[KeyedAccount]], **opts
            )
            return result.value
        return await self._call("getProgramAccounts", params, list[KeyedAccount], **opts)

    async def get_largest_accounts(
        self, config: LargestAccountsConfig | None = None, **opts: Any
    ) -> WithContext[list[LargestAccount]]:
        return await self._call(
            "getLargestAccounts", with_config([], config), WithContext[list[LargestAccount]], **opts
        )

    async def get_minimum_balance_for_rent_exemption(
        self, data_size: int, config: CommitmentConfig | None = None, **opts: Any
    ) -> int:
        return await self._call(
            "getMinimumBalanceForRentExemption", with_config([data_size], config), int, **opts
        )

    async def get_address_lookup_table(
        self, table: PublicKey, config: CommitmentConfig | None = None, **opts: Any
    ) -> AddressLookupTableAccount | None:
        """Fetch a lookup table in the form the message assembler consumes."""
        account_config = AccountInfoConfig(
            encoding=Encoding.BASE64, commitment=config.commitment if config else None
        )
        result = await self.get_account_info(table, account_config, **opts)
        if result.value is None:
            return None
        if result.value.owner != ADDRESS_LOOKUP_TABLE_PROGRAM_ID:
            raise ValidationError(f"{table} is not an address lookup table account")
        return lookup_table_from_account(table, result.value)

    # --- Tokens ---

    async def get_token_account_balance(
        self, account: PublicKey, config: CommitmentConfig | None = None, **opts: Any
    ) -> WithContext[TokenAmount]:
        return await self._call(
            "getTokenAccountBalance", with_config([account], config), WithContext[TokenAmount], **opts
        )

    async def get_token_accounts_by_owner(
        self,
        owner: PublicKey,
        account_filter: MintFilter | ProgramIdFilter,
        config: AccountInfoConfig | None = None,
        **opts: Any,
    ) -> WithContext[list[KeyedAccount]]:
        config = config or AccountInfoConfig(encoding=Encoding.BASE64)
        return await self._call(
            "getTokenAccountsByOwner",
            with_config([owner, account_filter], config),
            WithContext[list[KeyedAccount]],
            **opts,
        )

    async def get_token_accounts_by_delegate(
        self,
        delegate: PublicKey,
        account_filter: MintFilter | ProgramIdFilter,
        config: AccountInfoConfig | None = None,
        **opts: Any,
    ) -> WithContext[list[KeyedAccount]]:
        config = config or AccountInfoConfig(encoding=Encoding.BASE64)
        return await self._call(
            "getTokenAccountsByDelegate",
            with_config([delegate, account_filter], config),
            WithContext[list[KeyedAccount]],
            **opts,
        )

    async def get_token_largest_accounts(
        self, mint: PublicKey, config: CommitmentConfig | None = None, **opts: Any
    ) -> WithContext[list[TokenLargestAccount]]:
        return await self._call(
            "getTokenLargestAccounts",
            with_config([mint], config),
            WithContext[list[TokenLargestAccount]],
            **opts,
        )

    async def get_token_supply(
        self, mint: PublicKey, config: CommitmentConfig | None = None, **opts: Any
    ) -> WithContext[TokenAmount]:
        return await self._call(
            "getTokenSupply", with_config([mint], config), WithContext[TokenAmount], **opts
        )

    # --- Blocks and slots ---

    async def get_latest_blockhash(
        self, config: ContextConfig | None = None, **opts: Any
    ) -> WithContext[LatestBlockhash]:
        return await self._call(
            "getLatestBlockhash", with_config([], config), WithContext[LatestBlockhash], **opts
        )

    async def is_blockhash_valid(
        self, blockhash: Hash, config: ContextConfig | None = None, **opts: Any
    ) -> WithContext[bool]:
        return await self._call(
            "isBlockhashValid", with_config([blockhash], config), WithContext[bool], **opts
        )

    async def get_block(
        self, slot: int, config: BlockConfig | None = None, **opts: Any
    ) -> Block | None:
        return await self._call("getBlock", with_config([slot], config), Block | None, **opts)

    async def get_block_commitment(self, slot: int, **opts: Any) -> BlockCommitment:
        return await self._call("getBlockCommitment", [slot], BlockCommitment, **opts)

    async def get_block_height(self, config: ContextConfig | None = None, **opts: Any) -> int:
        return await self._call("getBlockHeight", with_config([], config), int, **opts)

    async def get_block_production(
        self, config: BlockProductionConfig | None = None, **opts: Any
    ) -> WithContext[BlockProduction]:
        return await self._call(
            "getBlockProduction", with_config([], config), WithContext[BlockProduction], **opts
        )

    async def get_block_time(self, slot: int, **opts: Any) -> int | None:
        return await self._call("getBlockTime", [slot], int | None, **opts)

    async def get_blocks(
        self,
        start_slot: int,
        end_slot: int | None = None,
        config: CommitmentConfig | None = None,
        **opts: Any,
    ) -> list[int]:
        params: list[Any] = [start_slot]
        if end_slot is not None:
            params.append(end_slot)
        return await self._call("getBlocks", with_config(params, config), list[int], **opts)

    async def get_blocks_with_limit(
        self, start_slot: int, limit: int, config: CommitmentConfig | None = None, **opts: Any
    ) -> list[int]:
        return await self._call(
            "getBlocksWithLimit", with_config([start_slot, limit], config), list[int], **opts
        )

    async def get_first_available_block(self, **opts: Any) -> int:
        return await self._call("getFirstAvailableBlock", [], int, **opts)

    async def get_slot(self, config: ContextConfig | None = None, **opts: Any) -> int:
        return await self._call("getSlot", with_config([], config), int, **opts)

    async def get_slot_leader(self, config: ContextConfig | None = None, **opts: Any) -> PublicKey:
        return await self._call("getSlotLeader", with_config([], config), PublicKey, **opts)

    async def get_slot_leaders(self, start_slot: int, limit: int, **opts: Any) -> list[PublicKey]:
        _limit("getSlotLeaders", limit, MAX_SLOT_LEADERS)
        return await self._call("getSlotLeaders", [start_slot, limit], list[PublicKey], **opts)

    async def get_max_retransmit_slot(self, **opts: Any) -> int:
        return await self._call("getMaxRetransmitSlot", [], int, **opts)

    async def get_max_shred_insert_slot(self, **opts: Any) -> int:
        return await self._call("getMaxShredInsertSlot", [], int, **opts)

    async def get_highest_snapshot_slot(self, **opts: Any) -> HighestSnapshotSlot:
        return await self._call("getHighestSnapshotSlot", [], HighestSnapshotSlot, **opts)

    async def minimum_ledger_slot(self, **opts: Any) -> int:
        return await self._call("minimumLedgerSlot", [], int, **opts)

    async def get_recent_performance_samples(
        self, limit: int | None = None, **opts: Any
    ) -> list[PerformanceSample]:
        params: list[Any] = []
        if limit is not None:
            _limit("getRecentPerformanceSamples", limit, MAX_PERFORMANCE_SAMPLES)
            params.append(limit)
        return await self._call(
            "getRecentPerformanceSamples", params, list[PerformanceSample], **opts
        )

    async def get_recent_prioritization_fees(
        self, accounts: Sequence[PublicKey] = (), **opts: Any
    ) -> list[PrioritizationFee]:
        _limit("getRecentPrioritizationFees", len(accounts), MAX_PRIORITIZATION_FEE_ACCOUNTS)
        params: list[Any] = [list(accounts)] if accounts else []
        return await self._call(
            "getRecentPrioritizationFees", params, list[PrioritizationFee], **opts
        )

    # --- Epochs, inflation, cluster ---

    async def get_epoch_info(self, config: ContextConfig | None = None, **opts: Any) -> EpochInfo:
        return await self._call("getEpochInfo", with_config([], config), EpochInfo, **opts)

    async def get_epoch_schedule(self, **opts: Any) -> EpochSchedule:
        return await self._call("getEpochSchedule", [], EpochSchedule, **opts)

    async def get_leader_schedule(
        self, slot: int | None = None, config: LeaderScheduleConfig | None = None, **opts: Any
    ) -> dict[str, list[int]] | None:
        params = with_config([slot], config)
        if params == [None]:
            params = []
        return await self._call("getLeaderSchedule", params, dict[str, list[int]] | None, **opts)

    async def get_inflation_governor(
        self, config: CommitmentConfig | None = None, **opts: Any
    ) -> InflationGovernor:
        return await self._call(
            "getInflationGovernor", with_config([], config), InflationGovernor, **opts
        )

    async def get_inflation_rate(self, **opts: Any) -> InflationRate:
        return await self._call("getInflationRate", [], InflationRate, **opts)

    async def get_inflation_reward(
        self,
        addresses: Sequence[PublicKey],
        config: InflationRewardConfig | None = None,
        **opts: Any,
    ) -> list[InflationReward | None]:
        return await self._call(
            "getInflationReward",
            with_config([list(addresses)], config),
            list[InflationReward | None],
            **opts,
        )

    async def get_supply(
        self, config: SupplyConfig | None = None, **opts: Any
    ) -> WithContext[Supply]:
        return await self._call("getSupply", with_config([], config), WithContext[Supply], **opts)

    async def get_stake_minimum_delegation(
        self, config: CommitmentConfig | None = None, **opts: Any
    ) -> WithContext[int]:
        return await self._call(
            "getStakeMinimumDelegation", with_config([], config), WithContext[int], **opts
        )

    async def get_cluster_nodes(self, **opts: Any) -> list[ClusterNode]:
        return await self._call("getClusterNodes", [], list[ClusterNode], **opts)

    async def get_vote_accounts(
        self, config: VoteAccountsConfig | None = None, **opts: Any
    ) -> VoteAccounts:
        return await self._call("getVoteAccounts", with_config([], config), VoteAccounts, **opts)

    async def get_genesis_hash(self, **opts: Any) -> Hash:
        return await self._call("getGenesisHash", [], Hash, **opts)

    async def get_health(self, **opts: Any) -> str:
        """``"ok"`` when healthy; an unhealthy node answers with a ServerError."""
        return await self._call("getHealth", [], str, **opts)

    async def get_identity(self, **opts: Any) -> Identity:
        return await self._call("getIdentity", [], Identity, **opts)

    async def get_version(self, **opts: Any) -> Version:
        return await self._call("getVersion", [], Version, **opts)

    async def get_transaction_count(
        self, config: ContextConfig | None = None, **opts: Any
    ) -> int:
        return await self._call("getTransactionCount", with_config([], config), int, **opts)

    # --- Signatures and transactions ---

    async def get_fee_for_message(
        self, message: Message | bytes, config: ContextConfig | None = None, **opts: Any
    ) -> WithContext[int | None]:
        raw = message.serialize() if isinstance(message, Message) else bytes(message)
        return await self._call(
            "getFeeForMessage",
            with_config([base64.b64encode(raw).decode()], config),
            WithContext[int | None],
            **opts,
        )

    async def get_signature_statuses(
        self,
        signatures: Sequence[Signature],
        config: SignatureStatusesConfig | None = None,
        **opts: Any,
    ) -> WithContext[list[SignatureStatus | None]]:
        _limit("getSignatureStatuses", len(signatures), MAX_SIGNATURE_STATUSES)
        return await self._call(
            "getSignatureStatuses",
            with_config([list(signatures)], config),
            WithContext[list[SignatureStatus | None]],
            **opts,
        )

    async def get_signatures_for_address(
        self,
        address: PublicKey,
        config: SignaturesForAddressConfig | None = None,
        **opts: Any,
    ) -> list[SignatureInfo]:
        return await self._call(
            "getSignaturesForAddress", with_config([address], config), list[SignatureInfo], **opts
        )

    async def get_transaction(
        self, signature: Signature, config: TransactionConfig | None = None, **opts: Any
    ) -> TransactionWithMeta | None:
        config = config or TransactionConfig(
            encoding="base64", max_supported_transaction_version=0
        )
        return await self._call(
            "getTransaction", with_config([signature], config), TransactionWithMeta | None, **opts
        )

    async def request_airdrop(
        self, account: PublicKey, lamports: int, config: AirdropConfig | None = None, **opts: Any
    ) -> Signature:
        return await self._call(
            "requestAirdrop", with_config([account, lamports], config), Signature, **opts
        )

    async def send_transaction(
        self,
        transaction: Transaction | bytes,
        config: SendTransactionConfig | None = None,
        *,
        encoding: TxEncoding = "base64",
        **opts: Any,
    ) -> Signature:
        """Submit a signed transaction. The wire encoding is always sent explicitly."""
        raw = transaction.serialize() if isinstance(transaction, Transaction) else bytes(transaction)
        config = msgspec.structs.replace(
            config or SendTransactionConfig(), encoding=Encoding(encoding)
        )
        signature = await self._call(
            "sendTransaction", [_encode_wire(raw, encoding), config], Signature, **opts
        )
        logger.debug("sent transaction {}", signature)
        return signature

    async def simulate_transaction(
        self,
        transaction: Transaction | bytes,
        config: SimulateTransactionConfig | None = None,
        *,
        encoding: TxEncoding = "base64",
        **opts: Any,
    ) -> WithContext[SimulateResult]:
        raw = transaction.serialize() if isinstance(transaction, Transaction) else bytes(transaction)
        config = msgspec.structs.replace(
            config or SimulateTransactionConfig(), encoding=Encoding(encoding)
        )
        return await self._call(
            "simulateTransaction",
            [_encode_wire(raw, encoding), config],
            WithContext[SimulateResult],
            **opts,
        )


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


class Client(_RpcApi):
    """JSON-RPC client over HTTP. Safe to share between tasks."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: HttpTransport | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        transport = transport or HttpTransport(
            self.config.url,
            headers=self.config.headers,
            response_max_size=self.config.response_max_size,
        )
        self._dispatcher = HttpDispatcher(
            transport,
            timeout=self.config.timeout,
            batch_request_limit=self.config.batch_request_limit,
        )

    @classmethod
    def from_cluster(cls, env: str) -> Client:
        return cls(ClientConfig.for_cluster(env))

    @classmethod
    def mainnet_beta(cls) -> Client:
        return cls.from_cluster("mainnet-beta")

    @classmethod
    def testnet(cls) -> Client:
        return cls.from_cluster("testnet")

    @classmethod
    def devnet(cls) -> Client:
        return cls.from_cluster("devnet")

    @classmethod
    def localnet(cls) -> Client:
        return cls.from_cluster("localnet")

    async def close(self) -> None:
        await self._dispatcher.close()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


# ---------------------------------------------------------------------------
# Websocket client
# ---------------------------------------------------------------------------


def _decoder(type_: Any) -> Callable[[msgspec.Raw], Any]:
    def decode(raw: msgspec.Raw) -> Any:
        return decode_result(raw, type_)

    return decode


class WsClient(_RpcApi):
    """JSON-RPC client over one persistent duplex channel, with subscriptions."""

    def __init__(self, dispatcher: WsDispatcher, config: ClientConfig | None = None) -> None:
        self.config = config or ClientConfig()
        self._dispatcher = dispatcher

    @classmethod
    def over(cls, transport: DuplexTransport, config: ClientConfig | None = None) -> WsClient:
        """Wrap an already-open transport. Call from inside the event loop."""
        config = config or ClientConfig()
        dispatcher = WsDispatcher(
            transport,
            timeout=config.timeout,
            batch_request_limit=config.batch_request_limit,
            subscription_queue_size=config.subscription_queue_size,
            overflow=config.overflow,
        )
        return cls(dispatcher, config)

    @classmethod
    async def connect(cls, config: ClientConfig | None = None) -> WsClient:
        config = config or ClientConfig()
        transport = await WebSocketTransport.connect(
            config.websocket_url(),
            headers=config.headers or None,
            max_size=config.response_max_size,
        )
        return cls.over(transport, config)

    @property
    def closed(self) -> bool:
        return self._dispatcher.closed

    async def close(self) -> None:
        await self._dispatcher.close()

    async def __aenter__(self) -> WsClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _subscribe(
        self,
        method: str,
        params: list[Any],
        notification_type: Any,
        *,
        max_pending: int | None = None,
        overflow: OverflowPolicy | None = None,
        **opts: Any,
    ) -> Subscription[Any]:
        return await self._dispatcher.subscribe(
            method,
            params,
            _decoder(notification_type),
            max_pending=max_pending,
            overflow=overflow,
            **opts,
        )

    async def account_subscribe(
        self, account: PublicKey, config: AccountSubscribeConfig | None = None, **opts: Any
    ) -> Subscription[AccountNotification]:
        config = config or AccountSubscribeConfig(encoding=Encoding.BASE64)
        return await self._subscribe(
            "accountSubscribe", with_config([account], config), AccountNotification, **opts
        )

    async def program_subscribe(
        self, program_id: PublicKey, config: ProgramSubscribeConfig | None = None, **opts: Any
    ) -> Subscription[ProgramNotification]:
        config = config or ProgramSubscribeConfig(encoding=Encoding.BASE64)
        return await self._subscribe(
            "programSubscribe", with_config([program_id], config), ProgramNotification, **opts
        )

    async def logs_subscribe(
        self,
        log_filter: Literal["all", "allWithVotes"] | MentionsFilter = "all",
        config: CommitmentConfig | None = None,
        **opts: Any,
    ) -> Subscription[LogsNotification]:
        return await self._subscribe(
            "logsSubscribe", with_config([log_filter], config), LogsNotification, **opts
        )

    async def signature_subscribe(
        self, signature: Signature, config: SignatureSubscribeConfig | None = None, **opts: Any
    ) -> Subscription[SignatureNotification]:
        return await self._subscribe(
            "signatureSubscribe", with_config([signature], config), SignatureNotification, **opts
        )

    async def block_subscribe(
        self,
        block_filter: Literal["all"] | MentionsAccountOrProgramFilter = "all",
        config: BlockSubscribeConfig | None = None,
        **opts: Any,
    ) -> Subscription[BlockNotification]:
        return await self._subscribe(
            "blockSubscribe", with_config([block_filter], config), BlockNotification, **opts
        )

    async def slot_subscribe(self, **opts: Any) -> Subscription[SlotInfo]:
        return await self._subscribe("slotSubscribe", [], SlotInfo, **opts)

    async def root_subscribe(self, **opts: Any) -> Subscription[int]:
        return await self._subscribe("rootSubscribe", [], int, **opts)
