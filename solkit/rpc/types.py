"""Typed RPC results.

Results are decoded leniently: unknown keys are ignored, absent optional
keys become ``None`` and numeric strings are accepted where integers are
expected.
"""

from __future__ import annotations

from typing import Any, Generic, Literal, TypeVar

import msgspec

from solkit.errors import CodecError
from solkit.keys import Hash, PublicKey, Signature
from solkit.lookup_table import AddressLookupTableAccount
from solkit.message import MessageVersion
from solkit.soldata import SolData
from solkit.transaction import Transaction

T = TypeVar("T")


class _Result(msgspec.Struct, rename="camel"):
    pass


class RpcContext(_Result):
    slot: int
    api_version: str | None = None


class WithContext(_Result, Generic[T]):
    context: RpcContext
    value: T


# --- Accounts ---


class AccountInfo(_Result):
    lamports: int
    owner: PublicKey
    data: SolData
    executable: bool
    rent_epoch: int = 0
    space: int | None = None


class KeyedAccount(_Result):
    pubkey: PublicKey
    account: AccountInfo


class TokenAmount(_Result):
    amount: str
    decimals: int
    ui_amount: float | None = None
    ui_amount_string: str | None = None

    @property
    def raw_amount(self) -> int:
        return int(self.amount)


class TokenLargestAccount(_Result):
    address: PublicKey
    amount: str
    decimals: int
    ui_amount: float | None = None
    ui_amount_string: str | None = None


class LargestAccount(_Result):
    address: PublicKey
    lamports: int


class Supply(_Result):
    total: int
    circulating: int
    non_circulating: int
    non_circulating_accounts: list[PublicKey] = []


# --- Blocks and slots ---


class LatestBlockhash(_Result):
    blockhash: Hash
    last_valid_block_height: int


class BlockCommitment(_Result):
    total_stake: int
    commitment: list[int] | None = None


class BlockProductionRange(_Result):
    first_slot: int
    last_slot: int


class BlockProduction(_Result):
    by_identity: dict[str, list[int]]
    range: BlockProductionRange


class EpochInfo(_Result):
    absolute_slot: int
    block_height: int
    epoch: int
    slot_index: int
    slots_in_epoch: int
    transaction_count: int | None = None


class EpochSchedule(_Result):
    slots_per_epoch: int
    leader_schedule_slot_offset: int
    warmup: bool
    first_normal_epoch: int
    first_normal_slot: int


class HighestSnapshotSlot(_Result):
    full: int
    incremental: int | None = None


class Identity(_Result):
    identity: PublicKey


class PerformanceSample(_Result):
    slot: int
    num_transactions: int
    num_slots: int
    sample_period_secs: int
    num_non_vote_transactions: int | None = None


class PrioritizationFee(_Result):
    slot: int
    prioritization_fee: int


# --- Cluster ---


class ClusterNode(_Result):
    pubkey: PublicKey
    gossip: str | None = None
    tpu: str | None = None
    rpc: str | None = None
    version: str | None = None
    feature_set: int | None = None
    shred_version: int | None = None


class VoteAccount(_Result):
    vote_pubkey: PublicKey
    node_pubkey: PublicKey
    activated_stake: int
    epoch_vote_account: bool
    commission: int
    last_vote: int
    root_slot: int | None = None
    epoch_credits: list[list[int]] = []


class VoteAccounts(_Result):
    current: list[VoteAccount]
    delinquent: list[VoteAccount]


class Version(msgspec.Struct):
    solana_core: str = msgspec.field(name="solana-core")
    feature_set: int | None = msgspec.field(default=None, name="feature-set")


class InflationGovernor(_Result):
    initial: float
    terminal: float
    taper: float
    foundation: float
    foundation_term: float


class InflationRate(_Result):
    total: float
    validator: float
    foundation: float
    epoch: int


class InflationReward(_Result):
    epoch: int
    effective_slot: int
    amount: int
    post_balance: int
    commission: int | None = None


# --- Signatures and transactions ---


class SignatureStatus(_Result):
    slot: int
    confirmations: int | None
    err: Any = None
    confirmation_status: Literal["processed", "confirmed", "finalized"] | None = None


class SignatureInfo(_Result):
    signature: Signature
    slot: int
    err: Any = None
    memo: str | None = None
    block_time: int | None = None
    confirmation_status: Literal["processed", "confirmed", "finalized"] | None = None


class UiTokenBalance(_Result):
    account_index: int
    mint: PublicKey
    ui_token_amount: TokenAmount
    owner: PublicKey | None = None
    program_id: PublicKey | None = None


class LoadedAddresses(_Result):
    writable: list[PublicKey] = []
    readonly: list[PublicKey] = []


class Reward(_Result):
    pubkey: PublicKey
    lamports: int
    post_balance: int
    reward_type: str | None = None
    commission: int | None = None


class TransactionMeta(_Result):
    fee: int
    err: Any = None
    pre_balances: list[int] = []
    post_balances: list[int] = []
    inner_instructions: list[Any] | None = None
    log_messages: list[str] | None = None
    pre_token_balances: list[UiTokenBalance] | None = None
    post_token_balances: list[UiTokenBalance] | None = None
    rewards: list[Reward] | None = None
    loaded_addresses: LoadedAddresses | None = None
    compute_units_consumed: int | None = None


def _decode_encoded_transaction(value: Any) -> Transaction:
    if not isinstance(value, list):
        raise CodecError("transaction was not fetched in a binary encoding")
    return Transaction.from_bytes(SolData.from_json(value).data)


class EncodedTransactionWithMeta(_Result):
    transaction: Any
    meta: TransactionMeta | None = None
    version: Literal["legacy"] | int | None = None

    def decode(self) -> Transaction:
        """Parse a base58/base64 encoded ``transaction`` field."""
        return _decode_encoded_transaction(self.transaction)

    @property
    def message_version(self) -> MessageVersion:
        return MessageVersion.from_json(self.version)


class TransactionWithMeta(EncodedTransactionWithMeta):
    slot: int = 0
    block_time: int | None = None


class Block(_Result):
    blockhash: Hash
    previous_blockhash: Hash
    parent_slot: int
    transactions: list[EncodedTransactionWithMeta] | None = None
    signatures: list[Signature] | None = None
    rewards: list[Reward] | None = None
    block_time: int | None = None
    block_height: int | None = None


class SimulateResult(_Result):
    err: Any = None
    logs: list[str] | None = None
    accounts: list[AccountInfo | None] | None = None
    units_consumed: int | None = None
    return_data: Any = None


# --- Notifications ---


class SlotInfo(_Result):
    slot: int
    parent: int
    root: int


class LogsResult(_Result):
    signature: Signature
    err: Any = None
    logs: list[str] = []


class SignatureResult(_Result):
    err: Any = None


class BlockUpdate(_Result):
    slot: int
    block: Block | None = None
    err: Any = None


AccountNotification = WithContext[AccountInfo]
ProgramNotification = WithContext[KeyedAccount]
LogsNotification = WithContext[LogsResult]
BlockNotification = WithContext[BlockUpdate]
SignatureNotification = WithContext[SignatureResult | Literal["receivedSignature"]]


def lookup_table_from_account(key: PublicKey, account: AccountInfo) -> AddressLookupTableAccount:
    return AddressLookupTableAccount.from_account_data(key, account.data.data)
