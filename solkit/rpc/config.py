"""Request configuration objects.

Each config serializes to the trailing JSON object of an RPC call. Fields
left at ``None`` are omitted from the wire.
"""

from __future__ import annotations

import enum
from typing import Any, Literal

import msgspec

from solkit.keys import PublicKey
from solkit.soldata import Encoding


class Commitment(str, enum.Enum):
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"

    def __str__(self) -> str:
        return self.value


class TransactionDetails(str, enum.Enum):
    FULL = "full"
    ACCOUNTS = "accounts"
    SIGNATURES = "signatures"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


class _Config(msgspec.Struct, rename="camel", omit_defaults=True, kw_only=True):
    def is_empty(self) -> bool:
        return all(getattr(self, f) is None for f in self.__struct_fields__)


# --- Filters ---


class DataSlice(msgspec.Struct):
    offset: int
    length: int


class Memcmp(msgspec.Struct, omit_defaults=True):
    offset: int
    bytes: str
    encoding: Encoding | None = None


class MemcmpFilter(msgspec.Struct):
    memcmp: Memcmp

    @classmethod
    def of(cls, offset: int, data: str | PublicKey) -> MemcmpFilter:
        """Match base58 ``data`` (or a key) at ``offset``."""
        return cls(Memcmp(offset=offset, bytes=str(data)))


class DataSizeFilter(msgspec.Struct, rename="camel"):
    data_size: int


class SlotRange(msgspec.Struct, rename="camel", omit_defaults=True):
    first_slot: int
    last_slot: int | None = None


class MintFilter(msgspec.Struct):
    mint: PublicKey


class ProgramIdFilter(msgspec.Struct, rename="camel"):
    program_id: PublicKey


class MentionsFilter(msgspec.Struct):
    mentions: list[PublicKey]


class MentionsAccountOrProgramFilter(msgspec.Struct, rename="camel"):
    mentions_account_or_program: PublicKey


ProgramFilter = MemcmpFilter | DataSizeFilter


# --- Call configs ---


class CommitmentConfig(_Config):
    commitment: Commitment | None = None


class ContextConfig(_Config):
    commitment: Commitment | None = None
    min_context_slot: int | None = None


class AccountInfoConfig(_Config):
    commitment: Commitment | None = None
    encoding: Encoding | None = None
    data_slice: DataSlice | None = None
    min_context_slot: int | None = None


class ProgramAccountsConfig(_Config):
    commitment: Commitment | None = None
    encoding: Encoding | None = None
    data_slice: DataSlice | None = None
    filters: list[ProgramFilter] | None = None
    min_context_slot: int | None = None
    with_context: bool | None = None


class SignatureStatusesConfig(_Config):
    search_transaction_history: bool | None = None


class SignaturesForAddressConfig(_Config):
    commitment: Commitment | None = None
    min_context_slot: int | None = None
    limit: int | None = None
    before: str | None = None
    until: str | None = None


class BlockConfig(_Config):
    commitment: Commitment | None = None
    encoding: Literal["json", "jsonParsed", "base58", "base64"] | None = None
    transaction_details: TransactionDetails | None = None
    rewards: bool | None = None
    max_supported_transaction_version: int | None = None


class TransactionConfig(_Config):
    commitment: Commitment | None = None
    encoding: Literal["json", "jsonParsed", "base58", "base64"] | None = None
    max_supported_transaction_version: int | None = None


class SendTransactionConfig(_Config):
    encoding: Encoding | None = None
    skip_preflight: bool | None = None
    preflight_commitment: Commitment | None = None
    max_retries: int | None = None
    min_context_slot: int | None = None


class SimulateAccountsConfig(msgspec.Struct):
    addresses: list[PublicKey]
    encoding: Encoding = Encoding.BASE64


class SimulateTransactionConfig(_Config):
    encoding: Encoding | None = None
    sig_verify: bool | None = None
    replace_recent_blockhash: bool | None = None
    commitment: Commitment | None = None
    min_context_slot: int | None = None
    inner_instructions: bool | None = None
    accounts: SimulateAccountsConfig | None = None


class VoteAccountsConfig(_Config):
    commitment: Commitment | None = None
    vote_pubkey: PublicKey | None = None
    keep_unstaked_delinquents: bool | None = None
    delinquent_slot_distance: int | None = None


class LargestAccountsConfig(_Config):
    commitment: Commitment | None = None
    filter: Literal["circulating", "nonCirculating"] | None = None


class SupplyConfig(_Config):
    commitment: Commitment | None = None
    exclude_non_circulating_accounts_list: bool | None = None


class BlockProductionConfig(_Config):
    commitment: Commitment | None = None
    identity: PublicKey | None = None
    range: SlotRange | None = None


class LeaderScheduleConfig(_Config):
    commitment: Commitment | None = None
    identity: PublicKey | None = None


class InflationRewardConfig(_Config):
    commitment: Commitment | None = None
    epoch: int | None = None
    min_context_slot: int | None = None


class AirdropConfig(_Config):
    commitment: Commitment | None = None


# --- Subscription configs ---


class AccountSubscribeConfig(_Config):
    commitment: Commitment | None = None
    encoding: Encoding | None = None


class ProgramSubscribeConfig(_Config):
    commitment: Commitment | None = None
    encoding: Encoding | None = None
    filters: list[ProgramFilter] | None = None


class SignatureSubscribeConfig(_Config):
    commitment: Commitment | None = None
    enable_received_notification: bool | None = None


class BlockSubscribeConfig(_Config):
    commitment: Commitment | None = None
    encoding: Literal["json", "jsonParsed", "base58", "base64"] | None = None
    transaction_details: TransactionDetails | None = None
    show_rewards: bool | None = None
    max_supported_transaction_version: int | None = None


def with_config(params: list[Any], config: _Config | None) -> list[Any]:
    """Append ``config`` to ``params`` unless it has nothing to say."""
    if config is not None and not config.is_empty():
        params.append(config)
    return params
