"""SPL token program instructions.

Instructions that need an authority accept ``multisig_signers``: leave it
empty when the authority signs directly, or list the multisig members that
sign on behalf of a multisig authority.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar

from solkit.codec import BinaryWriter
from solkit.discriminator import u8_tag
from solkit.errors import ValidationError
from solkit.instruction import AccountMeta, InstructionBuilder
from solkit.keys import PublicKey
from solkit.program_ids import TOKEN_PROGRAM_ID

MAX_SIGNERS = 11

INITIALIZE_MINT_2 = u8_tag(20)
INITIALIZE_ACCOUNT_3 = u8_tag(18)
TRANSFER = u8_tag(3)
REVOKE = u8_tag(5)
SET_AUTHORITY = u8_tag(6)
CLOSE_ACCOUNT = u8_tag(9)
THAW_ACCOUNT = u8_tag(11)
TRANSFER_CHECKED = u8_tag(12)
MINT_TO_CHECKED = u8_tag(14)
BURN_CHECKED = u8_tag(15)


class AuthorityType(IntEnum):
    MINT_TOKENS = 0
    FREEZE_ACCOUNT = 1
    ACCOUNT_OWNER = 2
    CLOSE_ACCOUNT = 3

    def __str__(self) -> str:
        _names = {0: "mintTokens", 1: "freezeAccount", 2: "accountOwner", 3: "closeAccount"}
        return _names.get(self.value, "unknown")


def _write_optional_key(w: BinaryWriter, key: PublicKey | None) -> BinaryWriter:
    if key is None:
        return w.write_u8(0)
    return w.write_u8(1).write_public_key(key)


@dataclass
class _TokenInstruction(InstructionBuilder):
    token_program_id: PublicKey = TOKEN_PROGRAM_ID

    PROGRAM_ID: ClassVar[PublicKey] = TOKEN_PROGRAM_ID

    @property
    def program_id(self) -> PublicKey:
        return self.token_program_id


@dataclass
class _AuthorizedInstruction(_TokenInstruction):
    multisig_signers: list[PublicKey] = field(default_factory=list)

    AUTHORITY: ClassVar[str] = "owner"

    def validate(self) -> None:
        super().validate()
        if len(self.multisig_signers) > MAX_SIGNERS:
            raise ValidationError(
                f"too many multisig signers: {len(self.multisig_signers)}, max {MAX_SIGNERS}"
            )
        if len(set(self.multisig_signers)) != len(self.multisig_signers):
            raise ValidationError("duplicate multisig signer")
        if getattr(self, self.AUTHORITY) in self.multisig_signers:
            raise ValidationError(
                f"{self.AUTHORITY} cannot also be one of its own multisig signers"
            )

    def _authority_metas(self) -> list[AccountMeta]:
        authority = getattr(self, self.AUTHORITY)
        if not self.multisig_signers:
            return [AccountMeta.readonly(authority, signer=True)]
        return [AccountMeta.readonly(authority)] + [
            AccountMeta.readonly(s, signer=True) for s in self.multisig_signers
        ]


@dataclass
class InitializeMint2(_TokenInstruction):
    mint: PublicKey | None = None
    decimals: int | None = None
    mint_authority: PublicKey | None = None
    freeze_authority: PublicKey | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = ("mint", "decimals", "mint_authority")

    def account_metas(self) -> list[AccountMeta]:
        return [AccountMeta.writable(self.mint)]

    def encode_data(self) -> bytes:
        w = INITIALIZE_MINT_2.write(BinaryWriter())
        w.write_u8(self.decimals).write_public_key(self.mint_authority)
        return _write_optional_key(w, self.freeze_authority).to_bytes()


@dataclass
class InitializeAccount3(_TokenInstruction):
    account: PublicKey | None = None
    mint: PublicKey | None = None
    owner: PublicKey | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = ("account", "mint", "owner")

    def account_metas(self) -> list[AccountMeta]:
        return [AccountMeta.writable(self.account), AccountMeta.readonly(self.mint)]

    def encode_data(self) -> bytes:
        return (
            INITIALIZE_ACCOUNT_3.write(BinaryWriter())
            .write_public_key(self.owner)
            .to_bytes()
        )


@dataclass
class Transfer(_AuthorizedInstruction):
    source: PublicKey | None = None
    destination: PublicKey | None = None
    owner: PublicKey | None = None
    amount: int | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = ("source", "destination", "owner", "amount")

    def account_metas(self) -> list[AccountMeta]:
        return [
            AccountMeta.writable(self.source),
            AccountMeta.writable(self.destination),
            *self._authority_metas(),
        ]

    def encode_data(self) -> bytes:
        return TRANSFER.write(BinaryWriter()).write_u64(self.amount).to_bytes()


@dataclass
class TransferChecked(_AuthorizedInstruction):
    """Transfer that also asserts the mint and its decimals."""

    source: PublicKey | None = None
    mint: PublicKey | None = None
    destination: PublicKey | None = None
    owner: PublicKey | None = None
    amount: int | None = None
    decimals: int | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = (
        "source",
        "mint",
        "destination",
        "owner",
        "amount",
        "decimals",
    )

    def account_metas(self) -> list[AccountMeta]:
        return [
            AccountMeta.writable(self.source),
            AccountMeta.readonly(self.mint),
            AccountMeta.writable(self.destination),
            *self._authority_metas(),
        ]

    def encode_data(self) -> bytes:
        w = TRANSFER_CHECKED.write(BinaryWriter())
        return w.write_u64(self.amount).write_u8(self.decimals).to_bytes()


@dataclass
class MintToChecked(_AuthorizedInstruction):
    mint: PublicKey | None = None
    destination: PublicKey | None = None
    authority: PublicKey | None = None
    amount: int | None = None
    decimals: int | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = (
        "mint",
        "destination",
        "authority",
        "amount",
        "decimals",
    )
    AUTHORITY: ClassVar[str] = "authority"

    def account_metas(self) -> list[AccountMeta]:
        return [
            AccountMeta.writable(self.mint),
            AccountMeta.writable(self.destination),
            *self._authority_metas(),
        ]

    def encode_data(self) -> bytes:
        w = MINT_TO_CHECKED.write(BinaryWriter())
        return w.write_u64(self.amount).write_u8(self.decimals).to_bytes()


@dataclass
class BurnChecked(_AuthorizedInstruction):
    account: PublicKey | None = None
    mint: PublicKey | None = None
    owner: PublicKey | None = None
    amount: int | None = None
    decimals: int | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = ("account", "mint", "owner", "amount", "decimals")

    def account_metas(self) -> list[AccountMeta]:
        return [
            AccountMeta.writable(self.account),
            AccountMeta.writable(self.mint),
            *self._authority_metas(),
        ]

    def encode_data(self) -> bytes:
        w = BURN_CHECKED.write(BinaryWriter())
        return w.write_u64(self.amount).write_u8(self.decimals).to_bytes()


@dataclass
class CloseAccount(_AuthorizedInstruction):
    account: PublicKey | None = None
    destination: PublicKey | None = None
    owner: PublicKey | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = ("account", "destination", "owner")

    def account_metas(self) -> list[AccountMeta]:
        return [
            AccountMeta.writable(self.account),
            AccountMeta.writable(self.destination),
            *self._authority_metas(),
        ]

    def encode_data(self) -> bytes:
        return CLOSE_ACCOUNT.to_bytes()


@dataclass
class Revoke(_AuthorizedInstruction):
    source: PublicKey | None = None
    owner: PublicKey | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = ("source", "owner")

    def account_metas(self) -> list[AccountMeta]:
        return [AccountMeta.writable(self.source), *self._authority_metas()]

    def encode_data(self) -> bytes:
        return REVOKE.to_bytes()


@dataclass
class ThawAccount(_AuthorizedInstruction):
    account: PublicKey | None = None
    mint: PublicKey | None = None
    freeze_authority: PublicKey | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = ("account", "mint", "freeze_authority")
    AUTHORITY: ClassVar[str] = "freeze_authority"

    def account_metas(self) -> list[AccountMeta]:
        return [
            AccountMeta.writable(self.account),
            AccountMeta.readonly(self.mint),
            *self._authority_metas(),
        ]

    def encode_data(self) -> bytes:
        return THAW_ACCOUNT.to_bytes()


@dataclass
class SetAuthority(_AuthorizedInstruction):
    """Change or clear (``new_authority=None``) an authority of a mint or account."""

    account: PublicKey | None = None
    current_authority: PublicKey | None = None
    authority_type: AuthorityType | None = None
    new_authority: PublicKey | None = None

    REQUIRED: ClassVar[tuple[str, ...]] = ("account", "current_authority", "authority_type")
    AUTHORITY: ClassVar[str] = "current_authority"

    def account_metas(self) -> list[AccountMeta]:
        return [AccountMeta.writable(self.account), *self._authority_metas()]

    def encode_data(self) -> bytes:
        w = SET_AUTHORITY.write(BinaryWriter()).write_u8(int(self.authority_type))
        return _write_optional_key(w, self.new_authority).to_bytes()
