"""System program instructions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from solkit.codec import BinaryWriter
from solkit.discriminator import u32_tag
from solkit.errors import ValidationError
from solkit.instruction import AccountMeta, InstructionBuilder
from solkit.keys import MAX_SEED_LENGTH, PublicKey
from solkit.program_ids import SYSTEM_PROGRAM_ID

CREATE_ACCOUNT = u32_tag(0)
ASSIGN = u32_tag(1)
TRANSFER = u32_tag(2)
CREATE_ACCOUNT_WITH_SEED = u32_tag(3)


@dataclass
class CreateAccount(InstructionBuilder):
    """Create a new account owned by ``owner`` and fund it from ``from_pubkey``."""

    from_pubkey: PublicKey | None = None
    new_account: PublicKey | None = None
    lamports: int | None = None
    space: int | None = None
    owner: PublicKey | None = None

    PROGRAM_ID: ClassVar[PublicKey] = SYSTEM_PROGRAM_ID
    REQUIRED: ClassVar[tuple[str, ...]] = (
        "from_pubkey",
        "new_account",
        "lamports",
        "space",
        "owner",
    )

    def account_metas(self) -> list[AccountMeta]:
        return [
            AccountMeta.writable(self.from_pubkey, signer=True),
            AccountMeta.writable(self.new_account, signer=True),
        ]

    def encode_data(self) -> bytes:
        w = CREATE_ACCOUNT.write(BinaryWriter())
        w.write_u64(self.lamports).write_u64(self.space).write_public_key(self.owner)
        return w.to_bytes()


@dataclass
class Assign(InstructionBuilder):
    account: PublicKey | None = None
    owner: PublicKey | None = None

    PROGRAM_ID: ClassVar[PublicKey] = SYSTEM_PROGRAM_ID
    REQUIRED: ClassVar[tuple[str, ...]] = ("account", "owner")

    def account_metas(self) -> list[AccountMeta]:
        return [AccountMeta.writable(self.account, signer=True)]

    def encode_data(self) -> bytes:
        return ASSIGN.write(BinaryWriter()).write_public_key(self.owner).to_bytes()


@dataclass
class Transfer(InstructionBuilder):
    """Move lamports between two system-owned accounts."""

    from_pubkey: PublicKey | None = None
    to_pubkey: PublicKey | None = None
    lamports: int | None = None

    PROGRAM_ID: ClassVar[PublicKey] = SYSTEM_PROGRAM_ID
    REQUIRED: ClassVar[tuple[str, ...]] = ("from_pubkey", "to_pubkey", "lamports")

    def account_metas(self) -> list[AccountMeta]:
        return [
            AccountMeta.writable(self.from_pubkey, signer=True),
            AccountMeta.writable(self.to_pubkey),
        ]

    def encode_data(self) -> bytes:
        return TRANSFER.write(BinaryWriter()).write_u64(self.lamports).to_bytes()


@dataclass
class CreateAccountWithSeed(InstructionBuilder):
    """Create an account at ``create_with_seed(base, seed, owner)``."""

    from_pubkey: PublicKey | None = None
    new_account: PublicKey | None = None
    base: PublicKey | None = None
    seed: str | None = None
    lamports: int | None = None
    space: int | None = None
    owner: PublicKey | None = None

    PROGRAM_ID: ClassVar[PublicKey] = SYSTEM_PROGRAM_ID
    REQUIRED: ClassVar[tuple[str, ...]] = (
        "from_pubkey",
        "new_account",
        "base",
        "seed",
        "lamports",
        "space",
        "owner",
    )

    def validate(self) -> None:
        super().validate()
        if len(self.seed.encode("utf-8")) > MAX_SEED_LENGTH:
            raise ValidationError(f"seed longer than {MAX_SEED_LENGTH} bytes")

    def account_metas(self) -> list[AccountMeta]:
        metas = [
            AccountMeta.writable(self.from_pubkey, signer=True),
            AccountMeta.writable(self.new_account),
        ]
        if self.base != self.from_pubkey:
            metas.append(AccountMeta.readonly(self.base, signer=True))
        return metas

    def encode_data(self) -> bytes:
        w = CREATE_ACCOUNT_WITH_SEED.write(BinaryWriter())
        w.write_public_key(self.base).write_string(self.seed)
        w.write_u64(self.lamports).write_u64(self.space).write_public_key(self.owner)
        return w.to_bytes()
