"""Associated token account program instructions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from solkit.instruction import AccountMeta, InstructionBuilder
from solkit.keys import PublicKey
from solkit.pda import find_associated_token_address
from solkit.program_ids import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    SYSVAR_RENT,
    TOKEN_PROGRAM_ID,
)

CREATE_IDEMPOTENT = b"\x01"


@dataclass
class CreateAssociatedTokenAccount(InstructionBuilder):
    """Create the associated token account of ``wallet`` for ``mint``.

    With ``idempotent=True`` the instruction succeeds when the account
    already exists.
    """

    payer: PublicKey | None = None
    wallet: PublicKey | None = None
    mint: PublicKey | None = None
    token_program_id: PublicKey = TOKEN_PROGRAM_ID
    idempotent: bool = False

    PROGRAM_ID: ClassVar[PublicKey] = ASSOCIATED_TOKEN_PROGRAM_ID
    REQUIRED: ClassVar[tuple[str, ...]] = ("payer", "wallet", "mint")

    @property
    def associated_token_address(self) -> PublicKey:
        address, _ = find_associated_token_address(
            self.wallet, self.mint, self.token_program_id
        )
        return address

    def account_metas(self) -> list[AccountMeta]:
        return [
            AccountMeta.writable(self.payer, signer=True),
            AccountMeta.writable(self.associated_token_address),
            AccountMeta.readonly(self.wallet),
            AccountMeta.readonly(self.mint),
            AccountMeta.readonly(SYSTEM_PROGRAM_ID),
            AccountMeta.readonly(self.token_program_id),
            AccountMeta.readonly(SYSVAR_RENT),
        ]

    def encode_data(self) -> bytes:
        return CREATE_IDEMPOTENT if self.idempotent else b""
