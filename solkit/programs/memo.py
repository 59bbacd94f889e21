"""Memo program instruction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from solkit.instruction import AccountMeta, InstructionBuilder
from solkit.keys import PublicKey
from solkit.program_ids import MEMO_PROGRAM_ID


@dataclass
class Memo(InstructionBuilder):
    """Log a UTF-8 memo; every listed signer must sign the transaction."""

    message: str | None = None
    signers: list[PublicKey] = field(default_factory=list)

    PROGRAM_ID: ClassVar[PublicKey] = MEMO_PROGRAM_ID
    REQUIRED: ClassVar[tuple[str, ...]] = ("message",)

    def account_metas(self) -> list[AccountMeta]:
        return [AccountMeta.readonly(s, signer=True) for s in self.signers]

    def encode_data(self) -> bytes:
        return self.message.encode("utf-8")
