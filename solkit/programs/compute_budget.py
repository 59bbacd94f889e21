"""Compute budget program instructions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from solkit.codec import BinaryWriter
from solkit.discriminator import u8_tag
from solkit.instruction import AccountMeta, InstructionBuilder
from solkit.keys import PublicKey
from solkit.program_ids import COMPUTE_BUDGET_PROGRAM_ID

REQUEST_HEAP_FRAME = u8_tag(1)
SET_COMPUTE_UNIT_LIMIT = u8_tag(2)
SET_COMPUTE_UNIT_PRICE = u8_tag(3)


@dataclass
class RequestHeapFrame(InstructionBuilder):
    bytes_: int | None = None

    PROGRAM_ID: ClassVar[PublicKey] = COMPUTE_BUDGET_PROGRAM_ID
    REQUIRED: ClassVar[tuple[str, ...]] = ("bytes_",)

    def account_metas(self) -> list[AccountMeta]:
        return []

    def encode_data(self) -> bytes:
        return REQUEST_HEAP_FRAME.write(BinaryWriter()).write_u32(self.bytes_).to_bytes()


@dataclass
class SetComputeUnitLimit(InstructionBuilder):
    units: int | None = None

    PROGRAM_ID: ClassVar[PublicKey] = COMPUTE_BUDGET_PROGRAM_ID
    REQUIRED: ClassVar[tuple[str, ...]] = ("units",)

    def account_metas(self) -> list[AccountMeta]:
        return []

    def encode_data(self) -> bytes:
        return SET_COMPUTE_UNIT_LIMIT.write(BinaryWriter()).write_u32(self.units).to_bytes()


@dataclass
class SetComputeUnitPrice(InstructionBuilder):
    """Priority fee, in micro-lamports per compute unit."""

    micro_lamports: int | None = None

    PROGRAM_ID: ClassVar[PublicKey] = COMPUTE_BUDGET_PROGRAM_ID
    REQUIRED: ClassVar[tuple[str, ...]] = ("micro_lamports",)

    def account_metas(self) -> list[AccountMeta]:
        return []

    def encode_data(self) -> bytes:
        return (
            SET_COMPUTE_UNIT_PRICE.write(BinaryWriter())
            .write_u64(self.micro_lamports)
            .to_bytes()
        )
