"""Address derivation for well-known program accounts."""

from __future__ import annotations

from solkit.keys import PublicKey, find_program_address
from solkit.program_ids import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    TOKEN_METADATA_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)

SEED_METADATA = b"metadata"
SEED_EDITION = b"edition"


def find_associated_token_address(
    wallet: PublicKey,
    mint: PublicKey,
    token_program_id: PublicKey = TOKEN_PROGRAM_ID,
) -> tuple[PublicKey, int]:
    """Derive the canonical token account of ``wallet`` for ``mint``."""
    return find_program_address(
        [bytes(wallet), bytes(token_program_id), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )


def derive_metadata_pda(mint: PublicKey) -> tuple[PublicKey, int]:
    return find_program_address(
        [SEED_METADATA, bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint)],
        TOKEN_METADATA_PROGRAM_ID,
    )


def derive_master_edition_pda(mint: PublicKey) -> tuple[PublicKey, int]:
    return find_program_address(
        [SEED_METADATA, bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint), SEED_EDITION],
        TOKEN_METADATA_PROGRAM_ID,
    )
