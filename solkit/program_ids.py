"""Well-known program and sysvar addresses."""

from __future__ import annotations

from solkit.keys import PublicKey

# Native programs
SYSTEM_PROGRAM_ID = PublicKey.from_string("11111111111111111111111111111111")
CONFIG_PROGRAM_ID = PublicKey.from_string("Config1111111111111111111111111111111111111")
STAKE_PROGRAM_ID = PublicKey.from_string("Stake11111111111111111111111111111111111111")
VOTE_PROGRAM_ID = PublicKey.from_string("Vote111111111111111111111111111111111111111")
BPF_LOADER_DEPRECATED_PROGRAM_ID = PublicKey.from_string(
    "BPFLoader1111111111111111111111111111111111"
)
BPF_LOADER_PROGRAM_ID = PublicKey.from_string("BPFLoader2111111111111111111111111111111111")
BPF_LOADER_UPGRADEABLE_PROGRAM_ID = PublicKey.from_string(
    "BPFLoaderUpgradeab1e11111111111111111111111"
)
SECP256K1_PROGRAM_ID = PublicKey.from_string("KeccakSecp256k11111111111111111111111111111")
ED25519_PROGRAM_ID = PublicKey.from_string("Ed25519SigVerify111111111111111111111111111")
FEATURE_PROGRAM_ID = PublicKey.from_string("Feature111111111111111111111111111111111111")
COMPUTE_BUDGET_PROGRAM_ID = PublicKey.from_string("ComputeBudget111111111111111111111111111111")
ADDRESS_LOOKUP_TABLE_PROGRAM_ID = PublicKey.from_string(
    "AddressLookupTab1e1111111111111111111111111"
)

# SPL programs
TOKEN_PROGRAM_ID = PublicKey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
TOKEN_2022_PROGRAM_ID = PublicKey.from_string("TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb")
ASSOCIATED_TOKEN_PROGRAM_ID = PublicKey.from_string(
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
)
MEMO_PROGRAM_ID = PublicKey.from_string("MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr")
TOKEN_METADATA_PROGRAM_ID = PublicKey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")

WRAPPED_SOL_MINT = PublicKey.from_string("So11111111111111111111111111111111111111112")

# Sysvars
SYSVAR_PROGRAM_ID = PublicKey.from_string("Sysvar1111111111111111111111111111111111111")
SYSVAR_CLOCK = PublicKey.from_string("SysvarC1ock11111111111111111111111111111111")
SYSVAR_RECENT_BLOCKHASHES = PublicKey.from_string("SysvarRecentB1ockHashes11111111111111111111")
SYSVAR_RENT = PublicKey.from_string("SysvarRent111111111111111111111111111111111")
SYSVAR_REWARDS = PublicKey.from_string("SysvarRewards111111111111111111111111111111")
SYSVAR_STAKE_HISTORY = PublicKey.from_string("SysvarStakeHistory1111111111111111111111111")
SYSVAR_INSTRUCTIONS = PublicKey.from_string("Sysvar1nstructions1111111111111111111111111")
SYSVAR_SLOT_HASHES = PublicKey.from_string("SysvarS1otHashes111111111111111111111111111")
STAKE_CONFIG_ID = PublicKey.from_string("StakeConfig11111111111111111111111111111111")
