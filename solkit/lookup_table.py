"""Address lookup table accounts."""

from __future__ import annotations

from dataclasses import dataclass

from solkit.codec import BinaryReader
from solkit.errors import CodecError
from solkit.keys import PublicKey

LOOKUP_TABLE_META_SIZE = 56
LOOKUP_TABLE_MAX_ADDRESSES = 256
LOOKUP_TABLE_TYPE = 1

ACTIVE_DEACTIVATION_SLOT = 2**64 - 1


@dataclass(frozen=True)
class AddressLookupTableState:
    """On-chain state of a lookup table account."""

    deactivation_slot: int
    last_extended_slot: int
    last_extended_slot_start_index: int
    authority: PublicKey | None
    addresses: tuple[PublicKey, ...]

    @property
    def is_active(self) -> bool:
        return self.deactivation_slot == ACTIVE_DEACTIVATION_SLOT

    @classmethod
    def from_bytes(cls, data: bytes) -> AddressLookupTableState:
        if len(data) < LOOKUP_TABLE_META_SIZE:
            raise CodecError(
                f"data too short: {len(data)} bytes, need at least {LOOKUP_TABLE_META_SIZE}"
            )
        r = BinaryReader(data)
        type_index = r.read_u32()
        if type_index != LOOKUP_TABLE_TYPE:
            raise CodecError(f"not an initialized lookup table (type {type_index})")
        deactivation_slot = r.read_u64()
        last_extended_slot = r.read_u64()
        start_index = r.read_u8()
        has_authority = r.read_bool()
        # The authority slot is always reserved, zeroed when absent.
        authority_raw = r.read_public_key()
        r.read_u16()

        body = len(data) - LOOKUP_TABLE_META_SIZE
        if body % PublicKey.LENGTH:
            raise CodecError(f"lookup table address area is {body} bytes, not a multiple of 32")
        addresses = tuple(r.read_public_key() for _ in range(body // PublicKey.LENGTH))
        r.expect_end()
        return cls(
            deactivation_slot=deactivation_slot,
            last_extended_slot=last_extended_slot,
            last_extended_slot_start_index=start_index,
            authority=authority_raw if has_authority else None,
            addresses=addresses,
        )


@dataclass(frozen=True)
class AddressLookupTableAccount:
    """A table key and the addresses it holds, as used by the assembler."""

    key: PublicKey
    addresses: tuple[PublicKey, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "addresses", tuple(self.addresses))

    @classmethod
    def from_account_data(cls, key: PublicKey, data: bytes) -> AddressLookupTableAccount:
        return cls(key, AddressLookupTableState.from_bytes(data).addresses)

    def index_of(self, address: PublicKey) -> int | None:
        """First position of ``address`` in the table, if present."""
        try:
            return self.addresses.index(address)
        except ValueError:
            return None
