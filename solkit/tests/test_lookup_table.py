import struct

import pytest

from solkit.errors import CodecError
from solkit.keys import PublicKey
from solkit.lookup_table import (
    ACTIVE_DEACTIVATION_SLOT,
    AddressLookupTableAccount,
    AddressLookupTableState,
)


def _key(n: int) -> PublicKey:
    return PublicKey(bytes([n]) * 32)


def _table_data(
    addresses: list[PublicKey],
    authority: PublicKey | None = None,
    deactivation_slot: int = ACTIVE_DEACTIVATION_SLOT,
) -> bytes:
    meta = (
        struct.pack("<IQQB", 1, deactivation_slot, 1234, 2)
        + (b"\x01" + authority.raw if authority else b"\x00" + bytes(32))
        + b"\x00\x00"
    )
    return meta + b"".join(a.raw for a in addresses)


class TestAddressLookupTableState:
    def test_decode(self):
        data = _table_data([_key(1), _key(2), _key(3)], authority=_key(9))
        state = AddressLookupTableState.from_bytes(data)
        assert state.addresses == (_key(1), _key(2), _key(3))
        assert state.authority == _key(9)
        assert state.last_extended_slot == 1234
        assert state.last_extended_slot_start_index == 2
        assert state.is_active

    def test_frozen_table_has_no_authority(self):
        state = AddressLookupTableState.from_bytes(_table_data([_key(1)]))
        assert state.authority is None

    def test_deactivated(self):
        state = AddressLookupTableState.from_bytes(_table_data([], deactivation_slot=99))
        assert not state.is_active
        assert state.addresses == ()

    def test_uninitialized(self):
        data = bytearray(_table_data([_key(1)]))
        data[0] = 0
        with pytest.raises(CodecError, match="not an initialized"):
            AddressLookupTableState.from_bytes(bytes(data))

    def test_too_short(self):
        with pytest.raises(CodecError, match="too short"):
            AddressLookupTableState.from_bytes(bytes(40))

    def test_partial_address(self):
        with pytest.raises(CodecError, match="multiple of 32"):
            AddressLookupTableState.from_bytes(_table_data([_key(1)]) + b"\x01")


class TestAddressLookupTableAccount:
    def test_from_account_data(self):
        table = AddressLookupTableAccount.from_account_data(_key(7), _table_data([_key(1), _key(2)]))
        assert table.key == _key(7)
        assert table.addresses == (_key(1), _key(2))

    def test_index_of(self):
        table = AddressLookupTableAccount(_key(7), [_key(1), _key(2), _key(1)])
        assert table.index_of(_key(1)) == 0
        assert table.index_of(_key(2)) == 1
        assert table.index_of(_key(3)) is None
