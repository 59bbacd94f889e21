"""Transaction messages: compilation, serialization and parsing.

A message lists every account a transaction touches, once, in a fixed
order: writable signers (fee payer first), read-only signers, writable
non-signers, read-only non-signers. Version 0 messages may additionally
load non-signer accounts from address lookup tables; loaded writable keys
follow the in-line keys, then loaded read-only keys.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import IntEnum

from loguru import logger

from solkit.codec import BinaryReader, BinaryWriter
from solkit.errors import CodecError, ValidationError
from solkit.instruction import InstructionBuilder, InstructionLike
from solkit.keys import Hash, PublicKey
from solkit.lookup_table import AddressLookupTableAccount

VERSION_PREFIX_MASK = 0x80
MAX_ACCOUNT_KEYS = 256
MAX_TABLE_INDEX = 255


class MessageVersion(IntEnum):
    LEGACY = -1
    V0 = 0

    def __str__(self) -> str:
        _names = {-1: "legacy", 0: "v0"}
        return _names.get(self.value, "unknown")

    def to_json(self) -> str | int:
        return "legacy" if self is MessageVersion.LEGACY else int(self)

    @classmethod
    def from_json(cls, value: str | int | None) -> MessageVersion:
        if value is None or value == "legacy":
            return cls.LEGACY
        try:
            return cls(int(value))
        except ValueError as exc:
            raise CodecError(f"unsupported transaction version: {value!r}") from exc


@dataclass(frozen=True)
class MessageHeader:
    num_required_signatures: int
    num_readonly_signed_accounts: int
    num_readonly_unsigned_accounts: int


@dataclass(frozen=True)
class CompiledInstruction:
    program_id_index: int
    accounts: tuple[int, ...]
    data: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "accounts", tuple(self.accounts))
        object.__setattr__(self, "data", bytes(self.data))


@dataclass(frozen=True)
class MessageAddressTableLookup:
    account_key: PublicKey
    writable_indexes: tuple[int, ...]
    readonly_indexes: tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "writable_indexes", tuple(self.writable_indexes))
        object.__setattr__(self, "readonly_indexes", tuple(self.readonly_indexes))


@dataclass(frozen=True)
class Message:
    header: MessageHeader
    account_keys: tuple[PublicKey, ...]
    recent_blockhash: Hash
    instructions: tuple[CompiledInstruction, ...]
    address_table_lookups: tuple[MessageAddressTableLookup, ...] = ()
    version: MessageVersion = MessageVersion.LEGACY

    def __post_init__(self) -> None:
        object.__setattr__(self, "account_keys", tuple(self.account_keys))
        object.__setattr__(self, "instructions", tuple(self.instructions))
        object.__setattr__(self, "address_table_lookups", tuple(self.address_table_lookups))

    # --- Account classification ---

    @property
    def num_lookup_accounts(self) -> int:
        return sum(
            len(t.writable_indexes) + len(t.readonly_indexes)
            for t in self.address_table_lookups
        )

    @property
    def fee_payer(self) -> PublicKey:
        return self.account_keys[0]

    def is_signer(self, index: int) -> bool:
        return index < self.header.num_required_signatures

    def is_writable(self, index: int) -> bool:
        """Writability of ``index`` in the combined in-line + loaded key space."""
        h = self.header
        static = len(self.account_keys)
        if index < h.num_required_signatures:
            return index < h.num_required_signatures - h.num_readonly_signed_accounts
        if index < static:
            return index < static - h.num_readonly_unsigned_accounts
        loaded_writable = sum(len(t.writable_indexes) for t in self.address_table_lookups)
        return index - static < loaded_writable

    def signer_keys(self) -> list[PublicKey]:
        return list(self.account_keys[: self.header.num_required_signatures])

    def resolve_account_keys(
        self,
        tables: Sequence[AddressLookupTableAccount] | Mapping[PublicKey, Sequence[PublicKey]] = (),
    ) -> list[PublicKey]:
        """In-line keys followed by loaded writable then loaded read-only keys."""
        by_key = _table_mapping(tables)
        writable: list[PublicKey] = []
        readonly: list[PublicKey] = []
        for lookup in self.address_table_lookups:
            addresses = by_key.get(lookup.account_key)
            if addresses is None:
                raise ValidationError(f"lookup table {lookup.account_key} not supplied")
            for out, indexes in ((writable, lookup.writable_indexes), (readonly, lookup.readonly_indexes)):
                for i in indexes:
                    if i >= len(addresses):
                        raise ValidationError(
                            f"lookup table {lookup.account_key} has no index {i}"
                        )
                    out.append(addresses[i])
        return [*self.account_keys, *writable, *readonly]

    def program_id(self, instruction: CompiledInstruction) -> PublicKey:
        return self.account_keys[instruction.program_id_index]

    # --- Wire format ---

    def serialize(self) -> bytes:
        w = BinaryWriter()
        if self.version is not MessageVersion.LEGACY:
            w.write_u8(VERSION_PREFIX_MASK | int(self.version))
        h = self.header
        w.write_u8(h.num_required_signatures)
        w.write_u8(h.num_readonly_signed_accounts)
        w.write_u8(h.num_readonly_unsigned_accounts)
        w.write_compact_u16(len(self.account_keys))
        for key in self.account_keys:
            w.write_public_key(key)
        w.write_public_key(self.recent_blockhash)
        w.write_compact_u16(len(self.instructions))
        for ix in self.instructions:
            w.write_u8(ix.program_id_index)
            w.write_compact_bytes(bytes(ix.accounts))
            w.write_compact_bytes(ix.data)
        if self.version is not MessageVersion.LEGACY:
            w.write_compact_u16(len(self.address_table_lookups))
            for lookup in self.address_table_lookups:
                w.write_public_key(lookup.account_key)
                w.write_compact_bytes(bytes(lookup.writable_indexes))
                w.write_compact_bytes(bytes(lookup.readonly_indexes))
        return w.to_bytes()

    def __bytes__(self) -> bytes:
        return self.serialize()

    @classmethod
    def from_bytes(cls, data: bytes) -> Message:
        r = BinaryReader(data)
        msg = cls.read(r)
        r.expect_end()
        return msg

    @classmethod
    def read(cls, r: BinaryReader) -> Message:
        first = r.read_u8()
        if first & VERSION_PREFIX_MASK:
            number = first & 0x7F
            if number != MessageVersion.V0:
                raise CodecError(f"unsupported message version: {number}")
            version = MessageVersion.V0
            num_required = r.read_u8()
        else:
            version = MessageVersion.LEGACY
            num_required = first
        header = MessageHeader(num_required, r.read_u8(), r.read_u8())
        account_keys = r.read_compact_array(r.read_public_key)
        blockhash = r.read_hash()
        instructions = r.read_compact_array(
            lambda: CompiledInstruction(
                r.read_u8(), tuple(r.read_compact_bytes()), r.read_compact_bytes()
            )
        )
        lookups: list[MessageAddressTableLookup] = []
        if version is MessageVersion.V0:
            lookups = r.read_compact_array(
                lambda: MessageAddressTableLookup(
                    r.read_public_key(),
                    tuple(r.read_compact_bytes()),
                    tuple(r.read_compact_bytes()),
                )
            )
        msg = cls(header, tuple(account_keys), blockhash, tuple(instructions), tuple(lookups), version)
        msg._check_bounds()
        return msg

    def _check_bounds(self) -> None:
        h = self.header
        static = len(self.account_keys)
        if h.num_required_signatures == 0:
            raise CodecError("message requires no signatures; the fee payer must sign")
        if h.num_required_signatures > static:
            raise CodecError(
                f"header requires {h.num_required_signatures} signatures but message has {static} keys"
            )
        if h.num_readonly_signed_accounts > h.num_required_signatures:
            raise CodecError("more read-only signers than signers")
        if h.num_readonly_unsigned_accounts > static - h.num_required_signatures:
            raise CodecError("more read-only non-signers than non-signer keys")
        if len(set(self.account_keys)) != static:
            raise CodecError("duplicate account keys")
        total = static + self.num_lookup_accounts
        if total > MAX_ACCOUNT_KEYS:
            raise CodecError(f"message references {total} accounts, max {MAX_ACCOUNT_KEYS}")
        for n, ix in enumerate(self.instructions):
            if ix.program_id_index >= static:
                raise CodecError(
                    f"instruction {n}: program id index {ix.program_id_index} out of range"
                )
            for a in ix.accounts:
                if a >= total:
                    raise CodecError(f"instruction {n}: account index {a} out of range")


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


@dataclass
class _KeyMeta:
    is_signer: bool = False
    is_writable: bool = False
    is_invoked: bool = False


def _table_mapping(
    tables: Sequence[AddressLookupTableAccount] | Mapping[PublicKey, Sequence[PublicKey]] | None,
) -> dict[PublicKey, Sequence[PublicKey]]:
    if not tables:
        return {}
    if isinstance(tables, Mapping):
        return dict(tables)
    return {t.key: t.addresses for t in tables}


def _as_instruction(ix: InstructionLike | InstructionBuilder) -> InstructionLike:
    if isinstance(ix, InstructionBuilder):
        return ix.build()
    return ix


def compile_message(
    instructions: Sequence[InstructionLike | InstructionBuilder],
    payer: PublicKey,
    recent_blockhash: Hash,
    address_lookup_tables: Sequence[AddressLookupTableAccount]
    | Mapping[PublicKey, Sequence[PublicKey]]
    | None = None,
    version: MessageVersion | None = None,
) -> Message:
    """Assemble instructions into a message.

    Non-signer, non-program keys found in a supplied lookup table are loaded
    from the first table that holds them instead of being listed in-line.
    The result is v0 when any key was loaded or when ``version`` asks for it.
    """
    tables = _table_mapping(address_lookup_tables)
    if tables and version is MessageVersion.LEGACY:
        raise ValidationError("legacy messages cannot use address lookup tables")

    ixs = [_as_instruction(ix) for ix in instructions]

    metas: dict[PublicKey, _KeyMeta] = {}
    for ix in ixs:
        metas.setdefault(ix.program_id, _KeyMeta()).is_invoked = True
        for acc in ix.accounts:
            m = metas.setdefault(acc.public_key, _KeyMeta())
            m.is_signer = m.is_signer or acc.is_signer
            m.is_writable = m.is_writable or acc.is_writable
    payer_meta = metas.setdefault(payer, _KeyMeta())
    payer_meta.is_signer = True
    payer_meta.is_writable = True

    # Address -> first index, per table, in caller order. Lookup indexes are
    # single bytes, so entries past 255 cannot be loaded.
    table_indexes: list[tuple[PublicKey, dict[PublicKey, int]]] = []
    for table_key, addresses in tables.items():
        positions: dict[PublicKey, int] = {}
        for i, address in enumerate(addresses[:MAX_TABLE_INDEX + 1]):
            positions.setdefault(address, i)
        table_indexes.append((table_key, positions))

    writable_signed: list[PublicKey] = [payer]
    readonly_signed: list[PublicKey] = []
    writable_unsigned: list[PublicKey] = []
    readonly_unsigned: list[PublicKey] = []
    loaded_writable: list[list[tuple[PublicKey, int]]] = [[] for _ in table_indexes]
    loaded_readonly: list[list[tuple[PublicKey, int]]] = [[] for _ in table_indexes]

    for key in sorted(metas):
        if key == payer:
            continue
        m = metas[key]
        if m.is_signer:
            (writable_signed if m.is_writable else readonly_signed).append(key)
            continue
        loaded = loaded_writable if m.is_writable else loaded_readonly
        if not m.is_invoked:
            hit = next(
                (
                    (n, positions[key])
                    for n, (_, positions) in enumerate(table_indexes)
                    if key in positions
                ),
                None,
            )
            if hit is not None:
                loaded[hit[0]].append((key, hit[1]))
                continue
        (writable_unsigned if m.is_writable else readonly_unsigned).append(key)

    static_keys = writable_signed + readonly_signed + writable_unsigned + readonly_unsigned
    all_keys = (
        static_keys
        + [key for entries in loaded_writable for key, _ in entries]
        + [key for entries in loaded_readonly for key, _ in entries]
    )
    if len(all_keys) > MAX_ACCOUNT_KEYS:
        raise ValidationError(
            f"transaction references {len(all_keys)} accounts, max {MAX_ACCOUNT_KEYS}"
        )
    if len(writable_signed) + len(readonly_signed) > 255 or len(readonly_unsigned) > 255:
        raise ValidationError("too many accounts of one class for the message header")
    index_of = {key: i for i, key in enumerate(all_keys)}

    lookups = tuple(
        MessageAddressTableLookup(
            table_key,
            tuple(i for _, i in loaded_writable[n]),
            tuple(i for _, i in loaded_readonly[n]),
        )
        for n, (table_key, _) in enumerate(table_indexes)
        if loaded_writable[n] or loaded_readonly[n]
    )

    compiled = tuple(
        CompiledInstruction(
            index_of[ix.program_id],
            tuple(index_of[acc.public_key] for acc in ix.accounts),
            ix.data,
        )
        for ix in ixs
    )

    if lookups or version is MessageVersion.V0:
        resolved_version = MessageVersion.V0
    else:
        resolved_version = MessageVersion.LEGACY

    logger.debug(
        "compiled {} message: {} in-line keys, {} loaded, {} instructions",
        resolved_version,
        len(static_keys),
        len(all_keys) - len(static_keys),
        len(compiled),
    )
    return Message(
        header=MessageHeader(
            num_required_signatures=len(writable_signed) + len(readonly_signed),
            num_readonly_signed_accounts=len(readonly_signed),
            num_readonly_unsigned_accounts=len(readonly_unsigned),
        ),
        account_keys=tuple(static_keys),
        recent_blockhash=recent_blockhash,
        instructions=compiled,
        address_table_lookups=lookups,
        version=resolved_version,
    )
