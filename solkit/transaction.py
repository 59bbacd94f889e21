"""Signed transactions: signature slots plus a message."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable, Mapping, Sequence

import base58  # type: ignore[import-untyped]
from loguru import logger

from solkit.codec import BinaryReader, BinaryWriter
from solkit.errors import CodecError, CryptoError, ValidationError
from solkit.instruction import InstructionBuilder, InstructionLike
from solkit.keys import Hash, Keypair, PublicKey, Signature, verify
from solkit.lookup_table import AddressLookupTableAccount
from solkit.message import Message, MessageVersion, compile_message

Signers = Iterable[Keypair] | Mapping[PublicKey, Keypair]


def _signer_map(signers: Signers) -> dict[PublicKey, Keypair]:
    if isinstance(signers, Mapping):
        return dict(signers)
    return {kp.public_key: kp for kp in signers}


class Transaction:
    """A message and one signature slot per required signer.

    Unsigned slots hold the all-zero signature.
    """

    def __init__(self, message: Message, signatures: Sequence[Signature] | None = None) -> None:
        required = message.header.num_required_signatures
        if signatures is None:
            signatures = [Signature.default()] * required
        if len(signatures) != required:
            raise ValidationError(
                f"signature count mismatch: {len(signatures)} signatures, header requires {required}"
            )
        self.message = message
        self.signatures: list[Signature] = list(signatures)

    @classmethod
    def new(
        cls,
        instructions: Sequence[InstructionLike | InstructionBuilder],
        payer: PublicKey,
        recent_blockhash: Hash,
        address_lookup_tables: Sequence[AddressLookupTableAccount]
        | Mapping[PublicKey, Sequence[PublicKey]]
        | None = None,
        version: MessageVersion | None = None,
    ) -> Transaction:
        message = compile_message(
            instructions, payer, recent_blockhash, address_lookup_tables, version
        )
        return cls(message)

    @property
    def signature(self) -> Signature:
        """The fee payer's signature, which identifies the transaction."""
        return self.signatures[0]

    @property
    def version(self) -> MessageVersion:
        return self.message.version

    def message_bytes(self) -> bytes:
        return self.message.serialize()

    # --- Signing ---

    def sign(self, signers: Signers) -> None:
        """Sign every required slot. Fails without changes if a key is missing."""
        lookup = _signer_map(signers)
        keys = self.message.signer_keys()
        missing = [str(k) for k in keys if k not in lookup]
        if missing:
            raise ValidationError(f"missing signers: {', '.join(missing)}", missing=missing)
        payload = self.message_bytes()
        self.signatures = [lookup[k].sign(payload) for k in keys]
        logger.debug("signed transaction {}", self.signatures[0])

    def partial_sign(self, signers: Signers) -> None:
        """Fill still-empty slots whose key is available; leave the rest."""
        lookup = _signer_map(signers)
        payload = self.message_bytes()
        updated = list(self.signatures)
        for i, key in enumerate(self.message.signer_keys()):
            if updated[i].is_zero() and key in lookup:
                updated[i] = lookup[key].sign(payload)
        self.signatures = updated

    def add_signature(self, public_key: PublicKey, signature: Signature) -> None:
        """Insert an externally produced signature after checking it."""
        keys = self.message.signer_keys()
        if public_key not in keys:
            raise ValidationError(f"{public_key} is not a required signer")
        if not verify(public_key, self.message_bytes(), signature):
            raise CryptoError(f"signature does not verify for {public_key}")
        self.signatures[keys.index(public_key)] = signature

    def is_signed(self) -> bool:
        return not any(s.is_zero() for s in self.signatures)

    def verify_signatures(self) -> bool:
        payload = self.message_bytes()
        return all(
            verify(key, payload, sig)
            for key, sig in zip(self.message.signer_keys(), self.signatures)
        )

    # --- Wire format ---

    def serialize(self) -> bytes:
        required = self.message.header.num_required_signatures
        if len(self.signatures) != required:
            raise ValidationError(
                f"signature count mismatch: {len(self.signatures)} signatures, header requires {required}"
            )
        w = BinaryWriter()
        w.write_compact_u16(len(self.signatures))
        for sig in self.signatures:
            w.write_bytes(sig.raw)
        w.write_bytes(self.message_bytes())
        return w.to_bytes()

    def __bytes__(self) -> bytes:
        return self.serialize()

    def to_base64(self) -> str:
        return base64.b64encode(self.serialize()).decode()

    def to_base58(self) -> str:
        return base58.b58encode(self.serialize()).decode()

    @classmethod
    def from_bytes(cls, data: bytes) -> Transaction:
        r = BinaryReader(data)
        signatures = r.read_compact_array(r.read_signature)
        message = Message.read(r)
        r.expect_end()
        return cls(message, signatures)

    @classmethod
    def from_base64(cls, text: str) -> Transaction:
        try:
            return cls.from_bytes(base64.b64decode(text, validate=True))
        except binascii.Error as exc:
            raise CodecError("invalid base64 transaction") from exc

    @classmethod
    def from_base58(cls, text: str) -> Transaction:
        try:
            raw = base58.b58decode(text)
        except ValueError as exc:
            raise CodecError("invalid base58 transaction") from exc
        return cls.from_bytes(raw)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transaction):
            return NotImplemented
        return self.message == other.message and self.signatures == other.signatures

    def __repr__(self) -> str:
        return (
            f"Transaction(signature={self.signatures[0] if self.signatures else None}, "
            f"version={self.message.version}, keys={len(self.message.account_keys)})"
        )
