"""Public keys, hashes, signatures, keypairs and program-derived addresses."""

from __future__ import annotations

import base64
import binascii
import functools
import hashlib
from collections.abc import Sequence
from pathlib import Path
from typing import ClassVar

import base58  # type: ignore[import-untyped]
import msgspec
from nacl.exceptions import CryptoError as NaclCryptoError
from nacl.signing import SigningKey, VerifyKey

from solkit.errors import CryptoError, OnCurveError, ValidationError

PUBLIC_KEY_LENGTH = 32
HASH_LENGTH = 32
SIGNATURE_LENGTH = 64
SEED_LENGTH = 32
SECRET_KEY_LENGTH = 64

MAX_SEEDS = 16
MAX_SEED_LENGTH = 32
PDA_MARKER = b"ProgramDerivedAddress"

# ed25519 field prime and twisted Edwards curve constant d.
_P = 2**255 - 19
_D = (-121665 * pow(121666, -1, _P)) % _P


def _decode_base58(text: str, kind: str) -> bytes:
    try:
        return base58.b58decode(text)
    except ValueError as exc:
        raise CryptoError(f"invalid base58 {kind}: {text!r}") from exc


@functools.total_ordering
class _FixedBytes:
    """Immutable fixed-width byte string, ordered byte-lexicographically."""

    __slots__ = ("_raw",)
    LENGTH: ClassVar[int] = 32

    def __init__(self, raw: bytes) -> None:
        if not isinstance(raw, (bytes, bytearray, memoryview)):
            raise TypeError(f"{type(self).__name__} expects bytes, got {type(raw).__name__}")
        raw = bytes(raw)
        if len(raw) != self.LENGTH:
            raise ValidationError(
                f"{type(self).__name__} must be {self.LENGTH} bytes, got {len(raw)}"
            )
        self._raw = raw

    @property
    def raw(self) -> bytes:
        return self._raw

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._raw == other._raw  # type: ignore[attr-defined]

    def __lt__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._raw < other._raw  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash(self._raw)

    @classmethod
    def from_string(cls, text: str):
        raw = _decode_base58(text, cls.__name__)
        if len(raw) != cls.LENGTH:
            raise CryptoError(
                f"invalid {cls.__name__} {text!r}: decodes to {len(raw)} bytes, want {cls.LENGTH}"
            )
        return cls(raw)

    @classmethod
    def from_base64(cls, text: str):
        try:
            raw = base64.b64decode(text, validate=True)
        except binascii.Error as exc:
            raise CryptoError(f"invalid base64 {cls.__name__}: {text!r}") from exc
        if len(raw) != cls.LENGTH:
            raise CryptoError(
                f"invalid {cls.__name__}: decodes to {len(raw)} bytes, want {cls.LENGTH}"
            )
        return cls(raw)

    @classmethod
    def default(cls):
        return cls(bytes(cls.LENGTH))

    def to_base58(self) -> str:
        return base58.b58encode(self.raw).decode()

    def to_base64(self) -> str:
        return base64.b64encode(self.raw).decode()

    def is_zero(self) -> bool:
        return not any(self.raw)

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return self.to_base58()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_base58()!r})"


class PublicKey(_FixedBytes):
    """A 32-byte ed25519 public key or program-derived address."""

    __slots__ = ()
    LENGTH: ClassVar[int] = PUBLIC_KEY_LENGTH

    @classmethod
    def from_bytes(cls, data: bytes) -> PublicKey:
        """Build a key from a byte slice of any length.

        Longer input keeps its right-most 32 bytes; shorter input is
        right-aligned and zero-padded on the left.
        """
        data = bytes(data)
        if len(data) > cls.LENGTH:
            data = data[len(data) - cls.LENGTH :]
        return cls(data.rjust(cls.LENGTH, b"\x00"))

    def is_on_curve(self) -> bool:
        return is_on_curve(self.raw)


class Hash(_FixedBytes):
    """A 32-byte SHA-256 digest, used for blockhashes."""

    __slots__ = ()
    LENGTH: ClassVar[int] = HASH_LENGTH


class Signature(_FixedBytes):
    """A 64-byte ed25519 signature."""

    __slots__ = ()
    LENGTH: ClassVar[int] = SIGNATURE_LENGTH

    def verify(self, public_key: PublicKey, message: bytes) -> bool:
        return verify(public_key, message, self)


def verify(public_key: PublicKey, message: bytes, signature: Signature) -> bool:
    """Check an ed25519 signature. Never raises for a bad signature."""
    try:
        VerifyKey(public_key.raw).verify(bytes(message), signature.raw)
    except (NaclCryptoError, ValueError):
        return False
    return True


class Keypair:
    """An ed25519 signing key and its public key."""

    def __init__(self, signing_key: SigningKey) -> None:
        self._signing_key = signing_key
        self._public_key = PublicKey(bytes(signing_key.verify_key))

    @classmethod
    def generate(cls) -> Keypair:
        return cls(SigningKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> Keypair:
        if len(seed) != SEED_LENGTH:
            raise CryptoError(f"seed must be {SEED_LENGTH} bytes, got {len(seed)}")
        return cls(SigningKey(bytes(seed)))

    @classmethod
    def from_secret_key(cls, secret: bytes) -> Keypair:
        """Load the 64-byte ``seed || public key`` form used by the CLI."""
        if len(secret) != SECRET_KEY_LENGTH:
            raise CryptoError(
                f"secret key must be {SECRET_KEY_LENGTH} bytes, got {len(secret)}"
            )
        kp = cls.from_seed(secret[:SEED_LENGTH])
        if kp.public_key.raw != bytes(secret[SEED_LENGTH:]):
            raise CryptoError("secret key public half does not match its seed")
        return kp

    @classmethod
    def from_base58(cls, text: str) -> Keypair:
        return cls.from_secret_key(_decode_base58(text, "secret key"))

    @classmethod
    def from_json(cls, text: str | bytes) -> Keypair:
        try:
            values = msgspec.json.decode(text, type=list[int])
        except msgspec.DecodeError as exc:
            raise CryptoError(f"invalid keypair json: {exc}") from exc
        try:
            secret = bytes(values)
        except ValueError as exc:
            raise CryptoError("keypair json values must be bytes (0-255)") from exc
        return cls.from_secret_key(secret)

    @classmethod
    def from_json_file(cls, path: str | Path) -> Keypair:
        """Load a keypair written by ``solana-keygen``."""
        return cls.from_json(Path(path).read_bytes())

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    @property
    def seed(self) -> bytes:
        return bytes(self._signing_key)

    @property
    def secret_key(self) -> bytes:
        return self.seed + self._public_key.raw

    def sign(self, message: bytes) -> Signature:
        return Signature(self._signing_key.sign(bytes(message)).signature)

    def to_base58(self) -> str:
        return base58.b58encode(self.secret_key).decode()

    def to_json(self) -> str:
        return msgspec.json.encode(list(self.secret_key)).decode()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Keypair):
            return NotImplemented
        return self.seed == other.seed

    def __hash__(self) -> int:
        return hash(self._public_key)

    def __repr__(self) -> str:
        return f"Keypair(public_key={self._public_key.to_base58()!r})"


# ---------------------------------------------------------------------------
# Curve membership and address derivation
# ---------------------------------------------------------------------------


def is_on_curve(data: bytes) -> bool:
    """Report whether 32 bytes decompress to a point on the ed25519 curve."""
    if len(data) != PUBLIC_KEY_LENGTH:
        return False
    y = (int.from_bytes(data, "little") & ((1 << 255) - 1)) % _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    x2 = u * pow(v, -1, _P) % _P
    if x2 == 0:
        return True
    return pow(x2, (_P - 1) // 2, _P) == 1


def _check_seeds(seeds: Sequence[bytes], max_seeds: int) -> None:
    if len(seeds) > max_seeds:
        raise ValidationError(f"too many seeds: {len(seeds)}, max {max_seeds}")
    for i, seed in enumerate(seeds):
        if len(seed) > MAX_SEED_LENGTH:
            raise ValidationError(
                f"seed {i} is {len(seed)} bytes, max {MAX_SEED_LENGTH}"
            )


def create_program_address(
    seeds: Sequence[bytes], program_id: PublicKey
) -> PublicKey:
    """Derive an off-curve address from seeds and a program id.

    Raises OnCurveError when the digest is a valid curve point; callers
    searching for an address should try the next bump.
    """
    _check_seeds(seeds, MAX_SEEDS)
    h = hashlib.sha256()
    for seed in seeds:
        h.update(seed)
    h.update(program_id.raw)
    h.update(PDA_MARKER)
    digest = h.digest()
    if is_on_curve(digest):
        raise OnCurveError("derived address is on the ed25519 curve")
    return PublicKey(digest)


def find_program_address(
    seeds: Sequence[bytes], program_id: PublicKey
) -> tuple[PublicKey, int]:
    """Search bumps 255 down to 0 for the first off-curve address."""
    seeds = [bytes(s) for s in seeds]
    # One seed slot is reserved for the bump.
    _check_seeds(seeds, MAX_SEEDS - 1)
    for bump in range(255, -1, -1):
        try:
            return create_program_address([*seeds, bytes([bump])], program_id), bump
        except OnCurveError:
            continue
    raise CryptoError("unable to find a viable program address bump seed")


def create_with_seed(base: PublicKey, seed: str, owner: PublicKey) -> PublicKey:
    """Derive the address of an account created with a string seed."""
    seed_bytes = seed.encode("utf-8")
    if len(seed_bytes) > MAX_SEED_LENGTH:
        raise ValidationError(
            f"seed is {len(seed_bytes)} bytes, max {MAX_SEED_LENGTH}"
        )
    if owner.raw.endswith(PDA_MARKER):
        raise ValidationError("owner may not end with the program address marker")
    return PublicKey(hashlib.sha256(base.raw + seed_bytes + owner.raw).digest())
