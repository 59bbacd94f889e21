"""Account metas, instructions and the builder contract."""

from __future__ import annotations

import abc
import dataclasses
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar, Protocol

from solkit.errors import ValidationError
from solkit.keys import PublicKey


@dataclass(frozen=True)
class AccountMeta:
    public_key: PublicKey
    is_signer: bool = False
    is_writable: bool = False

    @classmethod
    def writable(cls, public_key: PublicKey, signer: bool = False) -> AccountMeta:
        return cls(public_key, is_signer=signer, is_writable=True)

    @classmethod
    def readonly(cls, public_key: PublicKey, signer: bool = False) -> AccountMeta:
        return cls(public_key, is_signer=signer, is_writable=False)

    def merge(self, other: AccountMeta) -> AccountMeta:
        """Combine two metas for the same key; flags are OR-ed."""
        if other.public_key != self.public_key:
            raise ValueError("cannot merge metas of different keys")
        return AccountMeta(
            self.public_key,
            is_signer=self.is_signer or other.is_signer,
            is_writable=self.is_writable or other.is_writable,
        )


class InstructionLike(Protocol):
    """Anything the message assembler can compile."""

    @property
    def program_id(self) -> PublicKey: ...

    @property
    def accounts(self) -> Sequence[AccountMeta]: ...

    @property
    def data(self) -> bytes: ...


@dataclass(frozen=True)
class Instruction:
    program_id: PublicKey
    accounts: tuple[AccountMeta, ...] = ()
    data: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "accounts", tuple(self.accounts))
        object.__setattr__(self, "data", bytes(self.data))


class InstructionBuilder(abc.ABC):
    """Base for program instruction builders.

    Subclasses are dataclasses whose fields default to ``None`` and list the
    ones that must be set in ``REQUIRED``. ``build()`` refuses to emit an
    instruction while any of them is missing.
    """

    PROGRAM_ID: ClassVar[PublicKey]
    REQUIRED: ClassVar[tuple[str, ...]] = ()

    @property
    def program_id(self) -> PublicKey:
        return self.PROGRAM_ID

    def missing_fields(self) -> list[str]:
        return [name for name in self.REQUIRED if getattr(self, name) is None]

    def validate(self) -> None:
        missing = self.missing_fields()
        if missing:
            raise ValidationError(
                f"{type(self).__name__}: missing required fields: {', '.join(missing)}",
                missing=missing,
            )

    @abc.abstractmethod
    def account_metas(self) -> list[AccountMeta]: ...

    @abc.abstractmethod
    def encode_data(self) -> bytes: ...

    def build(self) -> Instruction:
        self.validate()
        return Instruction(self.program_id, tuple(self.account_metas()), self.encode_data())

    def replace(self, **changes):
        """Return a copy with some fields changed."""
        return dataclasses.replace(self, **changes)  # type: ignore[type-var]
