"""32-byte account identities with a base58 text form."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import base58

ADDRESS_LENGTH = 32


@dataclass(frozen=True)
class Address:
    """An account identity: a secp256k1 x-coordinate, a derived address or a ledger account."""

    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, (bytes, bytearray)):
            raise TypeError("Address must be built from bytes")
        if len(self.raw) != ADDRESS_LENGTH:
            raise ValueError(
                f"Address must be {ADDRESS_LENGTH} bytes, got {len(self.raw)}"
            )
        object.__setattr__(self, "raw", bytes(self.raw))

    @classmethod
    def from_base58(cls, text: str) -> "Address":
        try:
            raw = base58.b58decode(text.strip())
        except ValueError as exc:
            raise ValueError(f"Invalid base58 address: {text!r}") from exc
        return cls(raw)

    @classmethod
    def coerce(cls, value: Union["Address", str, bytes]) -> "Address":
        if isinstance(value, Address):
            return value
        if isinstance(value, str):
            return cls.from_base58(value)
        return cls(value)

    def to_base58(self) -> str:
        return base58.b58encode(self.raw).decode("ascii")

    def short(self) -> str:
        return self.to_base58()[:8]

    def __str__(self) -> str:
        return self.to_base58()

    def __repr__(self) -> str:
        return f"Address('{self.to_base58()}')"


ZERO_ADDRESS = Address(bytes(ADDRESS_LENGTH))
