"""
Vault record and its fixed-width storage layout.

Layout (little-endian, 58 bytes, field order is part of the format)::

    owner (32) | lock_duration i64 | amount_locked u64 |
    deposit_timestamp i64 | is_locked u8 | derivation_nonce u8
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from kuza.core.address import Address
from kuza.core.config import U64_MAX
from kuza.core.vault_exceptions import ArithmeticOverflowError, CorruptedVaultRecordError

VAULT_RECORD_FORMAT = "<32sqQqBB"
VAULT_RECORD_SIZE = struct.calcsize(VAULT_RECORD_FORMAT)


class VaultState(Enum):
    UNINITIALIZED = "uninitialized"
    UNLOCKED = "unlocked"
    LOCKED = "locked"


@dataclass
class Vault:
    """Per-owner escrow record."""

    owner: Address
    lock_duration: int = 0
    amount_locked: int = 0
    deposit_timestamp: int = 0
    is_locked: bool = False
    derivation_nonce: int = 0

    @classmethod
    def new(cls, owner: Address, derivation_nonce: int) -> "Vault":
        return cls(owner=owner, derivation_nonce=derivation_nonce)

    @property
    def state(self) -> VaultState:
        return VaultState.LOCKED if self.is_locked else VaultState.UNLOCKED

    @property
    def matures_at(self) -> int:
        return self.deposit_timestamp + self.lock_duration

    def is_consistent(self) -> bool:
        return self.is_locked == (self.amount_locked > 0 and self.deposit_timestamp > 0)

    def validate(self) -> None:
        if not self.is_consistent():
            raise CorruptedVaultRecordError(
                "Vault lock flag disagrees with its balance",
                details=self.to_dict(),
            )

    def apply_deposit(self, amount: int, now: int, lock_duration: int) -> None:
        """Add ``amount`` and restart the maturity clock for the whole balance."""
        total = self.amount_locked + amount
        if total > U64_MAX:
            raise ArithmeticOverflowError(
                "Locked amount would exceed the representable range",
                details={"amount_locked": self.amount_locked, "amount": amount},
            )
        self.amount_locked = total
        self.deposit_timestamp = now
        self.lock_duration = lock_duration
        self.is_locked = total > 0 and now > 0

    def clear(self) -> None:
        self.amount_locked = 0
        self.deposit_timestamp = 0
        self.lock_duration = 0
        self.is_locked = False

    def to_bytes(self) -> bytes:
        try:
            return struct.pack(
                VAULT_RECORD_FORMAT,
                self.owner.raw,
                self.lock_duration,
                self.amount_locked,
                self.deposit_timestamp,
                1 if self.is_locked else 0,
                self.derivation_nonce,
            )
        except struct.error as exc:
            raise CorruptedVaultRecordError(
                f"Vault fields out of range for storage: {exc}",
                details=self.to_dict(),
            ) from exc

    @classmethod
    def from_bytes(cls, data: bytes) -> "Vault":
        if len(data) != VAULT_RECORD_SIZE:
            raise CorruptedVaultRecordError(
                f"Vault record must be {VAULT_RECORD_SIZE} bytes, got {len(data)}"
            )
        owner, lock_duration, amount, timestamp, locked, nonce = struct.unpack(
            VAULT_RECORD_FORMAT, data
        )
        if locked not in (0, 1):
            raise CorruptedVaultRecordError(
                f"Invalid lock flag byte: {locked}",
                details={"is_locked": locked},
            )
        return cls(
            owner=Address(owner),
            lock_duration=lock_duration,
            amount_locked=amount,
            deposit_timestamp=timestamp,
            is_locked=bool(locked),
            derivation_nonce=nonce,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": str(self.owner),
            "lock_duration": self.lock_duration,
            "amount_locked": self.amount_locked,
            "deposit_timestamp": self.deposit_timestamp,
            "is_locked": self.is_locked,
            "derivation_nonce": self.derivation_nonce,
        }
