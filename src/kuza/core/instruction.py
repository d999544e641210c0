"""
Instruction wire format and signed requests.

Instruction data is a single operation tag byte, followed for Deposit (and
optionally Initialize) by an 8-byte little-endian unsigned amount.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import Dict, Iterable, Optional

from kuza.core.address import ADDRESS_LENGTH, Address
from kuza.core.config import U64_MAX
from kuza.core.crypto_utils import identity_from_private_hex, sign_message_hex
from kuza.core.vault_exceptions import MalformedRequestError

AMOUNT_FORMAT = "<Q"
AMOUNT_SIZE = struct.calcsize(AMOUNT_FORMAT)
SIGNING_DOMAIN = b"kuza-vault-instruction"


class Operation(IntEnum):
    INITIALIZE = 0
    DEPOSIT = 1
    WITHDRAW = 2
    RELEASE = 3
    EXTEND = 4


_AMOUNT_REQUIRED = {Operation.DEPOSIT}
_AMOUNT_OPTIONAL = {Operation.INITIALIZE}


@dataclass(frozen=True)
class Instruction:
    operation: Operation
    amount: Optional[int] = None

    def __post_init__(self) -> None:
        if self.amount is not None and not 0 <= self.amount <= U64_MAX:
            raise MalformedRequestError(
                f"Amount out of range: {self.amount}",
                details={"operation": self.operation.name},
            )
        if self.operation in _AMOUNT_REQUIRED and self.amount is None:
            raise MalformedRequestError(f"{self.operation.name} requires an amount")
        allows_amount = self.operation in _AMOUNT_REQUIRED | _AMOUNT_OPTIONAL
        if self.amount is not None and not allows_amount:
            raise MalformedRequestError(f"{self.operation.name} takes no amount")

    def encode(self) -> bytes:
        data = bytes([int(self.operation)])
        if self.amount is not None:
            data += struct.pack(AMOUNT_FORMAT, self.amount)
        return data

    @classmethod
    def decode(cls, data: bytes) -> "Instruction":
        if not data:
            raise MalformedRequestError("Empty instruction data")
        try:
            operation = Operation(data[0])
        except ValueError as exc:
            raise MalformedRequestError(
                f"Unknown operation tag: {data[0]}",
                details={"tag": data[0]},
            ) from exc

        payload = data[1:]
        if not payload:
            # __post_init__ rejects a missing Deposit amount
            return cls(operation)
        if len(payload) != AMOUNT_SIZE:
            raise MalformedRequestError(
                f"{operation.name} payload must be {AMOUNT_SIZE} bytes, got {len(payload)}",
                details={"length": len(payload)},
            )
        (amount,) = struct.unpack(AMOUNT_FORMAT, payload)
        return cls(operation, amount)


@dataclass(frozen=True)
class VaultAccounts:
    """Named accounts an instruction operates on.

    ``owner`` is the depositor's identity and also its native-asset account;
    ``owner_holding`` and ``vault_holding`` are token accounts on the asset
    ledger.
    """

    owner: Address
    vault: Address
    vault_holding: Optional[Address] = None
    owner_holding: Optional[Address] = None
    fee_recipient: Optional[Address] = None
    asset: Optional[Address] = None

    def require(self, name: str) -> Address:
        value = getattr(self, name)
        if value is None:
            raise MalformedRequestError(
                f"Missing required account: {name}",
                details={"account": name},
            )
        return value

    def signing_bytes(self) -> bytes:
        blank = bytes(ADDRESS_LENGTH)
        return b"".join(
            getattr(self, f.name).raw if getattr(self, f.name) is not None else blank
            for f in fields(self)
        )


@dataclass
class InstructionRequest:
    """Instruction data plus accounts and the signatures authorising them."""

    data: bytes
    accounts: VaultAccounts
    signatures: Dict[Address, str] = field(default_factory=dict)

    def signing_message(self) -> bytes:
        return hashlib.sha256(
            SIGNING_DOMAIN + self.data + self.accounts.signing_bytes()
        ).digest()

    def sign(self, private_hex: str) -> "InstructionRequest":
        signer = Address(identity_from_private_hex(private_hex))
        self.signatures[signer] = sign_message_hex(private_hex, self.signing_message())
        return self

    @classmethod
    def build(
        cls,
        instruction: Instruction,
        accounts: VaultAccounts,
        signers: Iterable[str] = (),
    ) -> "InstructionRequest":
        request = cls(data=instruction.encode(), accounts=accounts)
        for private_hex in signers:
            request.sign(private_hex)
        return request
