"""
Ledger interface and an in-memory implementation.

The vault never moves balances itself; it asks a ledger to. A ledger is
identified by its ``program_id`` (the mechanism that administers its
accounts) and authorises a transfer when the presented authority controls
the source account, either directly (a verified signer) or through a
``DerivedAuthority`` whose seeds re-derive to the account's authority.
"""

from __future__ import annotations

import hashlib
import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Dict, Iterator, Optional, Protocol, Union

from kuza.core.address import Address
from kuza.core.address_derivation import DerivedAuthority
from kuza.core.config import U64_MAX
from kuza.core.vault_exceptions import DerivationError

logger = logging.getLogger(__name__)

Authority = Union[Address, DerivedAuthority]


class TransferError(Exception):
    """Raised by a ledger when a transfer cannot be applied."""

    def __init__(self, message: str, reason: str = "TransferRejected") -> None:
        super().__init__(message)
        self.reason = reason


class Ledger(Protocol):
    program_id: Address

    def transfer(
        self, source: Address, destination: Address, amount: int, authority: Authority
    ) -> None: ...

    def account_program(self, account: Address) -> Optional[Address]: ...

    def account_authority(self, account: Address) -> Optional[Address]: ...

    def balance_of(self, account: Address) -> int: ...

    def atomic(self): ...


@dataclass
class LedgerAccount:
    authority: Address
    program: Address
    balance: int = 0


class InMemoryLedger:
    """
    Balance ledger held in memory.

    ``auto_create`` lets transfers open missing destination accounts owned by
    the destination itself, which is how native settlement balances behave.
    """

    def __init__(self, program_id: Address, name: str = "ledger", auto_create: bool = False):
        self.program_id = program_id
        self.name = name
        self.auto_create = auto_create
        self.accounts: Dict[Address, LedgerAccount] = {}
        self._opened = 0

    def open_account(
        self,
        authority: Address,
        balance: int = 0,
        address: Optional[Address] = None,
        program: Optional[Address] = None,
    ) -> Address:
        """Open an account and return its address.

        ``program`` overrides the administering program, which lets callers
        register accounts this ledger does not actually administer.
        """
        if address is None:
            self._opened += 1
            address = Address(
                hashlib.sha256(
                    self.program_id.raw + authority.raw + self._opened.to_bytes(8, "little")
                ).digest()
            )
        if address in self.accounts:
            raise TransferError(f"Account {address.short()} already exists", "AccountExists")
        if not 0 <= balance <= U64_MAX:
            raise TransferError(f"Invalid opening balance {balance}", "InvalidAmount")
        self.accounts[address] = LedgerAccount(
            authority=authority,
            program=program or self.program_id,
            balance=balance,
        )
        return address

    def account_program(self, account: Address) -> Optional[Address]:
        entry = self.accounts.get(account)
        return entry.program if entry else None

    def account_authority(self, account: Address) -> Optional[Address]:
        entry = self.accounts.get(account)
        return entry.authority if entry else None

    def balance_of(self, account: Address) -> int:
        entry = self.accounts.get(account)
        return entry.balance if entry else 0

    def _resolve_authority(self, authority: Authority) -> Address:
        if isinstance(authority, DerivedAuthority):
            try:
                return authority.address()
            except (DerivationError, ValueError) as exc:
                raise TransferError(f"Invalid derived authority: {exc}", "InvalidAuthority") from exc
        return authority

    def transfer(
        self, source: Address, destination: Address, amount: int, authority: Authority
    ) -> None:
        if not isinstance(amount, int) or not 0 <= amount <= U64_MAX:
            raise TransferError(f"Invalid transfer amount {amount!r}", "InvalidAmount")

        source_entry = self.accounts.get(source)
        if source_entry is None:
            raise TransferError(f"Unknown source account {source.short()}", "UnknownAccount")
        if source_entry.program != self.program_id:
            raise TransferError(
                f"Source account {source.short()} is not administered by {self.name}",
                "IncorrectProgram",
            )

        signer = self._resolve_authority(authority)
        if signer != source_entry.authority:
            raise TransferError(
                f"{signer.short()} is not the authority of {source.short()}",
                "OwnerMismatch",
            )

        destination_entry = self.accounts.get(destination)
        if destination_entry is None:
            if not self.auto_create:
                raise TransferError(
                    f"Unknown destination account {destination.short()}", "UnknownAccount"
                )
            destination_entry = LedgerAccount(authority=destination, program=self.program_id)
        elif destination_entry.program != self.program_id:
            raise TransferError(
                f"Destination account {destination.short()} is not administered by {self.name}",
                "IncorrectProgram",
            )

        if source_entry.balance < amount:
            raise TransferError(
                f"Insufficient funds ({amount} > {source_entry.balance})",
                "InsufficientFunds",
            )
        if source != destination and destination_entry.balance + amount > U64_MAX:
            raise TransferError("Destination balance would overflow", "Overflow")

        source_entry.balance -= amount
        destination_entry.balance += amount
        self.accounts[destination] = destination_entry

        logger.debug(
            "Ledger transfer",
            extra={
                "event": "ledger.transfer",
                "ledger": self.name,
                "from": source.short(),
                "to": destination.short(),
                "amount": amount,
            },
        )

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Restore every account if the block raises."""
        snapshot = {address: replace(entry) for address, entry in self.accounts.items()}
        opened = self._opened
        try:
            yield
        except BaseException:
            self.accounts = snapshot
            self._opened = opened
            raise
