"""
Vault lifecycle: Initialize, Deposit, Withdraw, Release and Extend.

Each transition runs all of its guards, then every ledger transfer it needs,
and only then writes the vault record, so a rejected check or a failed
transfer never leaves a record claiming funds it does not hold.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from kuza.core.access_control import AuthorizationGuard
from kuza.core.address import Address
from kuza.core.config import U64_MAX, VaultConfig
from kuza.core.fee_calculator import quote_early_exit
from kuza.core.instruction import InstructionRequest
from kuza.core.ledger import Authority, Ledger, TransferError
from kuza.core.vault_exceptions import (
    AddressMismatchError,
    AlreadyInitializedError,
    ArithmeticOverflowError,
    InvalidAmountError,
    LockNotMaturedError,
    NotLockedError,
    TransferFailureError,
    VaultNotFoundError,
)
from kuza.core.vault_state import Vault, VaultState
from kuza.core.vault_store import VaultStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VaultReceipt:
    """Outcome of a transition."""

    vault_address: Address
    vault: Vault
    amount_moved: int = 0
    fee_paid: int = 0


class VaultStateMachine:
    def __init__(
        self,
        config: VaultConfig,
        store: VaultStore,
        token_ledger: Ledger,
        native_ledger: Ledger,
        guard: Optional[AuthorizationGuard] = None,
    ):
        self.config = config
        self.store = store
        self.token_ledger = token_ledger
        self.native_ledger = native_ledger
        self.guard = guard or AuthorizationGuard(config)

    # ==================== Queries ====================

    def state_of(self, vault_address: Address) -> VaultState:
        vault = self.store.load(vault_address)
        if vault is None:
            return VaultState.UNINITIALIZED
        return vault.state

    # ==================== Transitions ====================

    def initialize(self, request: InstructionRequest, now: int, amount: int = 0) -> VaultReceipt:
        accounts = request.accounts
        owner = accounts.owner
        self.guard.require_signer(request, owner)
        self.guard.require_allow_listed(
            accounts.require("asset"), self.config.asset_allow_list
        )
        fee_recipient = self.guard.require_allow_listed(
            accounts.require("fee_recipient"), self.config.fee_recipient_allow_list
        )
        nonce = self.guard.require_derived_address(owner, accounts.vault)
        if amount < 0:
            raise InvalidAmountError(f"Deposit amount cannot be negative: {amount}")
        if amount > U64_MAX:
            raise ArithmeticOverflowError(f"Deposit amount out of range: {amount}")

        if self.store.exists(accounts.vault):
            raise AlreadyInitializedError(
                f"Vault already initialized at {accounts.vault}",
                details={"vault": str(accounts.vault)},
            )

        if amount > 0 or accounts.vault_holding is not None:
            self._require_vault_holding(accounts.require("vault_holding"), accounts.vault)
        owner_holding = accounts.require("owner_holding") if amount > 0 else None

        self._transfer(
            self.native_ledger, owner, fee_recipient, self.config.entry_fee, owner, "entry_fee"
        )
        if owner_holding is not None:
            self._transfer(
                self.token_ledger,
                owner_holding,
                accounts.vault_holding,
                amount,
                owner,
                "deposit",
            )

        vault = Vault.new(owner, nonce)
        if amount > 0:
            vault.apply_deposit(amount, now, self.config.lock_duration)
        self.store.create(accounts.vault, vault)

        logger.info(
            "Vault initialized",
            extra={
                "event": "vault.initialize",
                "owner": owner.short(),
                "vault": accounts.vault.short(),
                "amount": amount,
                "locked": vault.is_locked,
            },
        )
        return VaultReceipt(accounts.vault, vault, amount_moved=amount, fee_paid=self.config.entry_fee)

    def deposit(self, request: InstructionRequest, now: int, amount: int) -> VaultReceipt:
        accounts = request.accounts
        vault = self._load_authorized(request)
        if amount <= 0:
            raise InvalidAmountError(
                f"Deposit amount must be positive, got {amount}",
                details={"amount": amount},
            )
        if vault.amount_locked + amount > U64_MAX:
            raise ArithmeticOverflowError(
                "Locked amount would exceed the representable range",
                details={"amount_locked": vault.amount_locked, "amount": amount},
            )

        vault_holding = accounts.require("vault_holding")
        self._require_vault_holding(vault_holding, accounts.vault)
        self._transfer(
            self.token_ledger,
            accounts.require("owner_holding"),
            vault_holding,
            amount,
            accounts.owner,
            "deposit",
        )

        vault.apply_deposit(amount, now, self.config.lock_duration)
        self.store.save(accounts.vault, vault)

        logger.info(
            "Deposited %d into vault",
            amount,
            extra={
                "event": "vault.deposit",
                "vault": accounts.vault.short(),
                "amount": amount,
                "amount_locked": vault.amount_locked,
            },
        )
        return VaultReceipt(accounts.vault, vault, amount_moved=amount)

    def withdraw(self, request: InstructionRequest, now: int) -> VaultReceipt:
        """Leave the lock now, paying the early-exit fee if it has not matured."""
        accounts = request.accounts
        vault = self._load_authorized(request)
        self._require_locked(vault, accounts.vault)
        fee_recipient = self.guard.require_allow_listed(
            accounts.require("fee_recipient"), self.config.fee_recipient_allow_list
        )
        vault_holding = accounts.require("vault_holding")
        self._require_vault_holding(vault_holding, accounts.vault)
        owner_holding = accounts.require("owner_holding")

        quote = quote_early_exit(
            now,
            vault.deposit_timestamp,
            vault.lock_duration,
            self.config.early_exit_base_fee_rate,
            self.config.entry_fee,
        )
        if quote.fee > 0:
            self._transfer(
                self.native_ledger,
                accounts.owner,
                fee_recipient,
                quote.fee,
                accounts.owner,
                "early_exit_fee",
            )

        returned = self._release_funds(vault, accounts.vault, vault_holding, owner_holding)
        logger.info(
            "Vault withdrawn",
            extra={
                "event": "vault.withdraw",
                "vault": accounts.vault.short(),
                "amount": returned,
                "fee": quote.fee,
                "elapsed_days": quote.elapsed_days,
            },
        )
        return VaultReceipt(accounts.vault, vault, amount_moved=returned, fee_paid=quote.fee)

    def release(self, request: InstructionRequest, now: int) -> VaultReceipt:
        """Return the full balance of a matured lock.

        Raises:
            LockNotMaturedError: If fewer than the lock's whole days have
                elapsed; leaving early goes through ``withdraw`` and its fee.
        """
        accounts = request.accounts
        vault = self._load_authorized(request)
        self._require_locked(vault, accounts.vault)
        quote = quote_early_exit(
            now,
            vault.deposit_timestamp,
            vault.lock_duration,
            self.config.early_exit_base_fee_rate,
            self.config.entry_fee,
        )
        if not quote.matured:
            raise LockNotMaturedError(
                f"Vault matures at {vault.matures_at}",
                details={
                    "matures_at": vault.matures_at,
                    "elapsed_days": quote.elapsed_days,
                    "duration_days": quote.duration_days,
                },
            )
        vault_holding = accounts.require("vault_holding")
        self._require_vault_holding(vault_holding, accounts.vault)
        owner_holding = accounts.require("owner_holding")

        returned = self._release_funds(vault, accounts.vault, vault_holding, owner_holding)
        logger.info(
            "Vault released",
            extra={"event": "vault.release", "vault": accounts.vault.short(), "amount": returned},
        )
        return VaultReceipt(accounts.vault, vault, amount_moved=returned)

    def extend(self, request: InstructionRequest, now: int) -> VaultReceipt:
        vault = self._load_authorized(request)
        logger.info(
            "Extend requested; no changes applied",
            extra={"event": "vault.extend", "vault": request.accounts.vault.short()},
        )
        return VaultReceipt(request.accounts.vault, vault)

    # ==================== Internals ====================

    def _load_authorized(self, request: InstructionRequest) -> Vault:
        accounts = request.accounts
        self.guard.require_signer(request, accounts.owner)
        self.guard.require_derived_address(accounts.owner, accounts.vault)
        vault = self.store.load(accounts.vault)
        if vault is None:
            raise VaultNotFoundError(
                f"No vault initialized at {accounts.vault}",
                details={"vault": str(accounts.vault)},
            )
        vault.validate()
        if vault.owner != accounts.owner:
            raise AddressMismatchError(
                f"Vault at {accounts.vault} belongs to {vault.owner}",
                details={"owner": str(vault.owner)},
            )
        return vault

    def _require_locked(self, vault: Vault, vault_address: Address) -> None:
        if not vault.is_locked:
            raise NotLockedError(
                f"Vault {vault_address} holds no locked funds",
                details={"vault": str(vault_address)},
            )

    def _require_vault_holding(self, holding: Address, vault_address: Address) -> None:
        self.guard.require_ledger_owned(self.token_ledger, holding)
        self.guard.require_account_authority(self.token_ledger, holding, vault_address)

    def _release_funds(
        self,
        vault: Vault,
        vault_address: Address,
        vault_holding: Address,
        owner_holding: Address,
    ) -> int:
        """Move the whole balance back to the owner, signed by the vault itself."""
        amount = vault.amount_locked
        authority = self.guard.deriver.authority_for(
            vault.owner, self.config.seed_label, vault.derivation_nonce
        )
        self._transfer(
            self.token_ledger,
            vault_holding,
            owner_holding,
            amount,
            authority,
            "release",
        )
        vault.clear()
        self.store.save(vault_address, vault)
        return amount

    def _transfer(
        self,
        ledger: Ledger,
        source: Address,
        destination: Address,
        amount: int,
        authority: Authority,
        purpose: str,
    ) -> None:
        try:
            ledger.transfer(source, destination, amount, authority)
        except TransferError as exc:
            logger.error(
                "Ledger transfer failed: %s",
                exc,
                extra={"event": "vault.transfer_failed", "purpose": purpose, "reason": exc.reason},
            )
            raise TransferFailureError(
                f"{purpose} transfer failed: {exc}",
                reason=exc.reason,
                details={"purpose": purpose, "amount": amount},
            ) from exc
