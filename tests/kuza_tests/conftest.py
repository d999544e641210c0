"""Shared fixtures for vault tests."""

from typing import Optional, Sequence

import pytest

from kuza.core.address import Address
from kuza.core.address_derivation import AddressDeriver
from kuza.core.config import SECONDS_PER_DAY, VaultConfig
from kuza.core.crypto_utils import deterministic_identity_from_seed
from kuza.core.instruction import Instruction, InstructionRequest, Operation, VaultAccounts
from kuza.core.processor import VaultProgram
from kuza.core.vault_state_machine import VaultReceipt

DEPOSIT_TIME = 1_700_000_000
OWNER_NATIVE_BALANCE = 5 * 10**9
OWNER_TOKEN_BALANCE = 1_000_000


class FakeClock:
    """Settable unix clock."""

    def __init__(self, now: int = DEPOSIT_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance_days(self, days: float) -> None:
        self.now += int(days * SECONDS_PER_DAY)


class VaultHarness:
    """One funded owner with a derived vault on fresh in-memory ledgers."""

    def __init__(self, config: VaultConfig, seed: bytes = b"kuza-test-owner"):
        self.config = config
        self.clock = FakeClock()
        self.program = VaultProgram.in_memory(config, clock=self.clock)

        self.private_key, identity = deterministic_identity_from_seed(seed)
        self.owner = Address(identity)
        self.vault_address, self.nonce = AddressDeriver(config.program_id).derive(
            self.owner, config.seed_label
        )

        self.program.native_ledger.open_account(
            self.owner, balance=OWNER_NATIVE_BALANCE, address=self.owner
        )
        self.owner_holding = self.program.token_ledger.open_account(
            self.owner, balance=OWNER_TOKEN_BALANCE
        )
        self.vault_holding = self.program.token_ledger.open_account(self.vault_address)

        self.accounts = VaultAccounts(
            owner=self.owner,
            vault=self.vault_address,
            vault_holding=self.vault_holding,
            owner_holding=self.owner_holding,
            fee_recipient=config.fee_recipient,
            asset=config.asset,
        )

    def request(
        self,
        operation: Operation,
        amount: Optional[int] = None,
        accounts: Optional[VaultAccounts] = None,
        signers: Optional[Sequence[str]] = None,
    ) -> InstructionRequest:
        return InstructionRequest.build(
            Instruction(operation, amount),
            accounts or self.accounts,
            signers=(self.private_key,) if signers is None else signers,
        )

    def run(self, operation: Operation, amount: Optional[int] = None, **kwargs) -> VaultReceipt:
        return self.program.process_instruction(self.request(operation, amount, **kwargs))

    def native_balance(self, account: Address) -> int:
        return self.program.native_ledger.balance_of(account)

    def token_balance(self, account: Address) -> int:
        return self.program.token_ledger.balance_of(account)

    def record(self):
        return self.program.store.load(self.vault_address)

    def sample(self, name: str, labels: Optional[dict] = None) -> Optional[float]:
        return self.program.metrics.registry.get_sample_value(name, labels or {})


@pytest.fixture
def config():
    return VaultConfig()


@pytest.fixture
def make_harness(config):
    def _make(seed: bytes = b"kuza-test-owner", vault_config: Optional[VaultConfig] = None):
        return VaultHarness(vault_config or config, seed=seed)

    return _make


@pytest.fixture
def harness(make_harness):
    return make_harness()


@pytest.fixture
def owner_keys():
    """(private key hex, identity bytes) for a fixed test owner."""
    return deterministic_identity_from_seed(b"kuza-test-owner")
