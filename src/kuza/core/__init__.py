"""Kuza vault core: derivation, authorization, fees and the vault lifecycle."""

from kuza.core.address import Address
from kuza.core.address_derivation import AddressDeriver, DerivedAuthority
from kuza.core.config import NetworkType, VaultConfig, get_config, load_config
from kuza.core.fee_calculator import FeeQuote, early_exit_fee, quote_early_exit
from kuza.core.instruction import Instruction, InstructionRequest, Operation, VaultAccounts
from kuza.core.ledger import InMemoryLedger, Ledger, TransferError
from kuza.core.processor import VaultProgram
from kuza.core.vault_exceptions import VaultError
from kuza.core.vault_state import Vault, VaultState
from kuza.core.vault_state_machine import VaultReceipt, VaultStateMachine

__all__ = [
    "Address",
    "AddressDeriver",
    "DerivedAuthority",
    "FeeQuote",
    "InMemoryLedger",
    "Instruction",
    "InstructionRequest",
    "Ledger",
    "NetworkType",
    "Operation",
    "TransferError",
    "Vault",
    "VaultAccounts",
    "VaultConfig",
    "VaultError",
    "VaultProgram",
    "VaultReceipt",
    "VaultState",
    "VaultStateMachine",
    "early_exit_fee",
    "get_config",
    "load_config",
    "quote_early_exit",
]
