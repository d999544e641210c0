"""Unit tests for the vault record and its storage layout."""

import struct

import pytest

from kuza.core.address import Address
from kuza.core.config import U64_MAX
from kuza.core.vault_exceptions import ArithmeticOverflowError, CorruptedVaultRecordError
from kuza.core.vault_state import VAULT_RECORD_SIZE, Vault, VaultState

OWNER = Address(bytes(range(32)))
NOW = 1_700_000_000
THIRTY_DAYS = 30 * 86_400


def _locked_vault() -> Vault:
    vault = Vault.new(OWNER, 254)
    vault.apply_deposit(50_043, NOW, THIRTY_DAYS)
    return vault


def test_record_is_58_bytes():
    assert VAULT_RECORD_SIZE == 58
    assert len(Vault.new(OWNER, 255).to_bytes()) == 58


def test_record_layout_field_order():
    data = _locked_vault().to_bytes()

    assert data[:32] == OWNER.raw
    assert struct.unpack_from("<q", data, 32)[0] == THIRTY_DAYS
    assert struct.unpack_from("<Q", data, 40)[0] == 50_043
    assert struct.unpack_from("<q", data, 48)[0] == NOW
    assert data[56] == 1
    assert data[57] == 254


def test_record_survives_storage():
    vault = _locked_vault()
    assert Vault.from_bytes(vault.to_bytes()) == vault


def test_new_vault_is_unlocked():
    vault = Vault.new(OWNER, 200)
    assert vault.state is VaultState.UNLOCKED
    assert vault.amount_locked == 0
    assert vault.is_consistent()


class TestApplyDeposit:
    def test_first_deposit_locks(self):
        vault = _locked_vault()
        assert vault.state is VaultState.LOCKED
        assert vault.matures_at == NOW + THIRTY_DAYS

    def test_deposit_accumulates_and_restarts_clock(self):
        vault = _locked_vault()
        vault.apply_deposit(100, NOW + 500, THIRTY_DAYS)

        assert vault.amount_locked == 50_143
        assert vault.deposit_timestamp == NOW + 500
        assert vault.is_locked

    def test_overflow_leaves_record_untouched(self):
        vault = _locked_vault()
        with pytest.raises(ArithmeticOverflowError):
            vault.apply_deposit(U64_MAX, NOW + 1, THIRTY_DAYS)
        assert vault.amount_locked == 50_043
        assert vault.deposit_timestamp == NOW


def test_clear_unlocks():
    vault = _locked_vault()
    vault.clear()

    assert vault.state is VaultState.UNLOCKED
    assert (vault.amount_locked, vault.deposit_timestamp, vault.lock_duration) == (0, 0, 0)
    assert vault.derivation_nonce == 254
    assert vault.is_consistent()


class TestCorruption:
    def test_wrong_length(self):
        with pytest.raises(CorruptedVaultRecordError):
            Vault.from_bytes(b"\x00" * 57)

    def test_invalid_lock_flag(self):
        data = bytearray(_locked_vault().to_bytes())
        data[56] = 2
        with pytest.raises(CorruptedVaultRecordError):
            Vault.from_bytes(bytes(data))

    def test_lock_flag_without_balance_fails_validation(self):
        vault = Vault(owner=OWNER, is_locked=True)
        assert not vault.is_consistent()
        with pytest.raises(CorruptedVaultRecordError):
            vault.validate()

    def test_unstorable_nonce(self):
        with pytest.raises(CorruptedVaultRecordError):
            Vault.new(OWNER, 256).to_bytes()
