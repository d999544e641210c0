"""
CLI tests using click's CliRunner.
"""

import json
import logging
import struct

import pytest
from click.testing import CliRunner

from kuza.cli.main import cli
from kuza.core.address import Address
from kuza.core.address_derivation import AddressDeriver
from kuza.core.config import VaultConfig
from kuza.core.crypto_utils import deterministic_identity_from_seed
from kuza.core.vault_state import Vault

OWNER = Address(deterministic_identity_from_seed(b"alice")[1])


@pytest.fixture
def runner(monkeypatch):
    monkeypatch.delenv("KUZA_NETWORK", raising=False)
    monkeypatch.delenv("KUZA_PROGRAM_ID", raising=False)
    monkeypatch.delenv("KUZA_EARLY_EXIT_FEE_RATE", raising=False)
    yield CliRunner()
    logger = logging.getLogger("kuza")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _json(runner, *args):
    result = runner.invoke(cli, ["--json-output", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def test_keygen_with_seed_is_deterministic(runner):
    payload = _json(runner, "keygen", "--seed", "alice")
    assert payload["identity"] == str(OWNER)
    assert payload == _json(runner, "keygen", "--seed", "alice")


def test_keygen_random(runner):
    payload = _json(runner, "keygen")
    assert len(Address.from_base58(payload["identity"]).raw) == 32
    assert len(payload["private_key"]) == 64


def test_derive_matches_library(runner):
    config = VaultConfig()
    expected, nonce = AddressDeriver(config.program_id).derive(OWNER, config.seed_label)

    payload = _json(runner, "derive", str(OWNER))

    assert payload["vault"] == str(expected)
    assert payload["nonce"] == nonce
    assert payload["network"] == "devnet"


def test_derive_rejects_bad_owner(runner):
    result = runner.invoke(cli, ["derive", "not-an-address-0OIl"])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_fee_quote(runner):
    payload = _json(runner, "fee-quote", "--deposited-at", "0", "--now", str(15 * 86_400))
    assert payload["fee"] == 37_500_000
    assert payload["fee_basis"] == 100_000_000
    assert payload["matured"] is False


def test_fee_quote_custom_lock(runner):
    payload = _json(
        runner,
        "fee-quote",
        "--deposited-at", "0",
        "--now", str(5 * 86_400),
        "--lock-days", "10",
        "--basis", "1000",
    )
    assert payload["fee"] == 375
    assert payload["duration_days"] == 10


def test_fee_quote_rejects_reversed_clock(runner):
    result = runner.invoke(cli, ["fee-quote", "--deposited-at", "100", "--now", "0"])
    assert result.exit_code == 1


def test_decode_record(runner):
    vault = Vault.new(OWNER, 254)
    vault.apply_deposit(50_043, 1_700_000_000, 30 * 86_400)

    payload = _json(runner, "decode-record", vault.to_bytes().hex())

    assert payload["owner"] == str(OWNER)
    assert payload["amount_locked"] == 50_043
    assert payload["state"] == "locked"
    assert payload["matures_at"] == 1_700_000_000 + 30 * 86_400


def test_decode_record_rejects_corruption(runner):
    result = runner.invoke(cli, ["decode-record", "00" * 10])
    assert result.exit_code == 1
    assert "58 bytes" in result.output


def test_encode_deposit(runner):
    payload = _json(runner, "encode", "deposit", "--amount", "50043")
    assert payload["data"] == (b"\x01" + struct.pack("<Q", 50_043)).hex()


def test_encode_rejects_amount_on_release(runner):
    result = runner.invoke(cli, ["encode", "release", "--amount", "5"])
    assert result.exit_code == 1


def test_show_config_per_network(runner):
    devnet = _json(runner, "show-config")
    mainnet = _json(runner, "--network", "mainnet", "show-config")

    assert devnet["asset"] == "AQYzQ3ZS9tXjhYMuVQ8tGoZMVV5DSuucaJB16mzXic9d"
    assert mainnet["asset"] == "3PKZCeF6RVw6sAGqCV5BGCATE1gu3bPceWXhfasapXVS"


def test_show_config_table(runner):
    result = runner.invoke(cli, ["show-config"])
    assert result.exit_code == 0
    assert "Vault Configuration" in result.output
    assert "entry_fee" in result.output


def test_network_from_environment(runner, monkeypatch):
    monkeypatch.setenv("KUZA_NETWORK", "mainnet")
    assert _json(runner, "show-config")["network"] == "mainnet"


def test_encode_help_explains_release_and_withdraw(runner):
    result = runner.invoke(cli, ["encode", "--help"])
    assert result.exit_code == 0
    assert "release is rejected until the lock has matured" in result.output
    assert "withdraw leaves early" in result.output
