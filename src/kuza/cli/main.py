#!/usr/bin/env python3
"""
Kuza Vault - Operator CLI

Offline helpers for working with vaults: identity keys, vault address
derivation, early-exit fee quotes and record/instruction encoding.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional

import click
from rich import box
from rich.console import Console
from rich.table import Table

from kuza import __version__
from kuza.core.address import Address
from kuza.core.address_derivation import AddressDeriver
from kuza.core.config import SECONDS_PER_DAY, VaultConfig, load_config
from kuza.core.crypto_utils import deterministic_identity_from_seed, generate_identity_keypair
from kuza.core.fee_calculator import quote_early_exit
from kuza.core.instruction import Instruction, Operation
from kuza.core.logging_config import setup_logging
from kuza.core.vault_exceptions import VaultError
from kuza.core.vault_state import Vault

logger = logging.getLogger(__name__)

console = Console()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging."""
    logger.error("CLI error: %s", exc, extra={"event": "cli.error"})
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _emit(ctx: click.Context, payload: Dict[str, Any], title: str) -> None:
    """Render a payload as JSON or as a two-column rich table."""
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(payload, indent=2))
        return

    table = Table(title=title, box=box.SIMPLE, show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for key, value in payload.items():
        table.add_row(str(key), json.dumps(value) if isinstance(value, (dict, list)) else str(value))
    console.print(table)


def _config(ctx: click.Context) -> VaultConfig:
    return ctx.obj["config"]


# ============================================================================
# CLI Group
# ============================================================================

@click.group()
@click.option(
    "--network",
    envvar="KUZA_NETWORK",
    type=click.Choice(["devnet", "mainnet"], case_sensitive=False),
    default="devnet",
    show_default=True,
    help="Network whose allow-lists apply",
)
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Log level for structured JSON logs on stderr",
)
@click.version_option(__version__, prog_name="kuza-vault")
@click.pass_context
def cli(ctx: click.Context, network: str, json_output: bool, log_level: str):
    """
    Kuza Vault CLI

    Offline tooling for single-owner, time-locked token vaults.
    """
    ctx.ensure_object(dict)
    setup_logging(name="kuza", level=log_level, environment=network.lower())
    try:
        ctx.obj["config"] = load_config(network)
    except VaultError as exc:
        _cli_fail(exc)
    ctx.obj["json_output"] = json_output


# ============================================================================
# Commands
# ============================================================================

@cli.command()
@click.option("--seed", help="Derive the key deterministically from this text")
@click.pass_context
def keygen(ctx: click.Context, seed: Optional[str]):
    """Generate an owner identity and its private key."""
    if seed is not None:
        private_hex, identity = deterministic_identity_from_seed(seed.encode("utf-8"))
    else:
        private_hex, identity = generate_identity_keypair()
    _emit(
        ctx,
        {"identity": str(Address(identity)), "private_key": private_hex},
        "Owner Identity",
    )


@cli.command()
@click.argument("owner")
@click.pass_context
def derive(ctx: click.Context, owner: str):
    """Derive the vault address for OWNER (base58 identity)."""
    config = _config(ctx)
    try:
        owner_address = Address.from_base58(owner)
        vault, nonce = AddressDeriver(config.program_id).derive(owner_address, config.seed_label)
    except (ValueError, VaultError) as exc:
        _cli_fail(exc)
    _emit(
        ctx,
        {
            "owner": str(owner_address),
            "vault": str(vault),
            "nonce": nonce,
            "program_id": str(config.program_id),
            "network": config.network.value,
        },
        "Vault Address",
    )


@cli.command("fee-quote")
@click.option("--deposited-at", type=int, required=True, help="Deposit unix timestamp")
@click.option("--now", type=int, required=True, help="Exit unix timestamp")
@click.option("--lock-days", type=click.IntRange(min=0), help="Lock length in days")
@click.option("--basis", type=click.IntRange(min=0), help="Fee basis in native base units")
@click.pass_context
def fee_quote(
    ctx: click.Context,
    deposited_at: int,
    now: int,
    lock_days: Optional[int],
    basis: Optional[int],
):
    """Quote the early-exit fee for leaving a lock at NOW."""
    config = _config(ctx)
    lock_duration = config.lock_duration if lock_days is None else lock_days * SECONDS_PER_DAY
    fee_basis = config.entry_fee if basis is None else basis
    try:
        quote = quote_early_exit(
            now,
            deposited_at,
            lock_duration,
            config.early_exit_base_fee_rate,
            fee_basis,
        )
    except (ValueError, VaultError) as exc:
        _cli_fail(exc)
    payload = quote.to_dict()
    payload["fee_basis"] = fee_basis
    _emit(ctx, payload, "Early Exit Fee")


@cli.command("decode-record")
@click.argument("record_hex")
@click.pass_context
def decode_record(ctx: click.Context, record_hex: str):
    """Decode a stored vault record given as hex."""
    try:
        vault = Vault.from_bytes(bytes.fromhex(record_hex.strip()))
    except (ValueError, VaultError) as exc:
        _cli_fail(exc)
    payload = vault.to_dict()
    payload["state"] = vault.state.value
    payload["matures_at"] = vault.matures_at if vault.is_locked else None
    _emit(ctx, payload, "Vault Record")


@cli.command()
@click.argument(
    "operation",
    type=click.Choice([op.name.lower() for op in Operation], case_sensitive=False),
)
@click.option("--amount", type=click.IntRange(min=0), help="Amount in asset base units")
@click.pass_context
def encode(ctx: click.Context, operation: str, amount: Optional[int]):
    """Encode instruction data for OPERATION.

    \b
    release is rejected until the lock has matured;
    withdraw leaves early and pays the early-exit fee.
    """
    try:
        instruction = Instruction(Operation[operation.upper()], amount)
    except VaultError as exc:
        _cli_fail(exc)
    _emit(
        ctx,
        {
            "operation": instruction.operation.name.lower(),
            "amount": instruction.amount,
            "data": instruction.encode().hex(),
        },
        "Instruction Data",
    )


@cli.command("show-config")
@click.pass_context
def show_config(ctx: click.Context):
    """Show the active network configuration."""
    _emit(ctx, _config(ctx).to_dict(), "Vault Configuration")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
