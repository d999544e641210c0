"""
Kuza Vault Configuration

Supports devnet and mainnet with separate allow-lists. The active network is
chosen once per process from ``KUZA_NETWORK`` (defaulting to devnet for
safety); tests and embedders build their own ``VaultConfig`` instead.
"""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from kuza.core.address import Address
from kuza.core.vault_exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    DEVNET = "devnet"
    MAINNET = "mainnet"

    @classmethod
    def parse(cls, value: str) -> "NetworkType":
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ConfigurationError(
                f"Unknown network {value!r}; expected one of "
                f"{', '.join(n.value for n in cls)}"
            ) from exc


SECONDS_PER_DAY = 86_400
LOCK_DURATION_SECONDS = 30 * SECONDS_PER_DAY
NATIVE_DECIMALS = 9
ENTRY_FEE = 10**NATIVE_DECIMALS // 10  # 0.1 native
EARLY_EXIT_BASE_FEE_RATE = Decimal("0.75")
VAULT_SEED = "vault"
U64_MAX = 2**64 - 1

DEFAULT_PROGRAM_ID = Address(hashlib.sha256(b"kuza.vault.program").digest())
TOKEN_PROGRAM_ID = Address.from_base58("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
NATIVE_PROGRAM_ID = Address(bytes(32))


@dataclass(frozen=True)
class AllowList:
    """One counterparty identifier per network."""

    kind: str
    mainnet: Address
    devnet: Address

    def __post_init__(self) -> None:
        if self.mainnet == self.devnet:
            raise ConfigurationError(
                f"{self.kind} allow-list must use distinct identifiers per network"
            )

    def for_network(self, network: NetworkType) -> Address:
        if network is NetworkType.MAINNET:
            return self.mainnet
        return self.devnet

    def entries(self) -> tuple[Address, Address]:
        return (self.mainnet, self.devnet)


ASSET_ALLOW_LIST = AllowList(
    kind="asset",
    mainnet=Address.from_base58("3PKZCeF6RVw6sAGqCV5BGCATE1gu3bPceWXhfasapXVS"),
    devnet=Address.from_base58("AQYzQ3ZS9tXjhYMuVQ8tGoZMVV5DSuucaJB16mzXic9d"),
)

FEE_RECIPIENT_ALLOW_LIST = AllowList(
    kind="fee_recipient",
    mainnet=Address.from_base58("5zaUUZWoXaWt2Ht5NNQZuQXyfaQKDLyQoESn6BXvVzBd"),
    devnet=Address.from_base58("8jHMkdtKK4CCn4ep6Hponmk1ik7ofUNS9bX9qSuiRcN5"),
)


@dataclass(frozen=True)
class VaultConfig:
    """Everything the vault program needs to know about its deployment."""

    network: NetworkType = NetworkType.DEVNET
    program_id: Address = DEFAULT_PROGRAM_ID
    token_program_id: Address = TOKEN_PROGRAM_ID
    asset_allow_list: AllowList = ASSET_ALLOW_LIST
    fee_recipient_allow_list: AllowList = FEE_RECIPIENT_ALLOW_LIST
    lock_duration: int = LOCK_DURATION_SECONDS
    entry_fee: int = ENTRY_FEE
    early_exit_base_fee_rate: Decimal = field(default=EARLY_EXIT_BASE_FEE_RATE)
    seed_label: str = VAULT_SEED

    def __post_init__(self) -> None:
        if not isinstance(self.network, NetworkType):
            raise ConfigurationError(f"Invalid network: {self.network!r}")
        if self.lock_duration < 0:
            raise ConfigurationError("Lock duration cannot be negative")
        if not 0 <= self.entry_fee <= U64_MAX:
            raise ConfigurationError("Entry fee must fit in an unsigned 64-bit amount")
        rate = Decimal(str(self.early_exit_base_fee_rate))
        if not Decimal(0) <= rate <= Decimal(1):
            raise ConfigurationError(
                f"Early exit fee rate must be within [0, 1], got {rate}"
            )
        object.__setattr__(self, "early_exit_base_fee_rate", rate)
        if not self.seed_label or len(self.seed_label.encode("utf-8")) > 32:
            raise ConfigurationError("Seed label must be 1-32 bytes")

    @property
    def asset(self) -> Address:
        return self.asset_allow_list.for_network(self.network)

    @property
    def fee_recipient(self) -> Address:
        return self.fee_recipient_allow_list.for_network(self.network)

    def to_dict(self) -> dict:
        return {
            "network": self.network.value,
            "program_id": str(self.program_id),
            "token_program_id": str(self.token_program_id),
            "asset": str(self.asset),
            "fee_recipient": str(self.fee_recipient),
            "lock_duration": self.lock_duration,
            "entry_fee": self.entry_fee,
            "early_exit_base_fee_rate": str(self.early_exit_base_fee_rate),
            "seed_label": self.seed_label,
        }


def load_config(network: Optional[str] = None) -> VaultConfig:
    """Build a config from ``network`` or the environment."""
    network_name = network or os.getenv("KUZA_NETWORK", NetworkType.DEVNET.value)
    network_type = NetworkType.parse(network_name)

    program_id = DEFAULT_PROGRAM_ID
    program_override = os.getenv("KUZA_PROGRAM_ID", "").strip()
    if program_override:
        try:
            program_id = Address.from_base58(program_override)
        except ValueError as exc:
            raise ConfigurationError(f"KUZA_PROGRAM_ID is not a valid address: {exc}") from exc

    rate_override = os.getenv("KUZA_EARLY_EXIT_FEE_RATE", "").strip()
    rate = EARLY_EXIT_BASE_FEE_RATE
    if rate_override:
        try:
            rate = Decimal(rate_override)
        except InvalidOperation as exc:
            raise ConfigurationError(
                f"KUZA_EARLY_EXIT_FEE_RATE is not a decimal: {rate_override!r}"
            ) from exc

    config = VaultConfig(
        network=network_type,
        program_id=program_id,
        early_exit_base_fee_rate=rate,
    )
    logger.info(
        "Vault configuration loaded for %s",
        network_type.value,
        extra={"event": "config.loaded", "network": network_type.value},
    )
    return config


_active_config: Optional[VaultConfig] = None


def get_config() -> VaultConfig:
    """Return the process-wide config, loading it on first use."""
    global _active_config
    if _active_config is None:
        _active_config = load_config()
    return _active_config


def reset_config() -> None:
    global _active_config
    _active_config = None


__all__ = [
    "AllowList",
    "ASSET_ALLOW_LIST",
    "DEFAULT_PROGRAM_ID",
    "FEE_RECIPIENT_ALLOW_LIST",
    "NATIVE_PROGRAM_ID",
    "NetworkType",
    "SECONDS_PER_DAY",
    "TOKEN_PROGRAM_ID",
    "U64_MAX",
    "VaultConfig",
    "get_config",
    "load_config",
    "reset_config",
]
