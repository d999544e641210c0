"""Vault record storage keyed by derived address."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from kuza.core.address import Address
from kuza.core.vault_exceptions import AlreadyInitializedError, VaultNotFoundError
from kuza.core.vault_state import Vault

logger = logging.getLogger(__name__)


class VaultStore:
    """Holds encoded vault records; one record per derived address."""

    def __init__(self) -> None:
        self._records: Dict[Address, bytes] = {}

    def __len__(self) -> int:
        return len(self._records)

    def exists(self, address: Address) -> bool:
        return address in self._records

    def raw(self, address: Address) -> Optional[bytes]:
        return self._records.get(address)

    def load(self, address: Address) -> Optional[Vault]:
        data = self._records.get(address)
        if data is None:
            return None
        return Vault.from_bytes(data)

    def create(self, address: Address, vault: Vault) -> None:
        if address in self._records:
            raise AlreadyInitializedError(
                f"Vault already exists at {address}",
                details={"vault": str(address)},
            )
        self._records[address] = vault.to_bytes()
        logger.debug(
            "Vault record created",
            extra={"event": "vault_store.create", "vault": address.short()},
        )

    def save(self, address: Address, vault: Vault) -> None:
        if address not in self._records:
            raise VaultNotFoundError(
                f"No vault at {address}",
                details={"vault": str(address)},
            )
        self._records[address] = vault.to_bytes()

    @contextmanager
    def atomic(self) -> Iterator[None]:
        snapshot = dict(self._records)
        try:
            yield
        except BaseException:
            self._records = snapshot
            raise
