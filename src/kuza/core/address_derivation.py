"""
Deterministic vault address derivation.

A derived address is a SHA-256 digest of the seeds, a one-byte nonce, the
program id and a domain marker. The nonce is searched from 255 downwards and
the first digest that is *not* a secp256k1 x-coordinate wins, so no private
key can ever sign for the address. Authority over it is proven instead by
presenting the seeds and nonce (``DerivedAuthority``), which anyone can
re-derive and compare.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Sequence, Tuple

from kuza.core.address import Address
from kuza.core.crypto_utils import is_on_curve
from kuza.core.vault_exceptions import DerivationError

DERIVATION_MARKER = b"KuzaDerivedAddress"
MAX_SEED_LENGTH = 32
MAX_NONCE = 255


class AddressDeriver:
    """Derives program-scoped addresses from seeds."""

    def __init__(self, program_id: Address):
        self.program_id = program_id

    def create_address(self, seeds: Sequence[bytes], nonce: int) -> Address:
        """Recompute the address for ``seeds`` and a known ``nonce``.

        Raises:
            DerivationError: If the digest lands on the curve.
            ValueError: If a seed is too long or the nonce is not a byte.
        """
        if not 0 <= nonce <= MAX_NONCE:
            raise ValueError(f"Derivation nonce must fit in one byte, got {nonce}")
        hasher = hashlib.sha256()
        for seed in seeds:
            if len(seed) > MAX_SEED_LENGTH:
                raise ValueError(
                    f"Seed exceeds {MAX_SEED_LENGTH} bytes ({len(seed)})"
                )
            hasher.update(seed)
        hasher.update(bytes([nonce]))
        hasher.update(self.program_id.raw)
        hasher.update(DERIVATION_MARKER)
        digest = hasher.digest()
        if is_on_curve(digest):
            raise DerivationError(
                "Derived address lies on the curve",
                details={"nonce": nonce},
            )
        return Address(digest)

    def find_address(self, seeds: Sequence[bytes]) -> Tuple[Address, int]:
        for nonce in range(MAX_NONCE, -1, -1):
            try:
                return self.create_address(seeds, nonce), nonce
            except DerivationError:
                continue
        raise DerivationError("No nonce produced an off-curve address")

    def derive(self, owner: Address, seed_label: str) -> Tuple[Address, int]:
        """Derive the ``(address, nonce)`` pair for an owner and seed label."""
        return self.find_address(vault_seeds(owner, seed_label))

    def authority_for(self, owner: Address, seed_label: str, nonce: int) -> "DerivedAuthority":
        return DerivedAuthority(
            program_id=self.program_id,
            seeds=vault_seeds(owner, seed_label),
            nonce=nonce,
        )


def vault_seeds(owner: Address, seed_label: str) -> Tuple[bytes, ...]:
    return (seed_label.encode("utf-8"), owner.raw)


@dataclass(frozen=True)
class DerivedAuthority:
    """Proof of authority over a derived address: its seeds and nonce."""

    program_id: Address
    seeds: Tuple[bytes, ...]
    nonce: int

    def address(self) -> Address:
        return AddressDeriver(self.program_id).create_address(self.seeds, self.nonce)
