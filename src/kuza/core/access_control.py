"""
Authorization guard for vault instructions.

Every check raises a typed ``VaultError`` and runs before any state mutation:

- signer presence, proven by a secp256k1 signature over the request
- recomputation of the derived vault address (the only defence against a
  caller substituting someone else's vault)
- allow-list membership of counterparties for the active network
- ledger administration and control of holding accounts
"""

from __future__ import annotations

import logging
from typing import Optional

from kuza.core.address import Address
from kuza.core.address_derivation import AddressDeriver
from kuza.core.config import AllowList, VaultConfig
from kuza.core.crypto_utils import verify_signature_hex
from kuza.core.instruction import InstructionRequest
from kuza.core.ledger import Ledger
from kuza.core.vault_exceptions import (
    AddressMismatchError,
    InvalidAccountOwnershipError,
    MissingSignatureError,
    NotAllowListedError,
)

logger = logging.getLogger(__name__)


class AuthorizationGuard:
    def __init__(self, config: VaultConfig, deriver: Optional[AddressDeriver] = None):
        self.config = config
        self.deriver = deriver or AddressDeriver(config.program_id)

    def require_signer(self, request: InstructionRequest, identity: Address) -> None:
        signature = request.signatures.get(identity)
        if signature is None:
            logger.warning(
                "Access denied: missing signature",
                extra={"event": "access_control.missing_signature", "identity": identity.short()},
            )
            raise MissingSignatureError(
                f"{identity} did not sign the request",
                details={"identity": str(identity)},
            )
        if not verify_signature_hex(identity.raw, request.signing_message(), signature):
            logger.warning(
                "Access denied: invalid signature",
                extra={"event": "access_control.invalid_signature", "identity": identity.short()},
            )
            raise MissingSignatureError(
                f"Signature by {identity} does not verify",
                details={"identity": str(identity)},
            )

    def require_derived_address(self, owner: Address, supplied: Address) -> int:
        """Re-derive the owner's vault address and return its nonce."""
        derived, nonce = self.deriver.derive(owner, self.config.seed_label)
        if derived != supplied:
            logger.warning(
                "Access denied: vault address mismatch",
                extra={
                    "event": "access_control.address_mismatch",
                    "expected": derived.short(),
                    "actual": supplied.short(),
                },
            )
            raise AddressMismatchError(
                f"Supplied vault {supplied} is not the vault derived for {owner}",
                details={"expected": str(derived), "supplied": str(supplied)},
            )
        return nonce

    def require_allow_listed(self, candidate: Address, allow_list: AllowList) -> Address:
        expected = allow_list.for_network(self.config.network)
        if candidate != expected:
            logger.warning(
                "Access denied: %s not allow-listed",
                allow_list.kind,
                extra={
                    "event": "access_control.not_allow_listed",
                    "kind": allow_list.kind,
                    "network": self.config.network.value,
                    "candidate": candidate.short(),
                },
            )
            raise NotAllowListedError(
                f"{allow_list.kind} {candidate} is not allowed on {self.config.network.value}",
                details={"kind": allow_list.kind, "candidate": str(candidate)},
            )
        return expected

    def require_ledger_owned(
        self, ledger: Ledger, account: Address, expected_program: Optional[Address] = None
    ) -> None:
        expected = expected_program or self.config.token_program_id
        program = ledger.account_program(account)
        if program != expected:
            raise InvalidAccountOwnershipError(
                f"Account {account} is not administered by the expected ledger",
                details={
                    "account": str(account),
                    "program": str(program) if program else None,
                    "expected": str(expected),
                },
            )

    def require_account_authority(
        self, ledger: Ledger, account: Address, authority: Address
    ) -> None:
        actual = ledger.account_authority(account)
        if actual != authority:
            raise InvalidAccountOwnershipError(
                f"Account {account} is not controlled by {authority}",
                details={
                    "account": str(account),
                    "authority": str(actual) if actual else None,
                    "expected": str(authority),
                },
            )
