"""
Vault-specific exception hierarchy for Kuza.

Every failure the vault program can surface carries a stable ``code`` tag so
callers can branch on the failure reason without string matching.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class VaultError(Exception):
    """Base exception for all vault errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        code: Stable failure tag surfaced to callers
    """

    code = "VaultError"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ==================== Authorization Errors ====================


class AuthorizationError(VaultError):
    """Raised when a request fails an authorization guard."""

    code = "Unauthorized"


class MissingSignatureError(AuthorizationError):
    """Raised when the caller did not sign the request."""

    code = "MissingSignature"


class AddressMismatchError(AuthorizationError):
    """Raised when a supplied vault address differs from the derived one."""

    code = "AddressMismatch"


class NotAllowListedError(AuthorizationError):
    """Raised when an asset or fee recipient is not valid for the active network."""

    code = "NotAllowListed"


class InvalidAccountOwnershipError(AuthorizationError):
    """Raised when a holding account is not administered by the expected ledger."""

    code = "InvalidAccountOwnership"


# ==================== Lifecycle Errors ====================


class VaultStateError(VaultError):
    """Raised when an operation is not valid in the vault's current state."""

    code = "InvalidState"


class AlreadyInitializedError(VaultStateError):
    """Raised when a vault record already exists at the derived address."""

    code = "AlreadyInitialized"


class VaultNotFoundError(VaultStateError):
    """Raised when no vault record exists at the derived address."""

    code = "VaultNotFound"


class NotLockedError(VaultStateError):
    """Raised when releasing or withdrawing from an unlocked vault."""

    code = "NotLocked"


class LockNotMaturedError(VaultStateError):
    """Raised when releasing before the lock duration has elapsed."""

    code = "LockNotMatured"


# ==================== Value Errors ====================


class InvalidAmountError(VaultError):
    """Raised when an amount is zero or negative where a positive one is required."""

    code = "InvalidAmount"


class ArithmeticOverflowError(VaultError):
    """Raised when amount or fee arithmetic leaves the representable range."""

    code = "ArithmeticOverflow"


class TransferFailureError(VaultError):
    """Raised when the ledger rejects a transfer.

    The ledger's own failure reason is preserved in ``reason`` and the
    original exception is chained as ``__cause__``.
    """

    code = "TransferFailure"

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.reason = reason


# ==================== Encoding Errors ====================


class MalformedRequestError(VaultError):
    """Raised when instruction data or its account list cannot be decoded."""

    code = "MalformedRequest"


class CorruptedVaultRecordError(VaultError):
    """Raised when stored vault bytes do not decode to a consistent record."""

    code = "CorruptedVaultRecord"


class DerivationError(VaultError):
    """Raised when no nonce yields an off-curve derived address."""

    code = "DerivationError"


class ConfigurationError(VaultError):
    """Raised when vault configuration is missing or invalid."""

    code = "ConfigurationError"


# ==================== Utility Functions ====================


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, code and any details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, VaultError):
        context["code"] = exc.code
        if exc.details:
            context["details"] = exc.details

    if isinstance(exc, TransferFailureError) and exc.reason:
        context["transfer_reason"] = exc.reason

    return context
