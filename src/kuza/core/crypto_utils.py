"""Utility helpers for secp256k1 identity keys and signatures.

Identities are the 32-byte x-coordinate of a public key whose y-coordinate is
even, so an identity alone is enough to rebuild the verifying key.
"""

from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

_CURVE = ec.SECP256K1()
_CURVE_ORDER = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)
_EVEN_Y_PREFIX = b"\x02"

def _normalize_private_value(value: int) -> int:
    normalized = value % _CURVE_ORDER
    if normalized == 0:
        normalized = 1
    return normalized

def _private_key_to_hex(private_key: ec.EllipticCurvePrivateKey) -> str:
    return private_key.private_numbers().private_value.to_bytes(32, "big").hex()

def _even_y_private_key(private_value: int) -> ec.EllipticCurvePrivateKey:
    private_key = ec.derive_private_key(_normalize_private_value(private_value), _CURVE)
    if private_key.public_key().public_numbers().y % 2:
        private_key = ec.derive_private_key(
            _CURVE_ORDER - private_key.private_numbers().private_value, _CURVE
        )
    return private_key

def _identity_bytes(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    return private_key.public_key().public_numbers().x.to_bytes(32, "big")

def load_private_key_from_hex(private_hex: str) -> ec.EllipticCurvePrivateKey:
    return _even_y_private_key(int(private_hex, 16))

def load_identity_public_key(identity: bytes) -> ec.EllipticCurvePublicKey:
    """Rebuild the verifying key for an identity.

    Raises:
        ValueError: If the bytes are not the x-coordinate of a curve point.
    """
    if len(identity) != 32:
        raise ValueError("Identity must be 32 bytes.")
    return ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, _EVEN_Y_PREFIX + identity)

def is_on_curve(candidate: bytes) -> bool:
    """Return True when ``candidate`` is a usable public key x-coordinate."""
    try:
        load_identity_public_key(candidate)
    except ValueError:
        return False
    return True

def generate_identity_keypair() -> tuple[str, bytes]:
    private_key = _even_y_private_key(ec.generate_private_key(_CURVE).private_numbers().private_value)
    return _private_key_to_hex(private_key), _identity_bytes(private_key)

def deterministic_identity_from_seed(seed: bytes) -> tuple[str, bytes]:
    if len(seed) < 32:
        seed = seed.ljust(32, b"\x00")
    private_key = _even_y_private_key(int.from_bytes(seed[:32], "big"))
    return _private_key_to_hex(private_key), _identity_bytes(private_key)

def identity_from_private_hex(private_hex: str) -> bytes:
    return _identity_bytes(load_private_key_from_hex(private_hex))

def _validate_signature_range(r: int, s: int) -> None:
    if not (1 <= r < _CURVE_ORDER):
        raise ValueError("Signature r component out of range.")
    if not (1 <= s < _CURVE_ORDER):
        raise ValueError("Signature s component out of range.")

def canonicalize_signature_components(r: int, s: int) -> tuple[int, int]:
    """
    Normalize signature components to canonical low-S form.

    Args:
        r: Signature r component
        s: Signature s component

    Returns:
        Tuple of canonical (r, s)
    """
    _validate_signature_range(r, s)
    if s > _CURVE_ORDER // 2:
        s = _CURVE_ORDER - s
    return r, s

def is_canonical_signature(r: int, s: int) -> bool:
    try:
        _validate_signature_range(r, s)
    except ValueError:
        return False
    return s <= _CURVE_ORDER // 2

def sign_message_hex(private_hex: str, message: bytes) -> str:
    private_key = load_private_key_from_hex(private_hex)
    der_signature = private_key.sign(message, ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der_signature)
    r, s = canonicalize_signature_components(r, s)
    return (r.to_bytes(32, "big") + s.to_bytes(32, "big")).hex()

def verify_signature_hex(identity: bytes, message: bytes, signature_hex: str) -> bool:
    try:
        public_key = load_identity_public_key(identity)
        raw_signature = bytes.fromhex(signature_hex)
    except ValueError:
        return False
    if len(raw_signature) != 64:
        return False
    r = int.from_bytes(raw_signature[:32], "big")
    s = int.from_bytes(raw_signature[32:], "big")
    if not is_canonical_signature(r, s):
        return False
    try:
        public_key.verify(encode_dss_signature(r, s), message, ec.ECDSA(hashes.SHA256()))
    except InvalidSignature:
        return False
    return True
