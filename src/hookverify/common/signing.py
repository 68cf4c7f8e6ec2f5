"""HMAC signing utilities for webhook payloads."""

from __future__ import annotations

import binascii
import hashlib
import hmac


def from_hex(value: str) -> bytes | None:
    """Decode a hex string, returning None when it is malformed."""
    if len(value) % 2:
        return None
    try:
        return binascii.unhexlify(value)
    except ValueError:  # binascii.Error, or non-ASCII input
        return None


def to_hex(data: bytes) -> str:
    """Encode bytes as lowercase hex."""
    return binascii.hexlify(data).decode("ascii")


def compute_sha256(secret: bytes, body: bytes) -> bytes:
    """Compute the raw HMAC-SHA-256 digest of ``body``."""
    return hmac.new(secret, body, hashlib.sha256).digest()


def sign(secret: str, body: bytes) -> str:
    """Create a hex-encoded HMAC-SHA-256 signature."""
    return to_hex(compute_sha256(secret.encode("utf-8"), body))


def secret_equal(expected: bytes, actual: bytes) -> bool:
    """Compare two digests in constant time."""
    return hmac.compare_digest(expected, actual)


def verify(secret: str, body: bytes, signature: str) -> bool:
    """Verify a hex-encoded HMAC-SHA-256 signature."""
    expected = from_hex(signature)
    if expected is None:
        return False
    return secret_equal(expected, compute_sha256(secret.encode("utf-8"), body))
