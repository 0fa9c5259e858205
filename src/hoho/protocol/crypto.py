"""Ed25519 verification of inbound interaction requests.

Wraps PyNaCl (libsodium).  The signed message is the timestamp header
followed by the request body exactly as received -- the body must never
be re-serialized before verification, since whitespace and key order
change the bytes.
"""

from __future__ import annotations

import nacl.exceptions
from nacl.encoding import HexEncoder
from nacl.signing import SigningKey, VerifyKey

from hoho.protocol.errors import ConfigurationError


def load_verify_key(public_key_hex: str) -> VerifyKey:
    """Restore the platform's verify key from its hex encoding.

    Raises:
        ConfigurationError: If the key is not 32 bytes of hex.
    """
    try:
        return VerifyKey(public_key_hex.strip(), encoder=HexEncoder)
    except (ValueError, TypeError, nacl.exceptions.CryptoError) as exc:
        raise ConfigurationError(f"Invalid Ed25519 public key: {exc}") from exc


def interaction_message(timestamp: str, raw_body: bytes) -> bytes:
    """Build the signed message: UTF-8 timestamp followed by the raw body."""
    return timestamp.encode("utf-8") + raw_body


def sign_interaction(raw_body: bytes, timestamp: str, signing_key: SigningKey) -> str:
    """Sign an interaction the way the platform does; returns hex.

    Used by tests and local tooling that simulate the platform.
    """
    signed = signing_key.sign(interaction_message(timestamp, raw_body))
    return signed.signature.hex()


def verify(
    raw_body: bytes,
    signature: str | None,
    timestamp: str | None,
    public_key: str | VerifyKey,
) -> bool:
    """Return ``True`` if *signature* is valid for ``timestamp + raw_body``.

    Never raises: missing headers, malformed hex, a malformed key and
    cryptographic mismatches all yield ``False``.
    """
    if not signature or not timestamp:
        return False
    try:
        verify_key = (
            public_key
            if isinstance(public_key, VerifyKey)
            else VerifyKey(public_key, encoder=HexEncoder)
        )
        sig_bytes = bytes.fromhex(signature)
        verify_key.verify(interaction_message(timestamp, raw_body), sig_bytes)
    except (ValueError, TypeError, nacl.exceptions.CryptoError):
        return False
    return True


class SignatureVerifier:
    """Verifies inbound requests against one platform public key.

    The key is decoded once at construction; :meth:`verify` holds no
    mutable state and is safe to call from concurrent requests.
    """

    def __init__(self, public_key_hex: str) -> None:
        self._verify_key = load_verify_key(public_key_hex)

    def verify(
        self, raw_body: bytes, signature: str | None, timestamp: str | None
    ) -> bool:
        return verify(raw_body, signature, timestamp, self._verify_key)
