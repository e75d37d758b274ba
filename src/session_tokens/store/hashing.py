"""OwnershipHasher — salted HMAC-SHA256 hashes of ownership keys.

Used by the reference stores to issue session verification hashes. A hash
has the form ``<salt-hex>$<digest-hex>`` where the digest is
HMAC-SHA256(secret, salt || ownership_key). The salt makes two sessions of
the same owner carry different hashes; the secret keeps hashes from being
recomputed outside the store.
"""
from __future__ import annotations

import secrets

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

_SALT_BYTES = 16
SECRET_BYTES = 32


class OwnershipHasher:
    """Issue and verify ownership-key hashes.

    Parameters
    ----------
    secret:
        HMAC key. Generated randomly when omitted, in which case hashes only
        verify within this process.
    """

    def __init__(self, secret: bytes | None = None) -> None:
        self._secret = secret if secret is not None else secrets.token_bytes(SECRET_BYTES)

    def hash(self, ownership_key: str) -> str:
        """Return a fresh salted hash of *ownership_key*."""
        salt = secrets.token_bytes(_SALT_BYTES)
        digest = self._mac(salt, ownership_key).finalize()
        return f"{salt.hex()}${digest.hex()}"

    def verify(self, hash_value: str, ownership_key: str) -> bool:
        """Return True if *hash_value* was issued for *ownership_key*.

        Malformed hashes verify as False. The digest comparison is
        constant-time.
        """
        salt_hex, sep, digest_hex = hash_value.partition("$")
        if not sep:
            return False
        try:
            salt = bytes.fromhex(salt_hex)
            digest = bytes.fromhex(digest_hex)
        except ValueError:
            return False
        try:
            self._mac(salt, ownership_key).verify(digest)
        except InvalidSignature:
            return False
        return True

    def _mac(self, salt: bytes, ownership_key: str) -> hmac.HMAC:
        mac = hmac.HMAC(self._secret, hashes.SHA256())
        mac.update(salt)
        mac.update(ownership_key.encode("utf-8"))
        return mac
