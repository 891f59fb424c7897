"""
Secret Hashing

PINs and passwords are stored only as salted PBKDF2-HMAC-SHA256 hashes.
Verification recomputes the hash and compares in constant time.

Encoded format: ``pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>``
Iterations and salt travel with the hash, so raising the cost later
does not invalidate existing secrets.
"""

import hashlib
import hmac
import secrets
from typing import Optional

from pocketledger.config import SecuritySettings, get_settings


ALGORITHM = "pbkdf2_sha256"


class SecretHashError(Exception):
    """Stored hash is malformed."""
    pass


class SecretHasher:
    """One-way hash and constant-time verify for PIN/password secrets."""

    def __init__(self, settings: Optional[SecuritySettings] = None):
        self._settings = settings or get_settings().security

    def hash(self, secret: str) -> str:
        if not secret:
            raise ValueError("Secret cannot be empty")
        salt = secrets.token_bytes(self._settings.salt_bytes)
        iterations = self._settings.hash_iterations
        digest = self._derive(secret, salt, iterations)
        return f"{ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"

    def verify(self, secret: str, encoded: str) -> bool:
        """
        Check ``secret`` against an encoded hash.

        Returns False for a wrong secret. Raises SecretHashError only when
        the stored value itself is corrupt.
        """
        if not secret:
            return False
        algorithm, iterations, salt, expected = self._decode(encoded)
        if algorithm != ALGORITHM:
            raise SecretHashError(f"Unsupported hash algorithm: {algorithm}")
        actual = self._derive(secret, salt, iterations)
        return hmac.compare_digest(actual, expected)

    @staticmethod
    def _derive(secret: str, salt: bytes, iterations: int) -> bytes:
        return hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, iterations)

    @staticmethod
    def _decode(encoded: str) -> tuple[str, int, bytes, bytes]:
        try:
            algorithm, iterations, salt_hex, hash_hex = encoded.split("$")
            return algorithm, int(iterations), bytes.fromhex(salt_hex), bytes.fromhex(hash_hex)
        except (AttributeError, ValueError) as e:
            raise SecretHashError(f"Malformed secret hash: {e}")
