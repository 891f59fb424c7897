"""Security services package."""

from pocketledger.services.security.hashing import SecretHasher, SecretHashError
from pocketledger.services.security.tokens import TokenVerifierInterface

__all__ = [
    "SecretHashError",
    "SecretHasher",
    "TokenVerifierInterface",
]
