"""
Token Verifier Interface

Session tokens are issued and parsed outside the ledger. The ledger only
asks a verifier "who does this token belong to?".
"""

from abc import ABC, abstractmethod
from typing import Optional

from pocketledger.models.identity import Identity


class TokenVerifierInterface(ABC):
    """Resolves an inbound credential token to an Identity."""

    @abstractmethod
    async def verify(self, token: str) -> Optional[Identity]:
        """
        Resolve a token.

        Returns:
            The identity the token was issued to, or None if the token is
            missing, expired, or otherwise invalid
        """
        pass
