"""
Identity & Access Gate

Turns an already-authenticated Identity into a validated AuthContext
and re-checks a secret on demand.

CRITICAL: Money-moving operations ALWAYS go through ``require_secret``.
Holding a valid session is not enough to move funds; the caller must
also present the PIN (or password) again.
"""

from typing import Optional

from pocketledger.errors import (
    AccountMissingError,
    CredentialsMissingError,
    InvalidSecretError,
    MissingSecretError,
    NotAuthenticatedError,
)
from pocketledger.models.identity import AuthContext, Identity, SecretKind
from pocketledger.services.security import SecretHasher, TokenVerifierInterface
from pocketledger.services.storage import LedgerStorageInterface


class AccessGate:
    """Resolves caller context and re-validates secrets."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        hasher: Optional[SecretHasher] = None,
        token_verifier: Optional[TokenVerifierInterface] = None,
    ):
        self._storage = storage
        self._hasher = hasher or SecretHasher()
        self._token_verifier = token_verifier

    async def authenticate(self, token: Optional[str]) -> Identity:
        """Resolve a session token through the external verifier."""
        if not token or self._token_verifier is None:
            raise NotAuthenticatedError()
        identity = await self._token_verifier.verify(token)
        if identity is None:
            raise NotAuthenticatedError()
        return identity

    async def resolve_context(
        self,
        identity: Optional[Identity],
        secret: Optional[str] = None,
        kind: SecretKind = SecretKind.PIN,
    ) -> AuthContext:
        """
        Build the caller context; verify ``secret`` only if one was given.

        Raises:
            NotAuthenticatedError: No identity attached to the call
            AccountMissingError: Identity has no account (integrity violation)
            InvalidSecretError: Secret does not match
        """
        if identity is None:
            raise NotAuthenticatedError()

        account = await self._storage.get_account_by_owner(identity.id)
        if account is None:
            raise AccountMissingError(identity.id)

        if secret is not None and secret.strip():
            await self._verify_secret(identity, secret, kind)

        return AuthContext(identity=identity, account=account)

    async def require_secret(
        self,
        identity: Optional[Identity],
        secret: Optional[str],
        kind: SecretKind = SecretKind.PIN,
    ) -> AuthContext:
        """Same as ``resolve_context`` but a blank secret is an error."""
        if identity is None:
            raise NotAuthenticatedError()
        if secret is None or not secret.strip():
            if kind == SecretKind.PIN:
                raise MissingSecretError()
            raise MissingSecretError("Password is required")
        return await self.resolve_context(identity, secret, kind)

    async def _verify_secret(self, identity: Identity, secret: str, kind: SecretKind) -> None:
        credential = await self._storage.get_credential(identity.id)
        if credential is None:
            raise CredentialsMissingError(identity.id)

        if not self._hasher.verify(secret, credential.hash_for(kind)):
            if kind == SecretKind.PIN:
                raise InvalidSecretError()
            raise InvalidSecretError("Invalid password")
