"""
Idempotency Guard

Makes retried mutating requests safe. Idempotency keys are generated
client-side (typically UUIDs) and sent with each request, so a request
replayed after a network error, a double click, or a timeout cannot move
money twice.

DESIGN DECISION: A key is claimed inside the SAME storage commit as the
balance change it protects. There is no separate "check, then later
insert" step that two concurrent retries could both pass.
``reject_if_claimed`` exists only so a replay is reported as a duplicate
instead of as, say, insufficient balance; it never replaces the claim.
"""

from typing import Optional

from pocketledger.errors import DuplicateOperationError, MissingIdempotencyKeyError
from pocketledger.services.storage import (
    DuplicateKeyError,
    LedgerStorageInterface,
    UnitOfWork,
)


class IdempotencyGuard:
    """Claims operation keys atomically with the work they protect."""

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    def require_key(self, idempotency_key: Optional[str]) -> str:
        if idempotency_key is None or not idempotency_key.strip():
            raise MissingIdempotencyKeyError()
        return idempotency_key.strip()

    async def reject_if_claimed(self, idempotency_key: str) -> None:
        """Advisory early exit for replays. Not a substitute for ``claim``."""
        if await self._storage.key_exists(idempotency_key):
            raise DuplicateOperationError(idempotency_key)

    def claim(self, unit: UnitOfWork, idempotency_key: Optional[str]) -> UnitOfWork:
        """Attach the key to ``unit`` so it commits with the mutation."""
        unit.claim_key = self.require_key(idempotency_key)
        return unit

    async def commit(self, unit: UnitOfWork) -> None:
        """
        Commit a unit that claims a key.

        Raises:
            DuplicateOperationError: Someone already committed this key
            VersionConflictError: Propagated for the optimistic retry loop
        """
        try:
            await self._storage.commit(unit)
        except DuplicateKeyError as e:
            raise DuplicateOperationError(e.idempotency_key) from e

    async def is_claimed(self, idempotency_key: Optional[str]) -> bool:
        """Diagnostic existence check. Never use it to gate a mutation."""
        if idempotency_key is None or not idempotency_key.strip():
            return False
        return await self._storage.key_exists(idempotency_key.strip())
