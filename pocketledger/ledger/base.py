"""
Shared plumbing for the ledger flows.

Every flow re-authenticates the caller, runs its mutation under the
optimistic retry loop, and audits the outcome. The audit side effects
for the common rejections (bad secret, replayed key, exhausted retries)
live here so each flow only audits what is specific to it.
"""

from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from pocketledger.access import AccessGate
from pocketledger.audit import AuditLogger
from pocketledger.config import LedgerSettings, get_settings
from pocketledger.errors import (
    AuthenticationError,
    ConcurrentModificationError,
    DuplicateOperationError,
)
from pocketledger.ledger.concurrency import run_optimistic
from pocketledger.ledger.idempotency import IdempotencyGuard
from pocketledger.models.identity import AuthContext, Identity, SecretKind
from pocketledger.services.storage import LedgerStorageInterface


T = TypeVar("T")


class LedgerFlow:
    """Base for flows that need the gate, storage and the audit trail."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        gate: AccessGate,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        guard: Optional[IdempotencyGuard] = None,
    ):
        self._storage = storage
        self._gate = gate
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().ledger
        self._guard = guard or IdempotencyGuard(storage)

    async def _reject_replay(
        self,
        identity: Optional[Identity],
        key: str,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Report an already-claimed key before any other check runs."""
        try:
            await self._guard.reject_if_claimed(key)
        except DuplicateOperationError as e:
            await self._audit_duplicate(e, identity.id if identity else None, operation, correlation_id)
            raise

    async def _authorize(
        self,
        identity: Optional[Identity],
        secret: Optional[str],
        correlation_id: Optional[UUID] = None,
        kind: SecretKind = SecretKind.PIN,
    ) -> AuthContext:
        """Re-validate the caller's secret, auditing a failed attempt."""
        try:
            return await self._gate.require_secret(identity, secret, kind)
        except AuthenticationError as e:
            if self._audit_logger:
                await self._audit_logger.log_authentication_failed(
                    actor_id=identity.id if identity else None,
                    error_code=e.error_code,
                    correlation_id=correlation_id,
                )
            raise

    async def _audit_duplicate(
        self,
        error: DuplicateOperationError,
        actor_id: Optional[UUID],
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_duplicate_rejected(
                actor_id=actor_id,
                idempotency_key=error.idempotency_key,
                operation=operation,
                correlation_id=correlation_id,
            )

    async def _run(
        self,
        step: Callable[[], Awaitable[T]],
        operation: str,
        actor_id: Optional[UUID],
        correlation_id: Optional[UUID] = None,
    ) -> T:
        """
        Run ``step`` with optimistic retries.

        Exhausted retries and duplicate keys are audited and re-raised.
        """
        try:
            return await run_optimistic(step, operation, self._settings)
        except ConcurrentModificationError as e:
            if self._audit_logger:
                await self._audit_logger.log_concurrent_modification(
                    actor_id=actor_id,
                    operation=operation,
                    attempts=e.attempts,
                    correlation_id=correlation_id,
                )
            raise
        except DuplicateOperationError as e:
            await self._audit_duplicate(e, actor_id, operation, correlation_id)
            raise
