"""
Transfer Orchestrator

Moves money from the caller's account to another identity's account,
addressed by the receiver's public code.

States:
    INITIATED → VALIDATED → DEBITED → CREDITED → RECORDED
                    ↘ ABORTED (any rejection before the commit lands)

Both legs, the idempotency claim and the Transfer record are one unit of
work, so DEBITED, CREDITED and RECORDED become durable together. The only
window left is a commit whose acknowledgement was lost: the claim is
checked to learn whether the unit landed, and if even that check fails
the transfer is surfaced as a ReconciliationRequiredError plus a critical
audit event. It is never reversed automatically.
"""

from enum import Enum
from typing import Optional
from uuid import UUID

import structlog

from pocketledger.access import AccessGate
from pocketledger.audit import AuditLogger
from pocketledger.config import LedgerSettings
from pocketledger.errors import (
    AccountMissingError,
    LedgerError,
    ReceiverNotFoundError,
    ReconciliationRequiredError,
    SelfTransferError,
)
from pocketledger.ledger.account_ledger import AccountLedger
from pocketledger.ledger.base import LedgerFlow
from pocketledger.ledger.idempotency import IdempotencyGuard
from pocketledger.ledger.recorder import TransactionRecorder
from pocketledger.models.audit import AuditEventType
from pocketledger.models.identity import Identity
from pocketledger.models.transaction import OperationReceipt, TransferRecord
from pocketledger.services.storage import (
    CommitOutcomeUnknownError,
    LedgerStorageInterface,
    StorageError,
    UnitOfWork,
)


logger = structlog.get_logger(__name__)


class TransferState(str, Enum):
    INITIATED = "initiated"
    VALIDATED = "validated"
    DEBITED = "debited"
    CREDITED = "credited"
    RECORDED = "recorded"
    ABORTED = "aborted"


class TransferOrchestrator(LedgerFlow):
    """Runs a peer transfer through its state machine."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        gate: AccessGate,
        account_ledger: Optional[AccountLedger] = None,
        guard: Optional[IdempotencyGuard] = None,
        recorder: Optional[TransactionRecorder] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        super().__init__(storage, gate, audit_logger, settings, guard)
        self._ledger = account_ledger or AccountLedger(self._settings)
        self._recorder = recorder or TransactionRecorder(storage, self._settings)

    async def transfer(
        self,
        identity: Optional[Identity],
        receiver_public_code: str,
        amount,
        secret: Optional[str],
        idempotency_key: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> OperationReceipt:
        """
        Transfer ``amount`` to the identity owning ``receiver_public_code``.

        Raises:
            MissingIdempotencyKeyError, DuplicateOperationError,
            MissingSecretError, InvalidSecretError,
            ReceiverNotFoundError, SelfTransferError,
            InvalidAmountError, AmountExceedsLimitError,
            InsufficientBalanceError, ConcurrentModificationError,
            StorageError:
                the transfer was ABORTED and no balance changed
            ReconciliationRequiredError:
                the commit was sent but its outcome could not be confirmed
        """
        state = TransferState.INITIATED
        key = self._guard.require_key(idempotency_key)
        log = logger.bind(idempotency_key=key, correlation_id=str(correlation_id) if correlation_id else None)
        log.debug("transfer_state", state=state.value)

        await self._reject_replay(identity, key, "transfer", correlation_id)
        context = await self._authorize(identity, secret, correlation_id)
        sender_id = context.identity_id

        try:
            receiver = await self._storage.get_identity_by_public_code(receiver_public_code)
            if receiver is None:
                raise ReceiverNotFoundError(receiver_public_code)
            if receiver.id == sender_id:
                raise SelfTransferError()
            value = self._ledger.check_limit(self._ledger.check_amount(amount))
            if await self._storage.get_account_by_owner(receiver.id) is None:
                raise AccountMissingError(receiver.id)
            state = self._advance(log, TransferState.VALIDATED)

            record = self._recorder.transfer_record(sender_id, receiver.id, value, key)

            async def move() -> None:
                source = await self._storage.get_account_by_owner(sender_id)
                if source is None:
                    raise AccountMissingError(sender_id)
                destination = await self._storage.get_account_by_owner(receiver.id)
                if destination is None:
                    raise AccountMissingError(receiver.id)
                self._ledger.transfer_leg(source, destination, value)
                unit = self._guard.claim(UnitOfWork(accounts=[source, destination]), key)
                await self._guard.commit(self._recorder.append(unit, record))

            try:
                await self._run(move, "transfer", sender_id, correlation_id)
            except CommitOutcomeUnknownError as e:
                if not await self._landed(record, state, log, correlation_id, e):
                    raise
        except ReconciliationRequiredError:
            raise
        except LedgerError as e:
            await self._abort(log, state, e.error_code, sender_id, key, correlation_id)
            raise
        except StorageError:
            await self._abort(log, state, "STORAGE_ERROR", sender_id, key, correlation_id)
            raise

        for reached in (TransferState.DEBITED, TransferState.CREDITED, TransferState.RECORDED):
            state = self._advance(log, reached)

        if self._audit_logger:
            await self._audit_logger.log_movement(
                event_type=AuditEventType.TRANSFER_COMPLETED,
                record_id=record.id,
                actor_id=sender_id,
                amount=value,
                idempotency_key=key,
                correlation_id=correlation_id,
                receiver_id=receiver.id,
            )
        return OperationReceipt(id=record.id, amount=record.amount)

    async def _landed(
        self,
        record: TransferRecord,
        state: TransferState,
        log,
        correlation_id: Optional[UUID],
        cause: CommitOutcomeUnknownError,
    ) -> bool:
        """
        Decide whether an unacknowledged commit was applied.

        The unit is atomic, so the claim being present means both legs and
        the record are too.
        """
        log.warning("transfer_commit_unconfirmed", error=str(cause))
        try:
            return await self._guard.is_claimed(record.idempotency_key)
        except StorageError as e:
            error = ReconciliationRequiredError(
                stage=state.value,
                sender_id=record.sender_id,
                receiver_id=record.receiver_id,
                amount=record.amount,
                idempotency_key=record.idempotency_key,
                cause=cause,
            )
            log.critical("transfer_reconciliation_required", stage=state.value, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_reconciliation_required(
                    actor_id=record.sender_id,
                    details=error.to_dict(),
                    error_message=str(cause),
                    correlation_id=correlation_id,
                )
            raise error from e

    async def _abort(
        self,
        log,
        state: TransferState,
        error_code: str,
        sender_id: UUID,
        key: str,
        correlation_id: Optional[UUID],
    ) -> None:
        log.info("transfer_state", state=TransferState.ABORTED.value, stage=state.value, error_code=error_code)
        if self._audit_logger:
            await self._audit_logger.log_transfer_aborted(
                actor_id=sender_id,
                stage=state.value,
                error_code=error_code,
                idempotency_key=key,
                correlation_id=correlation_id,
            )

    @staticmethod
    def _advance(log, state: TransferState) -> TransferState:
        log.debug("transfer_state", state=state.value)
        return state
