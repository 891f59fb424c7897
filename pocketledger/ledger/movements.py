"""
Deposit and Withdrawal Flows

Each flow is one commit: the account compare-and-swap, the idempotency
claim and the transaction record become durable together or not at all.

Flow:
1. Key present, not already claimed (advisory)
2. Caller re-authenticated with their PIN
3. Amount valid and within the per-operation ceiling
4. Read account → apply primitive → commit (retried on version conflict)
5. Audit → receipt
"""

from typing import Optional
from uuid import UUID

from pocketledger.access import AccessGate
from pocketledger.audit import AuditLogger
from pocketledger.config import LedgerSettings
from pocketledger.errors import AccountMissingError
from pocketledger.ledger.account_ledger import AccountLedger
from pocketledger.ledger.base import LedgerFlow
from pocketledger.ledger.idempotency import IdempotencyGuard
from pocketledger.ledger.recorder import TransactionRecorder
from pocketledger.models.audit import AuditEventType
from pocketledger.models.identity import Identity
from pocketledger.models.transaction import OperationReceipt, TransactionRecord
from pocketledger.services.storage import LedgerStorageInterface, UnitOfWork


class MoneyMovementFlow(LedgerFlow):
    """Single-account movements: deposit and withdraw."""

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

    async def deposit(
        self,
        identity: Optional[Identity],
        amount,
        secret: Optional[str],
        idempotency_key: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> OperationReceipt:
        """
        Add ``amount`` to the caller's account.

        Raises:
            MissingIdempotencyKeyError, DuplicateOperationError,
            MissingSecretError, InvalidSecretError,
            InvalidAmountError, AmountExceedsLimitError,
            ConcurrentModificationError
        """
        key = self._guard.require_key(idempotency_key)
        await self._reject_replay(identity, key, "deposit", correlation_id)
        context = await self._authorize(identity, secret, correlation_id)
        value = self._ledger.check_limit(self._ledger.check_amount(amount))

        async def step() -> TransactionRecord:
            account = await self._storage.get_account_by_owner(context.identity_id)
            if account is None:
                raise AccountMissingError(context.identity_id)
            self._ledger.deposit(account, value)
            record = self._recorder.deposit_record(context.identity_id, value, key)
            unit = self._guard.claim(UnitOfWork(accounts=[account]), key)
            await self._guard.commit(self._recorder.append(unit, record))
            return record

        record = await self._run(step, "deposit", context.identity_id, correlation_id)
        return await self._complete(AuditEventType.DEPOSIT_COMPLETED, record, correlation_id)

    async def withdraw(
        self,
        identity: Optional[Identity],
        amount,
        secret: Optional[str],
        idempotency_key: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> OperationReceipt:
        """
        Take ``amount`` out of the caller's account.

        Same failures as ``deposit``, plus InsufficientBalanceError.
        """
        key = self._guard.require_key(idempotency_key)
        await self._reject_replay(identity, key, "withdrawal", correlation_id)
        context = await self._authorize(identity, secret, correlation_id)
        value = self._ledger.check_limit(self._ledger.check_amount(amount))

        async def step() -> TransactionRecord:
            account = await self._storage.get_account_by_owner(context.identity_id)
            if account is None:
                raise AccountMissingError(context.identity_id)
            self._ledger.withdraw(account, value)
            record = self._recorder.withdrawal_record(context.identity_id, value, key)
            unit = self._guard.claim(UnitOfWork(accounts=[account]), key)
            await self._guard.commit(self._recorder.append(unit, record))
            return record

        record = await self._run(step, "withdrawal", context.identity_id, correlation_id)
        return await self._complete(AuditEventType.WITHDRAWAL_COMPLETED, record, correlation_id)

    async def _complete(
        self,
        event_type: AuditEventType,
        record: TransactionRecord,
        correlation_id: Optional[UUID],
    ) -> OperationReceipt:
        if self._audit_logger:
            await self._audit_logger.log_movement(
                event_type=event_type,
                record_id=record.id,
                actor_id=record.owner_id,
                amount=record.amount,
                idempotency_key=record.idempotency_key,
                correlation_id=correlation_id,
            )
        return OperationReceipt(id=record.id, amount=record.amount)
