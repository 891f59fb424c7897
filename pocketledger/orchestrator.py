"""
Main Orchestrator for Pocket Ledger

This module ties together all the components and exposes the
operations a caller (HTTP layer, CLI, job runner) can perform:
1. Money movements (deposit, withdraw, transfer)
2. Savings goals (create, fund, break, list)
3. Read models (history, account summary)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every money movement re-checks the caller's PIN
- Every money movement carries an idempotency key
- Every step is audited

The caller's Identity is always an explicit argument. Resolving a session
token into an Identity happens before this layer (see AccessGate.authenticate).
"""

from typing import Optional
from uuid import UUID

from pocketledger.access import AccessGate
from pocketledger.audit import AuditLogger, create_correlation_id
from pocketledger.config import LedgerSettings, SecuritySettings, get_settings
from pocketledger.ledger import (
    AccountLedger,
    IdempotencyGuard,
    MoneyMovementFlow,
    SavingsGoalFlow,
    SavingsGoalLedger,
    TransactionRecorder,
    TransferOrchestrator,
)
from pocketledger.models.account import AccountSummary
from pocketledger.models.identity import Identity
from pocketledger.models.savings import GoalSummary
from pocketledger.models.transaction import HistoryPage, OperationReceipt
from pocketledger.registration import IdentityRegistry
from pocketledger.services.security import SecretHasher, TokenVerifierInterface
from pocketledger.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)


class LedgerService:
    """
    Facade over the ledger flows.

    Each call gets a fresh correlation ID unless the caller passes one,
    so every audit event of a single request can be traced together.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        gate: Optional[AccessGate] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().ledger
        self._gate = gate or AccessGate(storage)
        self._audit_logger = audit_logger

        account_ledger = AccountLedger(self._settings)
        guard = IdempotencyGuard(storage)
        self._recorder = TransactionRecorder(storage, self._settings)

        self._movements = MoneyMovementFlow(
            storage,
            self._gate,
            account_ledger=account_ledger,
            guard=guard,
            recorder=self._recorder,
            audit_logger=audit_logger,
            settings=self._settings,
        )
        self._transfers = TransferOrchestrator(
            storage,
            self._gate,
            account_ledger=account_ledger,
            guard=guard,
            recorder=self._recorder,
            audit_logger=audit_logger,
            settings=self._settings,
        )
        self._goals = SavingsGoalFlow(
            storage,
            self._gate,
            goal_ledger=SavingsGoalLedger(account_ledger, self._settings),
            audit_logger=audit_logger,
            settings=self._settings,
        )

    # -------------------------------------------------------------------------
    # Money movements
    # -------------------------------------------------------------------------

    async def deposit(
        self,
        identity: Optional[Identity],
        amount,
        secret: Optional[str],
        idempotency_key: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> OperationReceipt:
        return await self._movements.deposit(
            identity, amount, secret, idempotency_key,
            correlation_id or create_correlation_id(),
        )

    async def withdraw(
        self,
        identity: Optional[Identity],
        amount,
        secret: Optional[str],
        idempotency_key: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> OperationReceipt:
        return await self._movements.withdraw(
            identity, amount, secret, idempotency_key,
            correlation_id or create_correlation_id(),
        )

    async def transfer(
        self,
        identity: Optional[Identity],
        receiver_public_code: str,
        amount,
        secret: Optional[str],
        idempotency_key: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> OperationReceipt:
        return await self._transfers.transfer(
            identity, receiver_public_code, amount, secret, idempotency_key,
            correlation_id or create_correlation_id(),
        )

    # -------------------------------------------------------------------------
    # Savings goals
    # -------------------------------------------------------------------------

    async def create_goal(
        self,
        identity: Optional[Identity],
        goal_amount,
        goal_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> GoalSummary:
        return await self._goals.create_goal(
            identity, goal_amount, goal_name,
            correlation_id or create_correlation_id(),
        )

    async def fund_goal(
        self,
        identity: Optional[Identity],
        goal_id: UUID,
        amount,
        secret: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> GoalSummary:
        return await self._goals.fund_goal(
            identity, goal_id, amount, secret,
            correlation_id or create_correlation_id(),
        )

    async def break_goal(
        self,
        identity: Optional[Identity],
        goal_id: UUID,
        secret: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> GoalSummary:
        return await self._goals.break_goal(
            identity, goal_id, secret,
            correlation_id or create_correlation_id(),
        )

    async def list_goals(
        self,
        identity: Optional[Identity],
        active_only: bool = False,
    ) -> list[GoalSummary]:
        return await self._goals.list_goals(identity, active_only)

    # -------------------------------------------------------------------------
    # Read models
    # -------------------------------------------------------------------------

    async def history(self, identity: Optional[Identity], page: int = 0) -> HistoryPage:
        context = await self._gate.resolve_context(identity)
        return await self._recorder.history(context.identity, page)

    async def account_summary(self, identity: Optional[Identity]) -> AccountSummary:
        context = await self._gate.resolve_context(identity)
        return AccountSummary(
            id=context.account_id,
            balance=context.account.balance,
            full_name=context.identity.full_name,
            public_code=context.public_code,
        )


def create_app_components(
    storage: Optional[LedgerStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    token_verifier: Optional[TokenVerifierInterface] = None,
    ledger_settings: Optional[LedgerSettings] = None,
    security_settings: Optional[SecuritySettings] = None,
) -> tuple[LedgerService, IdentityRegistry, AccessGate]:
    """
    Factory function to create all application components.

    Args:
        storage: Ledger storage backend. Defaults to in-memory.
        audit_storage: Audit event sink. Defaults to in-memory.
        token_verifier: Session token verifier used by AccessGate.authenticate

    Returns:
        (ledger_service, identity_registry, access_gate)
    """
    storage = storage or InMemoryLedgerStorage()
    audit_logger = AuditLogger(audit_storage or InMemoryAuditStorage())
    hasher = SecretHasher(security_settings)

    gate = AccessGate(storage, hasher=hasher, token_verifier=token_verifier)
    registry = IdentityRegistry(
        storage,
        hasher=hasher,
        audit_logger=audit_logger,
        settings=security_settings,
    )
    service = LedgerService(
        storage,
        gate=gate,
        audit_logger=audit_logger,
        settings=ledger_settings,
    )
    return service, registry, gate
