"""
In-Memory Storage Implementation

Reference backend for the ledger storage interface. Used by tests and by
single-process deployments.

Every commit runs under one lock and validates the whole unit before
touching any row, so a unit is applied completely or not at all. The lock
is a threading.Lock: the critical section never awaits, so it is safe for
concurrent asyncio tasks and for worker threads alike.

Reads hand out deep copies. Callers mutate their copy and send it back in
a UnitOfWork; the stored row only changes through ``commit``.
"""

import threading
from typing import Optional
from uuid import UUID

from pocketledger.models.account import Account
from pocketledger.models.audit import AuditEvent
from pocketledger.models.identity import Credential, Identity
from pocketledger.models.savings import SavingsGoal
from pocketledger.models.transaction import TransactionRecord
from pocketledger.services.storage.interface import (
    ActiveGoalLimitError,
    AuditStorageInterface,
    DuplicateKeyError,
    LedgerStorageInterface,
    RowNotFoundError,
    StorageError,
    UniqueConstraintError,
    UnitOfWork,
    VersionConflictError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dictionary-backed ledger storage with compare-and-swap commits."""

    def __init__(self):
        self._lock = threading.Lock()
        self._identities: dict[UUID, Identity] = {}
        self._public_codes: dict[str, UUID] = {}
        self._credentials: dict[UUID, Credential] = {}
        self._emails: set[str] = set()
        self._phones: set[str] = set()
        self._accounts: dict[UUID, Account] = {}          # keyed by account id
        self._account_by_owner: dict[UUID, UUID] = {}
        self._goals: dict[UUID, SavingsGoal] = {}
        self._claimed_keys: set[str] = set()
        self._records: list[TransactionRecord] = []       # insertion order
        self._recorded_keys: set[str] = set()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_identity(self, identity_id: UUID) -> Optional[Identity]:
        with self._lock:
            identity = self._identities.get(identity_id)
            return identity.model_copy(deep=True) if identity else None

    async def get_identity_by_public_code(self, public_code: str) -> Optional[Identity]:
        with self._lock:
            identity_id = self._public_codes.get(public_code)
            if identity_id is None:
                return None
            return self._identities[identity_id].model_copy(deep=True)

    async def get_credential(self, identity_id: UUID) -> Optional[Credential]:
        with self._lock:
            credential = self._credentials.get(identity_id)
            return credential.model_copy(deep=True) if credential else None

    async def get_account_by_owner(self, owner_id: UUID) -> Optional[Account]:
        with self._lock:
            account_id = self._account_by_owner.get(owner_id)
            if account_id is None:
                return None
            return self._accounts[account_id].model_copy(deep=True)

    async def get_goal(self, goal_id: UUID) -> Optional[SavingsGoal]:
        with self._lock:
            goal = self._goals.get(goal_id)
            return goal.model_copy(deep=True) if goal else None

    async def list_goals(
        self,
        owner_id: UUID,
        active_only: bool = False,
    ) -> list[SavingsGoal]:
        with self._lock:
            goals = [
                goal.model_copy(deep=True)
                for goal in self._goals.values()
                if goal.owner_id == owner_id and (goal.is_active or not active_only)
            ]
        goals.sort(key=lambda g: g.created_at)
        return goals

    async def key_exists(self, idempotency_key: str) -> bool:
        with self._lock:
            return idempotency_key in self._claimed_keys

    async def list_transactions(
        self,
        identity_id: UUID,
        limit: int = 10,
        offset: int = 0,
    ) -> list[TransactionRecord]:
        with self._lock:
            matching = [r for r in self._records if identity_id in r.participants]
        # Records are appended in commit order, so reversed is newest first.
        matching.reverse()
        return matching[offset:offset + limit]

    async def count_transactions(self, identity_id: UUID) -> int:
        with self._lock:
            return sum(1 for r in self._records if identity_id in r.participants)

    # -------------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------------

    async def commit(self, unit: UnitOfWork) -> None:
        if unit.is_empty:
            return
        with self._lock:
            self._check(unit)
            self._apply(unit)

    def _check(self, unit: UnitOfWork) -> None:
        """Validate the whole unit. Raises before anything is written."""
        for account in unit.accounts:
            stored = self._accounts.get(account.id)
            if stored is None:
                raise RowNotFoundError(f"Account not found: {account.id}")
            if stored.version != account.version:
                raise VersionConflictError("Account", account.id, account.version, stored.version)

        for goal in unit.goals:
            stored = self._goals.get(goal.id)
            if stored is None:
                raise RowNotFoundError(f"Savings goal not found: {goal.id}")
            if stored.version != goal.version:
                raise VersionConflictError("SavingsGoal", goal.id, goal.version, stored.version)

        if unit.claim_key is not None and unit.claim_key in self._claimed_keys:
            raise DuplicateKeyError(unit.claim_key)

        if unit.record is not None:
            key = unit.record.idempotency_key
            if key in self._recorded_keys:
                raise DuplicateKeyError(key)
            if key != unit.claim_key and key not in self._claimed_keys:
                raise StorageError(f"Record key was never claimed: {key}")

        if unit.new_identity is not None:
            if unit.new_identity.id in self._identities:
                raise UniqueConstraintError("identity_id")
            if unit.new_identity.public_code in self._public_codes:
                raise UniqueConstraintError("public_code")

        if unit.new_credential is not None:
            if unit.new_credential.email in self._emails:
                raise UniqueConstraintError("email")
            if unit.new_credential.phone_number in self._phones:
                raise UniqueConstraintError("phone_number")

        if unit.new_account is not None:
            if unit.new_account.owner_id in self._account_by_owner:
                raise UniqueConstraintError("owner_id")

        if unit.new_goal is not None and unit.max_active_goals is not None:
            owner_id = unit.new_goal.owner_id
            active = sum(
                1 for g in self._goals.values()
                if g.owner_id == owner_id and g.is_active
            )
            # Goals broken in this same unit no longer count.
            active -= sum(
                1 for g in unit.goals
                if g.owner_id == owner_id and g.broken and self._goals[g.id].is_active
            )
            if active >= unit.max_active_goals:
                raise ActiveGoalLimitError(
                    f"Owner {owner_id} already has {active} active goals"
                )

    def _apply(self, unit: UnitOfWork) -> None:
        for account in unit.accounts:
            self._accounts[account.id] = account.model_copy(
                update={"version": account.version + 1}, deep=True
            )

        for goal in unit.goals:
            self._goals[goal.id] = goal.model_copy(
                update={"version": goal.version + 1}, deep=True
            )

        if unit.new_identity is not None:
            identity = unit.new_identity.model_copy(deep=True)
            self._identities[identity.id] = identity
            self._public_codes[identity.public_code] = identity.id

        if unit.new_credential is not None:
            credential = unit.new_credential.model_copy(deep=True)
            self._credentials[credential.identity_id] = credential
            self._emails.add(credential.email)
            self._phones.add(credential.phone_number)

        if unit.new_account is not None:
            account = unit.new_account.model_copy(deep=True)
            self._accounts[account.id] = account
            self._account_by_owner[account.owner_id] = account.id

        if unit.new_goal is not None:
            goal = unit.new_goal.model_copy(deep=True)
            self._goals[goal.id] = goal

        if unit.claim_key is not None:
            self._claimed_keys.add(unit.claim_key)

        if unit.record is not None:
            self._records.append(unit.record)
            self._recorded_keys.add(unit.record.idempotency_key)


class InMemoryAuditStorage(AuditStorageInterface):
    """
    In-memory implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        with self._lock:
            self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        with self._lock:
            events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        with self._lock:
            events = list(self._events)
        events.reverse()
        return events[:limit]
