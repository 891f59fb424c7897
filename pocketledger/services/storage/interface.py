"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the in-memory backend for a real database later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage implementation

The interface is intentionally small: a handful of reads plus ONE atomic
write, ``commit(unit)``. A UnitOfWork bundles every row change of one
logical step (balance updates, goal updates, idempotency claim, record
insert) so the backend can apply all of it or none of it.

Optimistic concurrency: every Account and SavingsGoal in a unit carries
the version it was READ at. The backend accepts the unit only if every
stored version still matches, and bumps each version by one on success.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from pocketledger.models.account import Account
from pocketledger.models.audit import AuditEvent
from pocketledger.models.identity import Credential, Identity
from pocketledger.models.savings import SavingsGoal
from pocketledger.models.transaction import TransactionRecord


class UnitOfWork(BaseModel):
    """
    Everything that must become durable together.

    ``accounts`` / ``goals`` are updates (compare-and-swap on version).
    ``new_*`` fields are inserts. ``claim_key`` reserves an idempotency key;
    ``record`` appends a transaction record whose key is either claimed in
    this same unit or was claimed earlier by the same operation.
    """

    accounts: list[Account] = Field(default_factory=list)
    goals: list[SavingsGoal] = Field(default_factory=list)

    new_identity: Optional[Identity] = None
    new_credential: Optional[Credential] = None
    new_account: Optional[Account] = None
    new_goal: Optional[SavingsGoal] = None
    max_active_goals: Optional[int] = Field(
        default=None,
        description="Reject new_goal if the owner already has this many active goals"
    )

    claim_key: Optional[str] = None
    record: Optional[TransactionRecord] = None

    @property
    def is_empty(self) -> bool:
        return not (
            self.accounts
            or self.goals
            or self.new_identity
            or self.new_credential
            or self.new_account
            or self.new_goal
            or self.claim_key
            or self.record
        )


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (in-memory, PostgreSQL, etc.)
    must implement these methods. Reads return detached copies:
    mutating a returned model never changes stored state.
    """

    # -------------------------------------------------------------------------
    # Identities and credentials
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_identity(self, identity_id: UUID) -> Optional[Identity]:
        pass

    @abstractmethod
    async def get_identity_by_public_code(self, public_code: str) -> Optional[Identity]:
        pass

    @abstractmethod
    async def get_credential(self, identity_id: UUID) -> Optional[Credential]:
        pass

    # -------------------------------------------------------------------------
    # Accounts and goals
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_account_by_owner(self, owner_id: UUID) -> Optional[Account]:
        pass

    @abstractmethod
    async def get_goal(self, goal_id: UUID) -> Optional[SavingsGoal]:
        pass

    @abstractmethod
    async def list_goals(
        self,
        owner_id: UUID,
        active_only: bool = False,
    ) -> list[SavingsGoal]:
        """
        List an owner's goals, oldest first.

        Args:
            owner_id: Owning identity
            active_only: Only return goals that are not broken
        """
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def key_exists(self, idempotency_key: str) -> bool:
        """True if the key was ever claimed, by any kind of operation."""
        pass

    @abstractmethod
    async def list_transactions(
        self,
        identity_id: UUID,
        limit: int = 10,
        offset: int = 0,
    ) -> list[TransactionRecord]:
        """
        List records where the identity is owner, sender or receiver.

        Returns:
            Records newest first
        """
        pass

    @abstractmethod
    async def count_transactions(self, identity_id: UUID) -> int:
        pass

    # -------------------------------------------------------------------------
    # The only write
    # -------------------------------------------------------------------------

    @abstractmethod
    async def commit(self, unit: UnitOfWork) -> None:
        """
        Apply a unit of work atomically.

        Raises:
            VersionConflictError: A row changed since it was read
            DuplicateKeyError: The idempotency key is already claimed/recorded
            UniqueConstraintError: Email, phone, public code or owner already taken
            ActiveGoalLimitError: new_goal would exceed max_active_goals
            CommitOutcomeUnknownError: The unit may have been applied
            StorageError: Anything else; nothing was applied
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Related events in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class VersionConflictError(StorageError):
    """A compare-and-swap write found a newer version than expected."""

    def __init__(self, entity: str, entity_id: UUID, expected: int, actual: int):
        self.entity = entity
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{entity} {entity_id} is at version {actual}, expected {expected}"
        )


class DuplicateKeyError(StorageError):
    """Idempotency key already claimed."""

    def __init__(self, idempotency_key: str):
        self.idempotency_key = idempotency_key
        super().__init__(f"Idempotency key already used: {idempotency_key}")


class UniqueConstraintError(StorageError):
    """Attempted to insert a duplicate unique value."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Unique constraint violated: {field}")


class ActiveGoalLimitError(StorageError):
    """Owner already has the maximum number of active goals."""
    pass


class RowNotFoundError(StorageError):
    """An update referenced a row that does not exist."""
    pass


class CommitOutcomeUnknownError(StorageError):
    """The backend lost the acknowledgement; the unit may or may not be applied."""
    pass
