"""
Storage Services Package

Provides the abstract persistence boundary and an in-memory implementation.
"""

from pocketledger.services.storage.interface import (
    ActiveGoalLimitError,
    CommitOutcomeUnknownError,
    AuditStorageInterface,
    DuplicateKeyError,
    LedgerStorageInterface,
    RowNotFoundError,
    StorageError,
    UniqueConstraintError,
    UnitOfWork,
    VersionConflictError,
)
from pocketledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    "UnitOfWork",
    # Exceptions
    "ActiveGoalLimitError",
    "CommitOutcomeUnknownError",
    "DuplicateKeyError",
    "RowNotFoundError",
    "StorageError",
    "UniqueConstraintError",
    "VersionConflictError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
]
