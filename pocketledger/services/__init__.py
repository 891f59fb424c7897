"""Services package."""

from pocketledger.services.security import (
    SecretHasher,
    SecretHashError,
    TokenVerifierInterface,
)
from pocketledger.services.storage import (
    ActiveGoalLimitError,
    AuditStorageInterface,
    DuplicateKeyError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    RowNotFoundError,
    StorageError,
    UniqueConstraintError,
    UnitOfWork,
    VersionConflictError,
)

__all__ = [
    # Security services
    "SecretHashError",
    "SecretHasher",
    "TokenVerifierInterface",
    # Storage services
    "ActiveGoalLimitError",
    "AuditStorageInterface",
    "DuplicateKeyError",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "RowNotFoundError",
    "StorageError",
    "UniqueConstraintError",
    "UnitOfWork",
    "VersionConflictError",
]
