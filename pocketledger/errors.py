"""
Ledger Error Taxonomy

Every rejection the ledger can produce is one of the classes below.
Each carries a stable ``error_code`` for the routing layer and a
``category`` that tells the caller how to react:

- AUTHENTICATION: never retried automatically
- VALIDATION: fix the input and resend
- NOT_FOUND / CONFLICT: definite rejection (a duplicate key means "already done")
- CONCURRENCY: retry the whole request with the SAME idempotency key
- INTEGRITY: data corruption or a bug, not user-correctable
- RECONCILIATION: money left the sender but the movement is incomplete

Storage-level failures (version conflicts, unique violations) are defined
in ``pocketledger.services.storage.interface`` and translated into these
classes at the ledger boundary.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """How a caller should treat a ledger error."""
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    CONCURRENCY = "concurrency"
    INTEGRITY = "integrity"
    RECONCILIATION = "reconciliation"


class LedgerError(Exception):
    """Base exception for every ledger rejection."""

    category: ErrorCategory = ErrorCategory.CONFLICT
    default_code: str = "LEDGER_ERROR"
    retryable: bool = False

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.error_code = error_code or self.default_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "category": self.category.value,
            "message": str(self),
            "retryable": self.retryable,
        }


# =============================================================================
# AUTHENTICATION
# =============================================================================

class AuthenticationError(LedgerError):
    category = ErrorCategory.AUTHENTICATION
    default_code = "AUTHENTICATION_FAILED"


class NotAuthenticatedError(AuthenticationError):
    """No identity is attached to the call."""

    def __init__(self, message: str = "User is not authenticated"):
        super().__init__(message, "NOT_AUTHENTICATED")


class InvalidSecretError(AuthenticationError):
    """PIN or password did not match the stored hash."""

    def __init__(self, message: str = "Invalid PIN code"):
        super().__init__(message, "INVALID_SECRET")


class MissingSecretError(AuthenticationError):
    """A money-moving operation was called without a secret."""

    def __init__(self, message: str = "PIN code is required"):
        super().__init__(message, "MISSING_SECRET")


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationError(LedgerError):
    category = ErrorCategory.VALIDATION
    default_code = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    def __init__(self, message: str = "Amount must be greater than zero"):
        super().__init__(message, "INVALID_AMOUNT")


class AmountExceedsLimitError(ValidationError):
    def __init__(self, limit):
        self.limit = limit
        super().__init__(
            f"Amount exceeds the maximum allowed per operation ({limit})",
            "AMOUNT_EXCEEDS_LIMIT",
        )


class GoalTooSmallError(ValidationError):
    def __init__(self, minimum):
        self.minimum = minimum
        super().__init__(
            f"Goal amount must be at least {minimum}",
            "GOAL_TOO_SMALL",
        )


class InvalidGoalNameError(ValidationError):
    def __init__(self, message: str = "Goal name must be between 1 and 100 characters"):
        super().__init__(message, "INVALID_GOAL_NAME")


class MissingIdempotencyKeyError(ValidationError):
    def __init__(self, message: str = "Idempotency key is required"):
        super().__init__(message, "MISSING_IDEMPOTENCY_KEY")


class InvalidPageError(ValidationError):
    def __init__(self, page: int):
        super().__init__(f"Page must be zero or positive, got {page}", "INVALID_PAGE")


class RegistrationError(ValidationError):
    """Registration input was rejected."""

    def __init__(self, message: str, error_code: str = "REGISTRATION_INVALID"):
        super().__init__(message, error_code)


class NotAdultError(RegistrationError):
    def __init__(self, minimum_age: int):
        super().__init__(
            f"User must be at least {minimum_age} years old to register",
            "USER_NOT_ADULT",
        )


# =============================================================================
# NOT FOUND
# =============================================================================

class NotFoundError(LedgerError):
    category = ErrorCategory.NOT_FOUND
    default_code = "RESOURCE_NOT_FOUND"


class ReceiverNotFoundError(NotFoundError):
    def __init__(self, public_code: str):
        self.public_code = public_code
        super().__init__("Receiver account not found", "RECEIVER_NOT_FOUND")


class GoalNotFoundError(NotFoundError):
    def __init__(self, goal_id):
        self.goal_id = goal_id
        super().__init__(f"Savings goal not found: {goal_id}", "GOAL_NOT_FOUND")


# =============================================================================
# CONFLICT
# =============================================================================

class ConflictError(LedgerError):
    category = ErrorCategory.CONFLICT
    default_code = "CONFLICT"


class InsufficientBalanceError(ConflictError):
    def __init__(self, balance, required):
        self.balance = balance
        self.required = required
        super().__init__(
            f"Insufficient balance. Current: {balance}, Required: {required}",
            "INSUFFICIENT_BALANCE",
        )


class GoalBrokenError(ConflictError):
    def __init__(self, goal_id):
        self.goal_id = goal_id
        super().__init__(
            f"Savings goal {goal_id} has already been broken",
            "GOAL_BROKEN",
        )


class DuplicateOperationError(ConflictError):
    """
    The idempotency key was already used.

    This is a benign replay signal: the original request completed,
    so callers should treat it as "already done".
    """

    is_replay = True

    def __init__(self, idempotency_key: str):
        self.idempotency_key = idempotency_key
        super().__init__(
            "Transaction already processed with this idempotency key",
            "DUPLICATE_OPERATION",
        )


class TooManyActiveGoalsError(ConflictError):
    def __init__(self, maximum: int):
        self.maximum = maximum
        super().__init__(
            f"Maximum number of active savings goals reached ({maximum})",
            "TOO_MANY_ACTIVE_GOALS",
        )


class SelfTransferError(ConflictError):
    def __init__(self):
        super().__init__("Cannot transfer money to yourself", "SELF_TRANSFER")


class DuplicateCredentialError(ConflictError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field.replace('_', ' ').capitalize()} already exists", "CREDENTIAL_EXISTS")


# =============================================================================
# CONCURRENCY
# =============================================================================

class ConcurrentModificationError(LedgerError):
    """Optimistic retries were exhausted; resend with the same idempotency key."""

    category = ErrorCategory.CONCURRENCY
    default_code = "CONCURRENT_MODIFICATION"
    retryable = True

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Concurrent modification detected after {attempts} attempts",
        )


# =============================================================================
# INTEGRITY
# =============================================================================

class IntegrityError(LedgerError):
    category = ErrorCategory.INTEGRITY
    default_code = "INTEGRITY_VIOLATION"


class AccountMissingError(IntegrityError):
    def __init__(self, identity_id):
        self.identity_id = identity_id
        super().__init__(f"Account not found for identity {identity_id}", "ACCOUNT_MISSING")


class CredentialsMissingError(IntegrityError):
    def __init__(self, identity_id):
        self.identity_id = identity_id
        super().__init__(f"Credentials not found for identity {identity_id}", "CREDENTIALS_MISSING")


# =============================================================================
# RECONCILIATION
# =============================================================================

class ReconciliationRequiredError(LedgerError):
    """
    A transfer was committed but the outcome could not be confirmed.

    Funds may have moved. This is NOT rolled back automatically;
    it must be reconciled by an operator using the data carried here.
    """

    category = ErrorCategory.RECONCILIATION
    default_code = "RECONCILIATION_REQUIRED"

    def __init__(
        self,
        stage: str,
        sender_id,
        receiver_id,
        amount,
        idempotency_key: str,
        cause: Optional[BaseException] = None,
    ):
        self.stage = stage
        self.sender_id = sender_id
        self.receiver_id = receiver_id
        self.amount = amount
        self.idempotency_key = idempotency_key
        self.cause = cause
        super().__init__(
            f"Transfer {idempotency_key} unconfirmed after {stage}: manual reconciliation required"
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "stage": self.stage,
            "sender_id": str(self.sender_id),
            "receiver_id": str(self.receiver_id),
            "amount": str(self.amount),
            "idempotency_key": self.idempotency_key,
        })
        return data
