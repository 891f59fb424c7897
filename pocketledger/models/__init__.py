"""
Data Models Package

This package contains all Pydantic models used in Pocket Ledger.
All data flowing through the ledger must conform to these schemas.
"""

from pocketledger.models.account import Account, AccountSummary
from pocketledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from pocketledger.models.identity import (
    AuthContext,
    Credential,
    Identity,
    RegistrationRequest,
    SecretKind,
)
from pocketledger.models.money import (
    CENT,
    ZERO,
    NonNegativeMoney,
    PositiveMoney,
    parse_money,
)
from pocketledger.models.savings import GoalSummary, SavingsGoal
from pocketledger.models.transaction import (
    DepositRecord,
    HistoryPage,
    OperationReceipt,
    TransactionKind,
    TransactionRecord,
    TransactionSummary,
    TransferRecord,
    WithdrawalRecord,
    transaction_record_adapter,
)

__all__ = [
    # Money
    "CENT",
    "ZERO",
    "NonNegativeMoney",
    "PositiveMoney",
    "parse_money",
    # Identity / account
    "Account",
    "AccountSummary",
    "AuthContext",
    "Credential",
    "Identity",
    "RegistrationRequest",
    "SecretKind",
    # Transactions
    "DepositRecord",
    "HistoryPage",
    "OperationReceipt",
    "TransactionKind",
    "TransactionRecord",
    "TransactionSummary",
    "TransferRecord",
    "WithdrawalRecord",
    "transaction_record_adapter",
    # Savings goals
    "GoalSummary",
    "SavingsGoal",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
