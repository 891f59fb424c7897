"""
Ledger Package

Balance primitives, idempotency, optimistic retries and the flows that
combine them into deposits, withdrawals, transfers and savings goals.
"""

from pocketledger.ledger.account_ledger import AccountLedger
from pocketledger.ledger.base import LedgerFlow
from pocketledger.ledger.concurrency import run_optimistic
from pocketledger.ledger.idempotency import IdempotencyGuard
from pocketledger.ledger.movements import MoneyMovementFlow
from pocketledger.ledger.recorder import TransactionRecorder
from pocketledger.ledger.savings import SavingsGoalFlow, SavingsGoalLedger
from pocketledger.ledger.transfer import TransferOrchestrator, TransferState

__all__ = [
    "AccountLedger",
    "IdempotencyGuard",
    "LedgerFlow",
    "MoneyMovementFlow",
    "SavingsGoalFlow",
    "SavingsGoalLedger",
    "TransactionRecorder",
    "TransferOrchestrator",
    "TransferState",
    "run_optimistic",
]
