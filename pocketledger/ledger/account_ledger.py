"""
Account Ledger

The balance-mutation primitives. Every change to an Account balance goes
through one of these methods, and each one enforces ``balance >= 0``
before touching the model.

The primitives work on an in-memory Account (a copy read from storage).
Making the change durable is the caller's job: it puts the mutated copy
in a UnitOfWork, and storage accepts it only if the version is unchanged.
"""

from decimal import Decimal
from typing import Optional

from pocketledger.config import LedgerSettings, get_settings
from pocketledger.errors import (
    AmountExceedsLimitError,
    InsufficientBalanceError,
    InvalidAmountError,
)
from pocketledger.models.account import Account
from pocketledger.models.money import ZERO, parse_money


class AccountLedger:
    """Deposit / withdraw / transfer-leg primitives with invariant checks."""

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    @property
    def max_transaction_amount(self) -> Decimal:
        return self._settings.max_transaction_amount

    def check_amount(self, amount) -> Decimal:
        """
        Validate and normalize a money amount.

        Returns the amount quantized to 2 places.

        Raises:
            InvalidAmountError: Not a finite 2-place decimal, or not > 0
        """
        try:
            value = parse_money(amount)
        except ValueError as e:
            raise InvalidAmountError(str(e))
        if value <= ZERO:
            raise InvalidAmountError()
        return value

    def check_limit(self, amount: Decimal) -> Decimal:
        """Reject amounts above the per-operation ceiling."""
        if amount > self._settings.max_transaction_amount:
            raise AmountExceedsLimitError(self._settings.max_transaction_amount)
        return amount

    def deposit(self, account: Account, amount) -> Account:
        value = self.check_amount(amount)
        account.balance = account.balance + value
        return account

    def withdraw(self, account: Account, amount) -> Account:
        value = self.check_amount(amount)
        if not account.has_enough_balance(value):
            raise InsufficientBalanceError(account.balance, value)
        account.balance = account.balance - value
        return account

    def transfer_leg(self, source: Account, destination: Account, amount) -> tuple[Account, Account]:
        """
        Withdraw from ``source`` then deposit into ``destination``.

        The deposit cannot fail once the withdrawal cleared, so on return
        both accounts are updated or (on error) neither is.
        """
        if source.id == destination.id:
            raise InvalidAmountError("Source and destination accounts must differ")
        self.withdraw(source, amount)
        self.deposit(destination, amount)
        return source, destination
