"""
Savings Goal Ledger

Goals ("piggy banks") hold money set aside from the owner's account.
Funding moves money account → goal; breaking a goal moves everything it
holds back goal → account and closes it for good.

Both directions touch two rows, so the account and the goal are written
in one UnitOfWork: either both versions advance or neither does.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from pocketledger.access import AccessGate
from pocketledger.audit import AuditLogger
from pocketledger.config import LedgerSettings, get_settings
from pocketledger.errors import (
    AccountMissingError,
    GoalBrokenError,
    GoalNotFoundError,
    GoalTooSmallError,
    InsufficientBalanceError,
    InvalidGoalNameError,
    TooManyActiveGoalsError,
)
from pocketledger.ledger.account_ledger import AccountLedger
from pocketledger.ledger.base import LedgerFlow
from pocketledger.models.account import Account
from pocketledger.models.audit import AuditEventType
from pocketledger.models.identity import Identity
from pocketledger.models.money import ZERO
from pocketledger.models.savings import GoalSummary, SavingsGoal
from pocketledger.services.storage import (
    ActiveGoalLimitError,
    LedgerStorageInterface,
    UnitOfWork,
)


class SavingsGoalLedger:
    """Goal primitives. They mutate the models they are given, nothing else."""

    def __init__(
        self,
        account_ledger: Optional[AccountLedger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._accounts = account_ledger or AccountLedger(self._settings)

    def check_amount(self, amount) -> Decimal:
        return self._accounts.check_amount(amount)

    def new_goal(self, owner_id: UUID, goal_amount, goal_name: str) -> SavingsGoal:
        """
        Build a fresh, empty goal.

        Raises:
            InvalidAmountError: Target is not a valid amount
            GoalTooSmallError: Target below the configured minimum
            InvalidGoalNameError: Label empty or longer than 100 characters
        """
        target = self._accounts.check_amount(goal_amount)
        if target < self._settings.min_goal_amount:
            raise GoalTooSmallError(self._settings.min_goal_amount)
        try:
            return SavingsGoal(owner_id=owner_id, goal_amount=target, goal_name=goal_name)
        except PydanticValidationError:
            raise InvalidGoalNameError()

    def fund(self, goal: SavingsGoal, account: Account, amount) -> SavingsGoal:
        value = self._accounts.check_amount(amount)
        if goal.broken:
            raise GoalBrokenError(goal.id)
        if not account.has_enough_balance(value):
            raise InsufficientBalanceError(account.balance, value)
        self._accounts.withdraw(account, value)
        goal.saved_amount = goal.saved_amount + value
        return goal

    def break_open(self, goal: SavingsGoal, account: Account) -> Decimal:
        """
        Close the goal and return its money to ``account``.

        Returns the amount moved back (may be zero).
        """
        if goal.broken:
            raise GoalBrokenError(goal.id)
        captured = goal.saved_amount
        # saved_amount must be zero before broken is set.
        goal.saved_amount = ZERO
        goal.broken = True
        goal.broken_at = datetime.utcnow()
        if captured > ZERO:
            self._accounts.deposit(account, captured)
        return captured


class SavingsGoalFlow(LedgerFlow):
    """Create, fund, break and list an identity's savings goals."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        gate: AccessGate,
        goal_ledger: Optional[SavingsGoalLedger] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        super().__init__(storage, gate, audit_logger, settings)
        self._goals = goal_ledger or SavingsGoalLedger(settings=self._settings)

    async def create_goal(
        self,
        identity: Optional[Identity],
        goal_amount,
        goal_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> GoalSummary:
        context = await self._gate.resolve_context(identity)
        goal = self._goals.new_goal(context.identity_id, goal_amount, goal_name)

        try:
            await self._storage.commit(UnitOfWork(
                new_goal=goal,
                max_active_goals=self._settings.max_active_goals,
            ))
        except ActiveGoalLimitError:
            raise TooManyActiveGoalsError(self._settings.max_active_goals)

        if self._audit_logger:
            await self._audit_logger.log_goal_event(
                event_type=AuditEventType.GOAL_CREATED,
                goal_id=goal.id,
                owner_id=context.identity_id,
                description=f"Savings goal '{goal.goal_name}' created",
                correlation_id=correlation_id,
                goal_amount=goal.goal_amount,
            )
        return GoalSummary.from_goal(goal)

    async def fund_goal(
        self,
        identity: Optional[Identity],
        goal_id: UUID,
        amount,
        secret: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> GoalSummary:
        """
        Move ``amount`` from the caller's account into one of their goals.

        Raises:
            GoalNotFoundError: No such goal, or it belongs to someone else
            GoalBrokenError: The goal was already broken
            InsufficientBalanceError: The account cannot cover ``amount``
        """
        context = await self._authorize(identity, secret, correlation_id)
        value = self._goals.check_amount(amount)

        async def step() -> SavingsGoal:
            goal, account = await self._load(context.identity_id, goal_id)
            self._goals.fund(goal, account, value)
            await self._storage.commit(UnitOfWork(accounts=[account], goals=[goal]))
            return goal

        goal = await self._run(step, "fund_goal", context.identity_id, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_goal_event(
                event_type=AuditEventType.GOAL_FUNDED,
                goal_id=goal.id,
                owner_id=context.identity_id,
                description=f"Savings goal funded with {value}",
                correlation_id=correlation_id,
                amount=value,
                saved_amount=goal.saved_amount,
            )
        return GoalSummary.from_goal(goal)

    async def break_goal(
        self,
        identity: Optional[Identity],
        goal_id: UUID,
        secret: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> GoalSummary:
        """Break a goal; whatever it held goes back to the caller's account."""
        context = await self._authorize(identity, secret, correlation_id)

        async def step() -> tuple[SavingsGoal, Decimal]:
            goal, account = await self._load(context.identity_id, goal_id)
            returned = self._goals.break_open(goal, account)
            accounts = [account] if returned > ZERO else []
            await self._storage.commit(UnitOfWork(accounts=accounts, goals=[goal]))
            return goal, returned

        goal, returned = await self._run(step, "break_goal", context.identity_id, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_goal_event(
                event_type=AuditEventType.GOAL_BROKEN,
                goal_id=goal.id,
                owner_id=context.identity_id,
                description=f"Savings goal broken, {returned} returned to account",
                correlation_id=correlation_id,
                returned_amount=returned,
            )
        return GoalSummary.from_goal(goal)

    async def list_goals(
        self,
        identity: Optional[Identity],
        active_only: bool = False,
    ) -> list[GoalSummary]:
        context = await self._gate.resolve_context(identity)
        goals = await self._storage.list_goals(context.identity_id, active_only=active_only)
        return [GoalSummary.from_goal(goal) for goal in goals]

    async def _load(self, owner_id: UUID, goal_id: UUID) -> tuple[SavingsGoal, Account]:
        goal = await self._storage.get_goal(goal_id)
        if goal is None or goal.owner_id != owner_id:
            raise GoalNotFoundError(goal_id)
        account = await self._storage.get_account_by_owner(owner_id)
        if account is None:
            raise AccountMissingError(owner_id)
        return goal, account
