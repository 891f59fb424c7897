"""
Savings Goal Model

A ring-fenced sub-balance ("piggy bank") owned by one identity,
funded from and returned to the owner's Account.

CRITICAL: Once ``broken`` is set the goal is terminal. No further
change to ``saved_amount`` is allowed.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pocketledger.models.money import ZERO, NonNegativeMoney, PositiveMoney


class SavingsGoal(BaseModel):
    """A savings goal with a target amount and a label."""
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    saved_amount: NonNegativeMoney = Field(
        default=ZERO,
        description="Money currently held in the goal"
    )
    goal_amount: PositiveMoney = Field(
        ...,
        description="Target amount"
    )
    goal_name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Label shown to the owner"
    )
    broken: bool = False
    broken_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = Field(default=0, ge=0)

    @model_validator(mode='after')
    def validate_broken_state(self) -> 'SavingsGoal':
        """A broken goal holds nothing; broken_at is set only when broken."""
        if self.broken and self.saved_amount != ZERO:
            raise ValueError("A broken goal cannot hold money")
        if not self.broken and self.broken_at is not None:
            raise ValueError("broken_at is only set on broken goals")
        return self

    @property
    def is_active(self) -> bool:
        return not self.broken

    @property
    def progress(self) -> Decimal:
        """Fraction of the target saved so far, capped at 1."""
        ratio = self.saved_amount / self.goal_amount
        return min(ratio, Decimal("1"))


class GoalSummary(BaseModel):
    """Caller-facing view of a savings goal."""

    id: UUID
    owner_id: UUID
    saved_amount: Decimal
    goal_amount: Decimal
    goal_name: str
    broken: bool
    broken_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_goal(cls, goal: SavingsGoal) -> 'GoalSummary':
        return cls(
            id=goal.id,
            owner_id=goal.owner_id,
            saved_amount=goal.saved_amount,
            goal_amount=goal.goal_amount,
            goal_name=goal.goal_name,
            broken=goal.broken,
            broken_at=goal.broken_at,
            created_at=goal.created_at,
        )
