"""
Account Model

The spendable balance of one identity.

CRITICAL: ``balance`` can never be negative. The model validates on
assignment, so even a buggy caller cannot store a negative balance.
``version`` is the optimistic-concurrency counter: storage only accepts
a write whose version matches what is currently stored.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from pocketledger.models.money import ZERO, NonNegativeMoney


class Account(BaseModel):
    """An identity's primary spendable balance."""
    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique account ID"
    )
    owner_id: UUID = Field(
        ...,
        description="Owning identity (one account per identity)"
    )
    balance: NonNegativeMoney = Field(
        default=ZERO,
        description="Spendable balance"
    )
    version: int = Field(
        default=0,
        ge=0,
        description="Optimistic-lock version, bumped on every committed write"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def has_enough_balance(self, amount: Decimal) -> bool:
        return self.balance >= amount

    @property
    def is_empty(self) -> bool:
        return self.balance == ZERO


class AccountSummary(BaseModel):
    """Read-only view of an account for the caller."""

    id: UUID
    balance: Decimal
    full_name: str
    public_code: str
