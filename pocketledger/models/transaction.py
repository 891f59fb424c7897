"""
Transaction Records

Immutable, append-only log entries of completed money movements.

DESIGN DECISION: The three kinds of movement are a tagged union keyed
on ``kind`` rather than a class hierarchy. Code that needs to treat them
differently matches on the concrete record type, so adding a fourth kind
is a visible, exhaustive change.

The idempotency key space is shared by all kinds: a key used for a
deposit can never be reused for a withdrawal or a transfer.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from pocketledger.models.money import PositiveMoney


class TransactionKind(str, Enum):
    """Discriminator for transaction records."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"


class _RecordFields(BaseModel):
    """Fields shared by every record variant."""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    amount: PositiveMoney
    idempotency_key: str = Field(..., min_length=1, max_length=255)


class DepositRecord(_RecordFields):
    kind: Literal[TransactionKind.DEPOSIT] = TransactionKind.DEPOSIT
    owner_id: UUID

    @property
    def participants(self) -> tuple[UUID, ...]:
        return (self.owner_id,)


class WithdrawalRecord(_RecordFields):
    kind: Literal[TransactionKind.WITHDRAWAL] = TransactionKind.WITHDRAWAL
    owner_id: UUID

    @property
    def participants(self) -> tuple[UUID, ...]:
        return (self.owner_id,)


class TransferRecord(_RecordFields):
    kind: Literal[TransactionKind.TRANSFER] = TransactionKind.TRANSFER
    sender_id: UUID
    receiver_id: UUID

    @model_validator(mode='after')
    def validate_parties(self) -> 'TransferRecord':
        if self.sender_id == self.receiver_id:
            raise ValueError("Sender and receiver must differ")
        return self

    @property
    def participants(self) -> tuple[UUID, ...]:
        return (self.sender_id, self.receiver_id)


TransactionRecord = Annotated[
    Union[DepositRecord, WithdrawalRecord, TransferRecord],
    Field(discriminator="kind"),
]

transaction_record_adapter = TypeAdapter(TransactionRecord)


# =============================================================================
# OUTWARD-FACING SHAPES
# =============================================================================

class OperationReceipt(BaseModel):
    """What a completed deposit, withdrawal or transfer returns."""

    id: UUID
    amount: Decimal


class TransactionSummary(BaseModel):
    """
    One line of transaction history.

    Deposits and withdrawals fill ``owner``; transfers fill
    ``sender`` and ``receiver`` (display names).
    """

    id: UUID
    kind: TransactionKind
    amount: Decimal
    created_at: datetime
    owner: Optional[str] = None
    sender: Optional[str] = None
    receiver: Optional[str] = None


class HistoryPage(BaseModel):
    """A page of transaction history, newest first."""

    items: list[TransactionSummary] = Field(default_factory=list)
    page: int = Field(ge=0)
    page_size: int = Field(ge=1)
    total_items: int = Field(ge=0)

    @property
    def total_pages(self) -> int:
        return (self.total_items + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages
