"""
Transaction Recorder

Builds and appends immutable transaction records, and reads them back
as paginated history.

Records are write-once: there is no update or delete path. Every record
rides in the same commit as the balance changes and the idempotency
claim it belongs to.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pocketledger.config import LedgerSettings, get_settings
from pocketledger.errors import InvalidPageError
from pocketledger.models.identity import Identity
from pocketledger.models.transaction import (
    DepositRecord,
    HistoryPage,
    TransactionRecord,
    TransactionSummary,
    TransferRecord,
    WithdrawalRecord,
)
from pocketledger.services.storage import (
    LedgerStorageInterface,
    UnitOfWork,
)


class TransactionRecorder:
    """Creates records and serves transaction history."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().ledger

    # -------------------------------------------------------------------------
    # Record construction
    # -------------------------------------------------------------------------

    def deposit_record(self, owner_id: UUID, amount: Decimal, idempotency_key: str) -> DepositRecord:
        return DepositRecord(owner_id=owner_id, amount=amount, idempotency_key=idempotency_key)

    def withdrawal_record(self, owner_id: UUID, amount: Decimal, idempotency_key: str) -> WithdrawalRecord:
        return WithdrawalRecord(owner_id=owner_id, amount=amount, idempotency_key=idempotency_key)

    def transfer_record(
        self,
        sender_id: UUID,
        receiver_id: UUID,
        amount: Decimal,
        idempotency_key: str,
    ) -> TransferRecord:
        return TransferRecord(
            sender_id=sender_id,
            receiver_id=receiver_id,
            amount=amount,
            idempotency_key=idempotency_key,
        )

    def append(self, unit: UnitOfWork, record: TransactionRecord) -> UnitOfWork:
        """
        Attach ``record`` to ``unit`` so it is inserted in the same commit
        as the balance changes it describes.

        The record's key must be claimed by ``unit`` itself.
        """
        if unit.record is not None:
            raise ValueError("A unit of work carries at most one record")
        if unit.claim_key != record.idempotency_key:
            raise ValueError(
                f"Record key {record.idempotency_key!r} is not claimed by this unit"
            )
        unit.record = record
        return unit

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def history(self, identity: Identity, page: int = 0) -> HistoryPage:
        """Records involving ``identity``, newest first, one page at a time."""
        if page < 0:
            raise InvalidPageError(page)

        page_size = self._settings.history_page_size
        total = await self._storage.count_transactions(identity.id)
        records = await self._storage.list_transactions(
            identity.id,
            limit=page_size,
            offset=page * page_size,
        )

        names = await self._resolve_names(records, identity)
        return HistoryPage(
            items=[self.summarize(record, names) for record in records],
            page=page,
            page_size=page_size,
            total_items=total,
        )

    async def _resolve_names(
        self,
        records: list[TransactionRecord],
        caller: Identity,
    ) -> dict[UUID, str]:
        names = {caller.id: caller.full_name}
        for record in records:
            for party_id in record.participants:
                if party_id in names:
                    continue
                party = await self._storage.get_identity(party_id)
                names[party_id] = party.full_name if party else str(party_id)
        return names

    @staticmethod
    def summarize(record: TransactionRecord, names: dict[UUID, str]) -> TransactionSummary:
        """Map any record variant to a history line."""
        base = {
            "id": record.id,
            "kind": record.kind,
            "amount": record.amount,
            "created_at": record.created_at,
        }
        match record:
            case DepositRecord() | WithdrawalRecord():
                return TransactionSummary(**base, owner=names.get(record.owner_id))
            case TransferRecord():
                return TransactionSummary(
                    **base,
                    sender=names.get(record.sender_id),
                    receiver=names.get(record.receiver_id),
                )
            case _:
                raise TypeError(f"Unknown transaction record: {type(record).__name__}")
