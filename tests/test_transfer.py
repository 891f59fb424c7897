"""Tests for the transfer orchestrator."""

import pytest
from decimal import Decimal

from conftest import PIN, balance_of, registration_fields

from pocketledger.config import LedgerSettings
from pocketledger.errors import (
    ConcurrentModificationError,
    DuplicateOperationError,
    InsufficientBalanceError,
    ReceiverNotFoundError,
    ReconciliationRequiredError,
    SelfTransferError,
)
from pocketledger.ledger import TransferState
from pocketledger.models.audit import AuditEventType, AuditSeverity
from pocketledger.models.transaction import TransferRecord
from pocketledger.orchestrator import create_app_components
from pocketledger.services.storage import (
    CommitOutcomeUnknownError,
    InMemoryLedgerStorage,
    StorageError,
    VersionConflictError,
)


class FailingStorage(InMemoryLedgerStorage):
    """
    Fails the transfer commit once armed.

    ``before`` raises without applying anything. ``after`` applies the unit
    and then loses the acknowledgement. ``lookup`` also fails the claim
    check that follows a lost acknowledgement.
    """

    def __init__(self):
        super().__init__()
        self.fail_on = None
        self.lookup_down = False

    async def commit(self, unit):
        if not isinstance(unit.record, TransferRecord):
            return await super().commit(unit)
        if self.fail_on == "before":
            raise StorageError("ledger store unavailable")
        await super().commit(unit)
        if self.fail_on == "after":
            raise CommitOutcomeUnknownError("connection reset before acknowledgement")

    async def key_exists(self, idempotency_key):
        if self.lookup_down:
            raise StorageError("ledger store unavailable")
        return await super().key_exists(idempotency_key)


class BusyReceiverStorage(InMemoryLedgerStorage):
    """Every commit touching ``busy_owner``'s account loses the version race."""

    def __init__(self):
        super().__init__()
        self.busy_owner = None

    async def commit(self, unit):
        for account in unit.accounts:
            if account.owner_id == self.busy_owner:
                raise VersionConflictError("Account", account.id, account.version, account.version + 1)
        await super().commit(unit)


class TestTransfer:
    """Tests for the happy path and pre-debit rejections."""

    @pytest.mark.asyncio
    async def test_transfer_conserves_money(self, service, storage, alice, bob, fund):
        """Test 50.00 from 50.00 to 20.00 gives 0.00 / 70.00."""
        await fund(alice, "50.00")
        await fund(bob, "20.00")

        receipt = await service.transfer(alice, bob.public_code, Decimal("50.00"), PIN, "t-1")

        assert receipt.amount == Decimal("50.00")
        assert await balance_of(storage, alice) == Decimal("0.00")
        assert await balance_of(storage, bob) == Decimal("70.00")

    @pytest.mark.asyncio
    async def test_transfer_visible_to_both_parties(self, service, alice, bob, fund):
        """Test that history shows the transfer with names for each side."""
        await fund(alice, "10.00")
        await service.transfer(alice, bob.public_code, Decimal("10.00"), PIN, "t-1")

        for party in (alice, bob):
            page = await service.history(party)
            transfer = page.items[0]
            assert transfer.sender == "Alice Moraes"
            assert transfer.receiver == "Bob Castro"

    @pytest.mark.asyncio
    async def test_self_transfer_rejected(self, service, storage, alice, fund):
        """Test that sending to yourself changes nothing."""
        await fund(alice, "50.00")
        with pytest.raises(SelfTransferError):
            await service.transfer(alice, alice.public_code, Decimal("10.00"), PIN, "t-self")
        assert await balance_of(storage, alice) == Decimal("50.00")
        assert not await storage.key_exists("t-self")

    @pytest.mark.asyncio
    async def test_unknown_receiver(self, service, alice, fund):
        """Test receiver lookup by public code."""
        await fund(alice, "5.00")
        with pytest.raises(ReceiverNotFoundError):
            await service.transfer(alice, "0000000000", Decimal("1.00"), PIN, "t-x")

    @pytest.mark.asyncio
    async def test_insufficient_balance_aborts(self, service, storage, audit_storage, alice, bob, fund):
        """Test that an uncovered transfer aborts before any balance change."""
        await fund(alice, "5.00")
        with pytest.raises(InsufficientBalanceError):
            await service.transfer(alice, bob.public_code, Decimal("5.01"), PIN, "t-2")

        assert await balance_of(storage, alice) == Decimal("5.00")
        assert await balance_of(storage, bob) == Decimal("0.00")
        assert not await storage.key_exists("t-2")
        events = await audit_storage.get_recent_events(limit=1)
        assert events[0].event_type == AuditEventType.TRANSFER_ABORTED
        assert events[0].details["stage"] == TransferState.VALIDATED.value

    @pytest.mark.asyncio
    async def test_transfer_replay(self, service, storage, alice, bob, fund):
        """Test that a replayed transfer key moves nothing."""
        await fund(alice, "30.00")
        await service.transfer(alice, bob.public_code, Decimal("10.00"), PIN, "t-3")
        with pytest.raises(DuplicateOperationError):
            await service.transfer(alice, bob.public_code, Decimal("10.00"), PIN, "t-3")
        assert await balance_of(storage, alice) == Decimal("20.00")
        assert await balance_of(storage, bob) == Decimal("10.00")


class TestTransferAtomicity:
    """Tests that both legs, the claim and the record land together."""

    @pytest.fixture
    def busy_storage(self):
        return BusyReceiverStorage()

    @pytest.fixture
    def parts(self, busy_storage, audit_storage, security_settings):
        settings = LedgerSettings(
            max_commit_attempts=3,
            retry_backoff_seconds=0.0,
            retry_backoff_max_seconds=0.0,
        )
        return create_app_components(
            storage=busy_storage,
            audit_storage=audit_storage,
            ledger_settings=settings,
            security_settings=security_settings,
        )

    @pytest.mark.asyncio
    async def test_busy_receiver_moves_nothing(self, parts, busy_storage, audit_storage):
        """Test that a receiver who keeps winning the race leaves both balances alone."""
        service, registry, _ = parts
        sender = await registry.register(registration_fields(name="Gabi"))
        receiver = await registry.register(registration_fields(name="Hugo"))
        await service.deposit(sender, Decimal("50.00"), PIN, "seed")
        busy_storage.busy_owner = receiver.id

        with pytest.raises(ConcurrentModificationError):
            await service.transfer(sender, receiver.public_code, Decimal("50.00"), PIN, "t-busy")

        assert await balance_of(busy_storage, sender) == Decimal("50.00")
        assert await balance_of(busy_storage, receiver) == Decimal("0.00")
        assert not await busy_storage.key_exists("t-busy")
        assert await busy_storage.count_transactions(sender.id) == 1
        events = await audit_storage.get_recent_events(limit=1)
        assert events[0].event_type == AuditEventType.TRANSFER_ABORTED

        busy_storage.busy_owner = None
        await service.transfer(sender, receiver.public_code, Decimal("50.00"), PIN, "t-busy")
        assert await balance_of(busy_storage, sender) == Decimal("0.00")
        assert await balance_of(busy_storage, receiver) == Decimal("50.00")
        assert await busy_storage.count_transactions(receiver.id) == 1

    @pytest.mark.asyncio
    async def test_versions_of_both_accounts_advance(self, service, storage, alice, bob, fund):
        """Test that one transfer bumps each account version exactly once."""
        await fund(alice, "10.00")
        before = (await storage.get_account_by_owner(alice.id)).version, (await storage.get_account_by_owner(bob.id)).version

        await service.transfer(alice, bob.public_code, Decimal("4.00"), PIN, "t-v")

        after = (await storage.get_account_by_owner(alice.id)).version, (await storage.get_account_by_owner(bob.id)).version
        assert after == (before[0] + 1, before[1] + 1)


class TestUnconfirmedCommit:
    """Tests for storage failures at the transfer commit."""

    @pytest.fixture
    def failing_storage(self):
        return FailingStorage()

    @pytest.fixture
    def parts(self, failing_storage, audit_storage, ledger_settings, security_settings):
        return create_app_components(
            storage=failing_storage,
            audit_storage=audit_storage,
            ledger_settings=ledger_settings,
            security_settings=security_settings,
        )

    async def _setup(self, parts):
        service, registry, _ = parts
        sender = await registry.register(registration_fields(name="Erin"))
        receiver = await registry.register(registration_fields(name="Frank"))
        await service.deposit(sender, Decimal("40.00"), PIN, "seed")
        return service, sender, receiver

    @pytest.mark.asyncio
    async def test_rejected_commit_aborts(self, parts, failing_storage, audit_storage):
        """Test that a commit that failed outright changes nothing."""
        service, sender, receiver = await self._setup(parts)
        failing_storage.fail_on = "before"

        with pytest.raises(StorageError):
            await service.transfer(sender, receiver.public_code, Decimal("15.00"), PIN, "t-r1")

        assert await balance_of(failing_storage, sender) == Decimal("40.00")
        assert await balance_of(failing_storage, receiver) == Decimal("0.00")
        assert not await failing_storage.key_exists("t-r1")
        events = await audit_storage.get_recent_events(limit=1)
        assert events[0].event_type == AuditEventType.TRANSFER_ABORTED
        assert events[0].error_code == "STORAGE_ERROR"

    @pytest.mark.asyncio
    async def test_lost_acknowledgement_resolved_by_claim(self, parts, failing_storage):
        """Test that a commit that landed is reported as a completed transfer."""
        service, sender, receiver = await self._setup(parts)
        failing_storage.fail_on = "after"

        receipt = await service.transfer(sender, receiver.public_code, Decimal("15.00"), PIN, "t-r2")

        assert receipt.amount == Decimal("15.00")
        assert await balance_of(failing_storage, sender) == Decimal("25.00")
        assert await balance_of(failing_storage, receiver) == Decimal("15.00")
        assert await failing_storage.count_transactions(receiver.id) == 1

    @pytest.mark.asyncio
    async def test_unverifiable_commit_requires_reconciliation(self, parts, failing_storage, audit_storage):
        """Test that a commit nobody can confirm is surfaced, not reversed."""
        service, sender, receiver = await self._setup(parts)
        failing_storage.fail_on = "after"
        failing_storage.lookup_down = True

        with pytest.raises(ReconciliationRequiredError) as exc_info:
            await service.transfer(sender, receiver.public_code, Decimal("15.00"), PIN, "t-r3")

        error = exc_info.value
        assert error.stage == TransferState.VALIDATED.value
        assert error.amount == Decimal("15.00")
        assert error.receiver_id == receiver.id

        events = await audit_storage.get_recent_events(limit=1)
        assert events[0].event_type == AuditEventType.RECONCILIATION_REQUIRED
        assert events[0].severity == AuditSeverity.CRITICAL

        failing_storage.fail_on = None
        failing_storage.lookup_down = False
        assert await balance_of(failing_storage, sender) == Decimal("25.00")
        assert await balance_of(failing_storage, receiver) == Decimal("15.00")
        with pytest.raises(DuplicateOperationError):
            await service.transfer(sender, receiver.public_code, Decimal("15.00"), PIN, "t-r3")
        assert await balance_of(failing_storage, sender) == Decimal("25.00")
