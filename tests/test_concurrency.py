"""Tests for optimistic retries."""

import pytest
from decimal import Decimal

from conftest import PIN, balance_of, registration_fields

from pocketledger.config import LedgerSettings
from pocketledger.errors import ConcurrentModificationError, InsufficientBalanceError
from pocketledger.ledger import run_optimistic
from pocketledger.models.audit import AuditEventType
from pocketledger.orchestrator import create_app_components
from pocketledger.services.storage import InMemoryLedgerStorage, VersionConflictError


SETTINGS = LedgerSettings(
    max_commit_attempts=3,
    retry_backoff_seconds=0.0,
    retry_backoff_max_seconds=0.0,
)


class ContendedStorage(InMemoryLedgerStorage):
    """Loses the version race for the next ``conflicts`` account writes."""

    def __init__(self):
        super().__init__()
        self.conflicts = 0
        self.attempts = 0

    async def commit(self, unit):
        if unit.accounts and self.conflicts:
            self.attempts += 1
            self.conflicts -= 1
            account = unit.accounts[0]
            raise VersionConflictError("Account", account.id, account.version, account.version + 1)
        await super().commit(unit)


class TestRunOptimistic:
    """Tests for the retry helper."""

    @pytest.mark.asyncio
    async def test_returns_after_transient_conflicts(self):
        """Test that a step succeeding on the last attempt returns its value."""
        calls = []

        async def step():
            calls.append(1)
            if len(calls) < 3:
                raise VersionConflictError("Account", None, 0, 1)
            return "done"

        assert await run_optimistic(step, "test", SETTINGS) == "done"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_exhaustion_raises_concurrent_modification(self):
        """Test the bounded attempt count."""
        calls = []

        async def step():
            calls.append(1)
            raise VersionConflictError("Account", None, 0, 1)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            await run_optimistic(step, "test", SETTINGS)
        assert len(calls) == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_business_errors_not_retried(self):
        """Test that only version conflicts are retried."""
        calls = []

        async def step():
            calls.append(1)
            raise InsufficientBalanceError(Decimal("0.00"), Decimal("1.00"))

        with pytest.raises(InsufficientBalanceError):
            await run_optimistic(step, "test", SETTINGS)
        assert len(calls) == 1


class TestFlowRetries:
    """Tests for retries seen through the service."""

    @pytest.fixture
    def contended(self, audit_storage, security_settings):
        storage = ContendedStorage()
        service, registry, _ = create_app_components(
            storage=storage,
            audit_storage=audit_storage,
            ledger_settings=SETTINGS,
            security_settings=security_settings,
        )
        return storage, service, registry

    @pytest.mark.asyncio
    async def test_deposit_succeeds_after_conflicts(self, contended):
        """Test that a deposit survives a lost race."""
        storage, service, registry = contended
        owner = await registry.register(registration_fields())
        storage.conflicts = 2

        await service.deposit(owner, Decimal("12.00"), PIN, "d-1")

        assert storage.attempts == 2
        assert await balance_of(storage, owner) == Decimal("12.00")

    @pytest.mark.asyncio
    async def test_exhausted_deposit_can_be_resent(self, contended, audit_storage):
        """Test that exhaustion leaves the key free for a resend."""
        storage, service, registry = contended
        owner = await registry.register(registration_fields())
        storage.conflicts = 3

        with pytest.raises(ConcurrentModificationError):
            await service.deposit(owner, Decimal("12.00"), PIN, "d-2")

        assert not await storage.key_exists("d-2")
        events = await audit_storage.get_recent_events(limit=1)
        assert events[0].event_type == AuditEventType.CONCURRENT_MODIFICATION

        await service.deposit(owner, Decimal("12.00"), PIN, "d-2")
        assert await balance_of(storage, owner) == Decimal("12.00")
