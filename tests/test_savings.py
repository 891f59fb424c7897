"""Tests for savings goals."""

import asyncio
import pytest
from decimal import Decimal
from uuid import uuid4

from conftest import PIN, InterleavingStorage, balance_of, registration_fields

from pocketledger.config import LedgerSettings
from pocketledger.errors import (
    GoalBrokenError,
    GoalNotFoundError,
    GoalTooSmallError,
    InsufficientBalanceError,
    InvalidGoalNameError,
    InvalidSecretError,
    TooManyActiveGoalsError,
)
from pocketledger.ledger import SavingsGoalLedger
from pocketledger.models.account import Account
from pocketledger.models.money import ZERO
from pocketledger.orchestrator import create_app_components


class TestGoalPrimitives:
    """Tests for SavingsGoalLedger on plain models."""

    @pytest.fixture
    def goals(self):
        return SavingsGoalLedger(settings=LedgerSettings())

    def test_new_goal_minimum(self, goals):
        """Test the minimum target."""
        with pytest.raises(GoalTooSmallError):
            goals.new_goal(uuid4(), Decimal("0.99"), "Coffee")
        assert goals.new_goal(uuid4(), Decimal("1.00"), "Coffee").saved_amount == ZERO

    def test_new_goal_name_required(self, goals):
        """Test that a blank label is rejected."""
        with pytest.raises(InvalidGoalNameError):
            goals.new_goal(uuid4(), Decimal("10.00"), "   ")

    def test_break_open_returns_everything(self, goals):
        """Test that breaking moves the saved amount back and closes the goal."""
        owner = uuid4()
        account = Account(owner_id=owner, balance=Decimal("10.00"))
        goal = goals.new_goal(owner, Decimal("500.00"), "Laptop")
        goal.saved_amount = Decimal("150.00")

        returned = goals.break_open(goal, account)

        assert returned == Decimal("150.00")
        assert account.balance == Decimal("160.00")
        assert goal.broken and goal.saved_amount == ZERO
        assert goal.broken_at is not None


class TestGoalFlow:
    """Tests for the goal lifecycle through the service."""

    @pytest.mark.asyncio
    async def test_lifecycle(self, service, storage, alice, fund):
        """Test create, fund, break and the terminal state."""
        await fund(alice, "200.00")
        goal = await service.create_goal(alice, Decimal("500.00"), "Laptop")

        funded = await service.fund_goal(alice, goal.id, Decimal("150.00"), PIN)
        assert funded.saved_amount == Decimal("150.00")
        assert await balance_of(storage, alice) == Decimal("50.00")

        broken = await service.break_goal(alice, goal.id, PIN)
        assert broken.broken
        assert broken.saved_amount == ZERO
        assert await balance_of(storage, alice) == Decimal("200.00")

        with pytest.raises(GoalBrokenError):
            await service.break_goal(alice, goal.id, PIN)
        with pytest.raises(GoalBrokenError):
            await service.fund_goal(alice, goal.id, Decimal("1.00"), PIN)

    @pytest.mark.asyncio
    async def test_break_empty_goal(self, service, storage, alice):
        """Test that an empty goal breaks without touching the account."""
        goal = await service.create_goal(alice, Decimal("10.00"), "Empty")
        before = await storage.get_account_by_owner(alice.id)

        await service.break_goal(alice, goal.id, PIN)

        after = await storage.get_account_by_owner(alice.id)
        assert after.version == before.version
        assert after.balance == ZERO

    @pytest.mark.asyncio
    async def test_fund_requires_balance(self, service, alice, fund):
        """Test that funding cannot overdraw the account."""
        await fund(alice, "20.00")
        goal = await service.create_goal(alice, Decimal("100.00"), "Trip")
        with pytest.raises(InsufficientBalanceError):
            await service.fund_goal(alice, goal.id, Decimal("20.01"), PIN)

    @pytest.mark.asyncio
    async def test_fund_requires_pin(self, service, alice, fund):
        """Test that funding is a money movement."""
        await fund(alice, "20.00")
        goal = await service.create_goal(alice, Decimal("100.00"), "Trip")
        with pytest.raises(InvalidSecretError):
            await service.fund_goal(alice, goal.id, Decimal("1.00"), "0000")

    @pytest.mark.asyncio
    async def test_other_owner_goal_not_found(self, service, alice, bob, fund):
        """Test that goals are private to their owner."""
        await fund(bob, "10.00")
        goal = await service.create_goal(alice, Decimal("100.00"), "Mine")
        with pytest.raises(GoalNotFoundError):
            await service.fund_goal(bob, goal.id, Decimal("1.00"), PIN)
        with pytest.raises(GoalNotFoundError):
            await service.break_goal(bob, uuid4(), PIN)

    @pytest.mark.asyncio
    async def test_list_goals(self, service, alice):
        """Test listing all and active-only goals."""
        first = await service.create_goal(alice, Decimal("10.00"), "One")
        await service.create_goal(alice, Decimal("20.00"), "Two")
        await service.break_goal(alice, first.id, PIN)

        assert [g.goal_name for g in await service.list_goals(alice)] == ["One", "Two"]
        assert [g.goal_name for g in await service.list_goals(alice, active_only=True)] == ["Two"]


class TestActiveGoalLimit:
    """Tests for the active-goal ceiling."""

    @pytest.fixture
    def limited(self, security_settings):
        settings = LedgerSettings(
            max_active_goals=2,
            retry_backoff_seconds=0.0,
            retry_backoff_max_seconds=0.0,
        )
        storage = InterleavingStorage()
        service, registry, _ = create_app_components(
            storage=storage,
            ledger_settings=settings,
            security_settings=security_settings,
        )
        return service, registry

    @pytest.mark.asyncio
    async def test_limit_and_breaking_frees_a_slot(self, limited):
        """Test that broken goals do not count."""
        service, registry = limited
        owner = await registry.register(registration_fields())

        first = await service.create_goal(owner, Decimal("10.00"), "A")
        await service.create_goal(owner, Decimal("10.00"), "B")
        with pytest.raises(TooManyActiveGoalsError):
            await service.create_goal(owner, Decimal("10.00"), "C")

        await service.break_goal(owner, first.id, PIN)
        await service.create_goal(owner, Decimal("10.00"), "C")

    @pytest.mark.asyncio
    async def test_concurrent_creations_respect_limit(self, limited):
        """Test that racing creations cannot exceed the limit."""
        service, registry = limited
        owner = await registry.register(registration_fields())

        results = await asyncio.gather(
            *[service.create_goal(owner, Decimal("10.00"), f"G{i}") for i in range(5)],
            return_exceptions=True,
        )

        created = [r for r in results if not isinstance(r, Exception)]
        assert len(created) == 2
        assert all(isinstance(r, TooManyActiveGoalsError) for r in results if isinstance(r, Exception))
        assert len(await service.list_goals(owner, active_only=True)) == 2

    @pytest.mark.asyncio
    async def test_concurrent_funding_keeps_balances_consistent(self, limited):
        """Test that racing fund calls never overdraw and never lose money."""
        service, registry = limited
        owner = await registry.register(registration_fields())
        await service.deposit(owner, Decimal("100.00"), PIN, "seed")
        goal = await service.create_goal(owner, Decimal("1000.00"), "Pool")

        results = await asyncio.gather(
            *[service.fund_goal(owner, goal.id, Decimal("40.00"), PIN) for _ in range(3)],
            return_exceptions=True,
        )

        assert sum(1 for r in results if not isinstance(r, Exception)) == 2
        goals = await service.list_goals(owner)
        summary = await service.account_summary(owner)
        assert goals[0].saved_amount == Decimal("80.00")
        assert summary.balance == Decimal("20.00")


class TestFundBreakRace:
    """Tests for funding and breaking the same goal at once."""

    @pytest.fixture
    def racing(self, ledger_settings, security_settings):
        storage = InterleavingStorage()
        service, registry, _ = create_app_components(
            storage=storage,
            ledger_settings=ledger_settings,
            security_settings=security_settings,
        )
        return storage, service, registry

    @pytest.mark.asyncio
    async def test_break_racing_funds_conserves_money(self, racing):
        """Test that every fund either lands before the break or sees it broken."""
        storage, service, registry = racing
        owner = await registry.register(registration_fields())
        await service.deposit(owner, Decimal("100.00"), PIN, "seed")
        goal = await service.create_goal(owner, Decimal("1000.00"), "Trip")
        await service.fund_goal(owner, goal.id, Decimal("30.00"), PIN)

        results = await asyncio.gather(
            service.fund_goal(owner, goal.id, Decimal("20.00"), PIN),
            service.break_goal(owner, goal.id, PIN),
            service.fund_goal(owner, goal.id, Decimal("20.00"), PIN),
            return_exceptions=True,
        )

        funds = [results[0], results[2]]
        assert not isinstance(results[1], Exception)
        assert all(
            isinstance(r, GoalBrokenError) or (not isinstance(r, Exception) and not r.broken)
            for r in funds
        )

        stored = await storage.get_goal(goal.id)
        assert stored.broken
        assert stored.saved_amount == ZERO
        assert await balance_of(storage, owner) + stored.saved_amount == Decimal("100.00")

        with pytest.raises(GoalBrokenError):
            await service.fund_goal(owner, goal.id, Decimal("20.00"), PIN)
        assert await balance_of(storage, owner) == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_fund_after_concurrent_break_is_rejected(self, racing):
        """Test that a fund that read the goal before the break commits fails on retry."""
        storage, service, registry = racing
        owner = await registry.register(registration_fields())
        await service.deposit(owner, Decimal("50.00"), PIN, "seed")
        goal = await service.create_goal(owner, Decimal("500.00"), "Bike")

        broke = asyncio.Event()
        original_get_goal = storage.get_goal

        async def stale_get_goal(goal_id):
            # The first read returns a copy taken before the break commits.
            snapshot = await original_get_goal(goal_id)
            if not broke.is_set():
                broke.set()
                await service.break_goal(owner, goal.id, PIN)
            return snapshot

        storage.get_goal = stale_get_goal
        with pytest.raises(GoalBrokenError):
            await service.fund_goal(owner, goal.id, Decimal("10.00"), PIN)

        stored = await original_get_goal(goal.id)
        assert stored.broken
        assert stored.saved_amount == ZERO
        assert await balance_of(storage, owner) == Decimal("50.00")
