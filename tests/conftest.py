"""
Shared fixtures.

Every test gets a fresh in-memory ledger wired exactly like production
(create_app_components), with a cheap hash cost and no retry backoff.
"""

import asyncio
import itertools
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio

from pocketledger.config import LedgerSettings, SecuritySettings
from pocketledger.orchestrator import create_app_components
from pocketledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


PIN = "1234"
PASSWORD = "s3cret-pass"

_counter = itertools.count(1)


class InterleavingStorage(InMemoryLedgerStorage):
    """Yields to the event loop on every read so concurrent tasks interleave."""

    async def key_exists(self, idempotency_key):
        await asyncio.sleep(0)
        return await super().key_exists(idempotency_key)

    async def get_account_by_owner(self, owner_id):
        await asyncio.sleep(0)
        return await super().get_account_by_owner(owner_id)

    async def get_goal(self, goal_id):
        await asyncio.sleep(0)
        return await super().get_goal(goal_id)


def registration_fields(**overrides) -> dict:
    n = next(_counter)
    fields = {
        "name": "Ana",
        "last_name": "Silva",
        "birth_date": date(1990, 5, 17),
        "email": f"user{n}@example.com",
        "phone_number": f"+5511{n:09d}",
        "password": PASSWORD,
        "password_confirmation": PASSWORD,
        "pin_code": PIN,
        "pin_code_confirmation": PIN,
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def ledger_settings():
    return LedgerSettings(
        max_commit_attempts=10,
        retry_backoff_seconds=0.0,
        retry_backoff_max_seconds=0.0,
    )


@pytest.fixture
def security_settings():
    return SecuritySettings(hash_iterations=10_000)


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def components(storage, audit_storage, ledger_settings, security_settings):
    return create_app_components(
        storage=storage,
        audit_storage=audit_storage,
        ledger_settings=ledger_settings,
        security_settings=security_settings,
    )


@pytest.fixture
def service(components):
    return components[0]


@pytest.fixture
def registry(components):
    return components[1]


@pytest.fixture
def gate(components):
    return components[2]


@pytest_asyncio.fixture
async def alice(registry):
    return await registry.register(registration_fields(name="Alice", last_name="Moraes"))


@pytest_asyncio.fixture
async def bob(registry):
    return await registry.register(registration_fields(name="Bob", last_name="Castro"))


@pytest.fixture
def fund(service):
    """Deposit ``amount`` for ``identity`` with a fresh key."""

    async def _fund(identity, amount):
        await service.deposit(identity, Decimal(amount), PIN, str(uuid4()))

    return _fund


async def balance_of(storage, identity) -> Decimal:
    account = await storage.get_account_by_owner(identity.id)
    return account.balance
