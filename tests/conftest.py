"""
Shared fixtures for MoneyX tests.

Every ledger fixture runs against the in-memory store with a signed-in
user. No external services are involved.
"""

from decimal import Decimal

import pytest

from moneyx.config import LedgerSettings
from moneyx.ledger import LedgerService
from moneyx.models import AccountType, CategoryType
from moneyx.notifications import InMemoryNotificationSink
from moneyx.session import SessionProvider
from moneyx.store import InMemoryLedgerStore


GROCERIES = "cat-groceries"
DINING = "cat-dining"
SALARY = "cat-salary"
SAVINGS = "cat-savings"
TRANSFER = "cat-12"


def build_ledger(sink: InMemoryNotificationSink, seed: bool) -> tuple[LedgerService, SessionProvider]:
    store = InMemoryLedgerStore()
    session = SessionProvider()
    service = LedgerService(
        store,
        session,
        sink=sink,
        settings=LedgerSettings(seed_mock_data=seed, default_currency="INR"),
    )
    session.subscribe(service.handle_session_change)
    return service, session


async def open_account(ledger: LedgerService, name: str, balance, kind=AccountType.CHECKING) -> str:
    """Create an account and return its id."""
    result = await ledger.add_account(name, kind, balance)
    assert result.success, result.message
    return result.entity_id


def balance_of(ledger: LedgerService, account_id: str) -> Decimal:
    return ledger.snapshot().account(account_id).balance


@pytest.fixture
def sink() -> InMemoryNotificationSink:
    return InMemoryNotificationSink()


@pytest.fixture
async def ledger(sink) -> LedgerService:
    """Signed-in ledger with a small fixed category set and no accounts."""
    service, session = build_ledger(sink, seed=False)
    await session.login("alex@example.com", "secret")

    for category_id, name, kind in [
        (GROCERIES, "Groceries", CategoryType.EXPENSE),
        (DINING, "Dining", CategoryType.EXPENSE),
        (SALARY, "Salary", CategoryType.INCOME),
        (SAVINGS, "Savings", CategoryType.EXPENSE),
        (TRANSFER, "Transfer", CategoryType.EXPENSE),
    ]:
        result = await service.add_category(name, kind, category_id=category_id)
        assert result.success, result.message

    sink.drain()
    return service


@pytest.fixture
async def seeded_ledger(sink) -> LedgerService:
    """Signed-in ledger loaded with the demo dataset."""
    service, session = build_ledger(sink, seed=True)
    await session.login("alex@example.com", "secret")
    sink.drain()
    return service
