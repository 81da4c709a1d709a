"""
Shared fixtures.

Every test gets a fresh in-memory store and a service wired to an
in-memory audit log. Read retries never sleep in tests.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import pytest
import pytest_asyncio

from finledger.audit import AuditLogger
from finledger.config import StoreSettings
from finledger.models import (
    Account,
    Category,
    CategoryType,
    Transaction,
    TransactionType,
)
from finledger.orchestrator import LedgerService
from finledger.storage import InMemoryAuditStorage, InMemoryLedgerStore


def make_transaction(
    user_id: UUID,
    amount: str,
    on: date,
    account_id: Optional[UUID] = None,
    category: str = "Groceries",
    transaction_type: TransactionType = TransactionType.EXPENSE,
    **extra,
) -> Transaction:
    return Transaction(
        user_id=user_id,
        amount=Decimal(amount),
        date=on,
        type=transaction_type,
        category=category,
        account_id=account_id,
        **extra,
    )


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def service(store, user_id, audit_storage) -> LedgerService:
    return LedgerService(
        store,
        user_id,
        audit_logger=AuditLogger(audit_storage),
        store_settings=StoreSettings(read_retry_attempts=3, read_retry_wait_seconds=0),
    )


@pytest_asyncio.fixture
async def checking(store, user_id) -> Account:
    return await store.insert(Account(
        user_id=user_id,
        name="Checking",
        balance=Decimal("1000"),
    ))


@pytest_asyncio.fixture
async def savings(store, user_id) -> Account:
    return await store.insert(Account(
        user_id=user_id,
        name="Savings",
        type="savings",
        balance=Decimal("0"),
    ))


@pytest_asyncio.fixture
async def groceries(store, user_id) -> Category:
    return await store.insert(Category(user_id=user_id, name="Groceries"))


@pytest_asyncio.fixture
async def household(store, user_id) -> Category:
    return await store.insert(Category(user_id=user_id, name="Household"))


@pytest_asyncio.fixture
async def salary_category(store) -> Category:
    return await store.insert(Category(
        name="Salary",
        type=CategoryType.INCOME,
        is_system=True,
    ))
