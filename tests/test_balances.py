"""Tests for balance replay."""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from conftest import make_transaction

from finledger.engine.balances import resolve_balance
from finledger.models import Account, TransactionType
from finledger.storage import NotFoundError, StoreUnavailableError


class TestResolveBalance:
    """Tests for the pure balance replay."""

    def test_no_history_is_opening_balance(self):
        account = Account(user_id=uuid4(), name="Cash", balance=Decimal("42.10"))
        assert resolve_balance(account, []) == Decimal("42.10")

    def test_rows_of_other_accounts_are_ignored(self):
        user_id = uuid4()
        account = Account(user_id=user_id, name="Cash", balance=Decimal("10"))
        other = make_transaction(user_id, "-5", date(2024, 1, 1), uuid4())
        assert resolve_balance(account, [other]) == Decimal("10")


class TestComputeAccountBalance:
    """Tests for balances read through the service."""

    @pytest.mark.asyncio
    async def test_checking_scenario(self, service, store, user_id, checking, savings):
        await store.insert(make_transaction(user_id, "-50", date(2024, 3, 1), checking.id))
        await store.insert(make_transaction(
            user_id, "1000", date(2024, 3, 2), checking.id,
            category="Salary", transaction_type=TransactionType.INCOME,
        ))
        await service.create_transfer(checking.id, savings.id, "200", date(2024, 3, 3))

        assert await service.compute_account_balance(checking.id) == Decimal("1950")
        # $0 is deliberate: transfer legs never count toward a resolved balance
        assert await service.compute_account_balance(savings.id) == Decimal("0")

    @pytest.mark.asyncio
    async def test_rederivation_is_idempotent(self, service, store, user_id, checking):
        await store.insert(make_transaction(user_id, "-12.34", date(2024, 3, 1), checking.id))
        first = await service.compute_account_balance(checking.id)
        second = await service.compute_account_balance(checking.id)
        assert first == second == Decimal("987.66")

    @pytest.mark.asyncio
    async def test_opening_balance_is_never_written(self, service, store, user_id, checking):
        await store.insert(make_transaction(user_id, "-50", date(2024, 3, 1), checking.id))
        await service.compute_account_balance(checking.id)
        stored = await store.get(Account, checking.id)
        assert stored.balance == Decimal("1000")

    @pytest.mark.asyncio
    async def test_unknown_account(self, service):
        with pytest.raises(NotFoundError):
            await service.compute_account_balance(uuid4())

    @pytest.mark.asyncio
    async def test_reads_are_retried(self, service, store, checking, monkeypatch):
        real_get = store.get
        calls = {"count": 0}

        async def flaky_get(model, entity_id):
            calls["count"] += 1
            if calls["count"] == 1:
                raise StoreUnavailableError("connection reset")
            return await real_get(model, entity_id)

        monkeypatch.setattr(store, "get", flaky_get)

        assert await service.compute_account_balance(checking.id) == Decimal("1000")
        assert calls["count"] == 2

    @pytest.mark.asyncio
    async def test_retries_give_up(self, service, store, checking, monkeypatch):
        async def down(*args, **kwargs):
            raise StoreUnavailableError("down")

        monkeypatch.setattr(store, "get", down)

        with pytest.raises(StoreUnavailableError):
            await service.compute_account_balance(checking.id)

    @pytest.mark.asyncio
    async def test_account_balances_listing(self, service, store, user_id, checking, savings):
        await store.insert(Account(user_id=user_id, name="Old card", is_active=False))
        await store.insert(make_transaction(user_id, "-100", date(2024, 3, 1), checking.id))

        balances = await service.compute_account_balances()

        assert [(b.name, b.balance) for b in balances] == [
            ("Checking", Decimal("900")),
            ("Savings", Decimal("0")),
        ]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
