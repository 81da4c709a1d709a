"""Tests for split validation and split set replacement."""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from conftest import make_transaction

from finledger.engine.splits import SplitAllocator, split_label, validate_split
from finledger.errors import SplitSumMismatchError, ValidationError
from finledger.models import Split, SplitRow, Transaction, TransactionType


class TestValidateSplit:
    """Tests for the pure split check."""

    def test_exact_split_is_accepted(self):
        food, home = uuid4(), uuid4()
        allocations = validate_split("100", [
            {"category_id": food, "amount": "60"},
            {"category_id": home, "amount": "40", "notes": "soap"},
        ])
        assert [a.percentage for a in allocations] == [60, 40]
        assert allocations[1].notes == "soap"

    def test_within_one_cent_is_accepted(self):
        allocations = validate_split(Decimal("100"), [
            SplitRow(category_id=uuid4(), amount="33.33"),
            SplitRow(category_id=uuid4(), amount="33.33"),
            SplitRow(category_id=uuid4(), amount="33.33"),
        ])
        assert sum(a.amount for a in allocations) == Decimal("99.99")
        assert [a.percentage for a in allocations] == [33, 33, 33]

    def test_shortfall_reports_positive_delta(self):
        with pytest.raises(SplitSumMismatchError) as exc_info:
            validate_split("100", [
                {"category_id": uuid4(), "amount": "60"},
                {"category_id": uuid4(), "amount": "39.98"},
            ])
        error = exc_info.value
        assert error.delta == Decimal("0.02")
        assert error.shortfall_message == "need $0.02 more"
        assert error.fields == ["splits"]

    def test_excess_reports_negative_delta(self):
        with pytest.raises(SplitSumMismatchError) as exc_info:
            validate_split("100", [
                {"category_id": uuid4(), "amount": "70"},
                {"category_id": uuid4(), "amount": "40"},
            ])
        assert exc_info.value.delta == Decimal("-10")
        assert exc_info.value.shortfall_message == "over by $10.00"

    @pytest.mark.parametrize("second,accepted", [
        ("40.01", True),
        ("39.99", True),
        ("40.02", False),
        ("39.98", False),
    ])
    def test_accepts_iff_within_tolerance(self, second, accepted):
        rows = [
            {"category_id": uuid4(), "amount": "60"},
            {"category_id": uuid4(), "amount": second},
        ]
        if accepted:
            assert len(validate_split("100", rows)) == 2
        else:
            with pytest.raises(SplitSumMismatchError):
                validate_split("100", rows)

    def test_parent_sign_is_ignored(self):
        allocations = validate_split(Decimal("-100"), [
            {"category_id": uuid4(), "amount": "100"},
        ])
        assert allocations[0].percentage == 100

    def test_every_bad_row_is_reported(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_split("100", [
                {"category_id": uuid4(), "amount": "50"},
                {"category_id": "", "amount": "25"},
                {"category_id": uuid4(), "amount": "abc"},
                {"category_id": "not-an-id", "amount": "-5"},
            ])
        assert not isinstance(exc_info.value, SplitSumMismatchError)
        assert exc_info.value.fields == [
            "splits[1].category_id",
            "splits[2].amount",
            "splits[3].category_id",
            "splits[3].amount",
        ]

    def test_wrongly_typed_row_values_are_attributed(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_split("100", [
                {"category_id": uuid4(), "amount": "100"},
                {"category_id": uuid4(), "amount": [1]},
                {"category_id": 7, "amount": "0"},
            ])
        assert exc_info.value.fields == ["splits[1].amount", "splits[2].category_id"]
        assert exc_info.value.issues[0].message.startswith("Row 2: ")

    def test_no_rows(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_split("100", [])
        assert exc_info.value.fields == ["splits"]

    def test_string_category_ids_are_parsed(self):
        category_id = uuid4()
        allocations = validate_split("10", [{"category_id": str(category_id), "amount": "10"}])
        assert allocations[0].category_id == category_id

    def test_split_label_keeps_order_without_repeats(self):
        assert split_label(["Groceries", "Household", "Groceries"]) == "Groceries, Household"


class TestSplitAllocator:
    """Tests for writing split sets through the store."""

    @pytest.mark.asyncio
    async def test_replace_splits_marks_parent(self, store, user_id, groceries, household):
        parent = await store.insert(make_transaction(user_id, "-100", date(2024, 3, 5)))
        allocator = SplitAllocator(store)

        parent, splits = await allocator.replace_splits(parent.id, [
            {"category_id": groceries.id, "amount": "60"},
            {"category_id": household.id, "amount": "40"},
        ])

        assert parent.is_split is True
        assert parent.category == "Groceries, Household"
        assert parent.category_id is None
        assert [s.percentage for s in splits] == [60, 40]
        stored = await store.query(Split, {"transaction_id": parent.id})
        assert len(stored) == 2

    @pytest.mark.asyncio
    async def test_replace_swaps_whole_set(self, store, user_id, groceries, household):
        parent = await store.insert(make_transaction(user_id, "-100", date(2024, 3, 5)))
        allocator = SplitAllocator(store)
        await allocator.replace_splits(parent.id, [
            {"category_id": groceries.id, "amount": "50"},
            {"category_id": household.id, "amount": "50"},
        ])

        await allocator.replace_splits(parent.id, [
            {"category_id": household.id, "amount": "100"},
        ])

        stored = await store.query(Split, {"transaction_id": parent.id})
        assert [(s.category_id, s.amount) for s in stored] == [(household.id, Decimal("100"))]
        refreshed = await store.get(Transaction, parent.id)
        assert refreshed.category == "Household"

    @pytest.mark.asyncio
    async def test_failed_replace_keeps_previous_set(self, store, user_id, groceries, household):
        parent = await store.insert(make_transaction(user_id, "-100", date(2024, 3, 5)))
        allocator = SplitAllocator(store)
        await allocator.replace_splits(parent.id, [
            {"category_id": groceries.id, "amount": "60"},
            {"category_id": household.id, "amount": "40"},
        ])

        with pytest.raises(ValidationError) as exc_info:
            await allocator.replace_splits(parent.id, [
                {"category_id": groceries.id, "amount": "50"},
                {"category_id": uuid4(), "amount": "50"},
            ])

        assert exc_info.value.fields == ["splits[1].category_id"]
        stored = await store.query(Split, {"transaction_id": parent.id})
        assert sorted(s.amount for s in stored) == [Decimal("40"), Decimal("60")]

    @pytest.mark.asyncio
    async def test_transfers_cannot_be_split(self, store, user_id, checking, savings, groceries):
        debit, _ = await store.create_transfer(
            user_id, checking.id, savings.id, Decimal("100"), date(2024, 3, 5)
        )
        with pytest.raises(ValidationError) as exc_info:
            await SplitAllocator(store).replace_splits(debit.id, [
                {"category_id": groceries.id, "amount": "100"},
            ])
        assert exc_info.value.fields == ["type"]
        assert await store.query(Split) == []

    @pytest.mark.asyncio
    async def test_clear_splits(self, store, user_id, groceries, household):
        parent = await store.insert(make_transaction(user_id, "-100", date(2024, 3, 5)))
        allocator = SplitAllocator(store)
        await allocator.replace_splits(parent.id, [
            {"category_id": groceries.id, "amount": "60"},
            {"category_id": household.id, "amount": "40"},
        ])

        parent = await allocator.clear_splits(parent.id, "Groceries", groceries.id)

        assert parent.is_split is False
        assert parent.category_id == groceries.id
        assert await store.query(Split, {"transaction_id": parent.id}) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
