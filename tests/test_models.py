"""
Tests for finledger

Test strategy:
1. Unit tests for individual components (models, amounts, engine rules)
2. Integration tests for the service against the in-memory store
3. No external services in tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from finledger.models.ledger import (
    Account,
    SingleCategory,
    Split,
    SplitAcrossMany,
    Transaction,
    TransactionSource,
    TransactionType,
)
from finledger.models.planning import (
    Budget,
    Frequency,
    Goal,
    RecurringRule,
)
from finledger.models.results import (
    GoalItemRollup,
    GoalProgress,
    ValidationIssue,
    ValidationResult,
)
from finledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestLedgerModels:
    """Tests for accounts, transactions and splits."""

    def test_account_strips_whitespace(self):
        """Test that whitespace is stripped from account name."""
        account = Account(user_id=uuid4(), name="  Checking  ")
        assert account.name == "Checking"
        assert account.balance == Decimal("0")

    def test_transaction_defaults_to_manual_source(self):
        txn = Transaction(
            user_id=uuid4(),
            amount=Decimal("-12.50"),
            date=date(2024, 3, 1),
            type=TransactionType.EXPENSE,
            category="Groceries",
        )
        assert txn.source == TransactionSource.MANUAL
        assert txn.magnitude == Decimal("12.50")
        assert txn.is_transfer is False

    def test_transfer_requires_both_accounts(self):
        """Test that a transfer leg without a destination is rejected."""
        with pytest.raises(ValueError, match="both account_id and to_account_id"):
            Transaction(
                user_id=uuid4(),
                amount=Decimal("100"),
                date=date(2024, 3, 1),
                type=TransactionType.TRANSFER,
                account_id=uuid4(),
            )

    def test_transfer_rejects_same_account(self):
        account_id = uuid4()
        with pytest.raises(ValueError, match="must differ"):
            Transaction(
                user_id=uuid4(),
                amount=Decimal("100"),
                date=date(2024, 3, 1),
                type=TransactionType.TRANSFER,
                account_id=account_id,
                to_account_id=account_id,
            )

    def test_category_ref_single(self):
        category_id = uuid4()
        txn = Transaction(
            user_id=uuid4(),
            amount=Decimal("-5"),
            date=date(2024, 3, 1),
            type=TransactionType.EXPENSE,
            category="Coffee",
            category_id=category_id,
        )
        ref = txn.category_ref
        assert isinstance(ref, SingleCategory)
        assert ref.category_id == category_id
        assert ref.display_name == "Coffee"

    def test_category_ref_split(self):
        txn = Transaction(
            user_id=uuid4(),
            amount=Decimal("-100"),
            date=date(2024, 3, 1),
            type=TransactionType.EXPENSE,
            category="Groceries, Household",
            is_split=True,
        )
        ref = txn.category_ref
        assert isinstance(ref, SplitAcrossMany)
        assert ref.display_name == "Groceries, Household"

    def test_split_rejects_negative_amount(self):
        """Test that negative split amounts are rejected."""
        with pytest.raises(ValueError):
            Split(transaction_id=uuid4(), amount=Decimal("-1"))


class TestPlanningModels:
    """Tests for recurring rules, budgets and goals."""

    def test_rule_next_occurrence_before_start(self):
        with pytest.raises(ValueError, match="next_occurrence"):
            RecurringRule(
                user_id=uuid4(),
                name="Rent",
                amount=Decimal("1200"),
                type=TransactionType.EXPENSE,
                frequency=Frequency.MONTHLY,
                start_date=date(2024, 2, 1),
                next_occurrence=date(2024, 1, 1),
            )

    def test_rule_day_of_month_range(self):
        with pytest.raises(ValueError):
            RecurringRule(
                user_id=uuid4(),
                name="Rent",
                amount=Decimal("1200"),
                type=TransactionType.EXPENSE,
                frequency=Frequency.MONTHLY,
                start_date=date(2024, 2, 1),
                next_occurrence=date(2024, 2, 1),
                day_of_month=32,
            )

    def test_recurring_transfer_needs_distinct_accounts(self):
        account_id = uuid4()
        with pytest.raises(ValueError, match="must differ"):
            RecurringRule(
                user_id=uuid4(),
                name="Savings sweep",
                amount=Decimal("100"),
                type=TransactionType.TRANSFER,
                frequency=Frequency.MONTHLY,
                start_date=date(2024, 2, 1),
                next_occurrence=date(2024, 2, 1),
                account_id=account_id,
                to_account_id=account_id,
            )

    def test_budget_end_before_start(self):
        with pytest.raises(ValueError, match="end_date"):
            Budget(
                user_id=uuid4(),
                category="Groceries",
                amount=Decimal("400"),
                start_date=date(2024, 3, 1),
                end_date=date(2024, 2, 1),
            )

    def test_budget_amount_must_be_positive(self):
        with pytest.raises(ValueError):
            Budget(
                user_id=uuid4(),
                category="Groceries",
                amount=Decimal("0"),
                start_date=date(2024, 3, 1),
            )

    def test_goal_completion(self):
        goal = Goal(
            user_id=uuid4(),
            name="Trip",
            target_amount=Decimal("5000"),
            current_amount=Decimal("5000"),
        )
        assert goal.is_completed is True


class TestResultModels:
    """Tests for projections handed back to callers."""

    def test_goal_item_variance_label(self):
        rollup = GoalItemRollup(
            item_id=uuid4(),
            name="Flights",
            status="booked",
            sort_order=0,
            budget_amount=Decimal("800"),
            actual_spent=Decimal("950"),
            selected_quote_amount=Decimal("0"),
        )
        assert rollup.variance == Decimal("-150")
        assert rollup.variance_label == "over"
        assert rollup.planned_amount == Decimal("800")

    def test_goal_progress_totals(self):
        items = [
            GoalItemRollup(
                item_id=uuid4(),
                name="Flights",
                status="quoted",
                sort_order=0,
                budget_amount=Decimal("800"),
                actual_spent=Decimal("0"),
                selected_quote_amount=Decimal("720"),
            ),
            GoalItemRollup(
                item_id=uuid4(),
                name="Hotel",
                status="planned",
                sort_order=1,
                budget_amount=Decimal("1200"),
                actual_spent=Decimal("300"),
                selected_quote_amount=Decimal("0"),
            ),
        ]
        progress = GoalProgress(
            goal_id=uuid4(),
            name="Trip",
            target_amount=Decimal("5000"),
            current_amount=Decimal("1000"),
            stored_amount=Decimal("1000"),
            percentage=20,
            items=items,
        )
        assert progress.total_budget == Decimal("2000")
        assert progress.total_planned == Decimal("1920")
        assert progress.total_actual == Decimal("300")
        assert progress.total_remaining == Decimal("4700")
        assert progress.budget_variance == Decimal("80")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSFER_CREATED,
            description="Transfer created",
        )
        assert event.event_type == AuditEventType.TRANSFER_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.SPLITS_REPLACED,
            description="Split set replaced",
            details={"split_count": 2, "categories": "Groceries, Household"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "splits_replaced"
        assert log_dict["details"]["split_count"] == 2

    def test_audit_event_builder_transfer_created(self):
        correlation_id = uuid4()
        debit_id = uuid4()
        credit_id = uuid4()

        event = AuditEventBuilder.transfer_created(
            debit_id=debit_id,
            credit_id=credit_id,
            amount="200",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.TRANSFER_CREATED
        assert event.entity_id == debit_id
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_recurring_is_machine_action(self):
        event = AuditEventBuilder.recurring_generated(
            created_ids=[uuid4(), uuid4()],
            rules_advanced=1,
            up_to_date="2024-04-15",
            correlation_id=uuid4(),
        )
        assert event.event_type == AuditEventType.RECURRING_GENERATED
        assert event.is_user_action is False
        assert len(event.details["created"]) == 2

    def test_rule_state_changed_description(self):
        event = AuditEventBuilder.rule_state_changed(
            rule_id=uuid4(),
            event_type=AuditEventType.RULE_PAUSED,
            correlation_id=uuid4(),
        )
        assert event.description == "Recurring rule paused"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount is required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.is_valid is False
        assert result.error_count == 1
        assert result.fields == ["amount"]

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0


class TestEnums:
    """Tests for enum values stored in the ledger."""

    def test_frequency_values(self):
        expected = ["daily", "weekly", "biweekly", "monthly", "quarterly", "yearly"]
        for value in expected:
            assert Frequency(value) is not None

    def test_transaction_type_values(self):
        assert TransactionType.EXPENSE.value == "expense"
        assert TransactionType.TRANSFER.value == "transfer"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
