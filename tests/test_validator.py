"""Tests for mutation request validation."""

import pytest
from uuid import uuid4

from finledger.errors import ValidationError
from finledger.models import ValidationIssue, ValidationResult
from finledger.validation import LedgerValidator


@pytest.fixture
def validator() -> LedgerValidator:
    return LedgerValidator()


class TestFieldValidation:
    """Tests for stage 1 checks that need no store."""

    def test_transfer_collects_every_issue(self, validator):
        account = uuid4()
        result = validator.validate_transfer(account, account, "-5")
        assert result.fields == ["to_account_id", "amount"]
        assert result.issues[0].issue_type == "same_account"

    def test_transfer_missing_accounts(self, validator):
        result = validator.validate_transfer(None, None, "10")
        assert result.fields == ["from_account_id", "to_account_id"]

    def test_transaction_category_optional_when_split(self, validator):
        assert validator.validate_transaction("10", "expense", "", has_splits=True).is_valid
        assert validator.validate_transaction("10", "expense", "").fields == ["category"]

    def test_unknown_transaction_type(self, validator):
        result = validator.validate_transaction("10", "refund", "Groceries")
        assert result.fields == ["type"]

    def test_recurring_transfer_reports_rule_fields(self, validator):
        result = validator.validate_recurring_rule(
            name="Sweep",
            amount="100",
            category="",
            transaction_type="transfer",
            frequency="monthly",
        )
        assert result.fields == ["account_id", "to_account_id"]

    def test_recurring_transfer_needs_positive_amount(self, validator):
        for amount in ("0", "-50"):
            result = validator.validate_recurring_rule(
                name="Sweep",
                amount=amount,
                category="",
                transaction_type="transfer",
                frequency="monthly",
                account_id=uuid4(),
                to_account_id=uuid4(),
            )
            assert result.fields == ["amount"]
        assert validator.validate_recurring_rule("Gym", "0", "Fitness", "expense", "monthly").is_valid

    def test_goal_current_amount_is_optional(self, validator):
        assert validator.validate_goal("Trip", "5000").is_valid
        assert validator.validate_goal("Trip", "5000", "lots").fields == ["current_amount"]


class TestReferenceValidation:
    """Tests for stage 2 account checks."""

    @pytest.mark.asyncio
    async def test_without_store_nothing_is_checked(self, validator):
        result = await validator.check_accounts_exist(account_id=uuid4())
        assert result.is_valid

    @pytest.mark.asyncio
    async def test_missing_account_is_attributed(self, store, checking):
        validator = LedgerValidator(store)
        missing = uuid4()
        result = await validator.check_accounts_exist(account_id=checking.id, to_account_id=missing)
        assert result.fields == ["to_account_id"]
        assert result.issues[0].issue_type == "not_found"


class TestReporting:
    """Tests for turning issues into errors and messages."""

    def test_raise_for_issues_ignores_warnings(self, validator):
        result = ValidationResult(issues=[
            ValidationIssue(field="notes", issue_type="long", message="Long note", severity="warning"),
        ])
        validator.raise_for_issues(result)

    def test_raise_for_issues_carries_errors(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.raise_for_issues(validator.validate_goal("", "5000"))
        assert exc_info.value.fields == ["name"]
        assert str(exc_info.value) == "name: Name is required"

    def test_user_friendly_summary(self, validator):
        result = validator.validate_transfer(None, uuid4(), "abc")
        summary = validator.get_user_friendly_summary(result)
        assert summary.splitlines() == [
            "Please fix the following:",
            "   • from_account_id: Source account is required",
            "   • amount: 'abc' is not a valid amount",
        ]

    def test_summary_when_valid(self, validator):
        result = validator.validate_transfer(uuid4(), uuid4(), "10")
        assert validator.get_user_friendly_summary(result) == "All checks passed."


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
