"""
Mutation Request Validation

DESIGN DECISION: Every mutation is validated in full BEFORE any write.

STAGE 1 - FIELD VALIDATION:
- Required field presence
- Parsable, finite amounts
- Positive amounts where the operation requires them
- Ranges (day_of_month 1-31)

STAGE 2 - REFERENCE VALIDATION (needs the store):
- Referenced accounts exist

All issues are collected rather than stopping at the first one, so the
caller can highlight every offending input at once.

IMPORTANT: Validation NEVER silently fixes issues.
"""

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from finledger.amounts import parse_amount
from finledger.errors import ValidationError
from finledger.models.ledger import Account, TransactionType
from finledger.models.planning import Frequency
from finledger.models.results import ValidationIssue, ValidationResult
from finledger.storage import LedgerStore


def _missing(field: str, label: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="missing",
        message=f"{label} is required",
    )


class LedgerValidator:
    """
    Validates mutation requests for the ledger engine.

    Stage 1 runs without storage; stage 2 needs a store for reference checks.
    """

    def __init__(self, store: Optional[LedgerStore] = None):
        self._store = store

    # -------------------------------------------------------------------------
    # Building blocks
    # -------------------------------------------------------------------------

    def check_amount(
        self,
        value: Any,
        field: str = "amount",
        positive: bool = False,
        issues: Optional[list[ValidationIssue]] = None,
    ) -> Optional[Decimal]:
        """
        Parse an amount, appending an issue to `issues` when it is bad.

        Returns the parsed Decimal, or None when invalid.
        """
        if issues is None:
            issues = []
        if value is None or (isinstance(value, str) and not value.strip()):
            issues.append(_missing(field, "Amount"))
            return None
        amount = parse_amount(value)
        if amount is None:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message=f"'{value}' is not a valid amount",
            ))
            return None
        if positive and amount <= 0:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            ))
            return None
        return amount

    # -------------------------------------------------------------------------
    # Stage 1: field validation
    # -------------------------------------------------------------------------

    def validate_transaction(
        self,
        amount: Any,
        transaction_type: Any,
        category: Optional[str],
        has_splits: bool = False,
    ) -> ValidationResult:
        """Validate a plain (non-transfer) transaction request."""
        issues: list[ValidationIssue] = []

        self.check_amount(amount, issues=issues)

        try:
            kind = TransactionType(transaction_type)
        except ValueError:
            issues.append(ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message=f"Unknown transaction type: {transaction_type}",
            ))
        else:
            if kind == TransactionType.TRANSFER:
                issues.append(ValidationIssue(
                    field="type",
                    issue_type="invalid_value",
                    message="Transfers must be created through the transfer operation",
                ))

        # A split transaction takes its category from its rows
        if not has_splits and not (category or "").strip():
            issues.append(_missing("category", "Category"))

        return ValidationResult(issues=issues)

    def validate_transfer(
        self,
        from_account_id: Optional[UUID],
        to_account_id: Optional[UUID],
        amount: Any,
    ) -> ValidationResult:
        """Validate a transfer request: two distinct accounts, positive amount."""
        issues: list[ValidationIssue] = []

        if from_account_id is None:
            issues.append(_missing("from_account_id", "Source account"))
        if to_account_id is None:
            issues.append(_missing("to_account_id", "Destination account"))
        if (
            from_account_id is not None
            and to_account_id is not None
            and from_account_id == to_account_id
        ):
            issues.append(ValidationIssue(
                field="to_account_id",
                issue_type="same_account",
                message="Cannot transfer to the same account",
            ))

        self.check_amount(amount, positive=True, issues=issues)

        return ValidationResult(issues=issues)

    def validate_recurring_rule(
        self,
        name: Optional[str],
        amount: Any,
        category: Optional[str],
        transaction_type: Any,
        frequency: Any,
        day_of_month: Optional[int] = None,
        account_id: Optional[UUID] = None,
        to_account_id: Optional[UUID] = None,
    ) -> ValidationResult:
        """Validate a recurring rule request."""
        issues: list[ValidationIssue] = []

        if not (name or "").strip():
            issues.append(_missing("name", "Name"))

        try:
            kind = TransactionType(transaction_type)
        except ValueError:
            kind = None

        # Transfer rules need a positive amount
        self.check_amount(amount, positive=kind == TransactionType.TRANSFER, issues=issues)
        if kind is None:
            issues.append(ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message=f"Unknown transaction type: {transaction_type}",
            ))

        if kind != TransactionType.TRANSFER and not (category or "").strip():
            issues.append(_missing("category", "Category"))

        try:
            Frequency(frequency)
        except ValueError:
            issues.append(ValidationIssue(
                field="frequency",
                issue_type="invalid_value",
                message=f"Unknown frequency: {frequency}",
            ))

        if day_of_month is not None and not 1 <= day_of_month <= 31:
            issues.append(ValidationIssue(
                field="day_of_month",
                issue_type="out_of_range",
                message="Day of month must be between 1 and 31",
            ))

        if kind == TransactionType.TRANSFER:
            transfer = self.validate_transfer(account_id, to_account_id, Decimal("1"))
            for issue in transfer.issues:
                issues.append(issue.model_copy(update={
                    "field": {"from_account_id": "account_id"}.get(issue.field, issue.field)
                }))

        return ValidationResult(issues=issues)

    def validate_goal(
        self,
        name: Optional[str],
        target_amount: Any,
        current_amount: Any = None,
    ) -> ValidationResult:
        issues: list[ValidationIssue] = []
        if not (name or "").strip():
            issues.append(_missing("name", "Name"))
        self.check_amount(target_amount, field="target_amount", positive=True, issues=issues)
        if current_amount not in (None, ""):
            self.check_amount(current_amount, field="current_amount", issues=issues)
        return ValidationResult(issues=issues)

    # -------------------------------------------------------------------------
    # Stage 2: reference validation
    # -------------------------------------------------------------------------

    async def check_accounts_exist(self, **account_ids: Optional[UUID]) -> ValidationResult:
        """
        Check that every named account id refers to an existing account.

        Usage:
            await validator.check_accounts_exist(from_account_id=a, to_account_id=b)
        """
        issues: list[ValidationIssue] = []
        if self._store is None:
            return ValidationResult(issues=issues)
        for field, account_id in account_ids.items():
            if account_id is None:
                continue
            if await self._store.get(Account, account_id) is None:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="not_found",
                    message=f"Account {account_id} does not exist",
                ))
        return ValidationResult(issues=issues)

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    @staticmethod
    def raise_for_issues(result: ValidationResult) -> None:
        """Raise ValidationError carrying the error-level issues, if any."""
        if result.has_errors:
            raise ValidationError(
                [issue for issue in result.issues if issue.severity == "error"]
            )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """One line per problem, suitable for a form-level message."""
        if result.is_valid:
            return "All checks passed."
        lines = ["Please fix the following:"]
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"   • {issue.field}: {issue.message}")
        return "\n".join(lines)
