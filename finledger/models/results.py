"""
Result Models

What the engine hands back to its callers: validation outcomes,
read-side projections (budget status, goal progress, dashboard) and
spending reports. None of these are persisted.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finledger.models.ledger import utcnow
from finledger.models.planning import GoalItemStatus


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue, attributed to the offending field."""

    field: str = Field(
        ...,
        description="Field with the issue, e.g. 'amount' or 'splits[1].category_id'"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'sum_mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one mutation request before any write."""

    validated_at: datetime = Field(default_factory=utcnow)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues if issue.severity == "error"]


# =============================================================================
# PROJECTIONS
# =============================================================================

class BudgetStatusLevel(str, Enum):
    """Fixed policy: <=80% on track, 81-100% near limit, >100% over."""
    ON_TRACK = "on_track"
    NEAR_LIMIT = "near_limit"
    OVER_BUDGET = "over_budget"


class BudgetStatus(BaseModel):
    budget_id: UUID
    category: str
    amount: Decimal
    period_start: date
    as_of: date
    spent: Decimal
    percentage: int
    status: BudgetStatusLevel

    @property
    def remaining(self) -> Decimal:
        return self.amount - self.spent


class GoalItemRollup(BaseModel):
    """Per-item budget, quote and actual-spend rollup."""

    item_id: UUID
    name: str
    status: GoalItemStatus
    sort_order: int
    budget_amount: Decimal
    actual_spent: Decimal
    selected_quote_amount: Decimal
    quotes_count: int = 0

    @property
    def variance(self) -> Decimal:
        return self.budget_amount - self.actual_spent

    @property
    def variance_label(self) -> str:
        return "saved" if self.variance >= 0 else "over"

    @property
    def planned_amount(self) -> Decimal:
        """The selected quote when there is one, otherwise the budget."""
        return self.selected_quote_amount or self.budget_amount


class GoalProgress(BaseModel):
    goal_id: UUID
    name: str
    target_amount: Decimal
    current_amount: Decimal
    stored_amount: Decimal = Field(
        ...,
        description="The manually entered amount, kept as display-only history for linked goals"
    )
    linked_account_id: Optional[UUID] = None
    percentage: int
    items: list[GoalItemRollup] = Field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.current_amount >= self.target_amount

    @property
    def total_budget(self) -> Decimal:
        return sum((item.budget_amount for item in self.items), Decimal("0"))

    @property
    def total_planned(self) -> Decimal:
        return sum((item.planned_amount for item in self.items), Decimal("0"))

    @property
    def total_actual(self) -> Decimal:
        return sum((item.actual_spent for item in self.items), Decimal("0"))

    @property
    def total_remaining(self) -> Decimal:
        return self.target_amount - self.total_actual

    @property
    def budget_variance(self) -> Decimal:
        return self.total_budget - self.total_planned


class AccountBalance(BaseModel):
    account_id: UUID
    name: str
    opening_balance: Decimal
    balance: Decimal


class UpcomingOccurrence(BaseModel):
    rule_id: UUID
    name: str
    amount: Decimal
    category: str
    frequency: str
    next_occurrence: date


class DashboardSummary(BaseModel):
    as_of: date
    month_start: date
    monthly_income: Decimal
    monthly_expenses: Decimal
    accounts: list[AccountBalance] = Field(default_factory=list)
    budgets: list[BudgetStatus] = Field(default_factory=list)
    upcoming_recurring: list[UpcomingOccurrence] = Field(default_factory=list)

    @property
    def monthly_net(self) -> Decimal:
        return self.monthly_income - self.monthly_expenses


# =============================================================================
# REPORT MODELS
# =============================================================================

class ReportQuery(BaseModel):
    """A spending report request over a window ending at `as_of`."""

    query_id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=utcnow)
    as_of: date
    window: str = Field(
        default="month",
        pattern="^(month|quarter|year)$",
        description="How far back from as_of the report reaches"
    )
    top_categories: int = Field(default=10, ge=1, le=100)


class CategorySpending(BaseModel):
    category: str
    amount: Decimal
    count: int
    percentage: Decimal


class MonthlyTotals(BaseModel):
    month: str
    income: Decimal
    expense: Decimal

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


class SpendingReport(BaseModel):
    query_id: UUID
    executed_at: datetime = Field(default_factory=utcnow)
    date_from: date
    date_to: date
    total_income: Decimal
    total_expense: Decimal
    transaction_count: int
    categories: list[CategorySpending] = Field(default_factory=list)
    monthly: list[MonthlyTotals] = Field(default_factory=list)
    description: str = ""

    @property
    def data_found(self) -> bool:
        return self.transaction_count > 0
