"""
Planning Models

Recurring rules, budgets, goals, goal items and vendor quotes.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from finledger.models.ledger import TransactionType, utcnow


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class BudgetPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class GoalItemStatus(str, Enum):
    PLANNED = "planned"
    QUOTED = "quoted"
    BOOKED = "booked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RecurringRule(BaseModel):
    """
    Template that periodically materializes transactions.

    INVARIANT: next_occurrence >= start_date, and advancing the rule never
    moves next_occurrence backwards.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal
    category: str = Field(default="", max_length=200)
    category_id: Optional[UUID] = None
    description: str = ""
    type: TransactionType
    frequency: Frequency
    start_date: date
    next_occurrence: date
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)

    account_id: Optional[UUID] = None
    to_account_id: Optional[UUID] = None
    merchant_id: Optional[UUID] = None

    is_active: bool = True
    auto_generate: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode='after')
    def validate_schedule(self) -> 'RecurringRule':
        if self.next_occurrence < self.start_date:
            raise ValueError("next_occurrence cannot be before start_date")
        if self.type == TransactionType.TRANSFER:
            if self.account_id is None or self.to_account_id is None:
                raise ValueError("Recurring transfer requires account_id and to_account_id")
            if self.account_id == self.to_account_id:
                raise ValueError("Recurring transfer accounts must differ")
        return self


class Budget(BaseModel):
    """
    Spending cap for one category over a repeating period.

    `spent` is never stored; see engine.budgets.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    category: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    start_date: date
    end_date: Optional[date] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode='after')
    def validate_dates(self) -> 'Budget':
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("Budget end_date cannot be before start_date")
        return self


class Goal(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    type: str = Field(default="savings", max_length=50)
    target_amount: Decimal = Field(..., gt=0)
    current_amount: Decimal = Decimal("0")
    target_date: Optional[date] = None
    linked_account_id: Optional[UUID] = None
    notes: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_completed(self) -> bool:
        return self.current_amount >= self.target_amount


class GoalItem(BaseModel):
    """A budgeted line item within a goal (e.g. "flights" for a trip)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    goal_id: UUID
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    budget_amount: Decimal = Field(default=Decimal("0"), ge=0)
    status: GoalItemStatus = GoalItemStatus.PLANNED
    sort_order: int = 0
    notes: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Quote(BaseModel):
    """A vendor quote for a goal item. At most one per item is selected."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    goal_item_id: UUID
    user_id: UUID
    vendor_name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    notes: str = ""
    is_selected: bool = False
    quote_date: Optional[date] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
