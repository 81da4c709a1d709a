"""
Core Ledger Models

Accounts, categories, merchants, transactions and splits.

These models define the strict schemas for everything the engine writes
to the ledger store. They are designed to:
1. Enforce the per-row invariants at construction time
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Cross-row invariants (a transfer has exactly one mirror,
splits sum to their parent) cannot be checked by a single model. They are
enforced by the engine inside one store transaction.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from finledger.config import get_settings


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp used for created_at/updated_at."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Transaction kinds. The sign of `amount` follows the type."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class TransactionSource(str, Enum):
    """
    Who created a transaction.

    Machine-created rows keep their origin so that editing a recurring
    rule can tell generated history from hand-entered rows.
    """
    MANUAL = "manual"
    RECURRING = "recurring"
    TRANSFER = "transfer"


class TransferDirection(str, Enum):
    """Which side of a transfer a leg is. Both legs store the magnitude."""
    OUTGOING = "outgoing"
    INCOMING = "incoming"


class CategoryType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    BOTH = "both"


TRANSFER_CATEGORY = "Transfer"


# =============================================================================
# REFERENCE ENTITIES
# =============================================================================

class Account(BaseModel):
    """
    A money container.

    CRITICAL: `balance` is the OPENING balance. Posting transactions never
    changes it; the current balance is always re-derived by replaying
    history (see engine.balances).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    type: str = Field(
        default="checking",
        max_length=50,
        description="Free-text account kind, informational only"
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Opening balance"
    )
    currency: str = Field(
        default_factory=lambda: get_settings().ledger.default_currency,
        min_length=3,
        max_length=3,
    )
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Category(BaseModel):
    """A spending/income category. System categories have no owner."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: Optional[UUID] = None
    name: str = Field(..., min_length=1, max_length=100)
    type: CategoryType = CategoryType.EXPENSE
    is_system: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class Merchant(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    category: str = ""
    notes: str = ""
    is_favorite: bool = False
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# CATEGORY REFERENCE - tagged variant instead of nullable id + free text
# =============================================================================

class SingleCategory(BaseModel):
    """
    The transaction belongs to one category.

    `category_id` is None when the category row was deleted; the display
    name survives because it is denormalized onto the transaction.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["single"] = "single"
    name: str
    category_id: Optional[UUID] = None

    @property
    def display_name(self) -> str:
        return self.name


class SplitAcrossMany(BaseModel):
    """The transaction is split; the label is the comma-joined category list."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["split"] = "split"
    label: str

    @property
    def display_name(self) -> str:
        return self.label


CategoryRef = Union[SingleCategory, SplitAcrossMany]


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A single ledger row.

    Sign convention: negative = expense, positive = income. Transfer legs
    store the magnitude; `transfer_direction` says which side the leg is.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    amount: Decimal
    category: str = Field(default="", max_length=500)
    category_id: Optional[UUID] = None
    date: date
    type: TransactionType
    description: str = Field(default="", max_length=500)
    notes: str = Field(default="", max_length=1000)

    account_id: Optional[UUID] = None
    to_account_id: Optional[UUID] = None
    linked_transaction_id: Optional[UUID] = None
    transfer_direction: Optional[TransferDirection] = None

    merchant_id: Optional[UUID] = None
    merchant_name: str = ""
    goal_item_id: Optional[UUID] = None
    is_split: bool = False

    source: TransactionSource = TransactionSource.MANUAL
    recurring_rule_id: Optional[UUID] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode='after')
    def validate_transfer_shape(self) -> 'Transaction':
        """A transfer leg must name two different accounts."""
        if self.type == TransactionType.TRANSFER:
            if self.account_id is None or self.to_account_id is None:
                raise ValueError("Transfer requires both account_id and to_account_id")
            if self.account_id == self.to_account_id:
                raise ValueError("Transfer accounts must differ")
            if self.is_split:
                raise ValueError("Transfers cannot be split")
        return self

    @property
    def magnitude(self) -> Decimal:
        return abs(self.amount)

    @property
    def is_transfer(self) -> bool:
        return self.type == TransactionType.TRANSFER

    @property
    def category_ref(self) -> CategoryRef:
        if self.is_split:
            return SplitAcrossMany(label=self.category)
        return SingleCategory(name=self.category, category_id=self.category_id)


class Split(BaseModel):
    """
    One category allocation of a split parent.

    `amount` is an unsigned magnitude. `percentage` is informational and
    recomputed whenever the split set is replaced.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    transaction_id: UUID
    category_id: Optional[UUID] = None
    amount: Decimal = Field(..., ge=0)
    percentage: Optional[int] = None
    notes: str = Field(default="", max_length=500)
    created_at: datetime = Field(default_factory=utcnow)


class SplitRow(BaseModel):
    """
    Candidate split row as entered in a form.

    Fields are deliberately loose (the amount is whatever the user typed)
    so that the Split Allocator can report every bad row with its index
    instead of failing on the first one.
    """
    category_id: Optional[Union[UUID, str]] = None
    amount: Optional[Union[Decimal, float, int, str]] = None
    notes: str = ""


class SplitAllocation(BaseModel):
    """A validated split row, annotated with its share of the total."""
    model_config = ConfigDict(frozen=True)

    category_id: UUID
    amount: Decimal
    percentage: int
    notes: str = ""


class TransactionDraft(BaseModel):
    """
    A non-transfer transaction as submitted by a form.

    The draft is the whole desired state: on update, an empty `splits`
    list means "not split" and removes any existing split set.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[Union[Decimal, float, int, str]] = None
    type: str = TransactionType.EXPENSE.value
    category: str = ""
    date: date
    description: str = ""
    notes: str = ""
    account_id: Optional[UUID] = None
    merchant_id: Optional[UUID] = None
    goal_item_id: Optional[UUID] = None
    splits: list[SplitRow] = Field(default_factory=list)
