"""
Data Models Package

This package contains all Pydantic models used by the ledger engine.
All data flowing through the engine must conform to these schemas.
"""

from finledger.models.ledger import (
    TRANSFER_CATEGORY,
    Account,
    Category,
    CategoryRef,
    CategoryType,
    Merchant,
    SingleCategory,
    Split,
    SplitAcrossMany,
    SplitAllocation,
    SplitRow,
    Transaction,
    TransactionDraft,
    TransactionSource,
    TransactionType,
    TransferDirection,
)
from finledger.models.planning import (
    Budget,
    BudgetPeriod,
    Frequency,
    Goal,
    GoalItem,
    GoalItemStatus,
    Quote,
    RecurringRule,
)
from finledger.models.results import (
    AccountBalance,
    BudgetStatus,
    BudgetStatusLevel,
    CategorySpending,
    DashboardSummary,
    GoalItemRollup,
    GoalProgress,
    MonthlyTotals,
    ReportQuery,
    SpendingReport,
    UpcomingOccurrence,
    ValidationIssue,
    ValidationResult,
)
from finledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "TRANSFER_CATEGORY",
    "Account",
    "Category",
    "CategoryRef",
    "CategoryType",
    "Merchant",
    "SingleCategory",
    "Split",
    "SplitAcrossMany",
    "SplitAllocation",
    "SplitRow",
    "Transaction",
    "TransactionDraft",
    "TransactionSource",
    "TransactionType",
    "TransferDirection",
    # Planning models
    "Budget",
    "BudgetPeriod",
    "Frequency",
    "Goal",
    "GoalItem",
    "GoalItemStatus",
    "Quote",
    "RecurringRule",
    # Results
    "AccountBalance",
    "BudgetStatus",
    "BudgetStatusLevel",
    "CategorySpending",
    "DashboardSummary",
    "GoalItemRollup",
    "GoalProgress",
    "MonthlyTotals",
    "ReportQuery",
    "SpendingReport",
    "UpcomingOccurrence",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
