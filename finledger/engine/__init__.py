"""
Ledger Engine Package

Pure derivations (balances, budgets, goal progress, schedules) and the
components that perform multi-row writes through the store.
"""

from finledger.engine.balances import balance_effect, resolve_balance
from finledger.engine.budgets import (
    budget_status,
    compute_spend,
    period_end,
    period_start,
    status_for,
)
from finledger.engine.goals import QuoteSelector, goal_progress, item_rollup
from finledger.engine.recurring import (
    RecurringScheduler,
    advance,
    due_occurrences,
    materialize,
    next_occurrence_after,
)
from finledger.engine.splits import SplitAllocator, split_label, validate_split
from finledger.engine.transfers import TransferCoordinator

__all__ = [
    "balance_effect",
    "resolve_balance",
    "budget_status",
    "compute_spend",
    "period_end",
    "period_start",
    "status_for",
    "QuoteSelector",
    "goal_progress",
    "item_rollup",
    "RecurringScheduler",
    "advance",
    "due_occurrences",
    "materialize",
    "next_occurrence_after",
    "SplitAllocator",
    "split_label",
    "validate_split",
    "TransferCoordinator",
]
