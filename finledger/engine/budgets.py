"""
Budget Aggregator

Spend against a budget is computed on demand, never stored:

    spent = sum(|amount|) of non-split expenses in the category
          + sum(split amounts) of split expenses whose split category
            has the budget's name

both restricted to the current period window. The window starts at the
later of the period boundary containing `as_of` (ISO week, calendar month
or calendar year) and the budget's own start date, and ends at `as_of`
(or the budget's end date when that comes first).

STATUS POLICY (fixed):
- percentage <= 80   -> on_track
- 81 .. 100          -> near_limit
- > 100              -> over_budget
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Mapping
from uuid import UUID

from finledger.amounts import ZERO, percent_of
from finledger.models.ledger import Split, Transaction, TransactionType
from finledger.models.planning import Budget, BudgetPeriod
from finledger.models.results import BudgetStatus, BudgetStatusLevel


NEAR_LIMIT_PERCENT = 80
OVER_BUDGET_PERCENT = 100


def period_start(budget: Budget, as_of: date) -> date:
    if budget.period == BudgetPeriod.WEEKLY:
        boundary = as_of - timedelta(days=as_of.weekday())
    elif budget.period == BudgetPeriod.MONTHLY:
        boundary = as_of.replace(day=1)
    else:
        boundary = as_of.replace(month=1, day=1)
    return max(boundary, budget.start_date)


def period_end(budget: Budget, as_of: date) -> date:
    if budget.end_date is not None and budget.end_date < as_of:
        return budget.end_date
    return as_of


def compute_spend(
    budget: Budget,
    window_start: date,
    window_end: date,
    transactions: Iterable[Transaction],
    splits: Iterable[Split],
    category_names: Mapping[UUID, str],
) -> Decimal:
    """
    Sum the budget category's spend inside [window_start, window_end].

    Args:
        transactions: candidate transactions; split parents are resolved
            through `splits`, everything else by its category text
        splits: split rows of any parents in `transactions`
        category_names: category id -> name, used to match split rows
    """
    if window_start > window_end:
        return ZERO

    in_window: dict[UUID, Transaction] = {
        t.id: t for t in transactions
        if window_start <= t.date <= window_end
    }

    spent = ZERO
    for transaction in in_window.values():
        if (
            transaction.type == TransactionType.EXPENSE
            and not transaction.is_split
            and transaction.category == budget.category
        ):
            spent += transaction.magnitude

    for split in splits:
        parent = in_window.get(split.transaction_id)
        if parent is None or not parent.is_split or parent.type != TransactionType.EXPENSE:
            continue
        if split.category_id is None:
            continue
        if category_names.get(split.category_id) == budget.category:
            spent += split.amount

    return spent


def status_for(percentage: int) -> BudgetStatusLevel:
    if percentage > OVER_BUDGET_PERCENT:
        return BudgetStatusLevel.OVER_BUDGET
    if percentage > NEAR_LIMIT_PERCENT:
        return BudgetStatusLevel.NEAR_LIMIT
    return BudgetStatusLevel.ON_TRACK


def budget_status(
    budget: Budget,
    as_of: date,
    transactions: Iterable[Transaction],
    splits: Iterable[Split],
    category_names: Mapping[UUID, str],
) -> BudgetStatus:
    """
    Spend, percentage and status level of `budget` as of a date.

    Example:
        $400 monthly Food budget, $150 plain + $40 split spend -> 48%, on_track
    """
    start = period_start(budget, as_of)
    spent = compute_spend(
        budget,
        start,
        period_end(budget, as_of),
        transactions,
        splits,
        category_names,
    )
    percentage = percent_of(spent, budget.amount)
    return BudgetStatus(
        budget_id=budget.id,
        category=budget.category,
        amount=budget.amount,
        period_start=start,
        as_of=as_of,
        spent=spent,
        percentage=percentage,
        status=status_for(percentage),
    )
