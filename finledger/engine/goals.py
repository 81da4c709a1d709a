"""
Goal Tracker

Progress toward a savings goal and the rollup of its planned items.

DESIGN DECISION: A goal linked to an account takes its current amount
from that account's replayed balance. The manually stored current_amount
is kept only as display history; it never overrides the linked balance.

Each goal item rolls up:
- its budget
- the amount of its selected quote (at most one quote is selected)
- its actual spend: the magnitudes of expense transactions tagged with
  the item; income and transfer rows carrying the tag are ignored
"""

from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import structlog

from finledger.amounts import ZERO, percent_of
from finledger.engine.balances import resolve_balance
from finledger.models.ledger import Account, Transaction, TransactionType
from finledger.models.planning import Goal, GoalItem, Quote
from finledger.models.results import GoalItemRollup, GoalProgress
from finledger.storage import LedgerStore, NotFoundError


logger = structlog.get_logger(__name__)


def item_rollup(
    item: GoalItem,
    transactions: Iterable[Transaction],
    quotes: Iterable[Quote],
) -> GoalItemRollup:
    actual = ZERO
    for transaction in transactions:
        if transaction.goal_item_id == item.id and transaction.type == TransactionType.EXPENSE:
            actual += transaction.magnitude

    item_quotes = [q for q in quotes if q.goal_item_id == item.id]
    selected = next((q for q in item_quotes if q.is_selected), None)

    return GoalItemRollup(
        item_id=item.id,
        name=item.name,
        status=item.status,
        sort_order=item.sort_order,
        budget_amount=item.budget_amount,
        actual_spent=actual,
        selected_quote_amount=selected.amount if selected else ZERO,
        quotes_count=len(item_quotes),
    )


def goal_progress(
    goal: Goal,
    items: Iterable[GoalItem] = (),
    item_transactions: Iterable[Transaction] = (),
    quotes: Iterable[Quote] = (),
    linked_account: Optional[Account] = None,
    account_transactions: Iterable[Transaction] = (),
) -> GoalProgress:
    """
    Current amount, percentage and item rollups for one goal.

    When `linked_account` is given its balance is replayed from
    `account_transactions` and used as the current amount.

    Example:
        target 5000, linked balance 3200 -> current 3200, 64%
    """
    if linked_account is not None:
        current: Decimal = resolve_balance(linked_account, account_transactions)
    else:
        current = goal.current_amount

    item_transactions = list(item_transactions)
    quotes = list(quotes)
    rollups = sorted(
        (item_rollup(item, item_transactions, quotes) for item in items),
        key=lambda r: r.sort_order,
    )

    return GoalProgress(
        goal_id=goal.id,
        name=goal.name,
        target_amount=goal.target_amount,
        current_amount=current,
        stored_amount=goal.current_amount,
        linked_account_id=goal.linked_account_id,
        percentage=percent_of(current, goal.target_amount),
        items=rollups,
    )


class QuoteSelector:
    """Marks one quote of a goal item as the chosen one."""

    def __init__(self, store: LedgerStore):
        self._store = store

    async def select_quote(self, quote_id: UUID) -> tuple[Quote, int]:
        """
        Select `quote_id` and deselect every other quote of its item.

        Both steps happen in one store transaction, so an item never shows
        two selected quotes.

        Returns:
            (selected_quote, number_of_quotes_deselected)
        """
        async with self._store.transaction():
            quote = await self._store.get(Quote, quote_id)
            if quote is None:
                raise NotFoundError(f"Quote {quote_id} not found")

            deselected = 0
            siblings = await self._store.query(
                Quote,
                {"goal_item_id": quote.goal_item_id, "is_selected": True},
            )
            for sibling in siblings:
                if sibling.id == quote.id:
                    continue
                await self._store.update(sibling.model_copy(update={"is_selected": False}))
                deselected += 1

            quote = await self._store.update(quote.model_copy(update={"is_selected": True}))

        logger.info(
            "quote_selected",
            quote_id=str(quote_id),
            goal_item_id=str(quote.goal_item_id),
            deselected=deselected,
        )
        return quote, deselected
