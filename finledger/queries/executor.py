"""
Spending Report Execution

DESIGN DECISION: Reports are DETERMINISTIC projections of stored rows.
Nothing is estimated: a window with no transactions reports zeros and
data_found=False.

A report covers the window [as_of - month|quarter|year, as_of] and gives:
- income and expense totals (transfers move money, they are neither)
- spend per category, with split parents broken down by their splits
- per-month income/expense totals
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from uuid import UUID

from dateutil.relativedelta import relativedelta

from finledger.amounts import ZERO, to_cents
from finledger.models.ledger import Category, Split, Transaction, TransactionType
from finledger.models.results import (
    CategorySpending,
    MonthlyTotals,
    ReportQuery,
    SpendingReport,
)
from finledger.storage import LedgerStore, StorageError


UNCATEGORIZED = "Uncategorized"

_WINDOWS = {
    "month": relativedelta(months=1),
    "quarter": relativedelta(months=3),
    "year": relativedelta(years=1),
}


class QueryExecutionError(Exception):
    """Error during report execution."""
    pass


class QueryExecutor:
    """
    Executes spending report queries against the ledger store.

    GUARANTEES:
    - Only returns real data from storage
    - Never invents or estimates
    - Clear "no data found" if nothing matches
    """

    def __init__(self, store: LedgerStore, user_id: UUID):
        self._store = store
        self._user_id = user_id

    async def execute(self, query: ReportQuery) -> SpendingReport:
        date_from = query.as_of - _WINDOWS[query.window]
        try:
            transactions = await self._store.query(
                Transaction,
                {
                    "user_id": self._user_id,
                    "date__gte": date_from,
                    "date__lte": query.as_of,
                    "type__ne": TransactionType.TRANSFER,
                },
                order_by="date",
            )
            categories = await self._breakdown(transactions, query.top_categories)
        except StorageError as e:
            raise QueryExecutionError(f"Report query failed: {e}") from e

        income = sum(
            (t.magnitude for t in transactions if t.type == TransactionType.INCOME),
            ZERO,
        )
        expense = sum(
            (t.magnitude for t in transactions if t.type == TransactionType.EXPENSE),
            ZERO,
        )

        return SpendingReport(
            query_id=query.query_id,
            date_from=date_from,
            date_to=query.as_of,
            total_income=income,
            total_expense=expense,
            transaction_count=len(transactions),
            categories=categories,
            monthly=self._monthly(transactions),
            description=f"Spending | last {query.window} | {self._date_range_str(date_from, query.as_of)}",
        )

    async def _breakdown(
        self,
        transactions: list[Transaction],
        top: int,
    ) -> list[CategorySpending]:
        """Expense per category, largest first."""
        amounts: dict[str, Decimal] = defaultdict(Decimal)
        counts: dict[str, int] = defaultdict(int)
        names: dict[UUID, str] = {}

        for transaction in transactions:
            if transaction.type != TransactionType.EXPENSE:
                continue
            if not transaction.is_split:
                name = transaction.category or UNCATEGORIZED
                amounts[name] += transaction.magnitude
                counts[name] += 1
                continue
            for split in await self._store.query(Split, {"transaction_id": transaction.id}):
                name = UNCATEGORIZED
                if split.category_id is not None:
                    if split.category_id not in names:
                        category = await self._store.get(Category, split.category_id)
                        names[split.category_id] = category.name if category else UNCATEGORIZED
                    name = names[split.category_id]
                amounts[name] += split.amount
                counts[name] += 1

        total = sum(amounts.values(), ZERO)
        ranked = sorted(amounts.items(), key=lambda kv: (-kv[1], kv[0]))[:top]
        return [
            CategorySpending(
                category=name,
                amount=amount,
                count=counts[name],
                percentage=to_cents(amount / total * 100) if total else ZERO,
            )
            for name, amount in ranked
        ]

    def _monthly(self, transactions: list[Transaction]) -> list[MonthlyTotals]:
        income: dict[str, Decimal] = defaultdict(Decimal)
        expense: dict[str, Decimal] = defaultdict(Decimal)
        for transaction in transactions:
            month = transaction.date.strftime("%Y-%m")
            if transaction.type == TransactionType.INCOME:
                income[month] += transaction.magnitude
            else:
                expense[month] += transaction.magnitude
        months = sorted(set(income) | set(expense))
        return [
            MonthlyTotals(month=m, income=income[m], expense=expense[m])
            for m in months
        ]

    def _date_range_str(self, date_from: date, date_to: date) -> str:
        return f"{date_from.strftime('%b %d, %Y')} to {date_to.strftime('%b %d, %Y')}"
