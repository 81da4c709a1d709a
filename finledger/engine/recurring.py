"""
Recurring Scheduler

Turns recurring rules into concrete transactions and keeps each rule's
next_occurrence moving forward.

SCHEDULE:
- daily/weekly/biweekly: fixed 1/7/14 day steps
- monthly/quarterly: 1/3 calendar months, landing on the rule's anchor
  day (day_of_month, else the start date's day) clamped to month end
- yearly: same month and anchor day next year, clamped (Feb 29 -> Feb 28)

CRITICAL: One generation run is one store transaction. Every occurrence
due up to the run date is materialized and every rule advanced past it,
or nothing is written at all.
"""

from datetime import date, timedelta
from typing import Iterable, Optional
from uuid import UUID

import structlog
from dateutil.relativedelta import relativedelta

from finledger.amounts import signed_for_type
from finledger.config import get_settings
from finledger.errors import ValidationError
from finledger.models.ledger import (
    Merchant,
    Transaction,
    TransactionSource,
    TransactionType,
)
from finledger.models.planning import Frequency, RecurringRule
from finledger.models.results import ValidationIssue
from finledger.storage import LedgerStore, NotFoundError


logger = structlog.get_logger(__name__)

_FIXED_STEPS = {
    Frequency.DAILY: timedelta(days=1),
    Frequency.WEEKLY: timedelta(weeks=1),
    Frequency.BIWEEKLY: timedelta(weeks=2),
}

_MONTH_STEPS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
}


def anchor_day(rule: RecurringRule) -> int:
    return rule.day_of_month or rule.start_date.day


def next_occurrence_after(rule: RecurringRule, current: date) -> date:
    """
    The occurrence that follows `current` under the rule's frequency.

    Example:
        monthly rule anchored on the 31st, current=2024-01-31 -> 2024-02-29
    """
    if rule.frequency in _FIXED_STEPS:
        return current + _FIXED_STEPS[rule.frequency]
    if rule.frequency in _MONTH_STEPS:
        months = _MONTH_STEPS[rule.frequency]
        return current + relativedelta(months=months, day=anchor_day(rule))
    # yearly
    return current + relativedelta(years=1, day=rule.start_date.day)


def advance(rule: RecurringRule, as_of: Optional[date] = None) -> RecurringRule:
    """
    Move next_occurrence forward.

    Without `as_of` the rule steps exactly one period. With `as_of` it
    steps until next_occurrence is strictly after `as_of`, so a rule that
    has fallen behind never schedules a date in the past.
    """
    upcoming = next_occurrence_after(rule, rule.next_occurrence)
    if as_of is not None:
        while upcoming <= as_of:
            upcoming = next_occurrence_after(rule, upcoming)
    return rule.model_copy(update={"next_occurrence": upcoming})


def due_occurrences(
    rule: RecurringRule,
    up_to_date: date,
    limit: Optional[int] = None,
) -> list[date]:
    """
    Every occurrence date of `rule` on or before `up_to_date`.

    Raises ValidationError when more than `limit` occurrences are due.
    """
    dates: list[date] = []
    current = rule.next_occurrence
    while current <= up_to_date:
        dates.append(current)
        if limit is not None and len(dates) > limit:
            raise ValidationError([ValidationIssue(
                field="next_occurrence",
                issue_type="out_of_range",
                message=(
                    f"Rule '{rule.name}' has more than {limit} occurrences due; "
                    "move its next occurrence forward before generating"
                ),
            )])
        current = next_occurrence_after(rule, current)
    return dates


def is_generating(rule: RecurringRule) -> bool:
    return rule.is_active and rule.auto_generate


def materialize(
    rule: RecurringRule,
    occurrence: date,
    merchant_name: str = "",
) -> Transaction:
    """The non-transfer transaction a rule produces for one occurrence."""
    return Transaction(
        user_id=rule.user_id,
        amount=signed_for_type(rule.amount, rule.type.value),
        category=rule.category,
        category_id=rule.category_id,
        date=occurrence,
        type=rule.type,
        description=rule.description or rule.name,
        account_id=rule.account_id,
        merchant_id=rule.merchant_id,
        merchant_name=merchant_name,
        source=TransactionSource.RECURRING,
        recurring_rule_id=rule.id,
    )


class RecurringScheduler:
    """
    Materializes due occurrences and manages rule state.

    Usage:
        scheduler = RecurringScheduler(store)
        created = await scheduler.generate_due(rules, date.today())
    """

    def __init__(self, store: LedgerStore, max_catch_up: Optional[int] = None):
        self._store = store
        if max_catch_up is None:
            max_catch_up = get_settings().ledger.max_catch_up_occurrences
        self._max_catch_up = max_catch_up

    async def _merchant_name(self, merchant_id: Optional[UUID]) -> str:
        if merchant_id is None:
            return ""
        merchant = await self._store.get(Merchant, merchant_id)
        return merchant.name if merchant else ""

    async def _write_occurrence(self, rule: RecurringRule, occurrence: date) -> list[UUID]:
        if rule.type == TransactionType.TRANSFER:
            debit, credit = await self._store.create_transfer(
                user_id=rule.user_id,
                from_account_id=rule.account_id,
                to_account_id=rule.to_account_id,
                amount=abs(rule.amount),
                transfer_date=occurrence,
                description=rule.description or rule.name,
            )
            created = []
            for leg in (debit, credit):
                leg = await self._store.update(leg.model_copy(update={
                    "source": TransactionSource.RECURRING,
                    "recurring_rule_id": rule.id,
                }))
                created.append(leg.id)
            return created

        merchant_name = await self._merchant_name(rule.merchant_id)
        transaction = await self._store.insert(materialize(rule, occurrence, merchant_name))
        return [transaction.id]

    async def generate_due(
        self,
        rules: Iterable[RecurringRule],
        up_to_date: date,
    ) -> tuple[list[UUID], int]:
        """
        Materialize every occurrence due on or before `up_to_date`.

        Paused rules and rules with auto_generate off are skipped. Each
        rule that produced something ends strictly after `up_to_date`.

        Returns:
            (created_transaction_ids, rules_advanced)
        """
        plan: list[tuple[RecurringRule, list[date]]] = []
        for rule in rules:
            if not is_generating(rule):
                continue
            dates = due_occurrences(rule, up_to_date, limit=self._max_catch_up)
            if dates:
                plan.append((rule, dates))

        created: list[UUID] = []
        async with self._store.transaction():
            for rule, dates in plan:
                for occurrence in dates:
                    created.extend(await self._write_occurrence(rule, occurrence))
                await self._store.update(advance(rule, as_of=up_to_date))

        logger.info(
            "recurring_generated",
            up_to_date=up_to_date.isoformat(),
            created=len(created),
            rules_advanced=len(plan),
        )
        return created, len(plan)

    async def _set_active(self, rule_id: UUID, active: bool) -> RecurringRule:
        rule = await self._store.get(RecurringRule, rule_id)
        if rule is None:
            raise NotFoundError(f"Recurring rule {rule_id} not found")
        return await self._store.update(rule.model_copy(update={"is_active": active}))

    async def pause_rule(self, rule_id: UUID) -> RecurringRule:
        return await self._set_active(rule_id, False)

    async def resume_rule(self, rule_id: UUID) -> RecurringRule:
        """
        Reactivate a rule.

        next_occurrence is left alone: occurrences missed while paused are
        generated by the next run unless the rule is moved forward first.
        """
        return await self._set_active(rule_id, True)
