"""
Ledger Service

This module ties together all the components and defines the public
operations of the ledger:
1. Posting (record/update/delete transactions, splits, transfers)
2. Recurring generation and rule state
3. Read-side projections (balances, budgets, goals, dashboard, reports)
4. Reference-data deletion with its cascade/detach rules

DESIGN DECISION: The service enforces the boundaries:
- Nothing is written until the whole request validates
- Every multi-row write happens inside one store transaction
- Every mutation, accepted or rejected, is audited

Reads against the store are retried on StoreUnavailableError. Writes
are never retried: a repeated insert could duplicate money.
"""

from contextlib import asynccontextmanager
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, AsyncIterator, Iterable, Optional
from uuid import UUID

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finledger.amounts import ZERO, signed_for_type
from finledger.audit import AuditLogger, create_correlation_id
from finledger.config import LedgerSettings, StoreSettings, get_settings
from finledger.engine import (
    QuoteSelector,
    RecurringScheduler,
    SplitAllocator,
    TransferCoordinator,
    budget_status,
    goal_progress,
    period_end,
    period_start,
    resolve_balance,
    validate_split,
)
from finledger.engine.splits import RowInput
from finledger.errors import ConsistencyViolation, SplitSumMismatchError, ValidationError
from finledger.models.audit import AuditEventBuilder, AuditEventType
from finledger.models.ledger import (
    Account,
    Category,
    Merchant,
    Split,
    SplitAllocation,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from finledger.models.planning import (
    Budget,
    Goal,
    GoalItem,
    Quote,
    RecurringRule,
)
from finledger.models.results import (
    AccountBalance,
    BudgetStatus,
    DashboardSummary,
    GoalProgress,
    ReportQuery,
    SpendingReport,
    UpcomingOccurrence,
    ValidationIssue,
)
from finledger.queries import QueryExecutor
from finledger.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LedgerStore,
    NotFoundError,
    StorageError,
    StoreUnavailableError,
)
from finledger.validation import LedgerValidator


logger = structlog.get_logger(__name__)

UPCOMING_RECURRING_LIMIT = 5


class LedgerService:
    """
    The ledger's public operations for one user.

    Usage:
        service = LedgerService(store, user_id)
        debit, credit = await service.create_transfer(checking, savings, "300", today)
        balance = await service.compute_account_balance(checking)
    """

    def __init__(
        self,
        store: LedgerStore,
        user_id: UUID,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        store_settings: Optional[StoreSettings] = None,
        ledger_settings: Optional[LedgerSettings] = None,
    ):
        self._store = store
        self._user_id = user_id
        self._audit_logger = audit_logger
        self._validator = validator or LedgerValidator(store)
        self._store_settings = store_settings or get_settings().store
        self._ledger_settings = ledger_settings or get_settings().ledger

        self._splits = SplitAllocator(store)
        self._transfers = TransferCoordinator(store, self._validator)
        self._scheduler = RecurringScheduler(
            store,
            max_catch_up=self._ledger_settings.max_catch_up_occurrences,
        )
        self._quotes = QuoteSelector(store)
        self._reports = QueryExecutor(store, user_id)

    @property
    def user_id(self) -> UUID:
        return self._user_id

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._store_settings.read_retry_attempts),
            wait=wait_exponential(
                multiplier=self._store_settings.read_retry_wait_seconds,
                max=10,
            ),
            retry=retry_if_exception_type(StoreUnavailableError),
            reraise=True,
        )

    async def _read(self, method, *args, **kwargs):
        """Call a store read method, retrying while the store is unavailable."""
        async for attempt in self._retrying():
            with attempt:
                return await method(*args, **kwargs)

    async def _require(self, model: type, entity_id: UUID):
        entity = await self._read(self._store.get, model, entity_id)
        if entity is None:
            raise NotFoundError(f"{model.__name__} {entity_id} not found")
        return entity

    @asynccontextmanager
    async def _audited(
        self,
        operation: str,
        correlation_id: UUID,
        entity_id: Optional[UUID] = None,
    ) -> AsyncIterator[None]:
        """Audit a rejected or failed mutation, then let the error propagate."""
        try:
            yield
        except SplitSumMismatchError as e:
            if self._audit_logger:
                await self._audit_logger.log(AuditEventBuilder.split_validation_failed(
                    delta=str(e.delta),
                    issues=e.issues_as_dicts(),
                    correlation_id=correlation_id,
                    transaction_id=entity_id,
                ))
            raise
        except ValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    operation=operation,
                    issues=e.issues_as_dicts(),
                    correlation_id=correlation_id,
                )
            raise
        except ConsistencyViolation as e:
            if self._audit_logger:
                await self._audit_logger.log_consistency_violation(
                    operation=operation,
                    error_message=str(e),
                    entity_id=e.entity_id or entity_id,
                    correlation_id=correlation_id,
                )
            raise
        except NotFoundError:
            raise
        except StorageError as e:
            logger.error("store_error", operation=operation, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_store_error(
                    operation=operation,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

    async def _category_id_for(self, name: str) -> Optional[UUID]:
        """Resolve a category name, preferring the user's own over a system one."""
        if not name:
            return None
        candidates = await self._read(self._store.query, Category, {"name": name})
        own = [c for c in candidates if c.user_id == self._user_id]
        system = [c for c in candidates if c.user_id is None]
        match = (own or system or [None])[0]
        return match.id if match else None

    async def _merchant_name(self, merchant_id: Optional[UUID]) -> str:
        if merchant_id is None:
            return ""
        merchant = await self._read(self._store.get, Merchant, merchant_id)
        return merchant.name if merchant else ""

    # -------------------------------------------------------------------------
    # Posting
    # -------------------------------------------------------------------------

    async def _prepare_draft(
        self,
        draft: TransactionDraft,
    ) -> tuple[dict[str, Any], list[SplitAllocation]]:
        """Validate a draft and turn it into Transaction field values."""
        result = self._validator.validate_transaction(
            draft.amount,
            draft.type,
            draft.category,
            has_splits=bool(draft.splits),
        )
        self._validator.raise_for_issues(result)
        self._validator.raise_for_issues(
            await self._validator.check_accounts_exist(account_id=draft.account_id)
        )

        amount = self._validator.check_amount(draft.amount)
        allocations = validate_split(amount, draft.splits) if draft.splits else []

        fields = {
            "amount": signed_for_type(amount, draft.type),
            "type": TransactionType(draft.type),
            "category": draft.category,
            "category_id": None if allocations else await self._category_id_for(draft.category),
            "date": draft.date,
            "description": draft.description,
            "notes": draft.notes,
            "account_id": draft.account_id,
            "merchant_id": draft.merchant_id,
            "merchant_name": await self._merchant_name(draft.merchant_id),
            "goal_item_id": draft.goal_item_id,
            "is_split": False,
        }
        return fields, allocations

    async def record_transaction(
        self,
        draft: TransactionDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Post a non-transfer transaction, optionally split.

        The sign of the stored amount follows the type: expenses are
        stored negative whatever sign was entered.
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("record_transaction", correlation_id):
            fields, allocations = await self._prepare_draft(draft)
            async with self._store.transaction():
                transaction = await self._store.insert(
                    Transaction(user_id=self._user_id, **fields)
                )
                if allocations:
                    transaction, _ = await self._splits.apply(transaction, allocations)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.transaction_recorded(
                transaction_id=transaction.id,
                amount=str(transaction.amount),
                category=transaction.category,
                correlation_id=correlation_id,
            ))
        return transaction

    async def update_transaction(
        self,
        transaction_id: UUID,
        draft: TransactionDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Replace a non-transfer transaction with the state in `draft`.

        A draft without split rows leaves the transaction unsplit and
        removes any split set it had.
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("update_transaction", correlation_id, transaction_id):
            existing = await self._require(Transaction, transaction_id)
            if existing.is_transfer:
                raise ConsistencyViolation(
                    "Transfer legs are edited through update_transfer",
                    field="type",
                    entity_id=transaction_id,
                )
            fields, allocations = await self._prepare_draft(draft)

            async with self._store.transaction():
                transaction = await self._store.update(existing.model_copy(update=fields))
                if allocations:
                    transaction, _ = await self._splits.apply(transaction, allocations)
                elif existing.is_split:
                    await self._splits.remove_all(transaction_id)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.transaction_recorded(
                transaction_id=transaction.id,
                amount=str(transaction.amount),
                category=transaction.category,
                correlation_id=correlation_id,
                updated=True,
            ))
        return transaction

    async def delete_transaction(
        self,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete a non-transfer transaction together with its splits.

        Returns the number of split rows removed.
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("delete_transaction", correlation_id, transaction_id):
            transaction = await self._require(Transaction, transaction_id)
            if transaction.is_transfer:
                raise ConsistencyViolation(
                    "Deleting one transfer leg would orphan its mirror; use delete_transfer",
                    field="transaction_id",
                    entity_id=transaction_id,
                )
            async with self._store.transaction():
                removed = await self._splits.remove_all(transaction_id)
                await self._store.delete(Transaction, transaction_id)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.transaction_deleted(
                transaction_id=transaction_id,
                split_count=removed,
                correlation_id=correlation_id,
            ))
        return removed

    # -------------------------------------------------------------------------
    # Splits
    # -------------------------------------------------------------------------

    def validate_split(
        self,
        parent_amount: Any,
        rows: Iterable[RowInput],
    ) -> list[SplitAllocation]:
        """Check split rows against a parent amount without writing anything."""
        return validate_split(parent_amount, rows)

    async def replace_splits(
        self,
        transaction_id: UUID,
        rows: Iterable[RowInput],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, list[Split]]:
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("replace_splits", correlation_id, transaction_id):
            parent, splits = await self._splits.replace_splits(transaction_id, rows)

        if self._audit_logger:
            await self._audit_logger.log_splits_replaced(
                transaction_id=transaction_id,
                split_count=len(splits),
                label=parent.category,
                correlation_id=correlation_id,
            )
        return parent, splits

    async def clear_splits(
        self,
        transaction_id: UUID,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("clear_splits", correlation_id, transaction_id):
            if not (category or "").strip():
                raise ValidationError([ValidationIssue(
                    field="category",
                    issue_type="missing",
                    message="Category is required",
                )])
            category_id = await self._category_id_for(category)
            parent = await self._splits.clear_splits(transaction_id, category, category_id)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.splits_cleared(
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            ))
        return parent

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    async def create_transfer(
        self,
        from_account_id: Optional[UUID],
        to_account_id: Optional[UUID],
        amount: Any,
        transfer_date: date,
        description: str = "",
        notes: str = "",
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, Transaction]:
        """
        Move money between two accounts.

        Returns:
            (debit_leg, credit_leg)
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("create_transfer", correlation_id):
            debit, credit = await self._transfers.create_transfer(
                user_id=self._user_id,
                from_account_id=from_account_id,
                to_account_id=to_account_id,
                amount=amount,
                transfer_date=transfer_date,
                description=description,
                notes=notes,
            )

        if self._audit_logger:
            await self._audit_logger.log_transfer_created(
                debit_id=debit.id,
                credit_id=credit.id,
                amount=str(debit.amount),
                correlation_id=correlation_id,
            )
        return debit, credit

    async def update_transfer(
        self,
        transaction_id: UUID,
        from_account_id: Optional[UUID],
        to_account_id: Optional[UUID],
        amount: Any,
        transfer_date: date,
        description: str = "",
        notes: str = "",
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, Transaction]:
        """Rewrite both legs of a transfer, addressed by either leg's id."""
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("update_transfer", correlation_id, transaction_id):
            debit, credit = await self._transfers.update_transfer(
                transaction_id=transaction_id,
                from_account_id=from_account_id,
                to_account_id=to_account_id,
                amount=amount,
                transfer_date=transfer_date,
                description=description,
                notes=notes,
            )

        if self._audit_logger:
            await self._audit_logger.log_transfer_updated(
                transaction_id=debit.id,
                amount=str(debit.amount),
                correlation_id=correlation_id,
            )
        return debit, credit

    async def delete_transfer(
        self,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> list[UUID]:
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("delete_transfer", correlation_id, transaction_id):
            removed = await self._transfers.delete_transfer(transaction_id)

        if self._audit_logger:
            await self._audit_logger.log_transfer_deleted(
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            )
        return removed

    # -------------------------------------------------------------------------
    # Recurring rules
    # -------------------------------------------------------------------------

    async def create_recurring_rule(
        self,
        name: str,
        amount: Any,
        transaction_type: str,
        frequency: str,
        start_date: date,
        category: str = "",
        day_of_month: Optional[int] = None,
        account_id: Optional[UUID] = None,
        to_account_id: Optional[UUID] = None,
        merchant_id: Optional[UUID] = None,
        description: str = "",
        auto_generate: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> RecurringRule:
        """Create a rule whose first occurrence is its start date."""
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("create_recurring_rule", correlation_id):
            self._validator.raise_for_issues(self._validator.validate_recurring_rule(
                name=name,
                amount=amount,
                category=category,
                transaction_type=transaction_type,
                frequency=frequency,
                day_of_month=day_of_month,
                account_id=account_id,
                to_account_id=to_account_id,
            ))
            self._validator.raise_for_issues(await self._validator.check_accounts_exist(
                account_id=account_id,
                to_account_id=to_account_id,
            ))
            is_transfer = transaction_type == TransactionType.TRANSFER.value
            rule = await self._store.insert(RecurringRule(
                user_id=self._user_id,
                name=name,
                amount=abs(self._validator.check_amount(amount)),
                category="" if is_transfer else category,
                category_id=None if is_transfer else await self._category_id_for(category),
                description=description,
                type=transaction_type,
                frequency=frequency,
                start_date=start_date,
                next_occurrence=start_date,
                day_of_month=day_of_month,
                account_id=account_id,
                to_account_id=to_account_id if is_transfer else None,
                merchant_id=merchant_id,
                auto_generate=auto_generate,
            ))

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.rule_state_changed(
                rule_id=rule.id,
                event_type=AuditEventType.RULE_CREATED,
                correlation_id=correlation_id,
            ))
        return rule

    async def generate_due_recurring(
        self,
        as_of: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[UUID]:
        """
        Materialize every active rule's occurrences due on or before `as_of`.

        All or nothing: either every due occurrence is written and every
        rule advanced, or the ledger is left exactly as it was.
        """
        correlation_id = correlation_id or create_correlation_id()
        as_of = as_of or date.today()

        async with self._audited("generate_due_recurring", correlation_id):
            rules = await self._read(
                self._store.query,
                RecurringRule,
                {
                    "user_id": self._user_id,
                    "is_active": True,
                    "auto_generate": True,
                    "next_occurrence__lte": as_of,
                },
                order_by="next_occurrence",
            )
            created, advanced = await self._scheduler.generate_due(rules, as_of)

        if self._audit_logger and created:
            await self._audit_logger.log_recurring_generated(
                created_ids=created,
                rules_advanced=advanced,
                up_to_date=as_of.isoformat(),
                correlation_id=correlation_id,
            )
        return created

    async def _rule_state(
        self,
        rule_id: UUID,
        event_type: AuditEventType,
        correlation_id: Optional[UUID],
    ) -> RecurringRule:
        correlation_id = correlation_id or create_correlation_id()
        if event_type == AuditEventType.RULE_PAUSED:
            rule = await self._scheduler.pause_rule(rule_id)
        else:
            rule = await self._scheduler.resume_rule(rule_id)
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.rule_state_changed(
                rule_id=rule_id,
                event_type=event_type,
                correlation_id=correlation_id,
            ))
        return rule

    async def pause_rule(
        self,
        rule_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> RecurringRule:
        return await self._rule_state(rule_id, AuditEventType.RULE_PAUSED, correlation_id)

    async def resume_rule(
        self,
        rule_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> RecurringRule:
        return await self._rule_state(rule_id, AuditEventType.RULE_RESUMED, correlation_id)

    async def delete_recurring_rule(
        self,
        rule_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete a rule. Transactions it generated stay in the ledger,
        detached from the rule but still tagged as recurring.

        Returns the number of transactions detached.
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("delete_recurring_rule", correlation_id, rule_id):
            await self._require(RecurringRule, rule_id)
            async with self._store.transaction():
                generated = await self._store.query(Transaction, {"recurring_rule_id": rule_id})
                for transaction in generated:
                    await self._store.update(
                        transaction.model_copy(update={"recurring_rule_id": None})
                    )
                await self._store.delete(RecurringRule, rule_id)

        if self._audit_logger:
            await self._audit_logger.log_entity_deleted(
                event_type=AuditEventType.RULE_DELETED,
                entity_type="recurring_rule",
                entity_id=rule_id,
                detached=len(generated),
                correlation_id=correlation_id,
            )
        return len(generated)

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def create_goal(
        self,
        name: str,
        target_amount: Any,
        current_amount: Any = None,
        target_date: Optional[date] = None,
        linked_account_id: Optional[UUID] = None,
        description: str = "",
        correlation_id: Optional[UUID] = None,
    ) -> Goal:
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("create_goal", correlation_id):
            self._validator.raise_for_issues(
                self._validator.validate_goal(name, target_amount, current_amount)
            )
            self._validator.raise_for_issues(await self._validator.check_accounts_exist(
                linked_account_id=linked_account_id,
            ))
            goal = await self._store.insert(Goal(
                user_id=self._user_id,
                name=name,
                description=description,
                target_amount=self._validator.check_amount(target_amount),
                current_amount=(
                    self._validator.check_amount(current_amount)
                    if current_amount not in (None, "")
                    else ZERO
                ),
                target_date=target_date,
                linked_account_id=linked_account_id,
            ))

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.goal_created(
                goal_id=goal.id,
                target_amount=str(goal.target_amount),
                correlation_id=correlation_id,
            ))
        return goal

    async def select_quote(
        self,
        quote_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Quote:
        """Select a quote; any other selected quote of the same item is deselected."""
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("select_quote", correlation_id, quote_id):
            quote, deselected = await self._quotes.select_quote(quote_id)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.quote_selected(
                quote_id=quote.id,
                goal_item_id=quote.goal_item_id,
                deselected=deselected,
                correlation_id=correlation_id,
            ))
        return quote

    async def delete_goal(
        self,
        goal_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete a goal with its items and their quotes. Transactions tagged
        with one of its items are kept and detached.

        Returns the number of transactions detached.
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("delete_goal", correlation_id, goal_id):
            await self._require(Goal, goal_id)
            detached = 0
            async with self._store.transaction():
                for item in await self._store.query(GoalItem, {"goal_id": goal_id}):
                    for quote in await self._store.query(Quote, {"goal_item_id": item.id}):
                        await self._store.delete(Quote, quote.id)
                    tagged = await self._store.query(Transaction, {"goal_item_id": item.id})
                    for transaction in tagged:
                        await self._store.update(
                            transaction.model_copy(update={"goal_item_id": None})
                        )
                        detached += 1
                    await self._store.delete(GoalItem, item.id)
                await self._store.delete(Goal, goal_id)

        if self._audit_logger:
            await self._audit_logger.log_entity_deleted(
                event_type=AuditEventType.GOAL_DELETED,
                entity_type="goal",
                entity_id=goal_id,
                detached=detached,
                correlation_id=correlation_id,
            )
        return detached

    # -------------------------------------------------------------------------
    # Reference data
    # -------------------------------------------------------------------------

    async def delete_category(
        self,
        category_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete a user category.

        Transactions, splits and rules that referenced it keep their
        category text but lose the id. System categories cannot be deleted.

        Returns the number of rows detached.
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("delete_category", correlation_id, category_id):
            category = await self._require(Category, category_id)
            if category.is_system:
                raise ConsistencyViolation(
                    f"'{category.name}' is a system category and cannot be deleted",
                    field="category_id",
                    entity_id=category_id,
                )
            detached = 0
            async with self._store.transaction():
                for model in (Transaction, Split, RecurringRule):
                    for row in await self._store.query(model, {"category_id": category_id}):
                        await self._store.update(row.model_copy(update={"category_id": None}))
                        detached += 1
                await self._store.delete(Category, category_id)

        if self._audit_logger:
            await self._audit_logger.log_entity_deleted(
                event_type=AuditEventType.CATEGORY_DELETED,
                entity_type="category",
                entity_id=category_id,
                detached=detached,
                correlation_id=correlation_id,
            )
        return detached

    async def delete_merchant(
        self,
        merchant_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """Delete a merchant; transactions keep the copied merchant name."""
        correlation_id = correlation_id or create_correlation_id()

        async with self._audited("delete_merchant", correlation_id, merchant_id):
            await self._require(Merchant, merchant_id)
            detached = 0
            async with self._store.transaction():
                for model in (Transaction, RecurringRule):
                    for row in await self._store.query(model, {"merchant_id": merchant_id}):
                        await self._store.update(row.model_copy(update={"merchant_id": None}))
                        detached += 1
                await self._store.delete(Merchant, merchant_id)

        if self._audit_logger:
            await self._audit_logger.log_entity_deleted(
                event_type=AuditEventType.MERCHANT_DELETED,
                entity_type="merchant",
                entity_id=merchant_id,
                detached=detached,
                correlation_id=correlation_id,
            )
        return detached

    # -------------------------------------------------------------------------
    # Read-side projections
    # -------------------------------------------------------------------------

    async def compute_account_balance(self, account_id: UUID) -> Decimal:
        """Opening balance replayed with the account's full history."""
        account = await self._require(Account, account_id)
        transactions = await self._read(
            self._store.query, Transaction, {"account_id": account_id}
        )
        return resolve_balance(account, transactions)

    async def compute_account_balances(self, include_inactive: bool = False) -> list[AccountBalance]:
        filters: dict[str, Any] = {"user_id": self._user_id}
        if not include_inactive:
            filters["is_active"] = True
        accounts = await self._read(self._store.query, Account, filters, order_by="name")
        balances = []
        for account in accounts:
            transactions = await self._read(
                self._store.query, Transaction, {"account_id": account.id}
            )
            balances.append(AccountBalance(
                account_id=account.id,
                name=account.name,
                opening_balance=account.balance,
                balance=resolve_balance(account, transactions),
            ))
        return balances

    async def _budget_status(self, budget: Budget, as_of: date) -> BudgetStatus:
        start = period_start(budget, as_of)
        end = period_end(budget, as_of)
        transactions = []
        if start <= end:
            transactions = await self._read(
                self._store.query,
                Transaction,
                {
                    "user_id": self._user_id,
                    "type": TransactionType.EXPENSE,
                    "date__gte": start,
                    "date__lte": end,
                },
            )
        parent_ids = [t.id for t in transactions if t.is_split]
        splits = []
        if parent_ids:
            splits = await self._read(
                self._store.query, Split, {"transaction_id__in": parent_ids}
            )
        category_ids = {s.category_id for s in splits if s.category_id is not None}
        categories = []
        if category_ids:
            categories = await self._read(
                self._store.query, Category, {"id__in": category_ids}
            )
        return budget_status(
            budget,
            as_of,
            transactions,
            splits,
            {c.id: c.name for c in categories},
        )

    async def compute_budget_status(
        self,
        budget_id: UUID,
        as_of: Optional[date] = None,
    ) -> BudgetStatus:
        """Spend against a budget in the period containing `as_of`."""
        budget = await self._require(Budget, budget_id)
        return await self._budget_status(budget, as_of or date.today())

    async def compute_goal_progress(self, goal_id: UUID) -> GoalProgress:
        goal = await self._require(Goal, goal_id)
        items = await self._read(
            self._store.query, GoalItem, {"goal_id": goal_id}, order_by="sort_order"
        )
        item_ids = [item.id for item in items]
        item_transactions = []
        quotes = []
        if item_ids:
            item_transactions = await self._read(
                self._store.query, Transaction, {"goal_item_id__in": item_ids}
            )
            quotes = await self._read(
                self._store.query, Quote, {"goal_item_id__in": item_ids}
            )

        linked_account = None
        account_transactions = []
        if goal.linked_account_id is not None:
            linked_account = await self._read(self._store.get, Account, goal.linked_account_id)
            if linked_account is not None:
                account_transactions = await self._read(
                    self._store.query, Transaction, {"account_id": linked_account.id}
                )
            else:
                logger.warning(
                    "goal_linked_account_missing",
                    goal_id=str(goal_id),
                    account_id=str(goal.linked_account_id),
                )

        return goal_progress(
            goal,
            items=items,
            item_transactions=item_transactions,
            quotes=quotes,
            linked_account=linked_account,
            account_transactions=account_transactions,
        )

    async def dashboard_summary(self, as_of: Optional[date] = None) -> DashboardSummary:
        """
        The dashboard's figures as of a date:
        month-to-date income and expenses (transfers excluded), account
        balances, every budget's status and the next few recurring items.
        """
        as_of = as_of or date.today()
        month_start = as_of.replace(day=1)

        monthly = await self._read(
            self._store.query,
            Transaction,
            {
                "user_id": self._user_id,
                "date__gte": month_start,
                "date__lte": as_of,
                "type__ne": TransactionType.TRANSFER,
            },
        )
        income = sum(
            (t.magnitude for t in monthly if t.type == TransactionType.INCOME), ZERO
        )
        expenses = sum(
            (t.magnitude for t in monthly if t.type == TransactionType.EXPENSE), ZERO
        )

        budgets = await self._read(
            self._store.query, Budget, {"user_id": self._user_id}, order_by="category"
        )
        statuses = [await self._budget_status(budget, as_of) for budget in budgets]

        horizon = as_of + timedelta(days=self._ledger_settings.upcoming_recurring_days)
        rules = await self._read(
            self._store.query,
            RecurringRule,
            {
                "user_id": self._user_id,
                "is_active": True,
                "next_occurrence__lte": horizon,
            },
            order_by="next_occurrence",
            limit=UPCOMING_RECURRING_LIMIT,
        )

        return DashboardSummary(
            as_of=as_of,
            month_start=month_start,
            monthly_income=income,
            monthly_expenses=expenses,
            accounts=await self.compute_account_balances(),
            budgets=statuses,
            upcoming_recurring=[
                UpcomingOccurrence(
                    rule_id=rule.id,
                    name=rule.name,
                    amount=rule.amount,
                    category=rule.category,
                    frequency=rule.frequency.value,
                    next_occurrence=rule.next_occurrence,
                )
                for rule in rules
            ],
        )

    async def spending_report(
        self,
        window: str = "month",
        as_of: Optional[date] = None,
    ) -> SpendingReport:
        query = ReportQuery(
            as_of=as_of or date.today(),
            window=window,
            top_categories=self._ledger_settings.report_top_categories,
        )
        return await self._reports.execute(query)


def create_ledger_service(
    user_id: UUID,
    store: Optional[LedgerStore] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> LedgerService:
    """
    Factory function to create a ready-to-use service.

    Args:
        user_id: Owner of every row the service writes
        store: Ledger store; an in-memory store when omitted
        audit_storage: Where audit events are persisted; in-memory when omitted

    Returns:
        LedgerService wired with an AuditLogger
    """
    store = store or InMemoryLedgerStore()
    audit_logger = AuditLogger(audit_storage or InMemoryAuditStorage())
    logger.info("ledger_service_created", user_id=str(user_id), store=type(store).__name__)
    return LedgerService(store, user_id, audit_logger=audit_logger)
