"""
In-Memory Ledger Store

Reference implementation of the LedgerStore contract. Used by the test
suite and for local experiments.

TRADEOFFS:
- Single process only, nothing survives a restart
- Writers are serialized with one asyncio.Lock
- Rollback restores a snapshot of the tables taken when a transaction
  block is entered, so nested blocks behave as savepoints

Stored rows are private copies; callers always receive copies too, so
mutating a returned model never changes the store behind its back.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Any, AsyncIterator, Optional
from uuid import UUID, uuid4

import structlog
from pydantic import BaseModel

from finledger.models.audit import AuditEvent
from finledger.models.ledger import (
    TRANSFER_CATEGORY,
    Account,
    Transaction,
    TransactionSource,
    TransactionType,
    TransferDirection,
    utcnow,
)
from finledger.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    EntityT,
    LedgerStore,
    NotFoundError,
)


logger = structlog.get_logger(__name__)

_MISSING = object()


def _matches(entity: BaseModel, filters: dict[str, Any]) -> bool:
    for key, expected in filters.items():
        field, _, op = key.partition("__")
        actual = getattr(entity, field, _MISSING)
        if actual is _MISSING:
            raise ValueError(f"Unknown filter field: {field}")
        if op == "":
            if actual != expected:
                return False
        elif op == "ne":
            if actual == expected:
                return False
        elif op == "in":
            if actual not in expected:
                return False
        elif op == "gte":
            if actual is None or actual < expected:
                return False
        elif op == "lte":
            if actual is None or actual > expected:
                return False
        else:
            raise ValueError(f"Unsupported filter operator: {op}")
    return True


class InMemoryLedgerStore(LedgerStore):
    """
    Dict-backed ledger store with transactional blocks.

    One table per model class, keyed by entity id.
    """

    def __init__(self):
        self._tables: dict[type, dict[UUID, BaseModel]] = {}
        self._lock = asyncio.Lock()
        self._owner: Optional[asyncio.Task] = None
        self._depth = 0

    def _table(self, model: type) -> dict[UUID, BaseModel]:
        return self._tables.setdefault(model, {})

    def _snapshot(self) -> dict[type, dict[UUID, BaseModel]]:
        return {model: dict(rows) for model, rows in self._tables.items()}

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        current = asyncio.current_task()
        nested = self._owner is not None and self._owner is current
        if not nested:
            await self._lock.acquire()
            self._owner = current
        self._depth += 1
        snapshot = self._snapshot()
        try:
            yield
        except BaseException:
            self._tables = snapshot
            logger.debug("store_rollback", depth=self._depth)
            raise
        finally:
            self._depth -= 1
            if not nested:
                self._owner = None
                self._lock.release()

    # -------------------------------------------------------------------------
    # Row operations
    # -------------------------------------------------------------------------

    async def insert(self, entity: EntityT) -> EntityT:
        async with self.transaction():
            table = self._table(type(entity))
            if entity.id in table:
                raise DuplicateError(f"{type(entity).__name__} {entity.id} already exists")
            table[entity.id] = entity.model_copy(deep=True)
        return entity.model_copy(deep=True)

    async def update(self, entity: EntityT) -> EntityT:
        async with self.transaction():
            table = self._table(type(entity))
            if entity.id not in table:
                raise NotFoundError(f"{type(entity).__name__} {entity.id} not found")
            if "updated_at" in type(entity).model_fields:
                entity = entity.model_copy(update={"updated_at": utcnow()})
            table[entity.id] = entity.model_copy(deep=True)
        return entity.model_copy(deep=True)

    async def delete(self, model: type[BaseModel], entity_id: UUID) -> bool:
        async with self.transaction():
            return self._table(model).pop(entity_id, None) is not None

    async def get(self, model: type[EntityT], entity_id: UUID) -> Optional[EntityT]:
        row = self._table(model).get(entity_id)
        return row.model_copy(deep=True) if row is not None else None

    async def query(
        self,
        model: type[EntityT],
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[EntityT]:
        rows = [
            row for row in self._table(model).values()
            if _matches(row, filters or {})
        ]
        if order_by:
            # None values sort last regardless of direction
            present = [r for r in rows if getattr(r, order_by) is not None]
            missing = [r for r in rows if getattr(r, order_by) is None]
            present.sort(key=lambda r: getattr(r, order_by), reverse=descending)
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        return [row.model_copy(deep=True) for row in rows]

    # -------------------------------------------------------------------------
    # Server-side procedures
    # -------------------------------------------------------------------------

    async def _require_account(self, account_id: UUID) -> Account:
        account = await self.get(Account, account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        return account

    async def _find_mirror(self, leg: Transaction) -> Transaction:
        mirror = None
        if leg.linked_transaction_id is not None:
            mirror = await self.get(Transaction, leg.linked_transaction_id)
        if mirror is None:
            candidates = await self.query(
                Transaction, {"linked_transaction_id": leg.id}, limit=1
            )
            mirror = candidates[0] if candidates else None
        if mirror is None:
            raise NotFoundError(f"Mirror leg of transfer {leg.id} not found")
        return mirror

    def _build_legs(
        self,
        user_id: UUID,
        debit_id: UUID,
        credit_id: UUID,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        transfer_date: date,
        description: str,
        notes: str,
    ) -> tuple[Transaction, Transaction]:
        common = dict(
            user_id=user_id,
            amount=abs(amount),
            category=TRANSFER_CATEGORY,
            date=transfer_date,
            type=TransactionType.TRANSFER,
            description=description,
            notes=notes,
            source=TransactionSource.TRANSFER,
        )
        debit = Transaction(
            id=debit_id,
            account_id=from_account_id,
            to_account_id=to_account_id,
            linked_transaction_id=credit_id,
            transfer_direction=TransferDirection.OUTGOING,
            **common,
        )
        credit = Transaction(
            id=credit_id,
            account_id=to_account_id,
            to_account_id=from_account_id,
            linked_transaction_id=debit_id,
            transfer_direction=TransferDirection.INCOMING,
            **common,
        )
        return debit, credit

    async def create_transfer(
        self,
        user_id: UUID,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        transfer_date: date,
        description: str = "",
        notes: str = "",
    ) -> tuple[Transaction, Transaction]:
        async with self.transaction():
            await self._require_account(from_account_id)
            await self._require_account(to_account_id)
            debit, credit = self._build_legs(
                user_id, uuid4(), uuid4(), from_account_id, to_account_id,
                amount, transfer_date, description, notes,
            )
            await self.insert(debit)
            await self.insert(credit)
        return debit, credit

    async def update_transfer(
        self,
        transaction_id: UUID,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        transfer_date: date,
        description: str = "",
        notes: str = "",
    ) -> tuple[Transaction, Transaction]:
        async with self.transaction():
            leg = await self.get(Transaction, transaction_id)
            if leg is None:
                raise NotFoundError(f"Transaction {transaction_id} not found")
            mirror = await self._find_mirror(leg)
            await self._require_account(from_account_id)
            await self._require_account(to_account_id)

            if leg.transfer_direction == TransferDirection.INCOMING:
                old_debit, old_credit = mirror, leg
            else:
                old_debit, old_credit = leg, mirror

            debit, credit = self._build_legs(
                leg.user_id, old_debit.id, old_credit.id, from_account_id,
                to_account_id, amount, transfer_date, description, notes,
            )
            debit = debit.model_copy(update={"created_at": old_debit.created_at})
            credit = credit.model_copy(update={"created_at": old_credit.created_at})
            debit = await self.update(debit)
            credit = await self.update(credit)
        return debit, credit

    async def delete_transfer(self, transaction_id: UUID) -> list[UUID]:
        async with self.transaction():
            leg = await self.get(Transaction, transaction_id)
            if leg is None:
                raise NotFoundError(f"Transaction {transaction_id} not found")
            mirror = await self._find_mirror(leg)
            await self.delete(Transaction, leg.id)
            await self.delete(Transaction, mirror.id)
        return [leg.id, mirror.id]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
