"""
Abstract Ledger Store Interface

DESIGN DECISION: The engine only talks to this contract.
This allows us to:
1. Back the ledger with a remote database (stored procedures do the
   two-leg transfer write server-side)
2. Use the in-memory store for testing
3. Keep the consistency rules decoupled from persistence

The interface is intentionally small - we're not building an ORM.
Entities are addressed by their model class:

    account = await store.get(Account, account_id)
    rows = await store.query(Transaction, {"account_id": account_id})

Filters are equality on a field name, or a range/set operator appended
with a double underscore: `date__gte`, `date__lte`, `id__in`, `type__ne`.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Any, AsyncContextManager, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel

from finledger.models.audit import AuditEvent
from finledger.models.ledger import Transaction


EntityT = TypeVar("EntityT", bound=BaseModel)


class LedgerStore(ABC):
    """
    Contract every ledger backend fulfils.

    A backend (PostgreSQL, SQLite, in-memory) must
    implement every abstract method below.
    """

    # -------------------------------------------------------------------------
    # Row operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert(self, entity: EntityT) -> EntityT:
        """
        Insert a new entity.

        Raises:
            DuplicateError: If an entity with the same id exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update(self, entity: EntityT) -> EntityT:
        """
        Replace an existing entity (matched by id).

        Raises:
            NotFoundError: If the entity doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, model: type[BaseModel], entity_id: UUID) -> bool:
        """
        Delete an entity by id.

        Returns:
            True if a row was deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def get(self, model: type[EntityT], entity_id: UUID) -> Optional[EntityT]:
        """Retrieve an entity by id, or None."""
        pass

    @abstractmethod
    async def query(
        self,
        model: type[EntityT],
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[EntityT]:
        """
        List entities matching all filters.

        Args:
            model: Entity class to query
            filters: {field: value} equality, or {field__gte/lte/in/ne: value}
            order_by: Field to order by (e.g. 'date', 'name', 'sort_order')
            descending: Reverse the order
            limit: Maximum number of results
        """
        pass

    # -------------------------------------------------------------------------
    # Unit of work
    # -------------------------------------------------------------------------

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """
        Open one transaction boundary.

        Everything written inside the block commits together, or nothing
        does: any exception rolls the block back and propagates. Nested
        blocks act as savepoints of the enclosing one.
        """
        pass

    # -------------------------------------------------------------------------
    # Server-side procedures
    # -------------------------------------------------------------------------

    @abstractmethod
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
        """
        Write both legs of a transfer as one transaction.

        Returns:
            (debit_leg, credit_leg), each linked to the other
        """
        pass

    @abstractmethod
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
        """
        Rewrite both legs of the transfer that `transaction_id` belongs to.

        Either leg's id may be given.

        Raises:
            NotFoundError: If the leg or its mirror doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transfer(self, transaction_id: UUID) -> list[UUID]:
        """
        Delete both legs of a transfer as one transaction.

        Returns:
            Ids of the deleted legs
        """
        pass


class AuditStorageInterface(ABC):
    """
    Contract for the audit event sink.

    Events are only ever appended.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the log."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events of one public operation, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """All events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """The store could not complete an operation."""
    pass


class NotFoundError(StorageError):
    """No stored entity has the requested id."""
    pass


class DuplicateError(StorageError):
    """An entity with the same id is already stored."""
    pass


class StoreUnavailableError(StorageError):
    """Could not reach the storage backend."""
    pass
