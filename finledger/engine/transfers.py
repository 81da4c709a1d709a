"""
Transfer Coordinator

A transfer moves money between two of the user's accounts and is stored
as two mirrored legs:

    debit leg:  account_id=from, to_account_id=to,   direction=outgoing
    credit leg: account_id=to,   to_account_id=from, direction=incoming

Both legs carry the magnitude and point at each other through
linked_transaction_id.

CRITICAL: The legs are only ever written by the store's transfer
procedures, which create, update and delete both legs atomically. This
module validates requests and routes them; it never writes a leg itself.
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID

import structlog

from finledger.errors import ConsistencyViolation
from finledger.models.ledger import Transaction
from finledger.storage import LedgerStore, NotFoundError
from finledger.validation import LedgerValidator


logger = structlog.get_logger(__name__)


class TransferCoordinator:
    """Validates transfer requests and hands them to the store procedures."""

    def __init__(
        self,
        store: LedgerStore,
        validator: Optional[LedgerValidator] = None,
    ):
        self._store = store
        self._validator = validator or LedgerValidator(store)

    async def _validate(
        self,
        from_account_id: Optional[UUID],
        to_account_id: Optional[UUID],
        amount: Any,
    ):
        result = self._validator.validate_transfer(from_account_id, to_account_id, amount)
        self._validator.raise_for_issues(result)

        result = await self._validator.check_accounts_exist(
            from_account_id=from_account_id,
            to_account_id=to_account_id,
        )
        self._validator.raise_for_issues(result)

        return self._validator.check_amount(amount, positive=True)

    async def _load_leg(self, transaction_id: UUID) -> Transaction:
        leg = await self._store.get(Transaction, transaction_id)
        if leg is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        if not leg.is_transfer:
            raise ConsistencyViolation(
                "Transaction is not a transfer leg",
                field="transaction_id",
                entity_id=transaction_id,
            )
        return leg

    async def create_transfer(
        self,
        user_id: UUID,
        from_account_id: Optional[UUID],
        to_account_id: Optional[UUID],
        amount: Any,
        transfer_date: date,
        description: str = "",
        notes: str = "",
    ) -> tuple[Transaction, Transaction]:
        """
        Create both legs of a transfer.

        Returns:
            (debit_leg, credit_leg)
        """
        magnitude = await self._validate(from_account_id, to_account_id, amount)
        debit, credit = await self._store.create_transfer(
            user_id=user_id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=magnitude,
            transfer_date=transfer_date,
            description=description,
            notes=notes,
        )
        logger.info(
            "transfer_created",
            debit_id=str(debit.id),
            credit_id=str(credit.id),
            amount=str(magnitude),
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
    ) -> tuple[Transaction, Transaction]:
        """
        Rewrite both legs of the transfer that `transaction_id` belongs to.

        Either leg's id may be given; the accounts are always stated from
        the debit side (money leaves `from_account_id`).
        """
        magnitude = await self._validate(from_account_id, to_account_id, amount)
        await self._load_leg(transaction_id)
        debit, credit = await self._store.update_transfer(
            transaction_id=transaction_id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=magnitude,
            transfer_date=transfer_date,
            description=description,
            notes=notes,
        )
        logger.info("transfer_updated", debit_id=str(debit.id), amount=str(magnitude))
        return debit, credit

    async def delete_transfer(self, transaction_id: UUID) -> list[UUID]:
        """Delete both legs. Returns the ids removed."""
        await self._load_leg(transaction_id)
        removed = await self._store.delete_transfer(transaction_id)
        logger.info("transfer_deleted", removed=[str(i) for i in removed])
        return removed
