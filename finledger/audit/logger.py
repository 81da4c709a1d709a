"""
Audit Logger

DESIGN DECISION: Every ledger mutation, accepted or rejected, leaves an
audit event. Events of one public operation share a correlation id.

A failing audit sink is logged and otherwise ignored: the ledger write
it describes has already committed.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finledger.config import get_settings
from finledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from finledger.storage import AuditStorageInterface


def configure_logging(debug: Optional[bool] = None) -> None:
    """Configure structlog for JSON output through the stdlib logging tree."""
    if debug is None:
        debug = get_settings().ledger.debug_mode
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if debug else logging.INFO,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Writes ledger audit events.

    Every event goes to the structlog stream; events are also appended
    to the audit storage when the logger was given one.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Where events are appended. Without one, events only
                    reach the structlog stream.
        """
        self._storage = storage
        self._logger = structlog.get_logger("finledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Emit one event at a log level matching its severity, then append it
        to storage.

        Returns False only when the storage append failed.
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transfer_created(
        self,
        debit_id: UUID,
        credit_id: UUID,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transfer_created(
            debit_id=debit_id,
            credit_id=credit_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_transfer_updated(
        self,
        transaction_id: UUID,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transfer_updated(
            transaction_id=transaction_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_transfer_deleted(
        self,
        transaction_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transfer_deleted(
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_splits_replaced(
        self,
        transaction_id: UUID,
        split_count: int,
        label: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.splits_replaced(
            transaction_id=transaction_id,
            split_count=split_count,
            label=label,
            correlation_id=correlation_id,
        ))

    async def log_recurring_generated(
        self,
        created_ids: list[UUID],
        rules_advanced: int,
        up_to_date: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.recurring_generated(
            created_ids=created_ids,
            rules_advanced=rules_advanced,
            up_to_date=up_to_date,
            correlation_id=correlation_id,
        ))

    async def log_entity_deleted(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        detached: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.entity_deleted(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            detached=detached,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        operation: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            operation=operation,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_consistency_violation(
        self,
        operation: str,
        error_message: str,
        entity_id: Optional[UUID],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.consistency_violation(
            operation=operation,
            error_message=error_message,
            entity_id=entity_id,
            correlation_id=correlation_id,
        ))

    async def log_store_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.store_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    New id shared by every event of one public ledger operation.

    Use this at the start of a public operation and pass it through
    every event that operation emits.
    """
    return uuid4()
