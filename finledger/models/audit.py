"""
Audit Models for finledger

Every ledger mutation is logged for audit purposes.
This provides:
1. Traceability of transfers, split replacements and generated rows
2. Debugging information when a mutation is rejected
3. Ability to reconstruct who changed what

DESIGN DECISION: Audit events are immutable once appended.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finledger.models.ledger import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transfers
    TRANSFER_CREATED = "transfer_created"
    TRANSFER_UPDATED = "transfer_updated"
    TRANSFER_DELETED = "transfer_deleted"

    # Transactions and splits
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    SPLITS_REPLACED = "splits_replaced"
    SPLITS_CLEARED = "splits_cleared"
    SPLIT_VALIDATION_FAILED = "split_validation_failed"

    # Recurring
    RECURRING_GENERATED = "recurring_generated"
    RULE_CREATED = "rule_created"
    RULE_PAUSED = "rule_paused"
    RULE_RESUMED = "rule_resumed"
    RULE_DELETED = "rule_deleted"

    # Goals
    GOAL_CREATED = "goal_created"
    QUOTE_SELECTED = "quote_selected"
    GOAL_DELETED = "goal_deleted"

    # Reference data
    CATEGORY_DELETED = "category_deleted"
    MERCHANT_DELETED = "merchant_deleted"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    CONSISTENCY_VIOLATION = "consistency_violation"
    STORE_ERROR = "store_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every public mutation creates at least one of these.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # The ledger row the event concerns
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'recurring_rule', 'quote')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - all events of one public operation share it
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=True,
        description="False for machine-driven events such as recurring generation"
    )

    def to_log_dict(self) -> dict:
        """
        Flatten to JSON-safe values for the structlog stream.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Constructors for each ledger audit event.

    Usage:
        event = AuditEventBuilder.transfer_created(debit_id, credit_id, "100.00", cid)
    """

    @staticmethod
    def transfer_created(
        debit_id: UUID,
        credit_id: UUID,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_CREATED,
            entity_type="transaction",
            entity_id=debit_id,
            correlation_id=correlation_id,
            description=f"Transfer created: {amount}",
            details={
                "debit_leg": str(debit_id),
                "credit_leg": str(credit_id),
                "amount": amount,
            },
        )

    @staticmethod
    def transfer_updated(
        transaction_id: UUID,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transfer updated: {amount}",
            details={"amount": amount},
        )

    @staticmethod
    def transfer_deleted(
        transaction_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transfer deleted (both legs)",
        )

    @staticmethod
    def transaction_recorded(
        transaction_id: UUID,
        amount: str,
        category: str,
        correlation_id: UUID,
        updated: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.TRANSACTION_UPDATED
                if updated
                else AuditEventType.TRANSACTION_RECORDED
            ),
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction {'updated' if updated else 'recorded'}: {amount} in {category}",
            details={"amount": amount, "category": category},
        )

    @staticmethod
    def splits_replaced(
        transaction_id: UUID,
        split_count: int,
        label: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLITS_REPLACED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Split set replaced with {split_count} allocations",
            details={"split_count": split_count, "categories": label},
        )

    @staticmethod
    def splits_cleared(
        transaction_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLITS_CLEARED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Split set removed",
        )

    @staticmethod
    def split_validation_failed(
        delta: str,
        issues: list[dict],
        correlation_id: UUID,
        transaction_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Split validation failed with {len(issues)} issues",
            details={"delta": delta, "issues": issues},
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: UUID,
        split_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            details={"splits_deleted": split_count},
        )

    @staticmethod
    def recurring_generated(
        created_ids: list[UUID],
        rules_advanced: int,
        up_to_date: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_GENERATED,
            entity_type="recurring_rule",
            correlation_id=correlation_id,
            description=f"Generated {len(created_ids)} recurring transaction(s) up to {up_to_date}",
            details={
                "created": [str(i) for i in created_ids],
                "rules_advanced": rules_advanced,
                "up_to_date": up_to_date,
            },
            is_user_action=False,
        )

    @staticmethod
    def rule_state_changed(
        rule_id: UUID,
        event_type: AuditEventType,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="recurring_rule",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Recurring rule {event_type.value.removeprefix('rule_')}",
        )

    @staticmethod
    def quote_selected(
        quote_id: UUID,
        goal_item_id: UUID,
        deselected: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUOTE_SELECTED,
            entity_type="quote",
            entity_id=quote_id,
            correlation_id=correlation_id,
            description="Quote selected",
            details={"goal_item_id": str(goal_item_id), "deselected": deselected},
        )

    @staticmethod
    def goal_created(
        goal_id: UUID,
        target_amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CREATED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal created with target {target_amount}",
            details={"target_amount": target_amount},
        )

    @staticmethod
    def entity_deleted(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        detached: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.replace('_', ' ').capitalize()} deleted, {detached} row(s) detached",
            details={"detached": detached},
        )

    @staticmethod
    def validation_failed(
        operation: str,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"{operation} rejected with {len(issues)} issues",
            details={"operation": operation, "issues": issues},
        )

    @staticmethod
    def consistency_violation(
        operation: str,
        error_message: str,
        entity_id: Optional[UUID],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONSISTENCY_VIOLATION,
            severity=AuditSeverity.WARNING,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{operation} rejected: consistency violation",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def store_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Ledger store failed during {operation}",
            error_message=error_message,
            details={"operation": operation},
            is_user_action=False,
        )
