"""
Ledger Rule Errors

Two families, both raised BEFORE anything is written:

- ValidationError: the request itself is malformed (missing field,
  non-numeric or non-positive amount, split sum mismatch, same-account
  transfer). Always carries field-attributed issues so the caller can
  highlight the offending input.
- ConsistencyViolation: the request is well-formed but would break a
  cross-row invariant (deleting one transfer leg, orphaning splits).

Store failures are a third family and live with the store contract
(finledger.storage.interface.StorageError).
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from finledger.models.results import ValidationIssue


class LedgerError(Exception):
    """Base exception for ledger rule violations."""
    pass


class ValidationError(LedgerError):
    """A mutation request failed validation. Nothing was written."""

    def __init__(self, issues: list[ValidationIssue], message: Optional[str] = None):
        self.issues = issues
        if message is None:
            message = "; ".join(f"{i.field}: {i.message}" for i in issues) or "Validation failed"
        super().__init__(message)

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]

    def issues_as_dicts(self) -> list[dict]:
        return [
            {"field": i.field, "type": i.issue_type, "message": i.message}
            for i in self.issues
        ]


class SplitSumMismatchError(ValidationError):
    """
    Split rows do not add up to the parent amount.

    `delta = parent_amount - split_total`: positive means the rows need
    `delta` more, negative means they are over by `abs(delta)`.
    """

    def __init__(
        self,
        parent_amount: Decimal,
        split_total: Decimal,
        issues: Optional[list[ValidationIssue]] = None,
    ):
        self.parent_amount = parent_amount
        self.split_total = split_total
        self.delta = parent_amount - split_total
        if issues is None:
            issues = [ValidationIssue(
                field="splits",
                issue_type="sum_mismatch",
                message=self.shortfall_message,
            )]
        super().__init__(issues)

    @property
    def shortfall_message(self) -> str:
        if self.delta > 0:
            return f"need ${self.delta:.2f} more"
        return f"over by ${abs(self.delta):.2f}"


class ConsistencyViolation(LedgerError):
    """A mutation would leave the ledger inconsistent. Nothing was written."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        entity_id: Optional[UUID] = None,
    ):
        self.field = field
        self.entity_id = entity_id
        super().__init__(message)
