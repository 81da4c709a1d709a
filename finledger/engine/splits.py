"""
Split Allocator

Divides one transaction's amount across several categories.

DESIGN DECISION: A split set is always replaced wholesale.
- Every row is checked and every problem reported with its row index
- The rows must add up to the parent within SPLIT_TOLERANCE
- Old rows are deleted and new rows inserted in ONE store transaction,
  so readers never see a half-written split set

The parent keeps a denormalized display label (the comma-joined category
names) and loses its single category_id while it is split.
"""

from decimal import Decimal
from typing import Any, Iterable, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from finledger.amounts import SPLIT_TOLERANCE, ZERO, parse_amount, percent_of
from finledger.errors import SplitSumMismatchError, ValidationError
from finledger.models.ledger import (
    Category,
    Split,
    SplitAllocation,
    SplitRow,
    Transaction,
)
from finledger.models.results import ValidationIssue
from finledger.storage import LedgerStore, NotFoundError


logger = structlog.get_logger(__name__)

RowInput = Union[SplitRow, dict[str, Any]]


def _coerce_row(row: RowInput, index: int, issues: list[ValidationIssue]) -> Optional[SplitRow]:
    if isinstance(row, SplitRow):
        return row
    try:
        return SplitRow.model_validate(row)
    except PydanticValidationError as e:
        prefix = f"splits[{index}]"
        seen: set[str] = set()
        # Union fields report one error per member; keep one issue per field
        for error in e.errors():
            field = f"{prefix}.{error['loc'][0]}" if error["loc"] else prefix
            if field in seen:
                continue
            seen.add(field)
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message=f"Row {index + 1}: {error['msg']}",
            ))
        return None


def _parse_category_id(value: Any) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except ValueError:
        return None


def validate_split(parent_amount: Any, rows: Iterable[RowInput]) -> list[SplitAllocation]:
    """
    Validate candidate split rows against the parent amount.

    Only the magnitude of the parent matters, so an expense stored as
    -100 is split exactly like one entered as 100.

    Returns the allocations, each with its whole-number percentage of the
    parent. Raises ValidationError listing every bad row, or
    SplitSumMismatchError when the rows are well-formed but do not add up.

    Example:
        validate_split("100", [{"category_id": food, "amount": "60"},
                               {"category_id": fun, "amount": "40"}])
        -> percentages 60 and 40
    """
    issues: list[ValidationIssue] = []
    rows = list(rows)

    parent = parse_amount(parent_amount)
    if parent is None:
        issues.append(ValidationIssue(
            field="amount",
            issue_type="invalid_format",
            message="Parent amount is not a valid number",
        ))
    else:
        parent = abs(parent)

    if not rows:
        issues.append(ValidationIssue(
            field="splits",
            issue_type="missing",
            message="At least one split row is required",
        ))

    parsed: list[tuple[UUID, Decimal, str]] = []
    for index, raw in enumerate(rows):
        prefix = f"splits[{index}]"
        row = _coerce_row(raw, index, issues)
        if row is None:
            continue

        category_id = None
        if row.category_id is None or not str(row.category_id).strip():
            issues.append(ValidationIssue(
                field=f"{prefix}.category_id",
                issue_type="missing",
                message=f"Row {index + 1}: category is required",
            ))
        else:
            category_id = _parse_category_id(row.category_id)
            if category_id is None:
                issues.append(ValidationIssue(
                    field=f"{prefix}.category_id",
                    issue_type="invalid_format",
                    message=f"Row {index + 1}: '{row.category_id}' is not a category id",
                ))

        amount = parse_amount(row.amount)
        if amount is None:
            issues.append(ValidationIssue(
                field=f"{prefix}.amount",
                issue_type="invalid_format",
                message=f"Row {index + 1}: amount is missing or not a number",
            ))
        elif amount < 0:
            issues.append(ValidationIssue(
                field=f"{prefix}.amount",
                issue_type="invalid_value",
                message=f"Row {index + 1}: amount cannot be negative",
            ))
            amount = None

        if category_id is not None and amount is not None:
            parsed.append((category_id, amount, row.notes))

    if issues:
        raise ValidationError(issues)

    total = sum((amount for _, amount, _ in parsed), ZERO)
    if abs(total - parent) > SPLIT_TOLERANCE:
        raise SplitSumMismatchError(parent_amount=parent, split_total=total)

    return [
        SplitAllocation(
            category_id=category_id,
            amount=amount,
            percentage=percent_of(amount, parent),
            notes=notes,
        )
        for category_id, amount, notes in parsed
    ]


def split_label(names: Iterable[str]) -> str:
    """Comma-joined category names in row order, without repeats."""
    seen: list[str] = []
    for name in names:
        if name and name not in seen:
            seen.append(name)
    return ", ".join(seen)


class SplitAllocator:
    """
    Writes split sets for transactions.

    Usage:
        allocator = SplitAllocator(store)
        parent, splits = await allocator.replace_splits(txn_id, rows)
    """

    def __init__(self, store: LedgerStore):
        self._store = store

    async def _category_names(self, allocations: list[SplitAllocation]) -> list[str]:
        issues: list[ValidationIssue] = []
        names: list[str] = []
        for index, allocation in enumerate(allocations):
            category = await self._store.get(Category, allocation.category_id)
            if category is None:
                issues.append(ValidationIssue(
                    field=f"splits[{index}].category_id",
                    issue_type="not_found",
                    message=f"Row {index + 1}: category does not exist",
                ))
                continue
            names.append(category.name)
        if issues:
            raise ValidationError(issues)
        return names

    async def apply(
        self,
        parent: Transaction,
        allocations: list[SplitAllocation],
    ) -> tuple[Transaction, list[Split]]:
        """
        Replace the split set of an existing parent with validated allocations.

        Must run inside a store transaction opened by the caller.
        """
        if parent.is_transfer:
            raise ValidationError([ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message="Transfers cannot be split",
            )])

        names = await self._category_names(allocations)

        await self.remove_all(parent.id)

        splits = []
        for allocation in allocations:
            splits.append(await self._store.insert(Split(
                transaction_id=parent.id,
                category_id=allocation.category_id,
                amount=allocation.amount,
                percentage=allocation.percentage,
                notes=allocation.notes,
            )))

        parent = await self._store.update(parent.model_copy(update={
            "is_split": True,
            "category": split_label(names),
            "category_id": None,
        }))
        return parent, splits

    async def replace_splits(
        self,
        transaction_id: UUID,
        rows: Iterable[RowInput],
    ) -> tuple[Transaction, list[Split]]:
        """
        Validate `rows` against the stored parent and swap in the new set.

        All or nothing: on any failure the previous split set is untouched.
        """
        async with self._store.transaction():
            parent = await self._store.get(Transaction, transaction_id)
            if parent is None:
                raise NotFoundError(f"Transaction {transaction_id} not found")
            allocations = validate_split(parent.amount, rows)
            parent, splits = await self.apply(parent, allocations)

        logger.info(
            "splits_replaced",
            transaction_id=str(transaction_id),
            split_count=len(splits),
        )
        return parent, splits

    async def clear_splits(
        self,
        transaction_id: UUID,
        category: str,
        category_id: Optional[UUID] = None,
    ) -> Transaction:
        """Remove every split row and give the parent a single category again."""
        async with self._store.transaction():
            parent = await self._store.get(Transaction, transaction_id)
            if parent is None:
                raise NotFoundError(f"Transaction {transaction_id} not found")
            removed = await self.remove_all(transaction_id)
            parent = await self._store.update(parent.model_copy(update={
                "is_split": False,
                "category": category,
                "category_id": category_id,
            }))

        logger.info("splits_cleared", transaction_id=str(transaction_id), removed=removed)
        return parent

    async def remove_all(self, transaction_id: UUID) -> int:
        """Delete every split of a parent. Returns how many were removed."""
        removed = 0
        async with self._store.transaction():
            for split in await self._store.query(Split, {"transaction_id": transaction_id}):
                if await self._store.delete(Split, split.id):
                    removed += 1
        return removed
