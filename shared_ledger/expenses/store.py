"""
Ledger Store

Records shared expenses and the per-member splits that go with them.

The store does not compute shares. Whatever amounts the caller hands to
create_splits are stored exactly as given; the only later mutation of a
split is its pending -> paid transition.

Retry policy for callers: record_expense and create_splits are NOT safe
to retry (a retry could duplicate a financial record). The mark_*_paid
calls are idempotent and safe to retry.
"""

from typing import Optional
from uuid import UUID

from shared_ledger.audit import AuditLogger
from shared_ledger.models.ledger import (
    ExpenseSplit,
    NewExpense,
    SharedExpense,
    SplitShare,
    SplitStatus,
    SplitWithExpense,
    ValidationResult,
    utcnow,
)
from shared_ledger.services.storage import LedgerStorageInterface, StorageError
from shared_ledger.validation import LedgerValidator


class LedgerStore:
    """Shared expense and split operations."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def record_expense(
        self,
        creator_id: str,
        data: NewExpense,
        correlation_id: Optional[UUID] = None,
    ) -> SharedExpense:
        """
        Record an expense paid by `creator_id`.

        Raises:
            LedgerValidationError: If the amount is not positive
            StorageError: If persistence fails
        """
        result = self._validator.validate_new_expense(data)
        result.issues.extend(
            self._validator.validate_user_id(creator_id, field="creator_id").issues
        )
        await self._check(result, "expense", correlation_id)

        try:
            expense = await self._storage.create_expense(creator_id, data)
        except StorageError as e:
            await self._storage_failed("record_expense", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_recorded(
                expense_id=expense.id,
                creator_id=creator_id,
                amount=expense.amount,
                group_id=expense.group_id,
                correlation_id=correlation_id,
            )
        return expense

    async def get_expense(self, expense_id: UUID) -> Optional[SharedExpense]:
        return await self._storage.get_expense(expense_id)

    async def list_expenses_for_group(self, group_id: str) -> list[SharedExpense]:
        """Most recent first."""
        return await self._storage.list_expenses(group_id=group_id)

    async def list_expenses_by_creator(self, creator_id: str) -> list[SharedExpense]:
        """Most recent first."""
        return await self._storage.list_expenses(creator_id=creator_id)

    async def list_expenses_for_participant(self, user_id: str) -> list[SharedExpense]:
        """Every expense where the user has a split, whatever its status."""
        splits = await self._storage.list_splits(member_id=user_id)
        if not splits:
            return []
        return await self._storage.list_expenses(
            expense_ids={split.expense_id for split in splits}
        )

    async def delete_expense(
        self,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete an expense and its splits. Returns True if it existed."""
        try:
            deleted = await self._storage.delete_expense(expense_id)
        except StorageError as e:
            await self._storage_failed("delete_expense", e, correlation_id)
            raise

        if deleted and self._audit_logger:
            await self._audit_logger.log_expense_deleted(
                expense_id=expense_id,
                correlation_id=correlation_id,
            )
        return deleted

    # -------------------------------------------------------------------------
    # Splits
    # -------------------------------------------------------------------------

    async def create_splits(
        self,
        expense_id: UUID,
        shares: list[SplitShare],
        correlation_id: Optional[UUID] = None,
    ) -> list[ExpenseSplit]:
        """
        Create one pending split per share.

        Returns an empty list if the expense doesn't exist.

        Raises:
            LedgerValidationError: If a share is malformed, or (strict mode
                only) if the shares don't add up to the expense amount
            StorageError: If persistence fails
        """
        expense = await self._storage.get_expense(expense_id)
        if expense is None:
            return []

        result = self._validator.validate_splits(expense.amount, shares)
        await self._check(result, "splits", correlation_id)
        if not shares:
            return []

        try:
            splits = await self._storage.create_splits(expense_id, shares)
        except StorageError as e:
            await self._storage_failed("create_splits", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_splits_created(
                expense_id=expense_id,
                split_count=len(splits),
                total=sum(split.amount for split in splits),
                correlation_id=correlation_id,
            )
        return splits

    async def get_splits_for_expense(self, expense_id: UUID) -> list[ExpenseSplit]:
        return await self._storage.list_splits(expense_ids=[expense_id])

    async def get_splits_for_member(
        self,
        user_id: str,
        status: Optional[SplitStatus] = None,
    ) -> list[SplitWithExpense]:
        """The user's splits, each joined with the expense it belongs to."""
        splits = await self._storage.list_splits(member_id=user_id, status=status)
        return await self._join_expenses(splits)

    async def get_splits_for_creator(
        self,
        creator_id: str,
        status: Optional[SplitStatus] = None,
    ) -> list[SplitWithExpense]:
        """Splits on every expense the user paid for, joined with that expense."""
        expenses = await self._storage.list_expenses(creator_id=creator_id)
        if not expenses:
            return []

        by_id = {expense.id: expense for expense in expenses}
        splits = await self._storage.list_splits(
            expense_ids=by_id.keys(),
            status=status,
        )
        return [
            SplitWithExpense(split=split, expense=by_id[split.expense_id])
            for split in splits
        ]

    async def mark_split_paid(
        self,
        split_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[ExpenseSplit]:
        """
        Mark one split paid.

        Idempotent: an already-paid split is returned unchanged.

        Returns:
            The split, or None if it doesn't exist
        """
        return await self._mark_paid(
            await self._storage.list_splits(split_ids=[split_id]),
            correlation_id,
        )

    async def mark_split_paid_by_expense_and_member(
        self,
        expense_id: UUID,
        member_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[ExpenseSplit]:
        """
        Same as mark_split_paid, addressing the split by (expense, member).

        If the member holds several splits on the expense, the first pending
        one is paid.
        """
        return await self._mark_paid(
            await self._storage.list_splits(expense_ids=[expense_id], member_id=member_id),
            correlation_id,
        )

    async def _mark_paid(
        self,
        matches: list[ExpenseSplit],
        correlation_id: Optional[UUID],
    ) -> Optional[ExpenseSplit]:
        if not matches:
            return None

        # A member can hold more than one split on an expense
        split = next((m for m in matches if m.is_pending), matches[0])
        if not split.is_pending:
            return split

        try:
            transitioned = await self._storage.mark_splits_paid([split.id], utcnow())
        except StorageError as e:
            await self._storage_failed("mark_split_paid", e, correlation_id)
            raise

        if not transitioned:
            # Someone else paid it in between; return the stored state
            current = await self._storage.list_splits(split_ids=[split.id])
            return current[0] if current else None

        paid = transitioned[0]
        if self._audit_logger:
            await self._audit_logger.log_split_paid(
                split_id=paid.id,
                member_id=paid.member_id,
                amount=paid.amount,
                correlation_id=correlation_id,
            )
        return paid

    async def _join_expenses(self, splits: list[ExpenseSplit]) -> list[SplitWithExpense]:
        if not splits:
            return []

        expenses = await self._storage.list_expenses(
            expense_ids={split.expense_id for split in splits}
        )
        by_id = {expense.id: expense for expense in expenses}
        return [
            SplitWithExpense(split=split, expense=by_id[split.expense_id])
            for split in splits
            if split.expense_id in by_id
        ]

    async def _check(
        self,
        result: ValidationResult,
        entity_type: str,
        correlation_id: Optional[UUID],
    ) -> None:
        if result.has_errors and self._audit_logger:
            await self._audit_logger.log_validation_failed(
                entity_type=entity_type,
                issues=[issue.model_dump() for issue in result.issues],
                correlation_id=correlation_id,
            )
        self._validator.ensure_valid(result)

    async def _storage_failed(
        self,
        operation: str,
        error: Exception,
        correlation_id: Optional[UUID],
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(error),
                correlation_id=correlation_id,
            )
