"""
In-Memory Storage Implementation

Keeps the whole ledger in dictionaries owned by one storage instance.
Used for tests and for single-process deployments that don't need
persistence across restarts.

Every write happens under one asyncio.Lock, so a batch such as
mark_splits_paid is observed either entirely or not at all.
"""

import asyncio
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from shared_ledger.models.audit import AuditEvent
from shared_ledger.models.ledger import (
    ExpenseSplit,
    Group,
    Membership,
    NewExpense,
    SharedExpense,
    SplitShare,
    SplitStatus,
    utcnow,
)
from shared_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    generate_group_id,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Dictionary-backed ledger storage.

    Records are copied on the way in and on the way out so callers can
    never mutate stored state behind the store's back.
    """

    def __init__(self, group_id_length: int = 8):
        self._group_id_length = group_id_length
        self._groups: dict[str, Group] = {}
        self._members: dict[tuple[str, str], Membership] = {}
        self._expenses: dict[UUID, SharedExpense] = {}
        self._splits: dict[UUID, ExpenseSplit] = {}
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    async def create_group(self, name: str, created_by: str) -> Group:
        async with self._lock:
            group_id = self._new_group_id()
            now = utcnow()
            group = Group(
                id=group_id,
                name=name,
                created_by=created_by,
                created_at=now,
                updated_at=now,
            )
            self._groups[group_id] = group
            return group.model_copy()

    async def get_group(self, group_id: str) -> Optional[Group]:
        group = self._groups.get(group_id)
        return group.model_copy() if group else None

    async def update_group(self, group: Group) -> Group:
        async with self._lock:
            if group.id not in self._groups:
                raise NotFoundError(f"Group not found: {group.id}")
            self._groups[group.id] = group.model_copy()
            return group.model_copy()

    async def delete_group(self, group_id: str) -> bool:
        async with self._lock:
            if group_id not in self._groups:
                return False

            for key in [k for k in self._members if k[0] == group_id]:
                del self._members[key]

            expense_ids = {
                expense.id
                for expense in self._expenses.values()
                if expense.group_id == group_id
            }
            self._drop_expenses(expense_ids)

            del self._groups[group_id]
            return True

    def _new_group_id(self) -> str:
        for _ in range(10):
            group_id = generate_group_id(self._group_id_length)
            if group_id not in self._groups:
                return group_id
        raise DuplicateError("Could not generate a unique group id")

    # -------------------------------------------------------------------------
    # Memberships
    # -------------------------------------------------------------------------

    async def upsert_member(self, membership: Membership) -> Membership:
        async with self._lock:
            key = (membership.group_id, membership.user_id)
            existing = self._members.get(key)
            if existing is not None:
                membership = membership.model_copy(
                    update={"joined_at": existing.joined_at}
                )
            self._members[key] = membership.model_copy()
            return membership.model_copy()

    async def get_member(self, group_id: str, user_id: str) -> Optional[Membership]:
        membership = self._members.get((group_id, user_id))
        return membership.model_copy() if membership else None

    async def list_members(self, group_id: str) -> list[Membership]:
        return [
            m.model_copy() for m in self._members.values()
            if m.group_id == group_id
        ]

    async def list_memberships_for_user(self, user_id: str) -> list[Membership]:
        return [
            m.model_copy() for m in self._members.values()
            if m.user_id == user_id
        ]

    async def remove_member(self, group_id: str, user_id: str) -> bool:
        async with self._lock:
            return self._members.pop((group_id, user_id), None) is not None

    # -------------------------------------------------------------------------
    # Shared expenses
    # -------------------------------------------------------------------------

    async def create_expense(self, creator_id: str, data: NewExpense) -> SharedExpense:
        async with self._lock:
            now = utcnow()
            expense = SharedExpense(
                group_id=data.group_id,
                creator_id=creator_id,
                amount=data.amount,
                category=data.category,
                description=data.description,
                split_type=data.split_type,
                created_at=now,
                updated_at=now,
            )
            self._expenses[expense.id] = expense
            return expense.model_copy()

    async def get_expense(self, expense_id: UUID) -> Optional[SharedExpense]:
        expense = self._expenses.get(expense_id)
        return expense.model_copy() if expense else None

    async def list_expenses(
        self,
        group_id: Optional[str] = None,
        creator_id: Optional[str] = None,
        expense_ids: Optional[Iterable[UUID]] = None,
    ) -> list[SharedExpense]:
        wanted = set(expense_ids) if expense_ids is not None else None

        expenses = []
        # Reversed insertion order breaks created_at ties newest-first
        for expense in reversed(list(self._expenses.values())):
            if group_id is not None and expense.group_id != group_id:
                continue
            if creator_id is not None and expense.creator_id != creator_id:
                continue
            if wanted is not None and expense.id not in wanted:
                continue
            expenses.append(expense.model_copy())

        expenses.sort(key=lambda e: e.created_at, reverse=True)
        return expenses

    async def delete_expense(self, expense_id: UUID) -> bool:
        async with self._lock:
            if expense_id not in self._expenses:
                return False
            self._drop_expenses({expense_id})
            return True

    def _drop_expenses(self, expense_ids: set[UUID]) -> None:
        """Remove expenses and their splits. Caller holds the lock."""
        for split_id in [
            s.id for s in self._splits.values() if s.expense_id in expense_ids
        ]:
            del self._splits[split_id]
        for expense_id in expense_ids:
            self._expenses.pop(expense_id, None)

    # -------------------------------------------------------------------------
    # Splits
    # -------------------------------------------------------------------------

    async def create_splits(
        self,
        expense_id: UUID,
        shares: list[SplitShare],
    ) -> list[ExpenseSplit]:
        async with self._lock:
            if expense_id not in self._expenses:
                raise NotFoundError(f"Expense not found: {expense_id}")

            now = utcnow()
            created = []
            for share in shares:
                split = ExpenseSplit(
                    expense_id=expense_id,
                    member_id=share.member_id,
                    amount=share.amount,
                    status=SplitStatus.PENDING,
                    created_at=now,
                )
                self._splits[split.id] = split
                created.append(split.model_copy())
            return created

    async def list_splits(
        self,
        expense_ids: Optional[Iterable[UUID]] = None,
        member_id: Optional[str] = None,
        status: Optional[SplitStatus] = None,
        split_ids: Optional[Iterable[UUID]] = None,
    ) -> list[ExpenseSplit]:
        wanted_expenses = set(expense_ids) if expense_ids is not None else None
        wanted_splits = set(split_ids) if split_ids is not None else None

        splits = []
        for split in self._splits.values():
            if wanted_expenses is not None and split.expense_id not in wanted_expenses:
                continue
            if wanted_splits is not None and split.id not in wanted_splits:
                continue
            if member_id is not None and split.member_id != member_id:
                continue
            if status is not None and split.status != status:
                continue
            splits.append(split.model_copy())
        return splits

    async def mark_splits_paid(
        self,
        split_ids: Iterable[UUID],
        paid_at: datetime,
    ) -> list[ExpenseSplit]:
        async with self._lock:
            transitioned = []
            for split_id in dict.fromkeys(split_ids):
                split = self._splits.get(split_id)
                if split is None:
                    continue
                if split.status == SplitStatus.PAID:
                    if split.paid_at == paid_at:
                        transitioned.append(split.model_copy())
                    continue
                paid = split.model_copy(
                    update={"status": SplitStatus.PAID, "paid_at": paid_at}
                )
                self._splits[split_id] = paid
                transitioned.append(paid.model_copy())
            return transitioned


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy())
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = list(reversed(self._events))
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
