"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run the ledger on Google Sheets or any relational store
2. Use in-memory storage for testing
3. Keep the balance and settlement logic decoupled from persistence

The store owns key generation. Components never invent ids themselves,
so no id counter lives outside a storage instance.
"""

import secrets
from abc import ABC, abstractmethod
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
)


GROUP_ID_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz_-"


def generate_group_id(length: int = 8) -> str:
    """Generate a short, URL-safe, random group token."""
    return "".join(secrets.choice(GROUP_ID_ALPHABET) for _ in range(length))


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. Reads return None / empty lists
    for unknown ids; only real persistence failures raise StorageError.
    """

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_group(self, name: str, created_by: str) -> Group:
        """
        Persist a new group with a store-generated id.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_group(self, group_id: str) -> Optional[Group]:
        """Return the group, or None if it doesn't exist."""
        pass

    @abstractmethod
    async def update_group(self, group: Group) -> Group:
        """
        Overwrite an existing group.

        Raises:
            NotFoundError: If the group doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_group(self, group_id: str) -> bool:
        """
        Delete a group with its memberships, expenses and their splits.

        Returns:
            True if the group existed
        """
        pass

    # -------------------------------------------------------------------------
    # Memberships
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upsert_member(self, membership: Membership) -> Membership:
        """
        Insert or replace the membership keyed by (group_id, user_id).

        An existing row keeps its original joined_at.
        """
        pass

    @abstractmethod
    async def get_member(self, group_id: str, user_id: str) -> Optional[Membership]:
        """Return the membership, or None."""
        pass

    @abstractmethod
    async def list_members(self, group_id: str) -> list[Membership]:
        """List a group's memberships in join order."""
        pass

    @abstractmethod
    async def list_memberships_for_user(self, user_id: str) -> list[Membership]:
        """List every membership of a user, in join order."""
        pass

    @abstractmethod
    async def remove_member(self, group_id: str, user_id: str) -> bool:
        """Delete one membership. Returns True if it existed."""
        pass

    # -------------------------------------------------------------------------
    # Shared expenses
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_expense(self, creator_id: str, data: NewExpense) -> SharedExpense:
        """
        Persist a new shared expense with a store-generated id.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[SharedExpense]:
        """Return the expense, or None."""
        pass

    @abstractmethod
    async def list_expenses(
        self,
        group_id: Optional[str] = None,
        creator_id: Optional[str] = None,
        expense_ids: Optional[Iterable[UUID]] = None,
    ) -> list[SharedExpense]:
        """
        List expenses matching every given filter, newest first.

        Args:
            group_id: Only expenses of this group
            creator_id: Only expenses paid by this user
            expense_ids: Only these expenses
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: UUID) -> bool:
        """Delete an expense and its splits. Returns True if it existed."""
        pass

    # -------------------------------------------------------------------------
    # Splits
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_splits(
        self,
        expense_id: UUID,
        shares: list[SplitShare],
    ) -> list[ExpenseSplit]:
        """
        Persist one pending split per share, amounts exactly as given.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def list_splits(
        self,
        expense_ids: Optional[Iterable[UUID]] = None,
        member_id: Optional[str] = None,
        status: Optional[SplitStatus] = None,
        split_ids: Optional[Iterable[UUID]] = None,
    ) -> list[ExpenseSplit]:
        """List splits matching every given filter, in creation order."""
        pass

    @abstractmethod
    async def mark_splits_paid(
        self,
        split_ids: Iterable[UUID],
        paid_at: datetime,
    ) -> list[ExpenseSplit]:
        """
        Move the given splits from pending to paid in ONE atomic write.

        Splits that are already paid (or unknown) are left untouched and
        are not returned, except those whose paid_at equals `paid_at`: they
        were written by an earlier attempt of this same call and count as
        transitioned. Callers pass a fresh paid_at per call.

        Returns:
            The splits this call transitioned
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
