"""
Group Registry

Owns groups and their membership rosters.

GUARANTEES:
- Every group has exactly one owner at creation (its creator)
- Membership is keyed by (group_id, user_id); adding twice updates the role
- Removing a member never touches existing expenses or splits
- Deleting a group cascades to memberships, expenses and splits
"""

from typing import Optional
from uuid import UUID

from shared_ledger.audit import AuditLogger
from shared_ledger.models.ledger import Group, MemberRole, Membership, utcnow
from shared_ledger.services.storage import LedgerStorageInterface, StorageError
from shared_ledger.validation import LedgerValidator


class GroupRegistry:
    """Group and membership operations."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger

    async def create_group(
        self,
        creator_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> Group:
        """
        Create a group and make its creator the owner.

        Raises:
            LedgerValidationError: If the name is empty or too long
            StorageError: If persistence fails
        """
        result = self._validator.validate_group_name(name)
        result.issues.extend(
            self._validator.validate_user_id(creator_id, field="creator_id").issues
        )
        await self._check(result, "group", correlation_id)

        try:
            group = await self._storage.create_group(name.strip(), creator_id)
            await self._storage.upsert_member(Membership(
                group_id=group.id,
                user_id=creator_id,
                role=MemberRole.OWNER,
            ))
        except StorageError as e:
            await self._storage_failed("create_group", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_group_created(
                group_id=group.id,
                name=group.name,
                creator_id=creator_id,
                correlation_id=correlation_id,
            )
        return group

    async def get_group(self, group_id: str) -> Optional[Group]:
        return await self._storage.get_group(group_id)

    async def list_groups_for_user(self, user_id: str) -> list[Group]:
        """Every group the user belongs to, in the order they joined."""
        memberships = await self._storage.list_memberships_for_user(user_id)

        groups = []
        for membership in memberships:
            group = await self._storage.get_group(membership.group_id)
            if group is not None:
                groups.append(group)
        return groups

    async def find_group_by_name(self, user_id: str, name: str) -> Optional[Group]:
        """First of the user's groups whose name contains `name` (case-insensitive)."""
        needle = name.strip().lower()
        if not needle:
            return None
        for group in await self.list_groups_for_user(user_id):
            if needle in group.name.lower():
                return group
        return None

    async def rename_group(
        self,
        group_id: str,
        new_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Group]:
        """
        Rename a group.

        Returns:
            The updated group, or None if it doesn't exist
        """
        await self._check(
            self._validator.validate_group_name(new_name), "group", correlation_id
        )

        group = await self._storage.get_group(group_id)
        if group is None:
            return None

        old_name = group.name
        renamed = group.model_copy(
            update={"name": new_name.strip(), "updated_at": utcnow()}
        )
        try:
            renamed = await self._storage.update_group(renamed)
        except StorageError as e:
            await self._storage_failed("rename_group", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_group_renamed(
                group_id=group_id,
                old_name=old_name,
                new_name=renamed.name,
                correlation_id=correlation_id,
            )
        return renamed

    async def delete_group(
        self,
        group_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a group with its members, expenses and splits. Irreversible.

        Returns:
            True if the group existed
        """
        try:
            deleted = await self._storage.delete_group(group_id)
        except StorageError as e:
            await self._storage_failed("delete_group", e, correlation_id)
            raise

        if deleted and self._audit_logger:
            await self._audit_logger.log_group_deleted(
                group_id=group_id,
                correlation_id=correlation_id,
            )
        return deleted

    async def add_member(
        self,
        group_id: str,
        user_id: str,
        role: MemberRole = MemberRole.MEMBER,
        correlation_id: Optional[UUID] = None,
    ) -> Membership:
        """Add a member, or update the role of an existing one."""
        await self._check(
            self._validator.validate_user_id(user_id), "membership", correlation_id
        )

        try:
            membership = await self._storage.upsert_member(Membership(
                group_id=group_id,
                user_id=user_id,
                role=MemberRole(role),
            ))
        except StorageError as e:
            await self._storage_failed("add_member", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_member_added(
                group_id=group_id,
                user_id=user_id,
                role=membership.role.value,
                correlation_id=correlation_id,
            )
        return membership

    async def remove_member(
        self,
        group_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Remove the membership only. Expense history is left as is."""
        try:
            removed = await self._storage.remove_member(group_id, user_id)
        except StorageError as e:
            await self._storage_failed("remove_member", e, correlation_id)
            raise

        if removed and self._audit_logger:
            await self._audit_logger.log_member_removed(
                group_id=group_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return removed

    async def list_members(self, group_id: str) -> list[Membership]:
        return await self._storage.list_members(group_id)

    async def is_member(self, group_id: str, user_id: str) -> bool:
        return await self._storage.get_member(group_id, user_id) is not None

    async def is_owner(self, group_id: str, user_id: str) -> bool:
        membership = await self._storage.get_member(group_id, user_id)
        return membership is not None and membership.role == MemberRole.OWNER

    async def _check(self, result, entity_type: str, correlation_id: Optional[UUID]) -> None:
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
