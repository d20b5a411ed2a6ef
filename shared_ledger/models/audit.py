"""
Audit Models for the Shared Expense Ledger

Every write to the ledger is logged for audit purposes.
This provides:
1. Complete traceability of who recorded and settled what
2. Debugging information when things go wrong
3. Ability to reconstruct settlement history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from shared_ledger.models.ledger import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Groups
    GROUP_CREATED = "group_created"
    GROUP_RENAMED = "group_renamed"
    GROUP_DELETED = "group_deleted"
    MEMBER_ADDED = "member_added"
    MEMBER_REMOVED = "member_removed"

    # Ledger
    EXPENSE_RECORDED = "expense_recorded"
    SPLITS_CREATED = "splits_created"
    EXPENSE_DELETED = "expense_deleted"
    SPLIT_PAID = "split_paid"

    # Settlement
    DEBT_SETTLED = "debt_settled"
    SETTLEMENT_EMPTY = "settlement_empty"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    STORAGE_ERROR = "storage_error"


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

    This is the core unit of our audit trail.
    Every ledger write creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'group', 'expense', 'split')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    actor_id: Optional[str] = Field(
        default=None,
        description="User who triggered the event, when known"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., expense + its splits)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.group_created(group_id, name, creator_id)
        event = AuditEventBuilder.debt_settled(payer_id, creditor_id, amount, 3)
    """

    @staticmethod
    def group_created(
        group_id: str,
        name: str,
        creator_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_CREATED,
            entity_type="group",
            entity_id=group_id,
            actor_id=creator_id,
            correlation_id=correlation_id,
            description=f"Group created: {name}",
            details={"name": name},
        )

    @staticmethod
    def group_renamed(
        group_id: str,
        old_name: str,
        new_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_RENAMED,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Group renamed to: {new_name}",
            details={"old_name": old_name, "new_name": new_name},
        )

    @staticmethod
    def group_deleted(
        group_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description="Group deleted with all members, expenses and splits",
        )

    @staticmethod
    def member_added(
        group_id: str,
        user_id: str,
        role: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_ADDED,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Member {user_id} set as {role}",
            details={"user_id": user_id, "role": role},
        )

    @staticmethod
    def member_removed(
        group_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_REMOVED,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Member {user_id} removed",
            details={"user_id": user_id},
        )

    @staticmethod
    def expense_recorded(
        expense_id: UUID,
        creator_id: str,
        amount: Decimal,
        group_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_RECORDED,
            entity_type="expense",
            entity_id=str(expense_id),
            actor_id=creator_id,
            correlation_id=correlation_id,
            description=f"Shared expense recorded: {amount}",
            details={"amount": str(amount), "group_id": group_id},
        )

    @staticmethod
    def splits_created(
        expense_id: UUID,
        split_count: int,
        total: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLITS_CREATED,
            entity_type="expense",
            entity_id=str(expense_id),
            correlation_id=correlation_id,
            description=f"{split_count} splits created",
            details={"split_count": split_count, "total": str(total)},
        )

    @staticmethod
    def expense_deleted(
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=str(expense_id),
            correlation_id=correlation_id,
            description="Shared expense deleted with its splits",
        )

    @staticmethod
    def split_paid(
        split_id: UUID,
        member_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_PAID,
            entity_type="split",
            entity_id=str(split_id),
            actor_id=member_id,
            correlation_id=correlation_id,
            description=f"Split marked paid: {amount}",
            details={"amount": str(amount)},
        )

    @staticmethod
    def debt_settled(
        payer_id: str,
        creditor_id: str,
        amount: Decimal,
        split_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_SETTLED,
            entity_type="settlement",
            actor_id=payer_id,
            correlation_id=correlation_id,
            description=f"{payer_id} settled {amount} with {creditor_id}",
            details={
                "creditor_id": creditor_id,
                "amount": str(amount),
                "split_count": split_count,
            },
        )

    @staticmethod
    def settlement_empty(
        payer_id: str,
        creditor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_EMPTY,
            entity_type="settlement",
            actor_id=payer_id,
            correlation_id=correlation_id,
            description=f"Nothing pending from {payer_id} to {creditor_id}",
            details={"creditor_id": creditor_id},
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Storage failure during {operation}",
            details={"operation": operation},
            error_message=error_message,
        )
