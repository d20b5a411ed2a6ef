"""
Row Codecs

The single boundary between the in-memory models and persisted rows.
Persisted columns are snake_case strings in a fixed order; every backend
that stores rows (Google Sheets today) goes through these functions and
nowhere else.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from shared_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from shared_ledger.models.ledger import (
    ExpenseSplit,
    Group,
    MemberRole,
    Membership,
    SharedExpense,
    SplitStatus,
    SplitType,
)


GROUP_COLUMNS = [
    "id",
    "name",
    "created_by",
    "created_at",
    "updated_at",
]

MEMBER_COLUMNS = [
    "group_id",
    "member_id",
    "role",
    "joined_at",
]

EXPENSE_COLUMNS = [
    "id",
    "group_id",
    "creator_id",
    "amount",
    "category",
    "description",
    "split_type",
    "created_at",
    "updated_at",
]

SPLIT_COLUMNS = [
    "id",
    "expense_id",
    "member_id",
    "amount",
    "status",
    "paid_at",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "actor_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

# Column positions used by the sheets backend for targeted updates
SPLIT_STATUS_COLUMN = SPLIT_COLUMNS.index("status") + 1
SPLIT_PAID_AT_COLUMN = SPLIT_COLUMNS.index("paid_at") + 1


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows and empty cells."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _dt(value: str) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# =============================================================================
# Groups
# =============================================================================

def group_to_row(group: Group) -> list:
    return [
        group.id,
        group.name,
        group.created_by,
        group.created_at.isoformat(),
        group.updated_at.isoformat(),
    ]


def row_to_group(row: list) -> Group:
    return Group(
        id=_safe_get(row, 0),
        name=_safe_get(row, 1),
        created_by=_safe_get(row, 2),
        created_at=datetime.fromisoformat(_safe_get(row, 3)),
        updated_at=datetime.fromisoformat(_safe_get(row, 4)),
    )


# =============================================================================
# Memberships
# =============================================================================

def membership_to_row(membership: Membership) -> list:
    return [
        membership.group_id,
        membership.user_id,
        membership.role.value,
        membership.joined_at.isoformat(),
    ]


def row_to_membership(row: list) -> Membership:
    return Membership(
        group_id=_safe_get(row, 0),
        user_id=_safe_get(row, 1),
        role=MemberRole(_safe_get(row, 2, MemberRole.MEMBER.value)),
        joined_at=datetime.fromisoformat(_safe_get(row, 3)),
    )


# =============================================================================
# Shared expenses
# =============================================================================

def expense_to_row(expense: SharedExpense) -> list:
    return [
        str(expense.id),
        expense.group_id or "",
        expense.creator_id,
        str(expense.amount),
        expense.category,
        expense.description,
        expense.split_type.value,
        expense.created_at.isoformat(),
        expense.updated_at.isoformat(),
    ]


def row_to_expense(row: list) -> SharedExpense:
    return SharedExpense(
        id=UUID(_safe_get(row, 0)),
        group_id=_safe_get(row, 1) or None,
        creator_id=_safe_get(row, 2),
        amount=Decimal(_safe_get(row, 3)),
        category=_safe_get(row, 4),
        description=_safe_get(row, 5),
        split_type=SplitType(_safe_get(row, 6, SplitType.EQUAL.value)),
        created_at=datetime.fromisoformat(_safe_get(row, 7)),
        updated_at=datetime.fromisoformat(_safe_get(row, 8)),
    )


# =============================================================================
# Splits
# =============================================================================

def split_to_row(split: ExpenseSplit) -> list:
    return [
        str(split.id),
        str(split.expense_id),
        split.member_id,
        str(split.amount),
        split.status.value,
        split.paid_at.isoformat() if split.paid_at else "",
        split.created_at.isoformat(),
    ]


def row_to_split(row: list) -> ExpenseSplit:
    return ExpenseSplit(
        id=UUID(_safe_get(row, 0)),
        expense_id=UUID(_safe_get(row, 1)),
        member_id=_safe_get(row, 2),
        amount=Decimal(_safe_get(row, 3)),
        status=SplitStatus(_safe_get(row, 4, SplitStatus.PENDING.value)),
        paid_at=_dt(_safe_get(row, 5)),
        created_at=datetime.fromisoformat(_safe_get(row, 6)),
    )


# =============================================================================
# Audit events
# =============================================================================

def event_to_row(event: AuditEvent) -> list:
    return [
        str(event.event_id),
        event.timestamp.isoformat(),
        event.event_type.value,
        event.severity.value,
        event.entity_type or "",
        event.entity_id or "",
        event.actor_id or "",
        str(event.correlation_id) if event.correlation_id else "",
        event.description,
        json.dumps(event.details) if event.details else "",
        event.error_message or "",
    ]


def row_to_event(row: list) -> AuditEvent:
    return AuditEvent(
        event_id=UUID(_safe_get(row, 0)),
        timestamp=datetime.fromisoformat(_safe_get(row, 1)),
        event_type=AuditEventType(_safe_get(row, 2)),
        severity=AuditSeverity(_safe_get(row, 3)),
        entity_type=_safe_get(row, 4) or None,
        entity_id=_safe_get(row, 5) or None,
        actor_id=_safe_get(row, 6) or None,
        correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
        description=_safe_get(row, 8),
        details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
        error_message=_safe_get(row, 10) or None,
    )
