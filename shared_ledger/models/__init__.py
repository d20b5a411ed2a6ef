"""
Data Models Package

This package contains all Pydantic models used by the shared expense ledger.
All data flowing through the ledger must conform to these schemas.
"""

from shared_ledger.models.ledger import (
    BalanceSummary,
    CounterpartyBalance,
    ExpenseSplit,
    Group,
    MemberRole,
    Membership,
    NewExpense,
    SettlementResult,
    SharedExpense,
    SplitShare,
    SplitStatus,
    SplitType,
    SplitWithExpense,
    ValidationIssue,
    ValidationResult,
    utcnow,
)
from shared_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "BalanceSummary",
    "CounterpartyBalance",
    "ExpenseSplit",
    "Group",
    "MemberRole",
    "Membership",
    "NewExpense",
    "SettlementResult",
    "SharedExpense",
    "SplitShare",
    "SplitStatus",
    "SplitType",
    "SplitWithExpense",
    "ValidationIssue",
    "ValidationResult",
    "utcnow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
