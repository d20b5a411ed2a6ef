"""
Core Data Models for the Shared Expense Ledger

These models define the strict schemas for everything the ledger stores
or derives. They are designed to:
1. Enforce type safety at runtime
2. Keep money as Decimal end to end (never float)
3. Be serializable for storage and logging

DESIGN DECISION: Records are created by the storage backend, which owns
id generation. Callers hand in NewExpense / SplitShare inputs and get
fully-populated records back.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class MemberRole(str, Enum):
    """Role of a user inside a group."""
    OWNER = "owner"
    MEMBER = "member"


class SplitType(str, Enum):
    """
    How the expense was divided.

    This is only a stored hint. The per-member share amounts are computed
    upstream and handed to the ledger as-is.
    """
    EQUAL = "equal"
    CUSTOM = "custom"


class SplitStatus(str, Enum):
    """
    Status of a single obligation.

    The only transition is PENDING -> PAID. There is no way back.
    """
    PENDING = "pending"
    PAID = "paid"


# =============================================================================
# PERSISTED ENTITIES
# =============================================================================

class Group(BaseModel):
    """A named pool of shared expenses."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Short opaque token generated by the store"
    )
    name: str = Field(
        ...,
        min_length=1,
        description="Display name of the group"
    )
    created_by: str = Field(
        ...,
        min_length=1,
        description="User id of the creator (also the owner)"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Membership(BaseModel):
    """
    A user's place in a group roster.

    (group_id, user_id) is unique. This is the only way a user
    appears in a group.
    """

    group_id: str
    user_id: str = Field(..., min_length=1)
    role: MemberRole = MemberRole.MEMBER
    joined_at: datetime = Field(default_factory=utcnow)


class SharedExpense(BaseModel):
    """
    Something one user paid for on behalf of others.

    NOTE: The sum of this expense's splits is NOT required to equal
    `amount`. Callers may record partial splits.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    group_id: Optional[str] = Field(
        default=None,
        description="Owning group, or None for an ad hoc split"
    )
    creator_id: str = Field(
        ...,
        min_length=1,
        description="User who paid"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Total paid, in the caller's currency"
    )
    category: str
    description: str = ""
    split_type: SplitType = SplitType.EQUAL
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ExpenseSplit(BaseModel):
    """
    One member's obligation on one shared expense.

    Created once in bulk with its expense; afterwards only the status
    changes.
    """

    id: UUID = Field(default_factory=uuid4)
    expense_id: UUID
    member_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    status: SplitStatus = SplitStatus.PENDING
    paid_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_pending(self) -> bool:
        return self.status == SplitStatus.PENDING


# =============================================================================
# INPUTS
# =============================================================================

class NewExpense(BaseModel):
    """Caller-supplied fields for recording a shared expense."""
    model_config = ConfigDict(str_strip_whitespace=True)

    group_id: Optional[str] = None
    amount: Decimal
    category: str = "other"
    description: str = ""
    split_type: SplitType = SplitType.EQUAL


class SplitShare(BaseModel):
    """One member's share, as computed by the caller."""

    member_id: str
    amount: Decimal


# =============================================================================
# DERIVED VIEWS (never persisted)
# =============================================================================

class SplitWithExpense(BaseModel):
    """A split joined with its owning expense."""

    split: ExpenseSplit
    expense: SharedExpense


class CounterpartyBalance(BaseModel):
    """Unsigned amount between the user and one counterparty."""

    counterparty_id: str
    amount: Decimal


class BalanceSummary(BaseModel):
    """
    Result of a balance calculation for one user.

    owes: counterparties the user owes money to
    owed: counterparties who owe the user money
    net_balance: positive means the user is owed overall,
                 negative means the user owes overall
    """

    user_id: str
    owes: list[CounterpartyBalance] = Field(default_factory=list)
    owed: list[CounterpartyBalance] = Field(default_factory=list)
    net_balance: Decimal = Decimal("0")

    @property
    def total_owes(self) -> Decimal:
        return sum((entry.amount for entry in self.owes), Decimal("0"))

    @property
    def total_owed(self) -> Decimal:
        return sum((entry.amount for entry in self.owed), Decimal("0"))

    @property
    def is_settled(self) -> bool:
        """True when the user has no open obligations in either direction."""
        return not self.owes and not self.owed

    def amount_with(self, counterparty_id: str) -> Decimal:
        """Signed net with one counterparty (0 if none)."""
        for entry in self.owed:
            if entry.counterparty_id == counterparty_id:
                return entry.amount
        for entry in self.owes:
            if entry.counterparty_id == counterparty_id:
                return -entry.amount
        return Decimal("0")


class SettlementResult(BaseModel):
    """Outcome of clearing the debt from one payer to one creditor."""

    payer_id: str
    creditor_id: str
    amount_cleared: Decimal = Decimal("0")
    settled_split_ids: list[UUID] = Field(default_factory=list)
    settled_at: Optional[datetime] = None

    @property
    def nothing_to_settle(self) -> bool:
        return not self.settled_split_ids


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue."""

    field: str = Field(..., description="Field with the issue")
    issue_type: str = Field(..., description="Type of issue")
    message: str = Field(..., description="Human-readable message")
    severity: str = Field(
        default="error",
        description="'error' blocks the write, 'warning' is informational"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one ledger input."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def is_valid(self) -> bool:
        return not self.has_errors
