"""
Ledger Input Validation

DESIGN DECISION: Inputs are checked before anything touches storage.
Each check produces a ValidationIssue instead of raising immediately, so
the caller sees every problem at once. Components turn a result with
errors into a LedgerValidationError.

Issue severities:
- error: the write is refused
- warning: recorded for the audit trail, the write goes ahead

IMPORTANT: Validation NEVER silently fixes amounts.
"""

from decimal import Decimal
from typing import Optional

from shared_ledger.config import get_settings
from shared_ledger.config.settings import LedgerSettings
from shared_ledger.models.ledger import (
    NewExpense,
    SplitShare,
    ValidationIssue,
    ValidationResult,
)


class LedgerValidationError(ValueError):
    """Raised when a ledger input fails validation."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))


class LedgerValidator:
    """Validates group, expense and split inputs."""

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def validate_group_name(self, name: Optional[str]) -> ValidationResult:
        issues = []
        stripped = (name or "").strip()

        if not stripped:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Group name is required",
            ))
        elif len(stripped) > self._settings.max_group_name_length:
            issues.append(ValidationIssue(
                field="name",
                issue_type="too_long",
                message=(
                    f"Group name must be at most "
                    f"{self._settings.max_group_name_length} characters"
                ),
            ))

        return ValidationResult(issues=issues)

    def validate_user_id(self, user_id: Optional[str], field: str = "user_id") -> ValidationResult:
        issues = []
        if not (user_id or "").strip():
            issues.append(ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{field} is required",
            ))
        return ValidationResult(issues=issues)

    def validate_new_expense(self, data: NewExpense) -> ValidationResult:
        """
        Checks:
        - Amount is a finite number greater than zero
        - Category is present (taxonomy is NOT checked)
        """
        issues = []

        if not data.amount.is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be a finite number",
            ))
        elif data.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            ))

        if not data.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is empty",
                severity="warning",
            ))

        return ValidationResult(issues=issues)

    def validate_splits(
        self,
        expense_amount: Decimal,
        shares: list[SplitShare],
    ) -> ValidationResult:
        """
        Checks:
        - Every share names a member and has a finite, non-negative amount
        - Duplicate members (warning)
        - Share total vs. expense amount (error only in strict mode)
        """
        issues = []
        seen = set()

        for position, share in enumerate(shares):
            if not share.member_id.strip():
                issues.append(ValidationIssue(
                    field=f"splits[{position}].member_id",
                    issue_type="missing",
                    message="Every split needs a member",
                ))
            if not share.amount.is_finite() or share.amount < 0:
                issues.append(ValidationIssue(
                    field=f"splits[{position}].amount",
                    issue_type="invalid_value",
                    message="Split amounts must be zero or more",
                ))
            if share.member_id in seen:
                issues.append(ValidationIssue(
                    field=f"splits[{position}].member_id",
                    issue_type="duplicate",
                    message=f"Member {share.member_id} appears more than once",
                    severity="warning",
                ))
            seen.add(share.member_id)

        if any(issue.severity == "error" for issue in issues):
            return ValidationResult(issues=issues)

        total = sum((share.amount for share in shares), Decimal("0"))
        if total != expense_amount:
            issues.append(ValidationIssue(
                field="splits",
                issue_type="total_mismatch",
                message=f"Splits total {total} but expense amount is {expense_amount}",
                severity="error" if self._settings.strict_split_totals else "warning",
            ))

        return ValidationResult(issues=issues)

    @staticmethod
    def ensure_valid(result: ValidationResult) -> None:
        """Raise LedgerValidationError if the result has errors."""
        if result.has_errors:
            raise LedgerValidationError(
                [issue for issue in result.issues if issue.severity == "error"]
            )
