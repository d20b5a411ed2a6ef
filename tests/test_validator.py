"""Tests for LedgerValidator."""

from decimal import Decimal

import pytest

from shared_ledger.config.settings import LedgerSettings
from shared_ledger.models.ledger import NewExpense, SplitShare
from shared_ledger.validation import LedgerValidationError, LedgerValidator


def shares(**amounts):
    return [SplitShare(member_id=m, amount=Decimal(a)) for m, a in amounts.items()]


class TestGroupNameValidation:

    def test_blank_name_is_an_error(self, validator):
        result = validator.validate_group_name("   ")
        assert result.has_errors
        assert result.issues[0].issue_type == "missing"

    def test_none_name_is_an_error(self, validator):
        assert validator.validate_group_name(None).has_errors

    def test_long_name_is_an_error(self):
        validator = LedgerValidator(LedgerSettings(max_group_name_length=5))
        result = validator.validate_group_name("Weekend trip")
        assert result.issues[0].issue_type == "too_long"

    def test_valid_name(self, validator):
        assert validator.validate_group_name("Trip").is_valid


class TestExpenseValidation:

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_amount_is_an_error(self, validator, amount):
        result = validator.validate_new_expense(
            NewExpense(amount=Decimal(amount), category="food")
        )
        assert result.has_errors
        assert result.issues[0].field == "amount"

    def test_nan_amount_is_an_error(self, validator):
        result = validator.validate_new_expense(
            NewExpense(amount=Decimal("NaN"), category="food")
        )
        assert result.has_errors

    def test_empty_category_is_only_a_warning(self, validator):
        result = validator.validate_new_expense(
            NewExpense(amount=Decimal("10"), category="")
        )
        assert result.is_valid
        assert result.issues[0].severity == "warning"


class TestSplitValidation:

    def test_partial_split_is_a_warning_by_default(self, validator):
        """Splits that don't add up are allowed unless strict mode is on."""
        result = validator.validate_splits(Decimal("90"), shares(bob="30", carol="30"))
        assert result.is_valid
        assert result.issues[0].issue_type == "total_mismatch"

    def test_partial_split_is_an_error_in_strict_mode(self):
        validator = LedgerValidator(LedgerSettings(strict_split_totals=True))
        result = validator.validate_splits(Decimal("90"), shares(bob="30", carol="30"))
        assert result.has_errors

    def test_exact_split_in_strict_mode(self):
        validator = LedgerValidator(LedgerSettings(strict_split_totals=True))
        result = validator.validate_splits(
            Decimal("90"), shares(alice="30", bob="30", carol="30")
        )
        assert result.issues == []

    def test_negative_share_is_an_error(self, validator):
        result = validator.validate_splits(Decimal("10"), shares(bob="-1"))
        assert result.has_errors

    def test_missing_member_is_an_error(self, validator):
        result = validator.validate_splits(
            Decimal("10"), [SplitShare(member_id=" ", amount=Decimal("10"))]
        )
        assert result.has_errors

    def test_duplicate_member_is_a_warning(self, validator):
        result = validator.validate_splits(
            Decimal("20"),
            [
                SplitShare(member_id="bob", amount=Decimal("10")),
                SplitShare(member_id="bob", amount=Decimal("10")),
            ],
        )
        assert result.is_valid
        assert any(issue.issue_type == "duplicate" for issue in result.issues)


class TestEnsureValid:

    def test_raises_with_errors_only(self, validator):
        result = validator.validate_new_expense(NewExpense(amount=Decimal("0"), category=""))
        with pytest.raises(LedgerValidationError) as exc_info:
            validator.ensure_valid(result)
        assert [issue.field for issue in exc_info.value.issues] == ["amount"]

    def test_validation_error_is_a_value_error(self):
        assert issubclass(LedgerValidationError, ValueError)
