"""Tests for LedgerStore."""

from decimal import Decimal
from uuid import uuid4

import pytest

from shared_ledger.models.ledger import NewExpense, SplitShare, SplitStatus
from shared_ledger.validation import LedgerValidationError


class TestRecordExpense:
    """Recording expenses and their splits."""

    async def test_record_expense(self, ledger):
        """Test the stored expense mirrors the input."""
        expense = await ledger.expenses.record_expense(
            "alice",
            NewExpense(amount=Decimal("90"), category="food", description="Dinner"),
        )
        assert expense.creator_id == "alice"
        assert expense.amount == Decimal("90")
        assert expense.group_id is None
        assert await ledger.expenses.get_expense(expense.id) == expense

    async def test_zero_amount_is_rejected(self, ledger, storage):
        """Test that a non-positive amount never reaches storage."""
        with pytest.raises(LedgerValidationError):
            await ledger.expenses.record_expense(
                "alice", NewExpense(amount=Decimal("0"), category="food")
            )
        assert await storage.list_expenses(creator_id="alice") == []

    async def test_blank_creator_is_rejected(self, ledger):
        with pytest.raises(LedgerValidationError):
            await ledger.expenses.record_expense(
                " ", NewExpense(amount=Decimal("5"), category="food")
            )

    async def test_split_amounts_stored_exactly(self, ledger, record):
        """Test that split amounts are stored as given, not recomputed."""
        expense = await record("alice", 100, {"bob": "33.33", "carol": "33.33"})

        splits = await ledger.expenses.get_splits_for_expense(expense.id)
        assert sorted((s.member_id, s.amount) for s in splits) == [
            ("bob", Decimal("33.33")),
            ("carol", Decimal("33.33")),
        ]
        assert all(s.status == SplitStatus.PENDING for s in splits)
        assert all(s.paid_at is None for s in splits)

    async def test_create_splits_for_unknown_expense(self, ledger):
        shares = [SplitShare(member_id="bob", amount=Decimal("10"))]
        assert await ledger.expenses.create_splits(uuid4(), shares) == []

    async def test_create_splits_with_no_shares(self, ledger):
        expense = await ledger.expenses.record_expense(
            "alice", NewExpense(amount=Decimal("10"), category="food")
        )
        assert await ledger.expenses.create_splits(expense.id, []) == []


class TestListing:
    """Listing expenses by group, creator and participant."""

    async def test_group_expenses_most_recent_first(self, ledger, record):
        group = await ledger.groups.create_group("alice", "Trip")
        first = await record("alice", 10, {"bob": 5}, group_id=group.id)
        second = await record("bob", 20, {"alice": 10}, group_id=group.id)
        await record("alice", 30, {"bob": 15})

        expenses = await ledger.expenses.list_expenses_for_group(group.id)
        assert [e.id for e in expenses] == [second.id, first.id]

    async def test_list_by_creator(self, ledger, record):
        mine = await record("alice", 10, {"bob": 5})
        await record("bob", 20, {"alice": 10})

        expenses = await ledger.expenses.list_expenses_by_creator("alice")
        assert [e.id for e in expenses] == [mine.id]

    async def test_list_for_participant_includes_paid(self, ledger, record):
        """Test participant listing ignores split status."""
        paid = await record("alice", 10, {"bob": 10})
        pending = await record("carol", 20, {"bob": 10})
        await record("carol", 20, {"dave": 10})
        await ledger.expenses.mark_split_paid_by_expense_and_member(paid.id, "bob")

        expenses = await ledger.expenses.list_expenses_for_participant("bob")
        assert {e.id for e in expenses} == {paid.id, pending.id}

    async def test_list_for_non_participant(self, ledger):
        assert await ledger.expenses.list_expenses_for_participant("nobody") == []

    async def test_splits_for_member_are_joined(self, ledger, record):
        expense = await record("alice", 30, {"bob": 15})

        rows = await ledger.expenses.get_splits_for_member("bob")
        assert len(rows) == 1
        assert rows[0].expense.id == expense.id
        assert rows[0].split.member_id == "bob"

    async def test_splits_for_creator_filter_status(self, ledger, record):
        expense = await record("alice", 30, {"bob": 15, "carol": 15})
        await ledger.expenses.mark_split_paid_by_expense_and_member(expense.id, "bob")

        pending = await ledger.expenses.get_splits_for_creator(
            "alice", status=SplitStatus.PENDING
        )
        assert [row.split.member_id for row in pending] == ["carol"]
        assert await ledger.expenses.get_splits_for_creator("nobody") == []


class TestMarkPaid:
    """Paying individual splits."""

    async def test_mark_split_paid(self, ledger, record):
        """Test the pending -> paid transition sets paid_at."""
        expense = await record("alice", 30, {"bob": 30})
        [split] = await ledger.expenses.get_splits_for_expense(expense.id)

        paid = await ledger.expenses.mark_split_paid(split.id)

        assert paid.status == SplitStatus.PAID
        assert paid.paid_at is not None
        assert paid.amount == split.amount

    async def test_mark_split_paid_is_idempotent(self, ledger, record):
        """Test paying twice keeps the first paid_at."""
        expense = await record("alice", 30, {"bob": 30})
        [split] = await ledger.expenses.get_splits_for_expense(expense.id)

        first = await ledger.expenses.mark_split_paid(split.id)
        second = await ledger.expenses.mark_split_paid(split.id)

        assert second.status == SplitStatus.PAID
        assert second.paid_at == first.paid_at

    async def test_mark_unknown_split(self, ledger):
        assert await ledger.expenses.mark_split_paid(uuid4()) is None

    async def test_mark_paid_by_expense_and_member(self, ledger, record):
        expense = await record("alice", 30, {"bob": 15, "carol": 15})

        paid = await ledger.expenses.mark_split_paid_by_expense_and_member(
            expense.id, "carol"
        )

        assert paid.member_id == "carol"
        statuses = {
            s.member_id: s.status
            for s in await ledger.expenses.get_splits_for_expense(expense.id)
        }
        assert statuses == {"bob": SplitStatus.PENDING, "carol": SplitStatus.PAID}

    async def test_mark_paid_by_member_with_two_splits(self, ledger):
        """Test each call pays the member's next pending split."""
        expense, _ = await ledger.record_shared_expense(
            "alice",
            NewExpense(amount=Decimal("30"), category="food"),
            [
                SplitShare(member_id="bob", amount=Decimal("10")),
                SplitShare(member_id="bob", amount=Decimal("5")),
            ],
        )

        first = await ledger.expenses.mark_split_paid_by_expense_and_member(expense.id, "bob")
        second = await ledger.expenses.mark_split_paid_by_expense_and_member(expense.id, "bob")
        third = await ledger.expenses.mark_split_paid_by_expense_and_member(expense.id, "bob")

        assert first.id != second.id
        assert third.status == SplitStatus.PAID
        splits = await ledger.expenses.get_splits_for_expense(expense.id)
        assert [s.status for s in splits] == [SplitStatus.PAID, SplitStatus.PAID]

    async def test_mark_paid_by_expense_and_unknown_member(self, ledger, record):
        expense = await record("alice", 30, {"bob": 30})
        result = await ledger.expenses.mark_split_paid_by_expense_and_member(
            expense.id, "zed"
        )
        assert result is None


class TestDeleteExpense:

    async def test_delete_cascades_to_splits(self, ledger, storage, record):
        expense = await record("alice", 30, {"bob": 15, "carol": 15})

        assert await ledger.expenses.delete_expense(expense.id)

        assert await ledger.expenses.get_expense(expense.id) is None
        assert await storage.list_splits(expense_ids=[expense.id]) == []
        assert await ledger.expenses.get_splits_for_member("bob") == []

    async def test_delete_unknown_expense(self, ledger):
        assert await ledger.expenses.delete_expense(uuid4()) is False
