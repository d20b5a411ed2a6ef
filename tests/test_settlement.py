"""Tests for SettlementCoordinator."""

import asyncio
from decimal import Decimal

from shared_ledger.models.audit import AuditEventType
from shared_ledger.models.ledger import SplitStatus


class TestSettleDebt:
    """Clearing what one payer owes one creditor."""

    async def test_settle_clears_all_pending(self, ledger, record):
        """Test every pending split owed to the creditor is paid at once."""
        await record("alice", 90, {"bob": 30, "carol": 30})
        await record("alice", 40, {"bob": 20})

        cleared = await ledger.settle_debt("bob", "alice")

        assert cleared == Decimal("50")
        assert (await ledger.calculate_balances("bob")).is_settled
        assert (await ledger.calculate_balances("alice")).amount_with("carol") == Decimal("30")

    async def test_settle_is_idempotent(self, ledger, record):
        """Test settling twice clears the amount once, then 0."""
        expense = await record("alice", 30, {"bob": 30})

        assert await ledger.settle_debt("bob", "alice") == Decimal("30")
        after_first = await ledger.expenses.get_splits_for_expense(expense.id)

        assert await ledger.settle_debt("bob", "alice") == Decimal("0")
        after_second = await ledger.expenses.get_splits_for_expense(expense.id)

        assert [(s.id, s.status, s.paid_at) for s in after_second] == [
            (s.id, s.status, s.paid_at) for s in after_first
        ]
        assert after_second[0].status == SplitStatus.PAID

    async def test_nothing_pending(self, ledger):
        assert await ledger.settle_debt("bob", "alice") == Decimal("0")

    async def test_settle_with_self(self, ledger, record):
        """Test settling with yourself leaves your own share pending."""
        expense = await record("alice", 30, {"alice": 15, "bob": 15})
        assert await ledger.settle_debt("alice", "alice") == Decimal("0")

        splits = await ledger.expenses.get_splits_for_expense(expense.id)
        assert all(s.status == SplitStatus.PENDING for s in splits)

    async def test_settlement_is_one_directional(self, ledger, record):
        """Test settle(A, B) leaves what B owes A untouched."""
        await record("bob", 100, {"alice": 100})
        await record("alice", 40, {"bob": 40})

        cleared = await ledger.settle_debt("alice", "bob")

        assert cleared == Decimal("100")
        alice = await ledger.calculate_balances("alice")
        assert alice.amount_with("bob") == Decimal("40")

    async def test_settle_result(self, ledger, record):
        """Test the full result lists every split it paid, with one paid_at."""
        expense = await record("alice", 60, {"bob": 20, "carol": 20})

        result = await ledger.settlement.settle("bob", "alice")

        [bob_split] = [
            s for s in await ledger.expenses.get_splits_for_expense(expense.id)
            if s.member_id == "bob"
        ]
        assert result.settled_split_ids == [bob_split.id]
        assert result.amount_cleared == Decimal("20")
        assert bob_split.status == SplitStatus.PAID
        assert bob_split.paid_at == result.settled_at
        assert not result.nothing_to_settle

    async def test_overlapping_settlements_do_not_double_count(self, ledger, record):
        await record("alice", 30, {"bob": 10})
        await record("alice", 30, {"bob": 20})

        results = await asyncio.gather(
            ledger.settle_debt("bob", "alice"),
            ledger.settle_debt("bob", "alice"),
        )
        assert sum(results) == Decimal("30")

    async def test_settlement_is_audited(self, ledger, audit_storage, record):
        await record("alice", 30, {"bob": 30})

        await ledger.settle_debt("bob", "alice")
        await ledger.settle_debt("bob", "alice")

        types = [e.event_type for e in await audit_storage.get_recent_events()]
        assert AuditEventType.DEBT_SETTLED in types
        assert AuditEventType.SETTLEMENT_EMPTY in types
