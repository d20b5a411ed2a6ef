"""
Balance Engine

Derives, for one user, the net amount they owe or are owed by every
counterparty, from pending splits only.

DESIGN DECISION: Both directions are netted into ONE map keyed by
counterparty. If A owes B 100 on one expense and B owes A 40 on another,
A sees a single "owes B 60", never two entries that contradict each other.

Read-only. Under concurrent writes the result may be a slightly stale
snapshot; no locking is taken.
"""

from decimal import Decimal

from shared_ledger.expenses import LedgerStore
from shared_ledger.models.ledger import (
    BalanceSummary,
    CounterpartyBalance,
    SplitStatus,
)


class BalanceEngine:
    """Computes per-counterparty net balances."""

    def __init__(self, ledger: LedgerStore):
        self._ledger = ledger

    async def calculate_balances(self, user_id: str) -> BalanceSummary:
        """
        Net the user's pending obligations per counterparty.

        Positive net: the counterparty owes the user (goes to `owed`).
        Negative net: the user owes the counterparty (goes to `owes`).
        Zero net: dropped.
        """
        nets: dict[str, Decimal] = {}

        # Debts the user owes, grouped by who paid
        owes_rows = await self._ledger.get_splits_for_member(
            user_id, status=SplitStatus.PENDING
        )
        for row in owes_rows:
            creditor = row.expense.creator_id
            if creditor == user_id:
                continue
            nets[creditor] = nets.get(creditor, Decimal("0")) - row.split.amount

        # Amounts owed to the user, grouped by who owes
        owed_rows = await self._ledger.get_splits_for_creator(
            user_id, status=SplitStatus.PENDING
        )
        for row in owed_rows:
            debtor = row.split.member_id
            if debtor == user_id:
                continue
            nets[debtor] = nets.get(debtor, Decimal("0")) + row.split.amount

        summary = BalanceSummary(user_id=user_id)
        for counterparty, net in nets.items():
            if net < 0:
                summary.owes.append(CounterpartyBalance(counterparty_id=counterparty, amount=-net))
            elif net > 0:
                summary.owed.append(CounterpartyBalance(counterparty_id=counterparty, amount=net))

        summary.net_balance = sum(nets.values(), Decimal("0"))
        return summary
