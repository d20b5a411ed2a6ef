"""Balance calculation package."""

from shared_ledger.balances.engine import BalanceEngine

__all__ = ["BalanceEngine"]
