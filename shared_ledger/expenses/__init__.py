"""Shared expense ledger package."""

from shared_ledger.expenses.store import LedgerStore

__all__ = ["LedgerStore"]
