"""Debt settlement package."""

from shared_ledger.settlement.coordinator import SettlementCoordinator

__all__ = ["SettlementCoordinator"]
