"""Group registry package."""

from shared_ledger.groups.registry import GroupRegistry

__all__ = ["GroupRegistry"]
