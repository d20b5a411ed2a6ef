"""Input validation package."""

from shared_ledger.validation.validator import LedgerValidationError, LedgerValidator

__all__ = ["LedgerValidationError", "LedgerValidator"]
