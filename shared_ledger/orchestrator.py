"""
Main Orchestrator for the Shared Expense Ledger

This module ties together all the components and defines the
end-to-end flows the surrounding assistant calls:
1. Groups (create → add members → ...)
2. Shared expense (validate → record expense → create splits)
3. Balances (pending splits → net per counterparty)
4. Settlement (payer → creditor, one batch)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every component talks to the SAME storage instance
- An expense is never left behind without the splits it was recorded with
- Every write is audited under one correlation id per user action
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from shared_ledger.audit import AuditLogger, configure_logging, create_correlation_id
from shared_ledger.balances import BalanceEngine
from shared_ledger.config import Settings, get_settings
from shared_ledger.expenses import LedgerStore
from shared_ledger.groups import GroupRegistry
from shared_ledger.models.ledger import (
    BalanceSummary,
    ExpenseSplit,
    NewExpense,
    SharedExpense,
    SplitShare,
)
from shared_ledger.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from shared_ledger.settlement import SettlementCoordinator
from shared_ledger.validation import LedgerValidator


logger = structlog.get_logger(__name__)


class SharedLedger:
    """
    Facade over the four ledger components.

    Components are exposed as attributes for direct use:
        ledger.groups, ledger.expenses, ledger.balances, ledger.settlement
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger

        self.groups = GroupRegistry(storage, self._validator, audit_logger)
        self.expenses = LedgerStore(storage, self._validator, audit_logger)
        self.balances = BalanceEngine(self.expenses)
        self.settlement = SettlementCoordinator(storage, self.expenses, audit_logger)

    @property
    def storage(self) -> LedgerStorageInterface:
        return self._storage

    @property
    def audit_logger(self) -> Optional[AuditLogger]:
        return self._audit_logger

    async def record_shared_expense(
        self,
        creator_id: str,
        data: NewExpense,
        shares: list[SplitShare],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[SharedExpense, list[ExpenseSplit]]:
        """
        Record an expense together with its splits.

        Both inputs are validated before anything is written. If the split
        write fails, the expense is deleted again and the error re-raised.

        Returns:
            (expense, splits)
        """
        correlation_id = correlation_id or create_correlation_id()

        # Nothing is written unless both inputs are valid
        self._validator.ensure_valid(self._validator.validate_new_expense(data))
        self._validator.ensure_valid(
            self._validator.validate_splits(data.amount, shares)
        )

        expense = await self.expenses.record_expense(creator_id, data, correlation_id)
        try:
            splits = await self.expenses.create_splits(expense.id, shares, correlation_id)
        except StorageError:
            logger.error(
                "split_write_failed_rolling_back",
                expense_id=str(expense.id),
                correlation_id=str(correlation_id),
            )
            await self.expenses.delete_expense(expense.id, correlation_id)
            raise

        return expense, splits

    async def calculate_balances(self, user_id: str) -> BalanceSummary:
        return await self.balances.calculate_balances(user_id)

    async def settle_debt(
        self,
        payer_id: str,
        creditor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        return await self.settlement.settle_debt(
            payer_id,
            creditor_id,
            correlation_id or create_correlation_id(),
        )


def create_ledger_components(
    settings: Optional[Settings] = None,
) -> SharedLedger:
    """
    Factory function to build a fully wired ledger from configuration.

    LEDGER_STORAGE_BACKEND selects the backend:
    - memory: in-process dictionaries (tests, single process)
    - google_sheets: spreadsheet configured by GOOGLE_SHEETS_*

    Each backend gets an audit trail stored alongside the ledger.
    """
    settings = settings or get_settings()
    ledger_settings = settings.ledger
    configure_logging(settings.app.log_level)

    audit_storage: Optional[AuditStorageInterface]

    if ledger_settings.storage_backend == "google_sheets":
        sheets_client = GoogleSheetsClient(settings.google_sheets)
        storage: LedgerStorageInterface = GoogleSheetsLedgerStorage(
            sheets_client,
            group_id_length=ledger_settings.group_id_length,
        )
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        storage = InMemoryLedgerStorage(group_id_length=ledger_settings.group_id_length)
        audit_storage = InMemoryAuditStorage()

    return SharedLedger(
        storage=storage,
        validator=LedgerValidator(ledger_settings),
        audit_logger=AuditLogger(audit_storage),
    )
