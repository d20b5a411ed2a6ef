"""
Shared fixtures.

Every test runs against a fresh InMemoryLedgerStorage. The Google Sheets
backend is exercised through FakeSheetsClient, which mimics the handful
of gspread.Worksheet calls the backend makes.
"""

from decimal import Decimal

import pytest
from gspread.utils import a1_to_rowcol

from shared_ledger.audit import AuditLogger
from shared_ledger.config.settings import LedgerSettings
from shared_ledger.models.ledger import NewExpense, SplitShare
from shared_ledger.orchestrator import SharedLedger
from shared_ledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage
from shared_ledger.services.storage.rows import (
    AUDIT_COLUMNS,
    EXPENSE_COLUMNS,
    GROUP_COLUMNS,
    MEMBER_COLUMNS,
    SPLIT_COLUMNS,
)
from shared_ledger.validation import LedgerValidator


class FakeWorksheet:
    """In-memory stand-in for gspread.Worksheet."""

    def __init__(self, columns: list[str]):
        self.rows = [list(columns)]
        self.batch_calls = 0

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(v) for v in values])

    def append_rows(self, values, value_input_option=None):
        for row in values:
            self.append_row(row)

    def delete_rows(self, start_index, end_index=None):
        end_index = end_index or start_index
        del self.rows[start_index - 1:end_index]

    def batch_update(self, data, value_input_option=None):
        self.batch_calls += 1
        for item in data:
            row, col = a1_to_rowcol(item["range"].split(":")[0])
            for row_offset, values in enumerate(item["values"]):
                target = self.rows[row - 1 + row_offset]
                for col_offset, value in enumerate(values):
                    idx = col - 1 + col_offset
                    while len(target) <= idx:
                        target.append("")
                    target[idx] = str(value)


class LostResponseWorksheet(FakeWorksheet):
    """Applies the first batch_update, then fails as if the response was lost."""

    def __init__(self, columns: list[str]):
        super().__init__(columns)
        self.failures_left = 1

    def batch_update(self, data, value_input_option=None):
        super().batch_update(data, value_input_option)
        if self.failures_left:
            self.failures_left -= 1
            raise TimeoutError("response lost")


class FakeSheetsClient:
    """Same surface as GoogleSheetsClient, without the network."""

    def __init__(self):
        self.groups = FakeWorksheet(GROUP_COLUMNS)
        self.members = FakeWorksheet(MEMBER_COLUMNS)
        self.expenses = FakeWorksheet(EXPENSE_COLUMNS)
        self.splits = FakeWorksheet(SPLIT_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_groups_sheet(self):
        return self.groups

    def get_members_sheet(self):
        return self.members

    def get_expenses_sheet(self):
        return self.expenses

    def get_splits_sheet(self):
        return self.splits

    def get_audit_sheet(self):
        return self.audit


@pytest.fixture
def ledger_settings():
    return LedgerSettings(
        storage_backend="memory",
        group_id_length=8,
        strict_split_totals=False,
    )


@pytest.fixture
def validator(ledger_settings):
    return LedgerValidator(ledger_settings)


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger(storage, validator, audit_logger):
    return SharedLedger(storage, validator, audit_logger)


@pytest.fixture
def sheets_client():
    return FakeSheetsClient()


@pytest.fixture
def record(ledger):
    """Record an expense paid by `creator_id` with {member_id: amount} splits."""

    async def _record(creator_id, amount, shares, group_id=None, category="food"):
        expense, _ = await ledger.record_shared_expense(
            creator_id,
            NewExpense(
                group_id=group_id,
                amount=Decimal(str(amount)),
                category=category,
            ),
            [
                SplitShare(member_id=member_id, amount=Decimal(str(share)))
                for member_id, share in shares.items()
            ],
        )
        return expense

    return _record


@pytest.fixture
def lost_response_splits(sheets_client):
    """Swap in a splits sheet whose first batch write loses its response."""
    sheets_client.splits = LostResponseWorksheet(SPLIT_COLUMNS)
    return sheets_client.splits
