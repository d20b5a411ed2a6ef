"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a persistent backend because:
1. Non-technical users can view the ledger directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for household groups)
- No multi-sheet transactions (we handle this with careful ordering:
  children are deleted before parents, parents are written before children)
- Limited query capabilities (we filter in Python)

Settlement relies on batch_update, which the Sheets API applies as a
single request, so a batch of splits is marked paid all-or-nothing.

Retries are only attached to reads and idempotent writes. Creates are
never retried: a retried append could duplicate a financial record.
"""

from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID, uuid4

import gspread
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shared_ledger.config import get_settings
from shared_ledger.config.settings import GoogleSheetsSettings
from shared_ledger.models.audit import AuditEvent
from shared_ledger.models.ledger import (
    ExpenseSplit,
    Group,
    Membership,
    NewExpense,
    SharedExpense,
    SplitShare,
    SplitStatus,
    utcnow,
)
from shared_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    generate_group_id,
)
from shared_ledger.services.storage.rows import (
    AUDIT_COLUMNS,
    EXPENSE_COLUMNS,
    GROUP_COLUMNS,
    MEMBER_COLUMNS,
    SPLIT_COLUMNS,
    SPLIT_PAID_AT_COLUMN,
    SPLIT_STATUS_COLUMN,
    event_to_row,
    expense_to_row,
    group_to_row,
    membership_to_row,
    row_to_event,
    row_to_expense,
    row_to_group,
    row_to_membership,
    row_to_split,
    split_to_row,
)


idempotent_retry = retry(
    retry=retry_if_not_exception_type(NotFoundError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @idempotent_retry
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_groups_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.groups_sheet_name, GROUP_COLUMNS)

    def get_members_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.members_sheet_name, MEMBER_COLUMNS)

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)

    def get_splits_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.splits_sheet_name,
            SPLIT_COLUMNS,
            rows=5000,  # One row per member per expense
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,
        )


def _data_rows(sheet) -> list[tuple[int, list]]:
    """All non-empty data rows with their 1-based sheet row number."""
    all_rows = sheet.get_all_values()
    return [
        (idx, row)
        for idx, row in enumerate(all_rows[1:], start=2)  # Row 1 is header
        if row and row[0]
    ]


def _row_range(idx: int, width: int) -> str:
    return f"{rowcol_to_a1(idx, 1)}:{rowcol_to_a1(idx, width)}"


def _delete_rows(sheet, row_numbers: Iterable[int]) -> None:
    # Bottom-up so earlier deletions don't shift later indexes
    for idx in sorted(set(row_numbers), reverse=True):
        sheet.delete_rows(idx)


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    One worksheet per entity, one entity per row. All row conversion
    goes through shared_ledger.services.storage.rows.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        group_id_length: Optional[int] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._group_id_length = group_id_length or get_settings().ledger.group_id_length

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    async def create_group(self, name: str, created_by: str) -> Group:
        try:
            sheet = self._client.get_groups_sheet()
            existing = {row[0] for _, row in _data_rows(sheet)}
            group_id = generate_group_id(self._group_id_length)
            while group_id in existing:
                group_id = generate_group_id(self._group_id_length)

            now = utcnow()
            group = Group(
                id=group_id,
                name=name,
                created_by=created_by,
                created_at=now,
                updated_at=now,
            )
            sheet.append_row(group_to_row(group), value_input_option="RAW")
            return group
        except Exception as e:
            raise StorageError(f"Failed to create group: {e}")

    @idempotent_retry
    async def get_group(self, group_id: str) -> Optional[Group]:
        try:
            sheet = self._client.get_groups_sheet()
            for _, row in _data_rows(sheet):
                if row[0] == group_id:
                    return row_to_group(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get group: {e}")

    @idempotent_retry
    async def update_group(self, group: Group) -> Group:
        try:
            sheet = self._client.get_groups_sheet()
            for idx, row in _data_rows(sheet):
                if row[0] == group.id:
                    sheet.batch_update(
                        [{
                            "range": _row_range(idx, len(GROUP_COLUMNS)),
                            "values": [group_to_row(group)],
                        }],
                        value_input_option="RAW",
                    )
                    return group

            raise NotFoundError(f"Group not found: {group.id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update group: {e}")

    async def delete_group(self, group_id: str) -> bool:
        try:
            groups_sheet = self._client.get_groups_sheet()
            group_rows = [
                idx for idx, row in _data_rows(groups_sheet) if row[0] == group_id
            ]
            if not group_rows:
                return False

            expenses_sheet = self._client.get_expenses_sheet()
            expense_rows = [
                (idx, row) for idx, row in _data_rows(expenses_sheet)
                if len(row) > 1 and row[1] == group_id
            ]
            expense_ids = {row[0] for _, row in expense_rows}

            # Children first: a failure midway leaves orphans, never dangling parents
            splits_sheet = self._client.get_splits_sheet()
            _delete_rows(splits_sheet, [
                idx for idx, row in _data_rows(splits_sheet)
                if len(row) > 1 and row[1] in expense_ids
            ])
            _delete_rows(expenses_sheet, [idx for idx, _ in expense_rows])

            members_sheet = self._client.get_members_sheet()
            _delete_rows(members_sheet, [
                idx for idx, row in _data_rows(members_sheet) if row[0] == group_id
            ])

            _delete_rows(groups_sheet, group_rows)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete group: {e}")

    # -------------------------------------------------------------------------
    # Memberships
    # -------------------------------------------------------------------------

    @idempotent_retry
    async def upsert_member(self, membership: Membership) -> Membership:
        try:
            sheet = self._client.get_members_sheet()
            for idx, row in _data_rows(sheet):
                if row[0] == membership.group_id and len(row) > 1 and row[1] == membership.user_id:
                    existing = row_to_membership(row)
                    membership = membership.model_copy(
                        update={"joined_at": existing.joined_at}
                    )
                    sheet.batch_update(
                        [{
                            "range": _row_range(idx, len(MEMBER_COLUMNS)),
                            "values": [membership_to_row(membership)],
                        }],
                        value_input_option="RAW",
                    )
                    return membership

            sheet.append_row(membership_to_row(membership), value_input_option="RAW")
            return membership
        except Exception as e:
            raise StorageError(f"Failed to save membership: {e}")

    async def get_member(self, group_id: str, user_id: str) -> Optional[Membership]:
        members = await self.list_members(group_id)
        for membership in members:
            if membership.user_id == user_id:
                return membership
        return None

    @idempotent_retry
    async def list_members(self, group_id: str) -> list[Membership]:
        try:
            sheet = self._client.get_members_sheet()
            return [
                row_to_membership(row)
                for _, row in _data_rows(sheet)
                if row[0] == group_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to list members: {e}")

    @idempotent_retry
    async def list_memberships_for_user(self, user_id: str) -> list[Membership]:
        try:
            sheet = self._client.get_members_sheet()
            return [
                row_to_membership(row)
                for _, row in _data_rows(sheet)
                if len(row) > 1 and row[1] == user_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to list memberships: {e}")

    async def remove_member(self, group_id: str, user_id: str) -> bool:
        try:
            sheet = self._client.get_members_sheet()
            for idx, row in _data_rows(sheet):
                if row[0] == group_id and len(row) > 1 and row[1] == user_id:
                    sheet.delete_rows(idx)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to remove member: {e}")

    # -------------------------------------------------------------------------
    # Shared expenses
    # -------------------------------------------------------------------------

    async def create_expense(self, creator_id: str, data: NewExpense) -> SharedExpense:
        try:
            now = utcnow()
            expense = SharedExpense(
                id=uuid4(),
                group_id=data.group_id,
                creator_id=creator_id,
                amount=data.amount,
                category=data.category,
                description=data.description,
                split_type=data.split_type,
                created_at=now,
                updated_at=now,
            )
            sheet = self._client.get_expenses_sheet()
            sheet.append_row(expense_to_row(expense), value_input_option="RAW")
            return expense
        except Exception as e:
            raise StorageError(f"Failed to create expense: {e}")

    @idempotent_retry
    async def get_expense(self, expense_id: UUID) -> Optional[SharedExpense]:
        try:
            sheet = self._client.get_expenses_sheet()
            for _, row in _data_rows(sheet):
                if row[0] == str(expense_id):
                    return row_to_expense(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")

    @idempotent_retry
    async def list_expenses(
        self,
        group_id: Optional[str] = None,
        creator_id: Optional[str] = None,
        expense_ids: Optional[Iterable[UUID]] = None,
    ) -> list[SharedExpense]:
        wanted = {str(e) for e in expense_ids} if expense_ids is not None else None
        try:
            sheet = self._client.get_expenses_sheet()
            expenses = []
            for _, row in reversed(_data_rows(sheet)):
                if wanted is not None and row[0] not in wanted:
                    continue
                expense = row_to_expense(row)
                if group_id is not None and expense.group_id != group_id:
                    continue
                if creator_id is not None and expense.creator_id != creator_id:
                    continue
                expenses.append(expense)

            # Sort by creation time descending (newest first)
            expenses.sort(key=lambda e: e.created_at, reverse=True)
            return expenses
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

    async def delete_expense(self, expense_id: UUID) -> bool:
        try:
            expenses_sheet = self._client.get_expenses_sheet()
            expense_rows = [
                idx for idx, row in _data_rows(expenses_sheet)
                if row[0] == str(expense_id)
            ]
            if not expense_rows:
                return False

            splits_sheet = self._client.get_splits_sheet()
            _delete_rows(splits_sheet, [
                idx for idx, row in _data_rows(splits_sheet)
                if len(row) > 1 and row[1] == str(expense_id)
            ])
            _delete_rows(expenses_sheet, expense_rows)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")

    # -------------------------------------------------------------------------
    # Splits
    # -------------------------------------------------------------------------

    async def create_splits(
        self,
        expense_id: UUID,
        shares: list[SplitShare],
    ) -> list[ExpenseSplit]:
        if await self.get_expense(expense_id) is None:
            raise NotFoundError(f"Expense not found: {expense_id}")

        try:
            now = utcnow()
            splits = [
                ExpenseSplit(
                    id=uuid4(),
                    expense_id=expense_id,
                    member_id=share.member_id,
                    amount=share.amount,
                    status=SplitStatus.PENDING,
                    created_at=now,
                )
                for share in shares
            ]
            if splits:
                sheet = self._client.get_splits_sheet()
                sheet.append_rows(
                    [split_to_row(split) for split in splits],
                    value_input_option="RAW",
                )
            return splits
        except Exception as e:
            raise StorageError(f"Failed to create splits: {e}")

    @idempotent_retry
    async def list_splits(
        self,
        expense_ids: Optional[Iterable[UUID]] = None,
        member_id: Optional[str] = None,
        status: Optional[SplitStatus] = None,
        split_ids: Optional[Iterable[UUID]] = None,
    ) -> list[ExpenseSplit]:
        wanted_expenses = {str(e) for e in expense_ids} if expense_ids is not None else None
        wanted_splits = {str(s) for s in split_ids} if split_ids is not None else None
        try:
            sheet = self._client.get_splits_sheet()
            splits = []
            for _, row in _data_rows(sheet):
                if wanted_splits is not None and row[0] not in wanted_splits:
                    continue
                split = row_to_split(row)
                if wanted_expenses is not None and str(split.expense_id) not in wanted_expenses:
                    continue
                if member_id is not None and split.member_id != member_id:
                    continue
                if status is not None and split.status != status:
                    continue
                splits.append(split)
            return splits
        except Exception as e:
            raise StorageError(f"Failed to list splits: {e}")

    @idempotent_retry
    async def mark_splits_paid(
        self,
        split_ids: Iterable[UUID],
        paid_at: datetime,
    ) -> list[ExpenseSplit]:
        wanted = {str(s) for s in split_ids}
        if not wanted:
            return []

        try:
            sheet = self._client.get_splits_sheet()
            updates = []
            transitioned = []
            for idx, row in _data_rows(sheet):
                if row[0] not in wanted:
                    continue
                split = row_to_split(row)
                if split.status == SplitStatus.PAID:
                    # Written by an earlier attempt of this same call
                    if split.paid_at == paid_at:
                        transitioned.append(split)
                    continue
                updates.append({
                    "range": (
                        f"{rowcol_to_a1(idx, SPLIT_STATUS_COLUMN)}:"
                        f"{rowcol_to_a1(idx, SPLIT_PAID_AT_COLUMN)}"
                    ),
                    "values": [[SplitStatus.PAID.value, paid_at.isoformat()]],
                })
                transitioned.append(split.model_copy(
                    update={"status": SplitStatus.PAID, "paid_at": paid_at}
                ))

            if updates:
                # One request for the whole batch
                sheet.batch_update(updates, value_input_option="RAW")
            return transitioned
        except Exception as e:
            raise StorageError(f"Failed to mark splits paid: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event_to_row(event), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def _all_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            return [row_to_event(row) for _, row in _data_rows(sheet)]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    @idempotent_retry
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in await self._all_events()
            if e.correlation_id == correlation_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    @idempotent_retry
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in await self._all_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    @idempotent_retry
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = await self._all_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
