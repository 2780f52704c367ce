"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a durable backend because:
1. A small business owner can look at their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for a single shop)
- No transactions: a batch is applied in a fixed order (suppliers,
  expenses, budget, then deletes) so a failure half-way leaves, at worst,
  an orphan supplier or an expense without its budget movement
- Limited query capabilities (we filter in Python)
- A cell holds at most 50,000 characters, which bounds photo size
"""

import base64
import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from expense_ledger.config import GoogleSheetsSettings, get_settings
from expense_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from expense_ledger.models.expense import (
    Budget,
    Expense,
    ExpenseCategory,
    Supplier,
)
from expense_ledger.services.storage.interface import (
    AuditStorageInterface,
    Change,
    ChangeType,
    DuplicateError,
    EntityStoreInterface,
    ExpenseFilter,
    NotFoundError,
    PersistenceError,
    StoreConnectionError,
)


SHEETS_CELL_LIMIT = 50_000

BUDGET_COLUMNS = [
    "id",
    "current_budget",
    "last_top_up_at",
    "created_at",
    "updated_at",
]

SUPPLIER_COLUMNS = [
    "id",
    "name",
    "created_at",
]

EXPENSE_COLUMNS = [
    "id",
    "details",
    "date",
    "amount",
    "is_paid",
    "category",
    "currency",
    "supplier_id",
    "created_at",
    "updated_at",
    "photo_b64",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

# Inserts/updates are applied in this order, deletes after all of them
_WRITE_ORDER = (Supplier, Expense, Budget)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
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
                raise StoreConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise StoreConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_sheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_budget_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.budget_sheet_name, BUDGET_COLUMNS, rows=10)

    def get_suppliers_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.suppliers_sheet_name, SUPPLIER_COLUMNS)

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS, rows=5000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


def _safe_getter(row: list):
    """Index into a row, treating missing and empty cells alike."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


class GoogleSheetsEntityStore(EntityStoreInterface):
    """
    Google Sheets implementation of the entity store.

    One worksheet per record type, one record per row.
    Photos are stored base64-encoded in the last expense column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        super().__init__()
        self._client = client or GoogleSheetsClient()

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    def _budget_to_row(self, budget: Budget) -> list:
        return [
            str(budget.id),
            str(budget.current_budget),
            _iso(budget.last_top_up_at),
            budget.created_at.isoformat(),
            budget.updated_at.isoformat(),
        ]

    def _row_to_budget(self, row: list) -> Budget:
        safe_get = _safe_getter(row)
        return Budget(
            id=UUID(safe_get(0)),
            current_budget=Decimal(safe_get(1, "0")),
            last_top_up_at=datetime.fromisoformat(safe_get(2)) if safe_get(2) else None,
            created_at=datetime.fromisoformat(safe_get(3)),
            updated_at=datetime.fromisoformat(safe_get(4)),
        )

    def _supplier_to_row(self, supplier: Supplier) -> list:
        return [
            str(supplier.id),
            supplier.name,
            supplier.created_at.isoformat(),
        ]

    def _row_to_supplier(self, row: list) -> Supplier:
        safe_get = _safe_getter(row)
        return Supplier(
            id=UUID(safe_get(0)),
            name=safe_get(1),
            created_at=datetime.fromisoformat(safe_get(2)),
        )

    def _expense_to_row(self, expense: Expense) -> list:
        photo_b64 = ""
        if expense.photo:
            photo_b64 = base64.b64encode(expense.photo).decode("ascii")
            if len(photo_b64) > SHEETS_CELL_LIMIT:
                raise PersistenceError(
                    f"Photo for expense {expense.id} is too large for Google Sheets "
                    f"({len(photo_b64)} encoded characters, limit {SHEETS_CELL_LIMIT})"
                )
        return [
            str(expense.id),
            expense.details,
            expense.date.isoformat(),
            str(expense.amount),
            str(expense.is_paid),
            expense.category.value,
            expense.currency,
            str(expense.supplier_id) if expense.supplier_id else "",
            expense.created_at.isoformat(),
            expense.updated_at.isoformat(),
            photo_b64,
        ]

    def _row_to_expense(self, row: list) -> Expense:
        safe_get = _safe_getter(row)
        return Expense(
            id=UUID(safe_get(0)),
            details=safe_get(1),
            date=datetime.fromisoformat(safe_get(2)),
            amount=Decimal(safe_get(3)),
            is_paid=safe_get(4).lower() == "true",
            category=ExpenseCategory(safe_get(5, ExpenseCategory.OTHER.value)),
            currency=safe_get(6, "IQD"),
            supplier_id=UUID(safe_get(7)) if safe_get(7) else None,
            created_at=datetime.fromisoformat(safe_get(8)),
            updated_at=datetime.fromisoformat(safe_get(9)),
            photo=base64.b64decode(safe_get(10)) if safe_get(10) else None,
        )

    def _sheet_for(self, kind: type) -> gspread.Worksheet:
        if kind is Budget:
            return self._client.get_budget_sheet()
        if kind is Supplier:
            return self._client.get_suppliers_sheet()
        return self._client.get_expenses_sheet()

    def _to_row(self, record) -> list:
        if isinstance(record, Budget):
            return self._budget_to_row(record)
        if isinstance(record, Supplier):
            return self._supplier_to_row(record)
        return self._expense_to_row(record)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @staticmethod
    def _find_row_index(all_rows: list[list], record_id: UUID) -> Optional[int]:
        """1-based sheet row of a record (row 1 is the header)."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == str(record_id):
                return idx
        return None

    def _apply(self, change: Change) -> None:
        record = change.record
        label = type(record).__name__
        sheet = self._sheet_for(type(record))
        all_rows = sheet.get_all_values()
        row_index = self._find_row_index(all_rows, record.id)

        if change.change_type == ChangeType.INSERT:
            if row_index is not None:
                raise DuplicateError(f"{label} already exists: {record.id}")
            sheet.append_row(self._to_row(record), value_input_option="RAW")
        elif change.change_type == ChangeType.UPDATE:
            if row_index is None:
                raise NotFoundError(f"{label} not found: {record.id}")
            sheet.update(
                range_name=f"A{row_index}",
                values=[self._to_row(record)],
                value_input_option="RAW",
            )
        else:
            if row_index is None:
                raise NotFoundError(f"{label} not found: {record.id}")
            sheet.delete_rows(row_index)

    async def _commit(self, changes: list[Change]) -> None:
        # Encode everything first so an oversized photo fails before any write
        for change in changes:
            if change.change_type != ChangeType.DELETE:
                self._to_row(change.record)

        writes = [c for c in changes if c.change_type != ChangeType.DELETE]
        writes.sort(key=lambda c: _WRITE_ORDER.index(type(c.record)))
        deletes = [c for c in changes if c.change_type == ChangeType.DELETE]

        for change in writes + deletes:
            try:
                self._apply(change)
            except PersistenceError:
                raise
            except Exception as e:
                raise PersistenceError(
                    f"Failed to {change.change_type.value} "
                    f"{type(change.record).__name__}: {e}"
                ) from e

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _read_rows(self, sheet: gspread.Worksheet) -> list[list]:
        try:
            return [row for row in sheet.get_all_values()[1:] if row and row[0]]
        except Exception as e:
            raise PersistenceError(f"Failed to read {sheet.title}: {e}")

    async def fetch_budgets(self) -> list[Budget]:
        rows = self._read_rows(self._client.get_budget_sheet())
        budgets = [self._row_to_budget(row) for row in rows]
        budgets.sort(key=lambda b: b.created_at)
        return budgets

    async def fetch_suppliers(
        self,
        name_contains: Optional[str] = None,
    ) -> list[Supplier]:
        rows = self._read_rows(self._client.get_suppliers_sheet())
        needle = name_contains.casefold() if name_contains else None
        suppliers = []
        for row in rows:
            supplier = self._row_to_supplier(row)
            if needle is None or needle in supplier.match_key:
                suppliers.append(supplier)
        suppliers.sort(key=lambda s: s.match_key)
        return suppliers

    async def get_supplier(self, supplier_id: UUID) -> Optional[Supplier]:
        for row in self._read_rows(self._client.get_suppliers_sheet()):
            if row[0] == str(supplier_id):
                return self._row_to_supplier(row)
        return None

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        for row in self._read_rows(self._client.get_expenses_sheet()):
            if row[0] == str(expense_id):
                return self._row_to_expense(row)
        return None

    async def fetch_expenses(
        self,
        expense_filter: Optional[ExpenseFilter] = None,
    ) -> list[Expense]:
        criteria = expense_filter or ExpenseFilter()
        expenses = []
        for row in self._read_rows(self._client.get_expenses_sheet()):
            expense = self._row_to_expense(row)
            if criteria.matches(expense):
                expenses.append(expense)
        expenses.sort(key=lambda e: e.date, reverse=True)
        return criteria.paginate(expenses)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
        )

    def _all_events(self) -> list[AuditEvent]:
        try:
            rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise PersistenceError(f"Failed to get audit events: {e}")
        return [self._row_to_event(row) for row in rows if row and row[0]]

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise PersistenceError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._all_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._all_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
