"""
In-Memory Storage Implementation

Used for tests and as the fallback when no external store is configured.
Commits are atomic: a batch is validated and applied to copies of the
tables, which replace the live tables only when the whole batch succeeded.
"""

from typing import Optional
from uuid import UUID

from expense_ledger.models.audit import AuditEvent
from expense_ledger.models.expense import Budget, Expense, Supplier
from expense_ledger.services.storage.interface import (
    AuditStorageInterface,
    Change,
    ChangeType,
    DuplicateError,
    EntityStoreInterface,
    ExpenseFilter,
    NotFoundError,
)


class InMemoryEntityStore(EntityStoreInterface):
    """Dictionary-backed entity store, one table per record type."""

    def __init__(self):
        super().__init__()
        self._tables: dict[type, dict[UUID, object]] = {
            Budget: {},
            Supplier: {},
            Expense: {},
        }
        self.commit_count = 0

    async def _commit(self, changes: list[Change]) -> None:
        tables = {kind: dict(rows) for kind, rows in self._tables.items()}

        for change in changes:
            record = change.record
            table = tables[type(record)]
            label = type(record).__name__

            if change.change_type == ChangeType.INSERT:
                if record.id in table:
                    raise DuplicateError(f"{label} already exists: {record.id}")
                table[record.id] = record
            elif change.change_type == ChangeType.UPDATE:
                if record.id not in table:
                    raise NotFoundError(f"{label} not found: {record.id}")
                table[record.id] = record
            else:
                if record.id not in table:
                    raise NotFoundError(f"{label} not found: {record.id}")
                del table[record.id]

        self._tables = tables
        self.commit_count += 1

    async def fetch_budgets(self) -> list[Budget]:
        budgets = [b.model_copy(deep=True) for b in self._tables[Budget].values()]
        budgets.sort(key=lambda b: b.created_at)
        return budgets

    async def fetch_suppliers(
        self,
        name_contains: Optional[str] = None,
    ) -> list[Supplier]:
        needle = name_contains.casefold() if name_contains else None
        suppliers = [
            s.model_copy(deep=True)
            for s in self._tables[Supplier].values()
            if needle is None or needle in s.match_key
        ]
        suppliers.sort(key=lambda s: s.match_key)
        return suppliers

    async def get_supplier(self, supplier_id: UUID) -> Optional[Supplier]:
        supplier = self._tables[Supplier].get(supplier_id)
        return supplier.model_copy(deep=True) if supplier else None

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        expense = self._tables[Expense].get(expense_id)
        return expense.model_copy(deep=True) if expense else None

    async def fetch_expenses(
        self,
        expense_filter: Optional[ExpenseFilter] = None,
    ) -> list[Expense]:
        criteria = expense_filter or ExpenseFilter()
        expenses = [
            e.model_copy(deep=True)
            for e in self._tables[Expense].values()
            if criteria.matches(e)
        ]
        expenses.sort(key=lambda e: e.date, reverse=True)
        return criteria.paginate(expenses)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
