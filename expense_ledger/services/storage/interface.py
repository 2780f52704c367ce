"""
Abstract Entity Store Interface

DESIGN DECISION: The ledger talks to storage through an abstract interface.
This allows us to:
1. Keep the budget/expense logic independent of the storage engine
2. Use in-memory storage for testing
3. Swap Google Sheets for a real database later

The interface is intentionally small - we're not building a full ORM.
Writes go through a unit of work: insert/update/delete only STAGE a
change, save() commits everything staged so far. A failed save discards
the staged changes, so a caller can always start from a clean slate.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import NamedTuple, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from expense_ledger.models.expense import (
    Budget,
    Expense,
    ExpenseCategory,
    Supplier,
    as_aware,
)
from expense_ledger.models.audit import AuditEvent


Record = Union[Budget, Supplier, Expense]


class ChangeType(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class Change(NamedTuple):
    change_type: ChangeType
    record: Record


class ExpenseFilter(BaseModel):
    """
    Predicate for expense queries.

    All criteria are optional and combined with AND.
    The date range is inclusive on both ends.
    Naive bounds are read as UTC, like stored timestamps.
    """

    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    is_paid: Optional[bool] = None
    supplier_id: Optional[UUID] = None
    category: Optional[ExpenseCategory] = None
    text: Optional[str] = Field(
        default=None,
        description="Case-insensitive substring of details"
    )
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)

    @field_validator("date_from", "date_to")
    @classmethod
    def aware_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_aware(v)

    def matches(self, expense: Expense) -> bool:
        if self.date_from and expense.date < self.date_from:
            return False
        if self.date_to and expense.date > self.date_to:
            return False
        if self.is_paid is not None and expense.is_paid != self.is_paid:
            return False
        if self.supplier_id and expense.supplier_id != self.supplier_id:
            return False
        if self.category and expense.category != self.category:
            return False
        if self.text and self.text.casefold() not in expense.details.casefold():
            return False
        return True

    def paginate(self, expenses: list[Expense]) -> list[Expense]:
        if self.limit is None:
            return expenses[self.offset:]
        return expenses[self.offset:self.offset + self.limit]


class EntityStoreInterface(ABC):
    """
    Abstract interface for Budget, Supplier and Expense storage.

    Any storage implementation must implement the read methods and
    _commit(). Reads always return copies: mutating a returned record
    changes nothing until it is staged and saved.
    """

    def __init__(self):
        self._pending: list[Change] = []

    # -------------------------------------------------------------------------
    # Unit of work
    # -------------------------------------------------------------------------

    def insert(self, record: Record) -> None:
        """Stage a new record."""
        self._stage(ChangeType.INSERT, record)

    def update(self, record: Record) -> None:
        """Stage a modified record (matched by id)."""
        self._stage(ChangeType.UPDATE, record)

    def delete(self, record: Record) -> None:
        """Stage removal of a record (matched by id)."""
        self._stage(ChangeType.DELETE, record)

    def _stage(self, change_type: ChangeType, record: Record) -> None:
        if not isinstance(record, (Budget, Supplier, Expense)):
            raise TypeError(f"Unsupported record type: {type(record).__name__}")
        self._pending.append(Change(change_type, record.model_copy(deep=True)))

    @property
    def has_changes(self) -> bool:
        return bool(self._pending)

    def rollback(self) -> None:
        """Discard every staged change."""
        self._pending.clear()

    async def save(self) -> None:
        """
        Commit every staged change.

        Raises:
            PersistenceError: If the backend rejects the write. The staged
                changes are discarded either way.
        """
        changes = list(self._pending)
        self._pending.clear()
        if not changes:
            return
        try:
            await self._commit(changes)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save changes: {e}") from e

    @abstractmethod
    async def _commit(self, changes: list[Change]) -> None:
        """
        Apply a batch of changes to the backend.

        Backends that can should apply the batch atomically.

        Raises:
            PersistenceError: If the write fails
            NotFoundError: If an update/delete targets a missing record
            DuplicateError: If an insert reuses an existing id
        """
        pass

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @abstractmethod
    async def fetch_budgets(self) -> list[Budget]:
        """
        Return every Budget record, oldest first.

        Normally zero or one.
        """
        pass

    @abstractmethod
    async def fetch_suppliers(
        self,
        name_contains: Optional[str] = None,
    ) -> list[Supplier]:
        """
        List suppliers sorted by name.

        Args:
            name_contains: Case-insensitive substring filter on the name
        """
        pass

    @abstractmethod
    async def get_supplier(self, supplier_id: UUID) -> Optional[Supplier]:
        """Retrieve a supplier by id, or None."""
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        """Retrieve an expense by id, or None."""
        pass

    @abstractmethod
    async def fetch_expenses(
        self,
        expense_filter: Optional[ExpenseFilter] = None,
    ) -> list[Expense]:
        """
        List expenses matching a filter, newest first.

        Args:
            expense_filter: Criteria and pagination; None means everything
        """
        pass

    async def count_expenses(
        self,
        expense_filter: Optional[ExpenseFilter] = None,
    ) -> int:
        """Count expenses matching a filter (pagination ignored)."""
        criteria = (expense_filter or ExpenseFilter()).model_copy(
            update={"limit": None, "offset": 0}
        )
        return len(await self.fetch_expenses(criteria))


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class PersistenceError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(PersistenceError):
    """Entity not found in storage."""
    pass


class DuplicateError(PersistenceError):
    """Attempted to insert a duplicate entity."""
    pass


class StoreConnectionError(PersistenceError):
    """Could not connect to storage backend."""
    pass
