"""
Storage Services Package

Provides the abstract entity store interface and concrete implementations.
The in-memory store is the default; Google Sheets is the durable backend.
"""

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
from expense_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryEntityStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "EntityStoreInterface",
    "ExpenseFilter",
    "Change",
    "ChangeType",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "PersistenceError",
    "StoreConnectionError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryEntityStore",
]
