"""Services package."""

from expense_ledger.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    EntityStoreInterface,
    ExpenseFilter,
    InMemoryAuditStorage,
    InMemoryEntityStore,
    NotFoundError,
    PersistenceError,
    StoreConnectionError,
)

__all__ = [
    "AuditStorageInterface",
    "DuplicateError",
    "EntityStoreInterface",
    "ExpenseFilter",
    "InMemoryAuditStorage",
    "InMemoryEntityStore",
    "NotFoundError",
    "PersistenceError",
    "StoreConnectionError",
]
