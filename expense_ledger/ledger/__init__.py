"""Budget ledger package."""

from expense_ledger.ledger.engine import ExpenseRef, LedgerEngine
from expense_ledger.ledger.errors import (
    ExpenseNotFoundError,
    LedgerError,
    SupplierInUseError,
    SupplierNotFoundError,
)

__all__ = [
    "ExpenseNotFoundError",
    "ExpenseRef",
    "LedgerEngine",
    "LedgerError",
    "SupplierInUseError",
    "SupplierNotFoundError",
]
