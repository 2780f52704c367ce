"""Ledger engine exceptions."""

from uuid import UUID


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ExpenseNotFoundError(LedgerError):
    """The referenced expense does not exist (or was deleted)."""

    def __init__(self, expense_id: UUID):
        self.expense_id = expense_id
        super().__init__(f"Expense not found: {expense_id}")


class SupplierNotFoundError(LedgerError):
    """The referenced supplier does not exist."""

    def __init__(self, supplier_id: UUID):
        self.supplier_id = supplier_id
        super().__init__(f"Supplier not found: {supplier_id}")


class SupplierInUseError(LedgerError):
    """A supplier cannot be deleted while expenses still reference it."""

    def __init__(self, supplier_id: UUID, supplier_name: str, expense_count: int):
        self.supplier_id = supplier_id
        self.supplier_name = supplier_name
        self.expense_count = expense_count
        super().__init__(
            f"Supplier '{supplier_name}' is referenced by {expense_count} expense(s)"
        )
