"""
Data Models Package

This package contains all Pydantic models used by the expense ledger.
All data flowing through the system must conform to these schemas.
"""

from expense_ledger.models.expense import (
    Budget,
    CategoryTotal,
    DailyTotal,
    DeletedExpenseRecord,
    Expense,
    ExpenseCategory,
    ExpenseUpdate,
    LedgerSnapshot,
    StatisticsSnapshot,
    Supplier,
    SupplierDebt,
    ValidationIssue,
)
from expense_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Budget",
    "CategoryTotal",
    "DailyTotal",
    "DeletedExpenseRecord",
    "Expense",
    "ExpenseCategory",
    "ExpenseUpdate",
    "LedgerSnapshot",
    "StatisticsSnapshot",
    "Supplier",
    "SupplierDebt",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
