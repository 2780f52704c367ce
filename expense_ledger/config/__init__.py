"""Configuration package."""

from expense_ledger.config.settings import (
    AppSettings,
    EditBudgetPolicy,
    GoogleSheetsSettings,
    LedgerSettings,
    Settings,
    SupplierDeletePolicy,
    UndoBudgetPolicy,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "EditBudgetPolicy",
    "GoogleSheetsSettings",
    "LedgerSettings",
    "Settings",
    "SupplierDeletePolicy",
    "UndoBudgetPolicy",
    "get_settings",
    "validate_all_settings",
]
