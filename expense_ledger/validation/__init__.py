"""Input validation package."""

from expense_ledger.validation.validator import (
    ExpenseValidator,
    NewExpenseInput,
    ValidationError,
)

__all__ = ["ExpenseValidator", "NewExpenseInput", "ValidationError"]
