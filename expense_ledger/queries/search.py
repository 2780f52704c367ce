"""
Dashboard search and quick filters.

Pure functions over an expense collection. Matching is case-insensitive
substring matching on what the user sees in an expense row.
"""

from datetime import date, tzinfo
from typing import Iterable, Mapping, Optional
from uuid import UUID

from expense_ledger.models.expense import Expense, ExpenseCategory
from expense_ledger.queries.aggregation import local_day


DATE_FORMAT = "%Y-%m-%d"


def _searchable_text(
    expense: Expense,
    supplier_name: str,
    tz: Optional[tzinfo],
) -> list[str]:
    return [
        expense.details.casefold(),
        supplier_name.casefold(),
        local_day(expense.date, tz).strftime(DATE_FORMAT),
        f"{expense.amount:.2f}",
    ]


def search_expenses(
    expenses: Iterable[Expense],
    text: Optional[str],
    supplier_names: Optional[Mapping[UUID, str]] = None,
    tz: Optional[tzinfo] = None,
) -> list[Expense]:
    """
    Expenses matching a free-text query, in their original order.

    An expense matches when the text occurs in its details, its supplier
    name, its date as YYYY-MM-DD or its amount with two decimals. A query
    containing "unpaid" also matches every unpaid expense; otherwise a
    query containing "paid" matches every paid one.

    Empty text matches everything.
    """
    needle = (text or "").strip().casefold()
    expenses = list(expenses)
    if not needle:
        return expenses

    names = supplier_names or {}
    wants_unpaid = "unpaid" in needle
    wants_paid = "paid" in needle and not wants_unpaid

    def matches(expense: Expense) -> bool:
        if wants_paid and expense.is_paid:
            return True
        if wants_unpaid and not expense.is_paid:
            return True
        name = names.get(expense.supplier_id, "") if expense.supplier_id else ""
        return any(needle in field for field in _searchable_text(expense, name, tz))

    return [e for e in expenses if matches(e)]


def filter_expenses(
    expenses: Iterable[Expense],
    category: Optional[ExpenseCategory] = None,
    day: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> list[Expense]:
    """Category and calendar-day quick filters; None means no filter."""
    return [
        e for e in expenses
        if (category is None or e.category == category)
        and (day is None or local_day(e.date, tz) == day)
    ]
