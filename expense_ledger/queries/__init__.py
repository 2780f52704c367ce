"""Aggregation and search package."""

from expense_ledger.queries.aggregation import (
    StatisticsRange,
    category_totals,
    daily_spent,
    daily_totals,
    last_seven_days,
    local_day,
    statistics,
    supplier_debt,
    total_debt,
    week_start,
    weekly_series,
)
from expense_ledger.queries.search import filter_expenses, search_expenses

__all__ = [
    "StatisticsRange",
    "category_totals",
    "daily_spent",
    "daily_totals",
    "filter_expenses",
    "last_seven_days",
    "local_day",
    "search_expenses",
    "statistics",
    "supplier_debt",
    "total_debt",
    "week_start",
    "weekly_series",
]
