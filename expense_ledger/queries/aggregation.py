"""
Aggregation Engine

DESIGN DECISION: Every report is a PURE function of an expense collection.
No storage access, no clock reads unless the caller leaves the reference
date out, no caching. The same expenses and parameters always give the
same result, which is what the dashboard, the statistics screen and the
debt report rely on.

Calendar days are local days: a timestamp is converted to the zone `tz`
(system local time when None) before its date is taken.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta, timezone, tzinfo
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional
from uuid import UUID

from expense_ledger.models.expense import (
    CategoryTotal,
    DailyTotal,
    Expense,
    ExpenseCategory,
    StatisticsSnapshot,
    Supplier,
    SupplierDebt,
    as_aware,
)


ZERO = Decimal("0")
DAYS_PER_WEEK = 7


def local_day(moment: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar day of a timestamp in `tz`."""
    return moment.astimezone(tz).date()


def _as_day(value: date, tz: Optional[tzinfo]) -> date:
    if isinstance(value, datetime):
        return local_day(as_aware(value), tz)
    return value


def _today(tz: Optional[tzinfo]) -> date:
    return datetime.now(tz).date()


def _sum(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, ZERO)


def _sum_by_day(
    expenses: Iterable[Expense],
    tz: Optional[tzinfo],
) -> dict[date, Decimal]:
    totals: dict[date, Decimal] = defaultdict(lambda: ZERO)
    for expense in expenses:
        totals[local_day(expense.date, tz)] += expense.amount
    return totals


def _window(
    expenses: Iterable[Expense],
    first_day: date,
    days: int,
    category: Optional[ExpenseCategory],
    tz: Optional[tzinfo],
) -> list[DailyTotal]:
    """Zero-filled totals for `days` consecutive days from `first_day`."""
    if category is not None:
        expenses = [e for e in expenses if e.category == category]
    totals = _sum_by_day(expenses, tz)
    return [
        DailyTotal(date=day, total=totals.get(day, ZERO))
        for day in (first_day + timedelta(days=i) for i in range(days))
    ]


# =============================================================================
# Daily / weekly series
# =============================================================================

def daily_totals(
    expenses: Iterable[Expense],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    category: Optional[ExpenseCategory] = None,
    tz: Optional[tzinfo] = None,
) -> list[DailyTotal]:
    """
    Sum of amounts per calendar day, ascending by date.

    Only days with at least one expense appear. The range is inclusive;
    datetimes are converted to their local day first.
    """
    first = _as_day(date_from, tz) if date_from else None
    last = _as_day(date_to, tz) if date_to else None

    selected = [
        e for e in expenses
        if category is None or e.category == category
    ]
    totals = _sum_by_day(selected, tz)

    return [
        DailyTotal(date=day, total=totals[day])
        for day in sorted(totals)
        if (first is None or day >= first) and (last is None or day <= last)
    ]


def last_seven_days(
    expenses: Iterable[Expense],
    today: Optional[date] = None,
    category: Optional[ExpenseCategory] = None,
    tz: Optional[tzinfo] = None,
) -> list[DailyTotal]:
    """The 7 days ending `today`, oldest first, zero-filled."""
    today = _as_day(today, tz) if today else _today(tz)
    first_day = today - timedelta(days=DAYS_PER_WEEK - 1)
    return _window(expenses, first_day, DAYS_PER_WEEK, category, tz)


def week_start(reference_date: date, week_offset: int = 0) -> date:
    """Monday on or before `reference_date + 7 * week_offset` days."""
    target = reference_date + timedelta(days=DAYS_PER_WEEK * week_offset)
    return target - timedelta(days=target.weekday())


def weekly_series(
    expenses: Iterable[Expense],
    week_offset: int = 0,
    reference_date: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> list[DailyTotal]:
    """
    Monday-to-Sunday totals for one week.

    Always exactly 7 entries. week_offset=0 is the week containing
    reference_date (today by default), -1 the week before, and so on.
    """
    reference = _as_day(reference_date, tz) if reference_date else _today(tz)
    monday = week_start(reference, week_offset)
    return _window(expenses, monday, DAYS_PER_WEEK, None, tz)


def daily_spent(
    expenses: Iterable[Expense],
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> Decimal:
    """Sum of PAID expenses dated today."""
    today = _as_day(today, tz) if today else _today(tz)
    return _sum(
        e.amount for e in expenses
        if e.is_paid and local_day(e.date, tz) == today
    )


# =============================================================================
# Categories
# =============================================================================

def category_totals(expenses: Iterable[Expense]) -> list[CategoryTotal]:
    """
    Total and share of the whole per category, descending by total.

    Percentages are 0 when the grand total is 0.
    """
    groups: dict[ExpenseCategory, Decimal] = defaultdict(lambda: ZERO)
    for expense in expenses:
        groups[expense.category] += expense.amount

    grand_total = _sum(groups.values())
    order = list(ExpenseCategory)

    result = []
    for category, total in groups.items():
        if grand_total > 0:
            percentage = float(total * 100 / grand_total)
        else:
            percentage = 0.0
        result.append(CategoryTotal(
            category=category,
            total=total,
            percentage=min(max(percentage, 0.0), 100.0),
        ))

    result.sort(key=lambda c: (-c.total, order.index(c.category)))
    return result


# =============================================================================
# Debt
# =============================================================================

def supplier_debt(
    expenses: Iterable[Expense],
    suppliers: Optional[Iterable[Supplier]] = None,
    search: Optional[str] = None,
) -> list[SupplierDebt]:
    """
    Outstanding amount per supplier, descending by total.

    Paid expenses and expenses without a supplier are ignored, so a
    supplier with no unpaid expense is absent rather than zero.

    Args:
        suppliers: Used to fill in supplier_name
        search: Keep only suppliers whose name contains this text
            (case-insensitive); unnamed suppliers never match
    """
    names: dict[UUID, str] = {s.id: s.name for s in (suppliers or [])}

    totals: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    counts: dict[UUID, int] = defaultdict(int)
    for expense in expenses:
        if expense.is_paid or expense.supplier_id is None:
            continue
        totals[expense.supplier_id] += expense.amount
        counts[expense.supplier_id] += 1

    needle = (search or "").strip().casefold()

    result = []
    for supplier_id, total in totals.items():
        name = names.get(supplier_id)
        if needle and (name is None or needle not in name.casefold()):
            continue
        result.append(SupplierDebt(
            supplier_id=supplier_id,
            supplier_name=name,
            total=total,
            expense_count=counts[supplier_id],
        ))

    result.sort(key=lambda d: (-d.total, (d.supplier_name or "").casefold()))
    return result


def total_debt(expenses: Iterable[Expense]) -> Decimal:
    """Sum of every unpaid expense."""
    return _sum(e.amount for e in expenses if not e.is_paid)


# =============================================================================
# Statistics screen
# =============================================================================

class StatisticsRange(str, Enum):
    """Date ranges offered on the statistics screen."""
    LAST_7_DAYS = "last_7_days"
    LAST_30_DAYS = "last_30_days"
    LAST_90_DAYS = "last_90_days"
    CUSTOM = "custom"

    def resolve(
        self,
        now: datetime,
        custom_from: Optional[datetime] = None,
        custom_to: Optional[datetime] = None,
    ) -> tuple[datetime, datetime]:
        """
        (date_from, date_to) for this range, ending at `now`.

        CUSTOM uses the given bounds; a missing bound falls back to the
        30-day window. Naive bounds are read as UTC.
        """
        now, custom_from, custom_to = (as_aware(v) for v in (now, custom_from, custom_to))
        if self == StatisticsRange.CUSTOM:
            date_to = custom_to or now
            date_from = custom_from or date_to - timedelta(days=30)
            if date_from > date_to:
                raise ValueError("custom_from must not be after custom_to")
            return date_from, date_to

        days = {
            StatisticsRange.LAST_7_DAYS: 7,
            StatisticsRange.LAST_30_DAYS: 30,
            StatisticsRange.LAST_90_DAYS: 90,
        }[self]
        return now - timedelta(days=days), now


def statistics(
    expenses: Iterable[Expense],
    date_range: StatisticsRange = StatisticsRange.LAST_30_DAYS,
    now: Optional[datetime] = None,
    custom_from: Optional[datetime] = None,
    custom_to: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> StatisticsSnapshot:
    """Daily and category totals of the expenses inside a date range."""
    now = as_aware(now) or datetime.now(timezone.utc)
    date_from, date_to = date_range.resolve(now, custom_from, custom_to)

    in_range = [e for e in expenses if date_from <= e.date <= date_to]

    return StatisticsSnapshot(
        date_from=date_from,
        date_to=date_to,
        total=_sum(e.amount for e in in_range),
        daily_totals=daily_totals(in_range, tz=tz),
        category_totals=category_totals(in_range),
    )

