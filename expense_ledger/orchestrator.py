"""
Main Orchestrator for Expense Ledger

This module ties the components together for the presentation layer:
1. DashboardSession: the published state a dashboard renders (budget,
   paged expense list, notification flags) and the commands it issues
2. create_app_components(): builds store, audit logger, engine and session

DESIGN DECISION: The session owns presentation policy only.
- Budget arithmetic stays in the LedgerEngine
- Reports stay in the pure query functions
- Timing (auto-dismissing the top-up notification) lives HERE, as a
  cancellable asyncio task, never in the engine

Every command refreshes the session state after the engine committed, so
the displayed budget and list always reflect durable state.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog

from expense_ledger.audit import AuditLogger
from expense_ledger.config import AppSettings, get_settings
from expense_ledger.ledger import ExpenseRef, LedgerEngine
from expense_ledger.models.expense import (
    DailyTotal,
    DeletedExpenseRecord,
    Expense,
    ExpenseCategory,
    LedgerSnapshot,
    StatisticsSnapshot,
    Supplier,
    SupplierDebt,
)
from expense_ledger.queries import (
    StatisticsRange,
    daily_spent,
    filter_expenses,
    search_expenses,
    statistics,
    supplier_debt,
    total_debt,
    weekly_series,
)
from expense_ledger.services.storage import (
    AuditStorageInterface,
    EntityStoreInterface,
    InMemoryEntityStore,
)
from expense_ledger.validation import ExpenseValidator


logger = structlog.get_logger(__name__)


class DashboardSession:
    """
    Presentation-facing facade over the ledger.

    Published state:
        displayed_budget, displayed_expenses (paged), show_top_up_notification,
        show_undo_banner, daily_spent, search_text, selected_category,
        selected_day

    Usage:
        session = DashboardSession(engine)
        await session.start()
        await session.create_expense(details="Rice", amount=25000,
                                     is_paid=True, supplier_name="Market")
        ...
        await session.close()
    """

    def __init__(
        self,
        engine: LedgerEngine,
        settings: Optional[AppSettings] = None,
    ):
        self._engine = engine
        self._settings = settings or get_settings().app

        self.displayed_budget: Decimal = Decimal("0")
        self.displayed_expenses: list[Expense] = []
        self.search_text: str = ""
        self.selected_category: Optional[ExpenseCategory] = None
        self.selected_day: Optional[date] = None

        self._all_expenses: list[Expense] = []
        self._suppliers: list[Supplier] = []
        self._dismiss_task: Optional[asyncio.Task] = None
        self._unsubscribe = engine.subscribe(self._on_ledger_change)

    # =========================================================================
    # Published state
    # =========================================================================

    @property
    def engine(self) -> LedgerEngine:
        return self._engine

    @property
    def show_top_up_notification(self) -> bool:
        return self._engine.show_top_up_notification

    @property
    def show_undo_banner(self) -> bool:
        return self._engine.show_undo_banner

    @property
    def can_undo(self) -> bool:
        return self._engine.can_undo

    @property
    def daily_spent(self) -> Decimal:
        return daily_spent(
            self._all_expenses,
            today=self._engine.local_day(self._engine.now()),
            tz=self._engine.tz,
        )

    @property
    def total_debt(self) -> Decimal:
        return total_debt(self._all_expenses)

    @property
    def all_expenses(self) -> list[Expense]:
        return list(self._all_expenses)

    @property
    def filtered_expenses(self) -> list[Expense]:
        """Every expense passing the search text and quick filters."""
        matched = search_expenses(
            self._all_expenses,
            self.search_text,
            supplier_names={s.id: s.name for s in self._suppliers},
            tz=self._engine.tz,
        )
        return filter_expenses(
            matched,
            category=self.selected_category,
            day=self.selected_day,
            tz=self._engine.tz,
        )

    def _on_ledger_change(self, snapshot: LedgerSnapshot) -> None:
        if snapshot.current_budget is not None:
            self.displayed_budget = snapshot.current_budget

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Create the budget if needed, apply today's top-up, load expenses."""
        await self._engine.create_default_budget_if_needed()
        if await self._engine.top_up_budget_daily():
            self._schedule_top_up_dismiss()
        await self.reload()

    async def close(self) -> None:
        """Cancel the pending dismiss timer and stop listening."""
        if self._dismiss_task and not self._dismiss_task.done():
            self._dismiss_task.cancel()
            try:
                await self._dismiss_task
            except asyncio.CancelledError:
                pass
        self._dismiss_task = None
        self._unsubscribe()

    def _schedule_top_up_dismiss(self) -> None:
        if self._dismiss_task and not self._dismiss_task.done():
            self._dismiss_task.cancel()
        self._dismiss_task = asyncio.create_task(
            self._dismiss_top_up_after(self._settings.top_up_notification_seconds)
        )

    async def _dismiss_top_up_after(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
        self._engine.dismiss_top_up_notification()

    async def reload(self) -> None:
        """Re-read expenses and suppliers, then reset paging."""
        self._all_expenses = await self._engine.list_expenses()
        self._suppliers = await self._engine.list_suppliers()
        if self._engine.current_budget is not None:
            self.displayed_budget = self._engine.current_budget
        self.load_initial_expenses()

    # =========================================================================
    # Paging and filters
    # =========================================================================

    def load_initial_expenses(self) -> None:
        """Show the first page of filtered expenses."""
        self.displayed_expenses = self.filtered_expenses[:self._settings.page_size]

    def load_more_if_needed(self, expense_id: UUID) -> bool:
        """
        Append the next page when the row being shown is the last one
        displayed. Returns True if anything was appended.
        """
        if not self.displayed_expenses or self.displayed_expenses[-1].id != expense_id:
            return False
        start = len(self.displayed_expenses)
        next_page = self.filtered_expenses[start:start + self._settings.page_size]
        self.displayed_expenses.extend(next_page)
        return bool(next_page)

    def set_search_text(self, text: str) -> None:
        self.search_text = text or ""
        self.load_initial_expenses()

    def set_category(self, category: Optional[ExpenseCategory]) -> None:
        self.selected_category = category
        self.load_initial_expenses()

    def set_day(self, day: Optional[date]) -> None:
        self.selected_day = day
        self.load_initial_expenses()

    # =========================================================================
    # Commands
    # =========================================================================

    async def create_expense(self, **kwargs: Any) -> Expense:
        expense = await self._engine.create_expense(**kwargs)
        await self.reload()
        return expense

    async def edit_expense(self, expense: ExpenseRef, **fields: Any) -> Expense:
        edited = await self._engine.edit_expense(expense, **fields)
        await self.reload()
        return edited

    async def mark_as_paid(self, expense: ExpenseRef) -> Expense:
        paid = await self._engine.mark_as_paid(expense)
        await self.reload()
        return paid

    async def settle_supplier_debt(self, supplier_id: UUID) -> list[Expense]:
        settled = await self._engine.settle_supplier_debt(supplier_id)
        await self.reload()
        return settled

    async def delete_expense(self, expense: ExpenseRef) -> DeletedExpenseRecord:
        record = await self._engine.delete_expense(expense)
        await self.reload()
        return record

    async def undo_last_delete(self) -> Optional[Expense]:
        restored = await self._engine.undo_last_delete()
        if restored is not None:
            await self.reload()
        return restored

    async def top_up_budget_daily(self) -> bool:
        topped_up = await self._engine.top_up_budget_daily()
        if topped_up:
            self._schedule_top_up_dismiss()
        return topped_up

    def dismiss_undo_banner(self) -> None:
        self._engine.dismiss_undo_banner()

    async def suggest_suppliers(self, text: str) -> list[Supplier]:
        return await self._engine.suggest_suppliers(
            text, limit=self._settings.supplier_suggestion_limit
        )

    # =========================================================================
    # Reports
    # =========================================================================

    def weekly_series(self, week_offset: int = 0) -> list[DailyTotal]:
        return weekly_series(
            self._all_expenses,
            week_offset=week_offset,
            reference_date=self._engine.local_day(self._engine.now()),
            tz=self._engine.tz,
        )

    def supplier_debts(self, search: Optional[str] = None) -> list[SupplierDebt]:
        return supplier_debt(self._all_expenses, self._suppliers, search=search)

    def statistics(
        self,
        date_range: StatisticsRange = StatisticsRange.LAST_30_DAYS,
        custom_from: Optional[datetime] = None,
        custom_to: Optional[datetime] = None,
    ) -> StatisticsSnapshot:
        return statistics(
            self._all_expenses,
            date_range,
            now=self._engine.now(),
            custom_from=custom_from,
            custom_to=custom_to,
            tz=self._engine.tz,
        )


def create_app_components(
    use_sheets: bool = False,
) -> tuple[LedgerEngine, DashboardSession, Optional[EntityStoreInterface]]:
    """
    Factory function to create all application components.

    Args:
        use_sheets: Whether to use Google Sheets storage.
                    Falls back to in-memory storage if it is not configured.

    Returns:
        (engine, session, store)
    """
    settings = get_settings()
    store: Optional[EntityStoreInterface] = None
    audit_storage: Optional[AuditStorageInterface] = None

    if use_sheets:
        try:
            from expense_ledger.services.storage.google_sheets import (
                GoogleSheetsAuditStorage,
                GoogleSheetsClient,
                GoogleSheetsEntityStore,
            )

            client = GoogleSheetsClient(settings.google_sheets)
            store = GoogleSheetsEntityStore(client)
            audit_storage = GoogleSheetsAuditStorage(client)
        except Exception as e:
            logger.warning("sheets_storage_unavailable", error=str(e))
            store = None
            audit_storage = None

    if store is None:
        store = InMemoryEntityStore()

    ledger_settings = settings.ledger
    engine = LedgerEngine(
        store,
        settings=ledger_settings,
        validator=ExpenseValidator(ledger_settings),
        audit_logger=AuditLogger(audit_storage),
    )
    session = DashboardSession(engine, settings.app)

    return engine, session, store
