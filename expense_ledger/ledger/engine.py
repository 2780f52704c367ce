"""
Ledger Engine

Keeps the budget balance consistent with the expense collection across
create, edit, pay, delete and undo.

INVARIANT: with no edits in between,
    current_budget == initial budget
                      - sum(amount of existing paid expenses)
                      + sum(top-ups applied)

DESIGN DECISIONS:
1. The Budget is an aggregate root owned by this engine. Nothing else
   reads or writes Budget records.
2. Single writer: every mutation runs under one asyncio.Lock, so two
   commands can never interleave their read-modify-write of the budget.
3. Commit, then publish: each mutation is computed on copies, staged on
   the store and saved. The in-memory budget, undo stack and flags change
   only after save() succeeded. A PersistenceError leaves them untouched.
4. Records handed out are copies. Callers pass an Expense or its id;
   the stored record is always re-read, so a stale object cannot cause
   a double debit.
"""

import asyncio
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal
from typing import Any, Callable, Optional, Union
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog

from expense_ledger.audit import AuditLogger, create_correlation_id
from expense_ledger.config import (
    EditBudgetPolicy,
    LedgerSettings,
    SupplierDeletePolicy,
    UndoBudgetPolicy,
    get_settings,
)
from expense_ledger.ledger.errors import (
    ExpenseNotFoundError,
    SupplierInUseError,
    SupplierNotFoundError,
)
from expense_ledger.models.expense import (
    Budget,
    DeletedExpenseRecord,
    Expense,
    ExpenseCategory,
    ExpenseUpdate,
    LedgerSnapshot,
    Supplier,
)
from expense_ledger.services.storage import (
    EntityStoreInterface,
    ExpenseFilter,
    PersistenceError,
)
from expense_ledger.validation import ExpenseValidator, ValidationError


ExpenseRef = Union[Expense, UUID]
Listener = Callable[[LedgerSnapshot], None]


def _expense_id(ref: ExpenseRef) -> UUID:
    return ref.id if isinstance(ref, Expense) else ref


class LedgerEngine:
    """
    Budget ledger over an entity store.

    Usage:
        engine = LedgerEngine(InMemoryEntityStore())
        await engine.create_default_budget_if_needed()
        expense = await engine.create_expense(
            details="Flour", date=now, amount=50000,
            is_paid=True, supplier_name="Baghdad Mill",
        )
        await engine.delete_expense(expense)
        await engine.undo_last_delete()
    """

    def __init__(
        self,
        store: EntityStoreInterface,
        settings: Optional[LedgerSettings] = None,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
        tz: Optional[tzinfo] = None,
    ):
        """
        Args:
            store: Entity store holding Budget, Supplier and Expense records
            settings: Ledger settings (defaults to environment settings)
            validator: Input validator (defaults to one using `settings`)
            audit_logger: Audit sink (defaults to local structured logging)
            clock: Returns "now"; injectable for tests
            tz: Zone defining calendar days (defaults to
                settings.local_timezone, then system local time)
        """
        self._store = store
        self._settings = settings or get_settings().ledger
        self._validator = validator or ExpenseValidator(self._settings)
        self._audit = audit_logger or AuditLogger()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        if tz is None and self._settings.local_timezone:
            tz = ZoneInfo(self._settings.local_timezone)
        self._tz = tz
        self._logger = structlog.get_logger(__name__)

        self._lock = asyncio.Lock()
        self._budget: Optional[Budget] = None
        self._undo_stack: list[DeletedExpenseRecord] = []
        self._listeners: list[Listener] = []
        self._show_undo_banner = False
        self._show_top_up_notification = False

    # =========================================================================
    # Published state
    # =========================================================================

    @property
    def settings(self) -> LedgerSettings:
        return self._settings

    @property
    def tz(self) -> Optional[tzinfo]:
        return self._tz

    @property
    def current_budget(self) -> Optional[Decimal]:
        """Budget balance, or None before the budget has been loaded."""
        return self._budget.current_budget if self._budget else None

    @property
    def undo_depth(self) -> int:
        return len(self._undo_stack)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def undo_stack(self) -> tuple[DeletedExpenseRecord, ...]:
        """Undo records, oldest first."""
        return tuple(self._undo_stack)

    @property
    def show_undo_banner(self) -> bool:
        return self._show_undo_banner

    @property
    def show_top_up_notification(self) -> bool:
        return self._show_top_up_notification

    def now(self) -> datetime:
        return self._clock()

    def local_day(self, moment: datetime) -> date:
        """Calendar day of a timestamp in the ledger's zone."""
        return moment.astimezone(self._tz).date()

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            current_budget=self.current_budget,
            undo_available=self.can_undo,
            undo_depth=self.undo_depth,
            show_undo_banner=self._show_undo_banner,
            show_top_up_notification=self._show_top_up_notification,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called with a LedgerSnapshot after every
        state change. Returns a function that unregisters it.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                # The change is already durable; a broken view must not undo it
                self._logger.error("ledger_listener_failed", error=str(e))

    def dismiss_top_up_notification(self) -> None:
        if self._show_top_up_notification:
            self._show_top_up_notification = False
            self._publish()

    def dismiss_undo_banner(self) -> None:
        if self._show_undo_banner:
            self._show_undo_banner = False
            self._publish()

    # =========================================================================
    # Internals
    # =========================================================================

    async def _commit(
        self,
        operation: str,
        correlation_id: UUID,
        entity_type: Optional[str] = None,
        entity_id: Optional[UUID] = None,
    ) -> None:
        """Save staged changes; audit and re-raise on failure."""
        try:
            await self._store.save()
        except PersistenceError as e:
            self._store.rollback()
            await self._audit.log_save_failed(
                operation=operation,
                error_message=str(e),
                entity_type=entity_type,
                entity_id=entity_id,
                correlation_id=correlation_id,
            )
            raise

    async def _validated(
        self,
        operation: str,
        correlation_id: UUID,
        check: Callable[..., Any],
        *args,
        **kwargs,
    ) -> Any:
        """Run a validator; audit and re-raise a ValidationError."""
        try:
            return check(*args, **kwargs)
        except ValidationError as e:
            await self._audit.log_validation_failed(
                operation=operation,
                issues=[issue.model_dump() for issue in e.issues],
                correlation_id=correlation_id,
            )
            raise

    def _rebalanced(self, budget: Budget, new_balance: Decimal, **extra) -> Budget:
        return budget.model_copy(update={
            "current_budget": new_balance,
            "updated_at": self._clock(),
            **extra,
        })

    async def _load_budget(self, correlation_id: UUID) -> Budget:
        """
        Return the canonical budget, creating the default one if the store
        has none. Extra Budget records are ignored; the oldest wins.
        """
        if self._budget is not None:
            return self._budget

        budgets = await self._store.fetch_budgets()
        if budgets:
            if len(budgets) > 1:
                self._logger.warning(
                    "multiple_budgets_found",
                    count=len(budgets),
                    using=str(budgets[0].id),
                )
            self._budget = budgets[0]
            return self._budget

        now = self._clock()
        budget = Budget(
            current_budget=self._settings.default_budget,
            created_at=now,
            updated_at=now,
        )
        self._store.insert(budget)
        await self._commit("create_default_budget", correlation_id, "budget", budget.id)
        self._budget = budget
        await self._audit.log_budget_created(
            budget_id=budget.id,
            amount=budget.current_budget,
            correlation_id=correlation_id,
        )
        return budget

    async def _require_expense(self, ref: ExpenseRef) -> Expense:
        expense_id = _expense_id(ref)
        expense = await self._store.get_expense(expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)
        return expense

    async def _resolve_supplier(self, name: str) -> tuple[Supplier, bool]:
        """
        Find a supplier by case-insensitive name, or build a new one.

        Returns (supplier, is_new). A new supplier is NOT staged here.
        """
        key = name.casefold()
        for supplier in await self._store.fetch_suppliers(name_contains=name):
            if supplier.match_key == key:
                return supplier, False
        return Supplier(name=name, created_at=self._clock()), True

    def _push_undo(self, record: DeletedExpenseRecord) -> None:
        self._undo_stack.append(record)
        limit = self._settings.undo_stack_limit
        if limit is not None and len(self._undo_stack) > limit:
            del self._undo_stack[:len(self._undo_stack) - limit]

    # =========================================================================
    # Budget
    # =========================================================================

    async def create_default_budget_if_needed(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """
        Load the budget, creating it with the default amount on first run.

        Call once at startup. Every other operation does this lazily, so a
        missing budget is never an error.
        """
        correlation_id = correlation_id or create_correlation_id()
        async with self._lock:
            budget = await self._load_budget(correlation_id)
        self._publish()
        return budget.model_copy()

    async def refresh(self) -> None:
        """Drop the cached budget and re-read it from the store."""
        async with self._lock:
            self._budget = None
            await self._load_budget(create_correlation_id())
        self._publish()

    async def top_up_budget_daily(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Add the daily top-up amount, at most once per calendar day.

        Returns True if a top-up happened. The top-up notification flag is
        raised; dismissing it is up to the presentation layer.
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._lock:
            budget = await self._load_budget(correlation_id)
            now = self._clock()

            if budget.last_top_up_at and self.local_day(budget.last_top_up_at) == self.local_day(now):
                return False

            amount = self._settings.daily_top_up_amount
            topped_up = self._rebalanced(
                budget,
                budget.current_budget + amount,
                last_top_up_at=now,
            )
            self._store.update(topped_up)
            await self._commit("top_up_budget_daily", correlation_id, "budget", budget.id)

            self._budget = topped_up
            self._show_top_up_notification = True

        await self._audit.log_budget_topped_up(
            budget_id=topped_up.id,
            amount=amount,
            budget_after=topped_up.current_budget,
            correlation_id=correlation_id,
        )
        self._publish()
        return True

    # =========================================================================
    # Expenses
    # =========================================================================

    async def create_expense(
        self,
        *,
        details: Optional[str],
        amount: Any,
        is_paid: bool,
        supplier_name: Optional[str],
        date: Optional[datetime] = None,
        category: ExpenseCategory = ExpenseCategory.OTHER,
        currency: Optional[str] = None,
        photo: Optional[bytes] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Log a new expense.

        The supplier is matched case-insensitively against existing
        suppliers and created if missing. A paid expense debits the budget
        in the same commit as the insert.

        Raises:
            ValidationError: Bad supplier name, amount, details, currency or photo
            PersistenceError: The store rejected the write (nothing applied)
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._lock:
            clean = await self._validated(
                "create_expense",
                correlation_id,
                self._validator.validate_new_expense,
                details=details,
                amount=amount,
                supplier_name=supplier_name,
                currency=currency,
                photo=photo,
            )

            budget = await self._load_budget(correlation_id)
            supplier, is_new_supplier = await self._resolve_supplier(clean.supplier_name)

            now = self._clock()
            expense = Expense(
                details=clean.details,
                date=date or now,
                amount=clean.amount,
                is_paid=is_paid,
                category=category,
                currency=clean.currency,
                photo=clean.photo,
                supplier_id=supplier.id,
                created_at=now,
                updated_at=now,
            )

            if is_new_supplier:
                self._store.insert(supplier)
            self._store.insert(expense)

            new_budget = budget
            if is_paid:
                new_budget = self._rebalanced(budget, budget.current_budget - expense.amount)
                self._store.update(new_budget)

            await self._commit("create_expense", correlation_id, "expense", expense.id)
            self._budget = new_budget

        if is_new_supplier:
            await self._audit.log_supplier_created(
                supplier_id=supplier.id,
                name=supplier.name,
                correlation_id=correlation_id,
            )
        await self._audit.log_expense_created(
            expense_id=expense.id,
            amount=expense.amount,
            is_paid=expense.is_paid,
            budget_after=new_budget.current_budget,
            correlation_id=correlation_id,
        )
        self._publish()
        return expense.model_copy(deep=True)

    async def edit_expense(
        self,
        expense: ExpenseRef,
        update: Optional[ExpenseUpdate] = None,
        correlation_id: Optional[UUID] = None,
        **fields,
    ) -> Expense:
        """
        Edit an expense.

        Pass an ExpenseUpdate or the fields as keywords. The amount delta is
        measured against the stored amount (the value when the edit
        started). If it exceeds settings.amount_epsilon the budget moves by
        -delta; with the ALWAYS policy this happens whether or not the
        expense is paid, with PAID_ONLY only for paid expenses.

        Raises:
            ValidationError: A provided field is invalid
            ExpenseNotFoundError: The expense no longer exists
            PersistenceError: The store rejected the write (nothing applied)
        """
        correlation_id = correlation_id or create_correlation_id()
        update = update or ExpenseUpdate(**fields)

        async with self._lock:
            changes = await self._validated(
                "edit_expense",
                correlation_id,
                self._validator.validate_update,
                update,
            )

            original = await self._require_expense(expense)
            budget = await self._load_budget(correlation_id)

            new_supplier: Optional[Supplier] = None
            if "supplier_name" in changes:
                supplier, is_new = await self._resolve_supplier(changes.pop("supplier_name"))
                if is_new:
                    new_supplier = supplier
                changes["supplier_id"] = supplier.id

            changed_fields = [
                name for name, value in changes.items()
                if getattr(original, name) != value
            ]
            if not changed_fields:
                return original

            budget_delta = Decimal("0")
            if "amount" in changed_fields:
                delta = changes["amount"] - original.amount
                moves_budget = (
                    self._settings.edit_budget_policy == EditBudgetPolicy.ALWAYS
                    or original.is_paid
                )
                if abs(delta) > self._settings.amount_epsilon and moves_budget:
                    budget_delta = delta

            edited = original.model_copy(update={**changes, "updated_at": self._clock()})

            if new_supplier:
                self._store.insert(new_supplier)
            self._store.update(edited)

            new_budget = budget
            if budget_delta:
                new_budget = self._rebalanced(budget, budget.current_budget - budget_delta)
                self._store.update(new_budget)

            await self._commit("edit_expense", correlation_id, "expense", edited.id)
            self._budget = new_budget

        if new_supplier:
            await self._audit.log_supplier_created(
                supplier_id=new_supplier.id,
                name=new_supplier.name,
                correlation_id=correlation_id,
            )
        await self._audit.log_expense_updated(
            expense_id=edited.id,
            changed_fields=changed_fields,
            budget_delta=budget_delta,
            budget_after=new_budget.current_budget,
            correlation_id=correlation_id,
        )
        self._publish()
        return edited.model_copy(deep=True)

    async def mark_as_paid(
        self,
        expense: ExpenseRef,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        unpaid -> paid, debiting the budget by the expense amount.

        Idempotent: an already-paid expense is returned unchanged and the
        budget is not touched.

        Raises:
            ExpenseNotFoundError: The expense no longer exists
            PersistenceError: The store rejected the write (nothing applied)
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._lock:
            current = await self._require_expense(expense)
            if current.is_paid:
                return current

            budget = await self._load_budget(correlation_id)
            paid = current.model_copy(update={"is_paid": True, "updated_at": self._clock()})
            new_budget = self._rebalanced(budget, budget.current_budget - paid.amount)

            self._store.update(paid)
            self._store.update(new_budget)
            await self._commit("mark_as_paid", correlation_id, "expense", paid.id)
            self._budget = new_budget

        await self._audit.log_expense_paid(
            expense_id=paid.id,
            amount=paid.amount,
            budget_after=new_budget.current_budget,
            correlation_id=correlation_id,
        )
        self._publish()
        return paid.model_copy(deep=True)

    async def settle_supplier_debt(
        self,
        supplier_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> list[Expense]:
        """
        Mark every unpaid expense of a supplier as paid in one commit.

        Returns the expenses that changed (empty if there was no debt).

        Raises:
            SupplierNotFoundError: Unknown supplier
            PersistenceError: The store rejected the write (nothing applied)
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._lock:
            if await self._store.get_supplier(supplier_id) is None:
                raise SupplierNotFoundError(supplier_id)

            unpaid = await self._store.fetch_expenses(
                ExpenseFilter(supplier_id=supplier_id, is_paid=False)
            )
            if not unpaid:
                return []

            budget = await self._load_budget(correlation_id)
            now = self._clock()
            settled = [e.model_copy(update={"is_paid": True, "updated_at": now}) for e in unpaid]
            total = sum((e.amount for e in settled), Decimal("0"))
            new_budget = self._rebalanced(budget, budget.current_budget - total)

            for expense in settled:
                self._store.update(expense)
            self._store.update(new_budget)
            await self._commit("settle_supplier_debt", correlation_id, "supplier", supplier_id)
            self._budget = new_budget

        running = budget.current_budget
        for expense in settled:
            running -= expense.amount
            await self._audit.log_expense_paid(
                expense_id=expense.id,
                amount=expense.amount,
                budget_after=running,
                correlation_id=correlation_id,
            )
        self._publish()
        return [e.model_copy(deep=True) for e in settled]

    async def delete_expense(
        self,
        expense: ExpenseRef,
        correlation_id: Optional[UUID] = None,
    ) -> DeletedExpenseRecord:
        """
        Delete an expense, refunding the budget if it was paid, and push
        an undo record holding the budget value from BEFORE the refund.

        Raises:
            ExpenseNotFoundError: The expense no longer exists
            PersistenceError: The store rejected the write (nothing applied)
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._lock:
            current = await self._require_expense(expense)
            budget = await self._load_budget(correlation_id)
            budget_before = budget.current_budget

            new_budget = budget
            if current.is_paid:
                new_budget = self._rebalanced(budget, budget_before + current.amount)
                self._store.update(new_budget)
            self._store.delete(current)
            await self._commit("delete_expense", correlation_id, "expense", current.id)

            record = DeletedExpenseRecord(
                expense=current,
                was_paid=current.is_paid,
                budget_before_delete=budget_before,
                deleted_at=self._clock(),
            )
            self._push_undo(record)
            self._budget = new_budget
            self._show_undo_banner = True

        await self._audit.log_expense_deleted(
            expense_id=current.id,
            amount=current.amount,
            was_paid=current.is_paid,
            budget_after=new_budget.current_budget,
            correlation_id=correlation_id,
        )
        self._publish()
        return record

    async def undo_last_delete(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Expense]:
        """
        Restore the most recently deleted expense.

        No-op returning None when there is nothing to undo. For a paid
        expense the budget is restored per settings.undo_budget_policy:
        RESTORE_SNAPSHOT overwrites it with the value captured before the
        delete (discarding any budget change made since), COMPENSATE takes
        back exactly the refunded amount.

        If the expense's supplier has been deleted meanwhile, the expense
        comes back without a supplier.

        Raises:
            PersistenceError: The store rejected the write; the record stays
                on the undo stack
        """
        correlation_id = correlation_id or create_correlation_id()
        policy = self._settings.undo_budget_policy

        async with self._lock:
            if not self._undo_stack:
                return None
            record = self._undo_stack.pop()

            try:
                budget = await self._load_budget(correlation_id)
                restored = record.expense.model_copy(deep=True)
                if restored.supplier_id and await self._store.get_supplier(restored.supplier_id) is None:
                    restored = restored.model_copy(update={"supplier_id": None})

                new_budget = budget
                if record.was_paid:
                    if policy == UndoBudgetPolicy.RESTORE_SNAPSHOT:
                        balance = record.budget_before_delete
                    else:
                        balance = budget.current_budget - record.expense.amount
                    new_budget = self._rebalanced(budget, balance)
                    self._store.update(new_budget)

                self._store.insert(restored)
                await self._commit("undo_last_delete", correlation_id, "expense", restored.id)
            except Exception:
                self._store.rollback()
                self._undo_stack.append(record)
                raise

            self._budget = new_budget
            self._show_undo_banner = bool(self._undo_stack)

        await self._audit.log_expense_restored(
            expense_id=restored.id,
            amount=restored.amount,
            policy=policy.value,
            budget_after=new_budget.current_budget,
            correlation_id=correlation_id,
        )
        self._publish()
        return restored.model_copy(deep=True)

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        return await self._store.get_expense(expense_id)

    async def list_expenses(
        self,
        expense_filter: Optional[ExpenseFilter] = None,
    ) -> list[Expense]:
        """Expenses matching a filter, newest first."""
        return await self._store.fetch_expenses(expense_filter)

    # =========================================================================
    # Suppliers
    # =========================================================================

    async def add_supplier(
        self,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> Supplier:
        """
        Create a supplier, or return the existing one with the same name
        (case-insensitive).

        Raises:
            ValidationError: Empty or malformed name
            PersistenceError: The store rejected the write
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._lock:
            clean = await self._validated(
                "add_supplier",
                correlation_id,
                self._validator.validate_supplier_name,
                name,
            )
            supplier, is_new = await self._resolve_supplier(clean)
            if not is_new:
                return supplier
            self._store.insert(supplier)
            await self._commit("add_supplier", correlation_id, "supplier", supplier.id)

        await self._audit.log_supplier_created(
            supplier_id=supplier.id,
            name=supplier.name,
            correlation_id=correlation_id,
        )
        return supplier.model_copy()

    async def delete_supplier(
        self,
        supplier_id: UUID,
        policy: Optional[SupplierDeletePolicy] = None,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete a supplier.

        With RESTRICT (the default) this fails while any expense references
        the supplier; with NULLIFY the references are cleared in the same
        commit. Budget is never affected.

        Returns the number of expenses detached from the supplier.

        Raises:
            SupplierNotFoundError: Unknown supplier
            SupplierInUseError: RESTRICT and the supplier is referenced
            PersistenceError: The store rejected the write (nothing applied)
        """
        correlation_id = correlation_id or create_correlation_id()
        policy = policy or self._settings.supplier_delete_policy

        async with self._lock:
            supplier = await self._store.get_supplier(supplier_id)
            if supplier is None:
                raise SupplierNotFoundError(supplier_id)

            referencing = await self._store.fetch_expenses(ExpenseFilter(supplier_id=supplier_id))
            if referencing and policy == SupplierDeletePolicy.RESTRICT:
                raise SupplierInUseError(supplier.id, supplier.name, len(referencing))

            now = self._clock()
            for expense in referencing:
                self._store.update(expense.model_copy(update={"supplier_id": None, "updated_at": now}))
            self._store.delete(supplier)
            await self._commit("delete_supplier", correlation_id, "supplier", supplier.id)

        await self._audit.log_supplier_deleted(
            supplier_id=supplier.id,
            name=supplier.name,
            policy=policy.value,
            detached_expenses=len(referencing),
            correlation_id=correlation_id,
        )
        return len(referencing)

    async def get_supplier(self, supplier_id: UUID) -> Optional[Supplier]:
        return await self._store.get_supplier(supplier_id)

    async def list_suppliers(self) -> list[Supplier]:
        """All suppliers sorted by name."""
        return await self._store.fetch_suppliers()

    async def suggest_suppliers(self, text: str, limit: int = 10) -> list[Supplier]:
        """Suppliers whose name contains `text` (case-insensitive)."""
        needle = (text or "").strip()
        if not needle:
            return []
        return (await self._store.fetch_suppliers(name_contains=needle))[:limit]
