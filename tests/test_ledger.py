"""Tests for the ledger engine against the in-memory store."""

import random
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from expense_ledger.audit import AuditLogger
from expense_ledger.config import (
    EditBudgetPolicy,
    LedgerSettings,
    SupplierDeletePolicy,
    UndoBudgetPolicy,
)
from expense_ledger.ledger import (
    ExpenseNotFoundError,
    LedgerEngine,
    SupplierInUseError,
    SupplierNotFoundError,
)
from expense_ledger.models.audit import AuditEventType
from expense_ledger.models.expense import Budget, ExpenseCategory, ExpenseUpdate
from expense_ledger.queries import category_totals
from expense_ledger.services.storage import ExpenseFilter, PersistenceError
from expense_ledger.validation import ValidationError


INITIAL = Decimal("1000000")


def make_engine(store, clock, audit_storage=None, tz=None, **settings) -> LedgerEngine:
    settings.setdefault("local_timezone", "UTC")
    return LedgerEngine(
        store,
        settings=LedgerSettings(**settings),
        audit_logger=AuditLogger(audit_storage),
        clock=clock,
        tz=tz,
    )


async def log_expense(engine, amount, is_paid=True, supplier="Baghdad Mill", **kwargs):
    return await engine.create_expense(
        details=kwargs.pop("details", "Flour"),
        amount=amount,
        is_paid=is_paid,
        supplier_name=supplier,
        **kwargs,
    )


async def event_types(audit_storage) -> list[AuditEventType]:
    """Event types in the order they were appended."""
    return [e.event_type for e in audit_storage._events]


class TestBudgetBootstrap:

    @pytest.mark.asyncio
    async def test_default_budget_created_once(self, engine, store):
        budget = await engine.create_default_budget_if_needed()
        assert budget.current_budget == INITIAL
        await engine.create_default_budget_if_needed()
        assert len(await store.fetch_budgets()) == 1

    @pytest.mark.asyncio
    async def test_budget_loaded_lazily(self, engine, store):
        assert engine.current_budget is None
        await log_expense(engine, 10, is_paid=False)
        assert engine.current_budget == INITIAL
        assert len(await store.fetch_budgets()) == 1

    @pytest.mark.asyncio
    async def test_existing_budget_adopted(self, store, clock):
        store.insert(Budget(current_budget=Decimal("42")))
        await store.save()
        engine = make_engine(store, clock)
        assert (await engine.create_default_budget_if_needed()).current_budget == Decimal("42")

    @pytest.mark.asyncio
    async def test_oldest_of_several_budgets_wins(self, store, clock):
        store.insert(Budget(current_budget=Decimal("2"), created_at=datetime(2024, 2, 1, tzinfo=timezone.utc)))
        store.insert(Budget(current_budget=Decimal("1"), created_at=datetime(2024, 1, 1, tzinfo=timezone.utc)))
        await store.save()
        engine = make_engine(store, clock)
        await engine.create_default_budget_if_needed()
        assert engine.current_budget == Decimal("1")

    @pytest.mark.asyncio
    async def test_refresh_rereads_store(self, engine, store, clock):
        await engine.create_default_budget_if_needed()
        other = make_engine(store, clock)
        await log_expense(other, 300)

        assert engine.current_budget == INITIAL
        await engine.refresh()
        assert engine.current_budget == INITIAL - 300

    @pytest.mark.asyncio
    async def test_budget_creation_audited(self, engine, audit_storage):
        await engine.create_default_budget_if_needed()
        assert await event_types(audit_storage) == [AuditEventType.BUDGET_CREATED]


class TestCreateExpense:

    @pytest.mark.asyncio
    async def test_paid_expense_debits_budget(self, engine):
        await engine.create_default_budget_if_needed()
        expense = await log_expense(engine, 50000)
        assert expense.is_paid
        assert engine.current_budget == Decimal("950000")

    @pytest.mark.asyncio
    async def test_unpaid_expense_leaves_budget(self, engine):
        await log_expense(engine, 50000, is_paid=False)
        assert engine.current_budget == INITIAL

    @pytest.mark.asyncio
    async def test_fields_stored(self, engine, clock, png_bytes):
        expense = await log_expense(
            engine,
            "1250.75",
            details="  Cooking oil ",
            category=ExpenseCategory.SUPPLIES,
            currency="usd",
            photo=png_bytes,
        )
        stored = await engine.get_expense(expense.id)
        assert stored == expense
        assert stored.details == "Cooking oil"
        assert stored.amount == Decimal("1250.75")
        assert stored.currency == "USD"
        assert stored.date == clock.now
        assert stored.photo == png_bytes

    @pytest.mark.asyncio
    async def test_default_currency_from_settings(self, store, clock):
        engine = make_engine(store, clock, default_currency="eur")
        expense = await log_expense(engine, 1)
        assert expense.currency == "EUR"

    @pytest.mark.asyncio
    async def test_supplier_reused_case_insensitively(self, engine):
        first = await log_expense(engine, 1, supplier="Baghdad Mill")
        second = await log_expense(engine, 1, supplier="  bAGHDAD mILL ")
        assert first.supplier_id == second.supplier_id
        suppliers = await engine.list_suppliers()
        assert [s.name for s in suppliers] == ["Baghdad Mill"]

    @pytest.mark.asyncio
    async def test_new_supplier_created(self, engine, audit_storage):
        expense = await log_expense(engine, 1, supplier="Corner Shop")
        supplier = await engine.get_supplier(expense.supplier_id)
        assert supplier.name == "Corner Shop"
        assert AuditEventType.SUPPLIER_CREATED in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_blank_supplier_rejected_without_side_effects(self, engine, store, audit_storage):
        await engine.create_default_budget_if_needed()
        with pytest.raises(ValidationError) as exc:
            await log_expense(engine, 100, supplier="   ")
        assert exc.value.field == "supplier_name"
        assert engine.current_budget == INITIAL
        assert await store.fetch_expenses() == []
        assert await store.fetch_suppliers() == []
        assert (await event_types(audit_storage))[-1] == AuditEventType.VALIDATION_FAILED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -10, "abc", float("inf")])
    async def test_bad_amount_rejected(self, engine, store, amount):
        with pytest.raises(ValidationError) as exc:
            await log_expense(engine, amount)
        assert exc.value.field == "amount"
        assert await store.fetch_expenses() == []


class TestMarkAsPaid:

    @pytest.mark.asyncio
    async def test_debits_once(self, engine):
        expense = await log_expense(engine, 20000, is_paid=False)
        paid = await engine.mark_as_paid(expense)
        assert paid.is_paid
        assert engine.current_budget == Decimal("980000")

    @pytest.mark.asyncio
    async def test_idempotent(self, engine, store):
        expense = await log_expense(engine, 20000, is_paid=False)
        await engine.mark_as_paid(expense)
        commits = store.commit_count

        # the stale unpaid object must not cause a second debit
        again = await engine.mark_as_paid(expense)
        await engine.mark_as_paid(expense.id)

        assert again.is_paid
        assert engine.current_budget == Decimal("980000")
        assert store.commit_count == commits

    @pytest.mark.asyncio
    async def test_already_paid_at_creation(self, engine):
        expense = await log_expense(engine, 50000)
        await engine.mark_as_paid(expense)
        assert engine.current_budget == Decimal("950000")

    @pytest.mark.asyncio
    async def test_missing_expense(self, engine):
        with pytest.raises(ExpenseNotFoundError):
            await engine.mark_as_paid(uuid4())


class TestCallerTimestamps:

    @pytest.mark.asyncio
    async def test_naive_and_aware_dates_list_together(self, engine):
        await log_expense(engine, 1, details="Now")
        await log_expense(engine, 2, details="Naive", date=datetime(2024, 3, 14, 8, 0))
        await log_expense(
            engine, 3, details="Baghdad",
            date=datetime(2024, 3, 14, 13, 0, tzinfo=ZoneInfo("Asia/Baghdad")),
        )

        listed = await engine.list_expenses()
        assert [e.details for e in listed] == ["Baghdad", "Now", "Naive"]
        assert listed[-1].date == datetime(2024, 3, 14, 8, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_edit_to_naive_date(self, engine):
        expense = await log_expense(engine, 10)
        await log_expense(engine, 20, details="Later")

        edited = await engine.edit_expense(expense, date=datetime(2024, 3, 10, 12, 0))
        assert edited.date.tzinfo is not None

        listed = await engine.list_expenses()
        assert [e.details for e in listed] == ["Later", "Flour"]

    @pytest.mark.asyncio
    async def test_naive_filter_bounds(self, engine):
        await log_expense(engine, 10, details="Old", date=datetime(2024, 3, 1, 12, 0))
        await log_expense(engine, 20, details="Today")

        found = await engine.list_expenses(ExpenseFilter(
            date_from=datetime(2024, 3, 1),
            date_to=datetime(2024, 3, 2),
        ))
        assert [e.details for e in found] == ["Old"]


class TestEditExpense:

    @pytest.mark.asyncio
    async def test_always_policy_moves_budget_for_unpaid(self, engine):
        expense = await log_expense(engine, 100, is_paid=False)
        edited = await engine.edit_expense(expense, amount=150)
        assert edited.amount == Decimal("150")
        assert engine.current_budget == INITIAL - 50

    @pytest.mark.asyncio
    async def test_paid_only_policy_ignores_unpaid(self, store, clock):
        engine = make_engine(store, clock, edit_budget_policy=EditBudgetPolicy.PAID_ONLY)
        expense = await log_expense(engine, 100, is_paid=False)
        await engine.edit_expense(expense, amount=150)
        assert engine.current_budget == INITIAL

    @pytest.mark.asyncio
    async def test_paid_only_policy_moves_paid(self, store, clock):
        engine = make_engine(store, clock, edit_budget_policy=EditBudgetPolicy.PAID_ONLY)
        expense = await log_expense(engine, 100)
        await engine.edit_expense(expense, amount=80)
        assert engine.current_budget == INITIAL - 80

    @pytest.mark.asyncio
    async def test_delta_below_epsilon_leaves_budget(self, engine):
        expense = await log_expense(engine, 100)
        edited = await engine.edit_expense(expense, amount="100.000001")
        assert edited.amount == Decimal("100.000001")
        assert engine.current_budget == INITIAL - 100

    @pytest.mark.asyncio
    async def test_delta_measured_against_stored_amount(self, engine):
        expense = await log_expense(engine, 100)
        await engine.edit_expense(expense, amount=120)
        # expense still holds the old amount; the stored one is 120
        await engine.edit_expense(expense, amount=130)
        assert engine.current_budget == INITIAL - 130

    @pytest.mark.asyncio
    async def test_other_fields_and_supplier_change(self, engine, store):
        expense = await log_expense(engine, 100, is_paid=False)
        new_date = datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
        edited = await engine.edit_expense(
            expense,
            ExpenseUpdate(
                details="Electricity bill",
                category=ExpenseCategory.UTILITIES,
                date=new_date,
                supplier_name="Power Company",
            ),
        )
        assert edited.details == "Electricity bill"
        assert edited.category == ExpenseCategory.UTILITIES
        assert edited.date == new_date
        assert edited.supplier_id != expense.supplier_id
        assert (await engine.get_supplier(edited.supplier_id)).name == "Power Company"
        assert engine.current_budget == INITIAL
        assert len(await store.fetch_suppliers()) == 2

    @pytest.mark.asyncio
    async def test_photo_replace_and_remove(self, engine, png_bytes):
        expense = await log_expense(engine, 1, is_paid=False)
        with_photo = await engine.edit_expense(expense, photo=png_bytes)
        assert with_photo.photo == png_bytes
        without = await engine.edit_expense(expense, remove_photo=True)
        assert without.photo is None

    @pytest.mark.asyncio
    async def test_no_change_does_not_commit(self, engine, store):
        expense = await log_expense(engine, 100)
        commits = store.commit_count
        same = await engine.edit_expense(expense, amount=100, details="Flour")
        assert same == expense
        assert store.commit_count == commits

    @pytest.mark.asyncio
    async def test_invalid_edit_rejected(self, engine):
        expense = await log_expense(engine, 100)
        with pytest.raises(ValidationError):
            await engine.edit_expense(expense, amount=-1)
        assert (await engine.get_expense(expense.id)).amount == Decimal("100")

    @pytest.mark.asyncio
    async def test_edit_deleted_expense(self, engine):
        expense = await log_expense(engine, 100)
        await engine.delete_expense(expense)
        with pytest.raises(ExpenseNotFoundError):
            await engine.edit_expense(expense, amount=5)


class TestDeleteAndUndo:

    @pytest.mark.asyncio
    async def test_budget_scenario(self, engine):
        await engine.create_default_budget_if_needed()
        assert engine.current_budget == Decimal("1000000")

        expense = await log_expense(engine, 50000)
        assert engine.current_budget == Decimal("950000")

        record = await engine.delete_expense(expense)
        assert engine.current_budget == Decimal("1000000")
        assert engine.undo_depth == 1
        assert record.was_paid
        assert record.budget_before_delete == Decimal("950000")
        assert await engine.get_expense(expense.id) is None

        restored = await engine.undo_last_delete()
        assert restored == expense
        assert await engine.get_expense(expense.id) == expense
        assert engine.current_budget == Decimal("950000")
        assert engine.undo_depth == 0

    @pytest.mark.asyncio
    async def test_unpaid_delete_leaves_budget(self, engine):
        expense = await log_expense(engine, 700, is_paid=False)
        await engine.delete_expense(expense)
        assert engine.current_budget == INITIAL
        await engine.undo_last_delete()
        assert engine.current_budget == INITIAL

    @pytest.mark.asyncio
    async def test_undo_on_empty_stack_is_noop(self, engine, store):
        assert await engine.undo_last_delete() is None
        assert store.commit_count == 0

    @pytest.mark.asyncio
    async def test_undo_is_lifo(self, engine):
        first = await log_expense(engine, 1)
        second = await log_expense(engine, 2)
        await engine.delete_expense(first)
        await engine.delete_expense(second)
        assert (await engine.undo_last_delete()).id == second.id
        assert (await engine.undo_last_delete()).id == first.id

    @pytest.mark.asyncio
    async def test_snapshot_restore_discards_intervening_change(self, engine):
        expense = await log_expense(engine, 100)
        await engine.delete_expense(expense)
        await log_expense(engine, 50)
        await engine.undo_last_delete()
        assert engine.current_budget == INITIAL - 100

    @pytest.mark.asyncio
    async def test_compensating_undo_keeps_intervening_change(self, store, clock):
        engine = make_engine(store, clock, undo_budget_policy=UndoBudgetPolicy.COMPENSATE)
        expense = await log_expense(engine, 100)
        await engine.delete_expense(expense)
        await log_expense(engine, 50)
        await engine.undo_last_delete()
        assert engine.current_budget == INITIAL - 150

    @pytest.mark.asyncio
    async def test_undo_banner_flags(self, engine):
        expense = await log_expense(engine, 1)
        assert not engine.show_undo_banner
        await engine.delete_expense(expense)
        assert engine.show_undo_banner
        engine.dismiss_undo_banner()
        assert not engine.show_undo_banner
        assert engine.can_undo
        await engine.undo_last_delete()
        assert not engine.show_undo_banner

    @pytest.mark.asyncio
    async def test_undo_stack_limit(self, store, clock):
        engine = make_engine(store, clock, undo_stack_limit=2)
        expenses = [await log_expense(engine, n) for n in (1, 2, 3)]
        for expense in expenses:
            await engine.delete_expense(expense)
        assert engine.undo_depth == 2
        assert [r.expense.id for r in engine.undo_stack] == [expenses[1].id, expenses[2].id]

    @pytest.mark.asyncio
    async def test_undo_after_supplier_deleted(self, engine):
        expense = await log_expense(engine, 10, supplier="Gone Supplier")
        await engine.delete_expense(expense)
        await engine.delete_supplier(expense.supplier_id)

        restored = await engine.undo_last_delete()
        assert restored.supplier_id is None
        assert (await engine.get_expense(expense.id)).supplier_id is None

    @pytest.mark.asyncio
    async def test_delete_missing_expense(self, engine):
        with pytest.raises(ExpenseNotFoundError):
            await engine.delete_expense(uuid4())

    @pytest.mark.asyncio
    async def test_delete_and_undo_audited(self, engine, audit_storage):
        expense = await log_expense(engine, 10)
        await engine.delete_expense(expense)
        await engine.undo_last_delete()
        types = await event_types(audit_storage)
        assert types[-2:] == [AuditEventType.EXPENSE_DELETED, AuditEventType.EXPENSE_RESTORED]


class TestPersistenceFailure:

    @pytest.mark.asyncio
    async def test_failed_create_leaves_no_debit(self, engine, store, audit_storage):
        await engine.create_default_budget_if_needed()
        store.failures_left = 1
        with pytest.raises(PersistenceError):
            await log_expense(engine, 500)
        assert engine.current_budget == INITIAL
        assert await store.fetch_expenses() == []
        assert (await store.fetch_budgets())[0].current_budget == INITIAL
        assert (await event_types(audit_storage))[-1] == AuditEventType.SAVE_FAILED

    @pytest.mark.asyncio
    async def test_failed_mark_as_paid(self, engine, store):
        expense = await log_expense(engine, 500, is_paid=False)
        store.failures_left = 1
        with pytest.raises(PersistenceError):
            await engine.mark_as_paid(expense)
        assert engine.current_budget == INITIAL
        assert not (await engine.get_expense(expense.id)).is_paid

        # the user retries
        await engine.mark_as_paid(expense)
        assert engine.current_budget == INITIAL - 500

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_expense_and_stack(self, engine, store):
        expense = await log_expense(engine, 500)
        store.failures_left = 1
        with pytest.raises(PersistenceError):
            await engine.delete_expense(expense)
        assert engine.current_budget == INITIAL - 500
        assert engine.undo_depth == 0
        assert not engine.show_undo_banner
        assert await engine.get_expense(expense.id) is not None

    @pytest.mark.asyncio
    async def test_failed_undo_keeps_record(self, engine, store):
        expense = await log_expense(engine, 500)
        await engine.delete_expense(expense)
        store.failures_left = 1
        with pytest.raises(PersistenceError):
            await engine.undo_last_delete()
        assert engine.undo_depth == 1
        assert engine.current_budget == INITIAL

        await engine.undo_last_delete()
        assert engine.current_budget == INITIAL - 500

    @pytest.mark.asyncio
    async def test_failed_edit(self, engine, store):
        expense = await log_expense(engine, 500)
        store.failures_left = 1
        with pytest.raises(PersistenceError):
            await engine.edit_expense(expense, amount=900)
        assert engine.current_budget == INITIAL - 500
        assert (await engine.get_expense(expense.id)).amount == Decimal("500")


class TestTopUp:

    @pytest.mark.asyncio
    async def test_once_per_day(self, engine, store, clock):
        assert await engine.top_up_budget_daily() is True
        assert engine.current_budget == INITIAL * 2
        assert engine.show_top_up_notification

        clock.advance(hours=10)
        assert await engine.top_up_budget_daily() is False
        assert engine.current_budget == INITIAL * 2

        clock.advance(days=1)
        assert await engine.top_up_budget_daily() is True
        assert engine.current_budget == INITIAL * 3
        assert (await store.fetch_budgets())[0].last_top_up_at == clock.now

    @pytest.mark.asyncio
    async def test_guard_survives_restart(self, engine, store, clock):
        await engine.top_up_budget_daily()
        restarted = make_engine(store, clock)
        assert await restarted.top_up_budget_daily() is False
        assert restarted.current_budget == INITIAL * 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("zone, expected", [("Asia/Baghdad", True), ("UTC", False)])
    async def test_day_boundary_uses_local_zone(self, store, clock, zone, expected):
        engine = make_engine(store, clock, tz=ZoneInfo(zone))
        clock.now = datetime(2024, 3, 14, 20, 0, tzinfo=timezone.utc)
        await engine.top_up_budget_daily()

        # 21:30 UTC is already 00:30 the next day in Baghdad
        clock.now = datetime(2024, 3, 14, 21, 30, tzinfo=timezone.utc)
        assert await engine.top_up_budget_daily() is expected

    @pytest.mark.asyncio
    async def test_notification_dismiss(self, engine):
        await engine.top_up_budget_daily()
        engine.dismiss_top_up_notification()
        assert not engine.show_top_up_notification

    @pytest.mark.asyncio
    async def test_failed_top_up_can_retry(self, engine, store):
        await engine.create_default_budget_if_needed()
        store.failures_left = 1
        with pytest.raises(PersistenceError):
            await engine.top_up_budget_daily()
        assert engine.current_budget == INITIAL
        assert not engine.show_top_up_notification
        assert await engine.top_up_budget_daily() is True


class TestSuppliers:

    @pytest.mark.asyncio
    async def test_restrict_delete(self, engine):
        expense = await log_expense(engine, 10)
        with pytest.raises(SupplierInUseError) as exc:
            await engine.delete_supplier(expense.supplier_id)
        assert exc.value.expense_count == 1
        assert await engine.get_supplier(expense.supplier_id) is not None

    @pytest.mark.asyncio
    async def test_nullify_delete(self, engine):
        expense = await log_expense(engine, 10)
        detached = await engine.delete_supplier(expense.supplier_id, policy=SupplierDeletePolicy.NULLIFY)
        assert detached == 1
        assert (await engine.get_expense(expense.id)).supplier_id is None
        assert await engine.get_supplier(expense.supplier_id) is None
        assert engine.current_budget == INITIAL - 10

    @pytest.mark.asyncio
    async def test_delete_unknown_supplier(self, engine):
        with pytest.raises(SupplierNotFoundError):
            await engine.delete_supplier(uuid4())

    @pytest.mark.asyncio
    async def test_add_supplier_reuses_existing(self, engine):
        first = await engine.add_supplier("Corner Shop")
        second = await engine.add_supplier("corner shop")
        assert first.id == second.id

    @pytest.mark.asyncio
    async def test_add_supplier_validates(self, engine):
        with pytest.raises(ValidationError):
            await engine.add_supplier("Shop 24")

    @pytest.mark.asyncio
    async def test_suggestions(self, engine):
        for name in ("Baghdad Mill", "Basra Mill", "Corner Shop"):
            await engine.add_supplier(name)
        assert [s.name for s in await engine.suggest_suppliers("mill")] == ["Baghdad Mill", "Basra Mill"]
        assert len(await engine.suggest_suppliers("mill", limit=1)) == 1
        assert await engine.suggest_suppliers("   ") == []

    @pytest.mark.asyncio
    async def test_settle_supplier_debt(self, engine):
        a = await log_expense(engine, 100, is_paid=False)
        await log_expense(engine, 200, is_paid=False)
        await log_expense(engine, 50, is_paid=True)
        await log_expense(engine, 999, is_paid=False, supplier="Other Shop")

        settled = await engine.settle_supplier_debt(a.supplier_id)
        assert len(settled) == 2
        assert all(e.is_paid for e in settled)
        assert engine.current_budget == INITIAL - 350

        assert await engine.settle_supplier_debt(a.supplier_id) == []
        assert engine.current_budget == INITIAL - 350

        unpaid = await engine.list_expenses(ExpenseFilter(is_paid=False))
        assert [e.amount for e in unpaid] == [Decimal("999")]

    @pytest.mark.asyncio
    async def test_settle_unknown_supplier(self, engine):
        with pytest.raises(SupplierNotFoundError):
            await engine.settle_supplier_debt(uuid4())


class TestPublishedState:

    @pytest.mark.asyncio
    async def test_listeners_receive_snapshots(self, engine):
        snapshots = []
        unsubscribe = engine.subscribe(snapshots.append)

        expense = await log_expense(engine, 10)
        await engine.delete_expense(expense)
        assert snapshots[-1].current_budget == INITIAL
        assert snapshots[-1].undo_available
        assert snapshots[-1].show_undo_banner

        count = len(snapshots)
        unsubscribe()
        await engine.undo_last_delete()
        assert len(snapshots) == count

    @pytest.mark.asyncio
    async def test_broken_listener_does_not_break_operation(self, engine):
        def broken(snapshot):
            raise RuntimeError("view gone")

        engine.subscribe(broken)
        await log_expense(engine, 10)
        assert engine.current_budget == INITIAL - 10


class TestProperties:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seed", [1, 7, 42])
    async def test_budget_matches_paid_expenses(self, engine, seed):
        rng = random.Random(seed)
        await engine.create_default_budget_if_needed()

        for _ in range(40):
            existing = await engine.list_expenses()
            action = rng.choice(["create", "create", "pay", "delete"])
            if action == "create" or not existing:
                amount = Decimal(rng.randint(1, 100000)) / 100
                await log_expense(engine, amount, is_paid=rng.random() < 0.5)
            elif action == "pay":
                await engine.mark_as_paid(rng.choice(existing))
            else:
                await engine.delete_expense(rng.choice(existing))

        paid_total = sum(
            (e.amount for e in await engine.list_expenses() if e.is_paid),
            Decimal("0"),
        )
        assert engine.current_budget == INITIAL - paid_total

    @pytest.mark.asyncio
    async def test_category_scenario(self, engine):
        await log_expense(engine, 20000, is_paid=False, category=ExpenseCategory.FOOD)
        await log_expense(engine, 30000, is_paid=False, category=ExpenseCategory.UTILITIES)

        totals = category_totals(await engine.list_expenses())
        assert [(t.category, t.total, t.percentage) for t in totals] == [
            (ExpenseCategory.UTILITIES, Decimal("30000"), 60.0),
            (ExpenseCategory.FOOD, Decimal("20000"), 40.0),
        ]
