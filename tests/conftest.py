"""Shared fixtures for the expense ledger tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from io import BytesIO

import pytest
from PIL import Image

from expense_ledger.audit import AuditLogger
from expense_ledger.config import AppSettings, LedgerSettings
from expense_ledger.ledger import LedgerEngine
from expense_ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryEntityStore,
    PersistenceError,
)


START = datetime(2024, 3, 14, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FlakyEntityStore(InMemoryEntityStore):
    """In-memory store whose next commits can be made to fail."""

    def __init__(self):
        super().__init__()
        self.failures_left = 0

    async def _commit(self, changes):
        if self.failures_left:
            self.failures_left -= 1
            raise PersistenceError("simulated write failure")
        await super()._commit(changes)


def make_png(size=(4, 4), color=(200, 30, 30)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings(
        default_budget=Decimal("1000000"),
        daily_top_up_amount=Decimal("1000000"),
        local_timezone="UTC",
    )


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(page_size=20, top_up_notification_seconds=0.05)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> FlakyEntityStore:
    return FlakyEntityStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def engine(store, ledger_settings, audit_storage, clock) -> LedgerEngine:
    return LedgerEngine(
        store,
        settings=ledger_settings,
        audit_logger=AuditLogger(audit_storage),
        clock=clock,
    )


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def png_factory():
    return make_png
