"""
Core Data Models for Expense Ledger

These models define the schemas for every record flowing through the ledger:
1. Durable entities (Budget, Supplier, Expense)
2. The ephemeral undo record
3. Derived, read-only report views

DESIGN DECISION: Amounts are Decimal end to end. The budget is updated by
repeated additions and subtractions, and binary floats drift under that.

DESIGN DECISION: Expense -> Supplier is a weak reference (an id looked up
through the store), never an embedded object. Deleting either side has an
explicit policy in the ledger engine.

DESIGN DECISION: Stored timestamps are timezone-aware. A naive datetime is
read as UTC when a model is built, so every stored date compares with
every other one.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Read a naive timestamp as UTC; aware ones pass through unchanged."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class ExpenseCategory(str, Enum):
    """Supported expense categories."""
    FOOD = "food"
    SUPPLIES = "supplies"
    UTILITIES = "utilities"
    SALARY = "salary"
    OTHER = "other"


# =============================================================================
# DURABLE ENTITIES
# =============================================================================

class Budget(BaseModel):
    """
    The single budget record.

    The ledger engine owns it as an aggregate root. Presentation code reads
    it through the engine only.

    current_budget is allowed to go negative (overspending is information,
    not an error).
    """
    id: UUID = Field(default_factory=uuid4)
    current_budget: Decimal = Field(
        ...,
        description="Remaining spendable funds"
    )
    last_top_up_at: Optional[datetime] = Field(
        default=None,
        description="When the daily top-up last ran"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("last_top_up_at", "created_at", "updated_at")
    @classmethod
    def aware_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_aware(v)


class Supplier(BaseModel):
    """A named counterparty that expenses are billed to."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Supplier name (letters and whitespace)"
    )
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at")
    @classmethod
    def aware_created_at(cls, v: datetime) -> datetime:
        return as_aware(v)

    @property
    def match_key(self) -> str:
        """Key used for case-insensitive name matching."""
        return self.name.casefold()


class Expense(BaseModel):
    """
    A single spend event.

    Amount positivity is checked by ExpenseValidator at the ledger boundary,
    not here: stored records are trusted as they are.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    details: str = Field(
        default="",
        max_length=500,
        description="Free-text description"
    )
    date: datetime = Field(
        ...,
        description="When the expense happened"
    )
    amount: Decimal = Field(
        ...,
        description="Amount in `currency`"
    )
    is_paid: bool = False
    category: ExpenseCategory = ExpenseCategory.OTHER
    currency: str = Field(
        default="IQD",
        min_length=3,
        max_length=3,
    )
    photo: Optional[bytes] = Field(
        default=None,
        description="Optional receipt photo (raw image bytes)"
    )
    supplier_id: Optional[UUID] = Field(
        default=None,
        description="Weak reference to a Supplier"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator("date", "created_at", "updated_at")
    @classmethod
    def aware_timestamps(cls, v: datetime) -> datetime:
        return as_aware(v)


# =============================================================================
# LEDGER WORKING MODELS
# =============================================================================

class ExpenseUpdate(BaseModel):
    """
    Partial edit of an expense.

    Fields left as None are not changed. To drop the photo, set
    remove_photo; a None photo means "keep the current one".
    """
    details: Optional[str] = None
    amount: Optional[Decimal | int | float | str] = None
    date: Optional[datetime] = None
    category: Optional[ExpenseCategory] = None
    currency: Optional[str] = None
    supplier_name: Optional[str] = None
    photo: Optional[bytes] = None
    remove_photo: bool = False

    @field_validator("date")
    @classmethod
    def aware_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_aware(v)


class DeletedExpenseRecord(BaseModel):
    """
    Snapshot pushed onto the undo stack when an expense is deleted.

    Not persisted: the undo stack lives for the lifetime of the process.
    """
    model_config = ConfigDict(frozen=True)

    expense: Expense
    was_paid: bool
    budget_before_delete: Decimal
    deleted_at: datetime = Field(default_factory=utc_now)


class LedgerSnapshot(BaseModel):
    """State published to listeners after every ledger change."""
    model_config = ConfigDict(frozen=True)

    current_budget: Optional[Decimal]
    undo_available: bool
    undo_depth: int
    show_undo_banner: bool
    show_top_up_notification: bool


# =============================================================================
# DERIVED VIEWS (never persisted)
# =============================================================================

class DailyTotal(BaseModel):
    """Sum of expense amounts on one calendar day."""
    model_config = ConfigDict(frozen=True)

    date: date
    total: Decimal


class CategoryTotal(BaseModel):
    """Sum of expense amounts in one category and its share of the whole."""
    model_config = ConfigDict(frozen=True)

    category: ExpenseCategory
    total: Decimal
    percentage: float = Field(ge=0.0, le=100.0)


class SupplierDebt(BaseModel):
    """Outstanding (unpaid) amount owed to one supplier."""
    model_config = ConfigDict(frozen=True)

    supplier_id: UUID
    supplier_name: Optional[str] = None
    total: Decimal
    expense_count: int = Field(ge=1)


class StatisticsSnapshot(BaseModel):
    """Everything the statistics screen draws for one date range."""
    model_config = ConfigDict(frozen=True)

    date_from: datetime
    date_to: datetime
    total: Decimal
    daily_totals: list[DailyTotal] = Field(default_factory=list)
    category_totals: list[CategoryTotal] = Field(default_factory=list)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None
