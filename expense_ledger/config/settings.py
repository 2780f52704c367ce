"""
Configuration Management for Expense Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The ledger's budget constants and the policies for the behaviours that
used to be implicit (edit deltas, undo restoration, supplier cascade)
are settings, so each one is an explicit, testable decision.
"""

from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EditBudgetPolicy(str, Enum):
    """How an amount edit moves the budget."""
    ALWAYS = "always"        # Adjust regardless of paid status
    PAID_ONLY = "paid_only"  # Adjust only when the expense is paid


class UndoBudgetPolicy(str, Enum):
    """How undoing a paid-expense delete restores the budget."""
    RESTORE_SNAPSHOT = "restore_snapshot"  # Overwrite with budget before delete
    COMPENSATE = "compensate"              # Take back exactly the refunded amount


class SupplierDeletePolicy(str, Enum):
    """What happens to expenses when their supplier is deleted."""
    RESTRICT = "restrict"  # Refuse while any expense references the supplier
    NULLIFY = "nullify"    # Clear the reference on referencing expenses


class LedgerSettings(BaseSettings):
    """Budget ledger configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    default_budget: Decimal = Field(
        default=Decimal("1000000"),
        description="Budget created on first run"
    )
    daily_top_up_amount: Decimal = Field(
        default=Decimal("1000000"),
        ge=0,
        description="Amount added to the budget once per calendar day"
    )
    amount_epsilon: Decimal = Field(
        default=Decimal("0.00001"),
        ge=0,
        description="Amount edits smaller than this leave the budget alone"
    )
    default_currency: str = Field(
        default="IQD",
        min_length=3,
        max_length=3,
        description="Currency assigned when none is given"
    )
    local_timezone: Optional[str] = Field(
        default=None,
        description="IANA zone for calendar-day logic (system local time if unset)"
    )

    edit_budget_policy: EditBudgetPolicy = EditBudgetPolicy.ALWAYS
    undo_budget_policy: UndoBudgetPolicy = UndoBudgetPolicy.RESTORE_SNAPSHOT
    supplier_delete_policy: SupplierDeletePolicy = SupplierDeletePolicy.RESTRICT

    undo_stack_limit: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum undo records kept (None = unbounded)"
    )

    # Input limits
    max_expense_amount: Optional[Decimal] = Field(
        default=None,
        gt=0,
        description="Reject expenses above this amount (None = no limit)"
    )
    max_photo_size_kb: int = Field(
        default=5120,
        ge=1,
        description="Maximum size of an expense photo in KB"
    )

    @field_validator("default_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()

    @property
    def max_photo_size_bytes(self) -> int:
        return self.max_photo_size_kb * 1024


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Worksheet names within the spreadsheet
    budget_sheet_name: str = Field(default="Budget")
    suppliers_sheet_name: str = Field(default="Suppliers")
    expenses_sheet_name: str = Field(default="Expenses")
    audit_sheet_name: str = Field(default="AuditLog")

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Dashboard behaviour
    page_size: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Expenses loaded per batch on the dashboard"
    )
    top_up_notification_seconds: float = Field(
        default=3.0,
        ge=0.0,
        description="How long the top-up notification stays visible"
    )
    supplier_suggestion_limit: int = Field(
        default=10,
        ge=1,
        description="Maximum supplier suggestions while typing"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    {setting_name}_error entry for each section that failed.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
