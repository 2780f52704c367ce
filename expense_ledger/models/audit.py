"""
Audit Models for Expense Ledger

Every ledger mutation is logged for audit purposes.
This provides:
1. Traceability of every budget movement
2. Debugging information when a save fails
3. A way to reconstruct how the budget reached its current value

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Budget
    BUDGET_CREATED = "budget_created"
    BUDGET_TOPPED_UP = "budget_topped_up"

    # Suppliers
    SUPPLIER_CREATED = "supplier_created"
    SUPPLIER_DELETED = "supplier_deleted"

    # Expenses
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_PAID = "expense_paid"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSE_RESTORED = "expense_restored"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    SAVE_FAILED = "save_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'budget', 'supplier')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one user action)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
        ]


def _money(amount: Decimal) -> str:
    return format(amount, "f")


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_paid(expense_id, amount, budget_after)

    Amounts are recorded as strings so Decimal precision survives JSON.
    """

    @staticmethod
    def budget_created(
        budget_id: UUID,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CREATED,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget created with {_money(amount)}",
            details={"amount": _money(amount)},
        )

    @staticmethod
    def budget_topped_up(
        budget_id: UUID,
        amount: Decimal,
        budget_after: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_TOPPED_UP,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Daily top-up of {_money(amount)}",
            details={
                "amount": _money(amount),
                "budget_after": _money(budget_after),
            },
        )

    @staticmethod
    def supplier_created(
        supplier_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUPPLIER_CREATED,
            entity_type="supplier",
            entity_id=supplier_id,
            correlation_id=correlation_id,
            description=f"Supplier created: {name}",
            details={"name": name},
        )

    @staticmethod
    def supplier_deleted(
        supplier_id: UUID,
        name: str,
        policy: str,
        detached_expenses: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUPPLIER_DELETED,
            entity_type="supplier",
            entity_id=supplier_id,
            correlation_id=correlation_id,
            description=f"Supplier deleted: {name}",
            details={
                "name": name,
                "policy": policy,
                "detached_expenses": detached_expenses,
            },
        )

    @staticmethod
    def expense_created(
        expense_id: UUID,
        amount: Decimal,
        is_paid: bool,
        budget_after: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense logged: {_money(amount)} ({'paid' if is_paid else 'unpaid'})",
            details={
                "amount": _money(amount),
                "is_paid": is_paid,
                "budget_after": _money(budget_after),
            },
        )

    @staticmethod
    def expense_updated(
        expense_id: UUID,
        changed_fields: list[str],
        budget_delta: Decimal,
        budget_after: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense edited: {', '.join(changed_fields) or 'no changes'}",
            details={
                "changed_fields": changed_fields,
                "budget_delta": _money(budget_delta),
                "budget_after": _money(budget_after),
            },
        )

    @staticmethod
    def expense_paid(
        expense_id: UUID,
        amount: Decimal,
        budget_after: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_PAID,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense marked as paid: {_money(amount)}",
            details={
                "amount": _money(amount),
                "budget_after": _money(budget_after),
            },
        )

    @staticmethod
    def expense_deleted(
        expense_id: UUID,
        amount: Decimal,
        was_paid: bool,
        budget_after: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense deleted: {_money(amount)}",
            details={
                "amount": _money(amount),
                "was_paid": was_paid,
                "budget_after": _money(budget_after),
            },
        )

    @staticmethod
    def expense_restored(
        expense_id: UUID,
        amount: Decimal,
        policy: str,
        budget_after: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_RESTORED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Deleted expense restored: {_money(amount)}",
            details={
                "amount": _money(amount),
                "policy": policy,
                "budget_after": _money(budget_after),
            },
        )

    @staticmethod
    def validation_failed(
        operation: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"{operation} rejected with {len(issues)} issues",
            details={
                "operation": operation,
                "issues": issues,
            },
        )

    @staticmethod
    def save_failed(
        operation: str,
        error_message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Save failed during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
