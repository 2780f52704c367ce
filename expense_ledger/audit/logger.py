"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. A trail of every budget movement
2. Debugging capability when a save fails
3. A history the user can inspect

The audit logger:
- Always logs locally as structured JSON (structlog)
- Optionally appends to an audit store
- Never breaks the ledger operation if the audit store fails
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_ledger.models.audit import AuditEvent, AuditEventBuilder
from expense_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store (for persistence and user visibility), if configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_budget_created(
        self,
        budget_id: UUID,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.budget_created(
            budget_id=budget_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_budget_topped_up(
        self,
        budget_id: UUID,
        amount: Decimal,
        budget_after: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.budget_topped_up(
            budget_id=budget_id,
            amount=amount,
            budget_after=budget_after,
            correlation_id=correlation_id,
        ))

    async def log_supplier_created(
        self,
        supplier_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.supplier_created(
            supplier_id=supplier_id,
            name=name,
            correlation_id=correlation_id,
        ))

    async def log_supplier_deleted(
        self,
        supplier_id: UUID,
        name: str,
        policy: str,
        detached_expenses: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.supplier_deleted(
            supplier_id=supplier_id,
            name=name,
            policy=policy,
            detached_expenses=detached_expenses,
            correlation_id=correlation_id,
        ))

    async def log_expense_created(
        self,
        expense_id: UUID,
        amount: Decimal,
        is_paid: bool,
        budget_after: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_created(
            expense_id=expense_id,
            amount=amount,
            is_paid=is_paid,
            budget_after=budget_after,
            correlation_id=correlation_id,
        ))

    async def log_expense_updated(
        self,
        expense_id: UUID,
        changed_fields: list[str],
        budget_delta: Decimal,
        budget_after: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_updated(
            expense_id=expense_id,
            changed_fields=changed_fields,
            budget_delta=budget_delta,
            budget_after=budget_after,
            correlation_id=correlation_id,
        ))

    async def log_expense_paid(
        self,
        expense_id: UUID,
        amount: Decimal,
        budget_after: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_paid(
            expense_id=expense_id,
            amount=amount,
            budget_after=budget_after,
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        expense_id: UUID,
        amount: Decimal,
        was_paid: bool,
        budget_after: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(
            expense_id=expense_id,
            amount=amount,
            was_paid=was_paid,
            budget_after=budget_after,
            correlation_id=correlation_id,
        ))

    async def log_expense_restored(
        self,
        expense_id: UUID,
        amount: Decimal,
        policy: str,
        budget_after: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_restored(
            expense_id=expense_id,
            amount=amount,
            policy=policy,
            budget_after=budget_after,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        operation: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            operation=operation,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        operation: str,
        error_message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.save_failed(
            operation=operation,
            error_message=error_message,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., saving the logging form).
    Pass it through all subsequent operations.
    """
    return uuid4()
