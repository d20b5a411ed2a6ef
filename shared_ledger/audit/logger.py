"""
Audit Logger

DESIGN DECISION: Every ledger write is logged.
This provides:
1. Complete traceability of expenses and settlements
2. Debugging capability
3. Users can see the history of who paid whom

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (a broken audit trail never blocks a ledger write)
- Supports correlation IDs to trace related events
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from shared_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from shared_ledger.services.storage import AuditStorageInterface


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


def configure_logging(level: str = "INFO") -> None:
    """Route the stdlib root logger (which structlog writes through) at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility), when configured
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
        self._logger = structlog.get_logger("shared_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
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

    async def log_group_created(
        self,
        group_id: str,
        name: str,
        creator_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.group_created(
            group_id=group_id,
            name=name,
            creator_id=creator_id,
            correlation_id=correlation_id,
        ))

    async def log_group_renamed(
        self,
        group_id: str,
        old_name: str,
        new_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.group_renamed(
            group_id=group_id,
            old_name=old_name,
            new_name=new_name,
            correlation_id=correlation_id,
        ))

    async def log_group_deleted(
        self,
        group_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.group_deleted(
            group_id=group_id,
            correlation_id=correlation_id,
        ))

    async def log_member_added(
        self,
        group_id: str,
        user_id: str,
        role: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.member_added(
            group_id=group_id,
            user_id=user_id,
            role=role,
            correlation_id=correlation_id,
        ))

    async def log_member_removed(
        self,
        group_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.member_removed(
            group_id=group_id,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_expense_recorded(
        self,
        expense_id: UUID,
        creator_id: str,
        amount: Decimal,
        group_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_recorded(
            expense_id=expense_id,
            creator_id=creator_id,
            amount=amount,
            group_id=group_id,
            correlation_id=correlation_id,
        ))

    async def log_splits_created(
        self,
        expense_id: UUID,
        split_count: int,
        total: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.splits_created(
            expense_id=expense_id,
            split_count=split_count,
            total=total,
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(
            expense_id=expense_id,
            correlation_id=correlation_id,
        ))

    async def log_split_paid(
        self,
        split_id: UUID,
        member_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.split_paid(
            split_id=split_id,
            member_id=member_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_debt_settled(
        self,
        payer_id: str,
        creditor_id: str,
        amount: Decimal,
        split_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if split_count == 0:
            event = AuditEventBuilder.settlement_empty(
                payer_id=payer_id,
                creditor_id=creditor_id,
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.debt_settled(
                payer_id=payer_id,
                creditor_id=creditor_id,
                amount=amount,
                split_count=split_count,
                correlation_id=correlation_id,
            )
        await self.log(event)

    async def log_validation_failed(
        self,
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., recording an
    expense with its splits). Pass it through all subsequent operations.
    """
    return uuid4()
