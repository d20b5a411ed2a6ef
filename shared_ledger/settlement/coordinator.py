"""
Settlement Coordinator

Clears what one payer owes one creditor.

GUARANTEES:
- All selected splits are marked paid in ONE storage call, with one paid_at
- Only splits this call actually moved from pending to paid are counted,
  so overlapping settlements of the same pair never double count
- "Nothing to settle" is a normal result (0), not an error

NOTE: Settlement is one-directional. settle(A, B) clears A -> B only.
Whatever B owes A on other expenses stays pending until B settles with A.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from shared_ledger.audit import AuditLogger
from shared_ledger.expenses import LedgerStore
from shared_ledger.models.ledger import SettlementResult, SplitStatus, utcnow
from shared_ledger.services.storage import LedgerStorageInterface, StorageError


logger = structlog.get_logger(__name__)


class SettlementCoordinator:
    """Clears pending splits between a payer and a creditor."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        ledger: Optional[LedgerStore] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._ledger = ledger or LedgerStore(storage, audit_logger=audit_logger)
        self._audit_logger = audit_logger

    async def settle_debt(
        self,
        payer_id: str,
        creditor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        """
        Mark every pending split payer owes creditor as paid.

        Settling with yourself (payer == creditor) clears nothing and
        returns 0: a creditor's own split on their expense is never a
        debt, so it is left pending.

        Returns:
            The total amount cleared (0 if nothing was pending)
        """
        result = await self.settle(payer_id, creditor_id, correlation_id)
        return result.amount_cleared

    async def settle(
        self,
        payer_id: str,
        creditor_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementResult:
        """Same as settle_debt, returning the full settlement record."""
        result = SettlementResult(payer_id=payer_id, creditor_id=creditor_id)

        # A creditor's own share of their expense is never a debt
        pending = [] if payer_id == creditor_id else [
            row.split
            for row in await self._ledger.get_splits_for_creator(
                creditor_id, status=SplitStatus.PENDING
            )
            if row.split.member_id == payer_id
        ]

        if pending:
            paid_at = utcnow()
            try:
                transitioned = await self._storage.mark_splits_paid(
                    [split.id for split in pending],
                    paid_at,
                )
            except StorageError as e:
                if self._audit_logger:
                    await self._audit_logger.log_storage_error(
                        operation="settle_debt",
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                raise

            if transitioned:
                result.amount_cleared = sum(
                    (split.amount for split in transitioned), Decimal("0")
                )
                result.settled_split_ids = [split.id for split in transitioned]
                result.settled_at = paid_at

            if len(transitioned) < len(pending):
                logger.info(
                    "settlement_overlap",
                    payer_id=payer_id,
                    creditor_id=creditor_id,
                    selected=len(pending),
                    transitioned=len(transitioned),
                )

        if self._audit_logger:
            await self._audit_logger.log_debt_settled(
                payer_id=payer_id,
                creditor_id=creditor_id,
                amount=result.amount_cleared,
                split_count=len(result.settled_split_ids),
                correlation_id=correlation_id,
            )
        return result
