"""Tests for AuditLogger."""

from decimal import Decimal
from uuid import uuid4

from shared_ledger.audit import AuditLogger, create_correlation_id
from shared_ledger.models.audit import AuditEventBuilder, AuditEventType, AuditSeverity
from shared_ledger.services.storage import AuditStorageInterface, StorageError


class FailingAuditStorage(AuditStorageInterface):
    """Audit storage whose writes always fail."""

    async def append_event(self, event):
        raise StorageError("audit sheet unavailable")

    async def get_events_by_correlation_id(self, correlation_id):
        return []

    async def get_events_by_entity(self, entity_type, entity_id):
        return []

    async def get_recent_events(self, limit=100):
        return []


class TestAuditLogger:
    """Tests for local logging plus persistence."""

    async def test_events_are_persisted(self, audit_logger, audit_storage):
        """Test that logged events reach audit storage."""
        correlation_id = create_correlation_id()
        await audit_logger.log_group_created(
            group_id="g1", name="Trip", creator_id="alice", correlation_id=correlation_id
        )
        await audit_logger.log_member_added(
            group_id="g1", user_id="bob", role="member", correlation_id=correlation_id
        )

        events = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert [e.event_type for e in events] == [
            AuditEventType.GROUP_CREATED,
            AuditEventType.MEMBER_ADDED,
        ]
        by_entity = await audit_storage.get_events_by_entity("group", "g1")
        assert len(by_entity) == 2

    async def test_storage_failure_does_not_raise(self):
        """Test a broken audit trail never breaks the caller."""
        logger = AuditLogger(FailingAuditStorage())
        await logger.log_split_paid(
            split_id=uuid4(), member_id="bob", amount=Decimal("10")
        )

        assert await logger.log(AuditEventBuilder.group_deleted(group_id="g1")) is False

    async def test_without_storage(self):
        logger = AuditLogger()
        event = AuditEventBuilder.storage_error(operation="create_group", error_message="boom")
        assert await logger.log(event) is True

    async def test_empty_settlement_event(self, audit_logger, audit_storage):
        await audit_logger.log_debt_settled(
            payer_id="bob", creditor_id="alice", amount=Decimal("0"), split_count=0
        )
        [event] = await audit_storage.get_recent_events()
        assert event.event_type == AuditEventType.SETTLEMENT_EMPTY

    async def test_storage_error_severity(self, audit_logger, audit_storage):
        await audit_logger.log_storage_error(
            operation="settle_debt", error_message="quota exceeded"
        )
        [event] = await audit_storage.get_recent_events()
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "quota exceeded"
