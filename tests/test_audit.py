"""Tests for the audit logger and reading the audit trail back."""

import asyncio
from datetime import datetime
from uuid import uuid4

from debt_reconciler.audit import AuditLogger, create_correlation_id
from debt_reconciler.models.audit import AuditEvent, AuditEventType
from debt_reconciler.orchestrator import CreditReportUploadFlow
from debt_reconciler.services.storage import (
    InMemoryAuditStorage,
    InMemoryDebtStore,
    InMemoryUploadHistory,
    StorageError,
)

from conftest import FakeExtractor, make_debt, make_entry, make_file


class FailingAuditStorage(InMemoryAuditStorage):
    
    async def append_event(self, event):
        raise StorageError("audit sheet unavailable")


class TestAuditLogger:
    """Tests for local logging plus persistence."""
    
    def test_persists_event(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        event = AuditEvent(event_type=AuditEventType.DEBT_ADDED, description="Added")
        
        assert asyncio.run(logger.log(event))
        assert storage.events == [event]
    
    def test_storage_failure_is_not_raised(self):
        logger = AuditLogger(FailingAuditStorage())
        event = AuditEvent(event_type=AuditEventType.DEBT_ADDED, description="Added")
        assert asyncio.run(logger.log(event)) is False
    
    def test_local_only(self):
        event = AuditEvent(event_type=AuditEventType.DEBT_ADDED, description="Added")
        assert asyncio.run(AuditLogger().log(event))


class TestAuditTrail:
    """Reading events back from InMemoryAuditStorage."""
    
    def test_upload_and_session_share_correlation_id(self, app_settings):
        storage = InMemoryAuditStorage()
        debt = make_debt()
        flow = CreditReportUploadFlow(
            debt_store=InMemoryDebtStore([debt]),
            upload_history=InMemoryUploadHistory(),
            extractor=FakeExtractor({"report.png": [make_entry()]}),
            audit_logger=AuditLogger(storage),
            settings=app_settings,
        )
        correlation_id = create_correlation_id()
        
        outcome = asyncio.run(flow.analyze_files([make_file()], correlation_id=correlation_id))
        [discrepancy] = outcome.session.needs_attention()
        asyncio.run(outcome.session.apply_selected(discrepancy))
        asyncio.run(storage.append_event(AuditEvent(
            event_type=AuditEventType.REPORT_UPLOADED,
            correlation_id=uuid4(),
            description="Another upload",
        )))
        
        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert [e.event_type for e in events] == [
            AuditEventType.REPORT_UPLOADED,
            AuditEventType.EXTRACTION_COMPLETED,
            AuditEventType.ENTRIES_MATCHED,
            AuditEventType.UPLOAD_HISTORY_SAVED,
            AuditEventType.UPDATES_APPLIED,
        ]
        assert events[-1].entity_id == debt.id
    
    def test_recent_events_newest_first_with_limit(self):
        storage = InMemoryAuditStorage()
        for day in (2, 4, 1, 3):
            asyncio.run(storage.append_event(AuditEvent(
                event_type=AuditEventType.DEBT_ADDED,
                timestamp=datetime(2024, 1, day),
                description=f"day {day}",
            )))
        
        recent = asyncio.run(storage.get_recent_events(limit=3))
        assert [e.description for e in recent] == ["day 4", "day 3", "day 2"]
        assert len(asyncio.run(storage.get_recent_events())) == 4
