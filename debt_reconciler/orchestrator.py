"""
Main Orchestrator for Debt Reconciler

This module ties the components together and defines the end-to-end
credit report flow:

    files -> validate -> extract (per file) -> de-duplicate -> match
          -> save upload history -> reconciliation session

DESIGN DECISION: The orchestrator enforces the boundaries:
- Invalid uploads are rejected before any provider call
- A provider failure on any file discards the whole batch
- Nothing is written to tracked debts here; that only happens through
  explicit session actions
- Every step is audited
"""

from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict

from debt_reconciler.audit import AuditLogger, create_correlation_id
from debt_reconciler.config import AppSettings, get_settings
from debt_reconciler.models.debt import (
    AnalysisResult,
    AnalysisSummary,
    CreditReportUpload,
    ReportEntry,
    UploadFile,
)
from debt_reconciler.reconciliation import (
    ReconciliationSession,
    dedupe_entries,
    match_all,
)
from debt_reconciler.services.extraction import CreditReportExtractor, ExtractionError
from debt_reconciler.services.storage import (
    DebtStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDebtStore,
    GoogleSheetsUploadHistory,
    InMemoryDebtStore,
    InMemoryUploadHistory,
    StorageError,
    UploadHistoryInterface,
)
from debt_reconciler.validation import UploadValidationError, UploadValidator

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[float], None]


class UploadOutcome(BaseModel):
    """Everything the caller needs after a successful upload."""
    model_config = ConfigDict(arbitrary_types_allowed=True)
    
    upload: CreditReportUpload
    result: AnalysisResult
    session: ReconciliationSession
    needs_attention: int
    message: str


class UploadReminder(BaseModel):
    """When the next credit report upload is due."""
    
    days_since_last_upload: Optional[int] = None
    days_until_next_upload: Optional[int] = None
    should_upload: bool = True


def build_reminder(
    uploads: list[CreditReportUpload],
    now: Optional[datetime] = None,
    reminder_days: int = 30,
) -> UploadReminder:
    """
    Upload cadence from the history.
    
    No history means an upload is due. Otherwise one is due once
    `reminder_days` whole days have passed since the latest upload.
    """
    if not uploads:
        return UploadReminder()
    
    now = now or datetime.utcnow()
    latest = max(uploads, key=lambda u: u.uploaded_at)
    days_since = (now - latest.uploaded_at).days
    return UploadReminder(
        days_since_last_upload=days_since,
        days_until_next_upload=max(0, reminder_days - days_since),
        should_upload=days_since >= reminder_days,
    )


class CreditReportUploadFlow:
    """
    Orchestrates a credit report upload.
    
    Flow:
    1. Validate the selected files (no side effects on failure)
    2. Extract entries from each file in order, reporting progress
    3. De-duplicate entries across files
    4. Match entries against the owner's tracked debts
    5. Save the upload to history
    6. Hand back a ReconciliationSession for the user's decisions
    """
    
    def __init__(
        self,
        debt_store: DebtStoreInterface,
        upload_history: UploadHistoryInterface,
        extractor: Optional[CreditReportExtractor] = None,
        validator: Optional[UploadValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._settings = settings or get_settings().app
        self._debt_store = debt_store
        self._upload_history = upload_history
        self._extractor = extractor or CreditReportExtractor()
        self._validator = validator or UploadValidator(self._settings)
        self._audit_logger = audit_logger
    
    async def analyze_files(
        self,
        files: list[UploadFile],
        progress: Optional[ProgressCallback] = None,
        correlation_id: Optional[UUID] = None,
    ) -> UploadOutcome:
        """
        Run the upload flow up to the point where the user decides.
        
        Raises:
            UploadValidationError: Files rejected; nothing was called
            ExtractionError: A file failed; no entries are kept
            StorageError: Debts could not be read or history not saved
        """
        correlation_id = correlation_id or create_correlation_id()
        file_names = [f.filename for f in files]
        
        validation = self._validator.validate(files)
        if not validation.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_upload_validation_failed(
                    issues=[issue.model_dump() for issue in validation.issues],
                    correlation_id=correlation_id,
                )
            raise UploadValidationError(validation)
        
        if self._audit_logger:
            await self._audit_logger.log_report_uploaded(
                file_names=file_names,
                correlation_id=correlation_id,
            )
        
        entries = await self._extract_all(files, progress, correlation_id)
        unique_entries = dedupe_entries(entries)
        result = AnalysisResult(
            entries=unique_entries,
            summary=AnalysisSummary.from_entries(unique_entries),
        )
        
        debts = await self._debt_store.list_debts(self._settings.owner_id)
        discrepancies = match_all(
            unique_entries,
            debts,
            threshold=self._settings.match_threshold,
        )
        needs_attention = sum(1 for d in discrepancies if d.needs_attention)
        
        if self._audit_logger:
            await self._audit_logger.log_entries_matched(
                entries=len(discrepancies),
                matched=sum(1 for d in discrepancies if d.is_matched),
                needs_attention=needs_attention,
                correlation_id=correlation_id,
            )
        
        upload = CreditReportUpload(
            owner_id=self._settings.owner_id,
            file_names=file_names,
            entries_found=len(unique_entries),
            discrepancies_found=needs_attention,
            raw_results=result.model_dump(mode="json", by_alias=True),
        )
        try:
            upload = await self._upload_history.append_upload(upload)
        except StorageError as e:
            logger.error("upload_history_failed", error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_store_write_failed(
                    operation="append_upload",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise
        
        if self._audit_logger:
            await self._audit_logger.log_upload_history_saved(
                upload_id=upload.id,
                entries_found=upload.entries_found,
                discrepancies_found=upload.discrepancies_found,
                correlation_id=correlation_id,
            )
        
        session = ReconciliationSession(
            discrepancies,
            debt_store=self._debt_store,
            upload_history=self._upload_history,
            upload_id=upload.id,
            owner_id=self._settings.owner_id,
            audit_logger=self._audit_logger,
            correlation_id=correlation_id,
        )
        
        if needs_attention:
            message = f"Found {needs_attention} item(s) needing attention"
        else:
            message = "All accounts match your tracked debts!"
        
        return UploadOutcome(
            upload=upload,
            result=result,
            session=session,
            needs_attention=needs_attention,
            message=message,
        )
    
    async def _extract_all(
        self,
        files: list[UploadFile],
        progress: Optional[ProgressCallback],
        correlation_id: UUID,
    ) -> list[ReportEntry]:
        """Extract sequentially; the first failure aborts the batch."""
        entries: list[ReportEntry] = []
        
        for processed, file in enumerate(files, start=1):
            try:
                analysis = await self._extractor.analyze(file)
            except ExtractionError as e:
                logger.error(
                    "extraction_failed",
                    filename=file.filename,
                    error=str(e),
                    discarded_entries=len(entries),
                )
                if self._audit_logger:
                    await self._audit_logger.log_extraction_failed(
                        filename=file.filename,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                raise
            
            entries.extend(analysis.entries)
            if self._audit_logger:
                await self._audit_logger.log_extraction_completed(
                    filename=file.filename,
                    entries_found=len(analysis.entries),
                    correlation_id=correlation_id,
                )
            if progress:
                progress(processed / len(files))
        
        return entries
    
    async def list_uploads(self) -> list[CreditReportUpload]:
        """The owner's upload history, newest first."""
        return await self._upload_history.list_uploads(self._settings.owner_id)
    
    async def delete_upload(self, upload_id: UUID) -> bool:
        return await self._upload_history.delete_upload(upload_id)
    
    async def upload_reminder(self, now: Optional[datetime] = None) -> UploadReminder:
        uploads = await self.list_uploads()
        return build_reminder(
            uploads,
            now=now,
            reminder_days=self._settings.upload_reminder_days,
        )


def create_app_components(
    use_storage: bool = True,
    extractor: Optional[CreditReportExtractor] = None,
) -> tuple[CreditReportUploadFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.
    
    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Falls back to in-memory stores when False or
                    when Sheets is not configured.
        extractor: Extraction provider; Gemini when omitted.
        
    Returns:
        (upload_flow, sheets_client)
    """
    sheets_client = None
    
    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            debt_store = GoogleSheetsDebtStore(sheets_client)
            upload_history = GoogleSheetsUploadHistory(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            use_storage = False
    
    if not use_storage:
        debt_store = InMemoryDebtStore()
        upload_history = InMemoryUploadHistory()
        audit_logger = AuditLogger()  # Local-only logging
    
    upload_flow = CreditReportUploadFlow(
        debt_store=debt_store,
        upload_history=upload_history,
        extractor=extractor,
        audit_logger=audit_logger,
    )
    return upload_flow, sheets_client
