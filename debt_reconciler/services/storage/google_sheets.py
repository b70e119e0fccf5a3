"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. Users can view and hand-edit their debts directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (one debt update is one row write)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so the reconciliation
engine never sees a worksheet.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from debt_reconciler.config import get_settings
from debt_reconciler.models.audit import AuditEvent, AuditEventType, AuditSeverity
from debt_reconciler.models.debt import CreditReportUpload, NewDebt, TrackedDebt
from debt_reconciler.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DebtStoreInterface,
    NotFoundError,
    StorageError,
    UploadHistoryInterface,
)


DEBT_COLUMNS = [
    "id",
    "owner_id",
    "name",
    "type",
    "lender",
    "balance",
    "starting_balance",
    "minimum_payment",
    "planned_payment",
]

UPLOAD_COLUMNS = [
    "id",
    "owner_id",
    "uploaded_at",
    "file_names_json",
    "entries_found",
    "discrepancies_found",
    "updates_applied",
    "raw_results_json",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

_retry = retry(
    retry=retry_if_not_exception_type(NotFoundError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _safe_getter(row: list):
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


def _find_row(sheet: gspread.Worksheet, entity_id: UUID) -> Optional[tuple[int, list]]:
    """Return (sheet row number, row values) for an id in column A."""
    all_rows = sheet.get_all_values()
    for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
        if row and row[0] == str(entity_id):
            return idx, row
    return None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.
    
    Handles authentication and worksheet creation.
    """
    
    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets
    
    @_retry
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.
        
        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")
        
        return self._client
    
    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet
    
    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with a header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet
    
    def get_debts_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.debts_sheet_name, DEBT_COLUMNS)
    
    def get_uploads_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.uploads_sheet_name, UPLOAD_COLUMNS)
    
    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsDebtStore(DebtStoreInterface):
    """
    Google Sheets implementation of tracked debt storage.
    
    One debt per row, in the order the user entered them.
    """
    
    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
    
    def _debt_to_row(self, debt: TrackedDebt) -> list:
        return [
            str(debt.id),
            debt.owner_id or "",
            debt.name,
            debt.debt_type,
            debt.lender or "",
            str(debt.balance),
            str(debt.starting_balance),
            str(debt.minimum_payment),
            str(debt.planned_payment) if debt.planned_payment is not None else "",
        ]
    
    def _row_to_debt(self, row: list) -> TrackedDebt:
        safe_get = _safe_getter(row)
        return TrackedDebt(
            id=UUID(safe_get(0)),
            owner_id=safe_get(1) or None,
            name=safe_get(2),
            debt_type=safe_get(3, "other"),
            lender=safe_get(4) or None,
            balance=Decimal(safe_get(5, "0")),
            starting_balance=Decimal(safe_get(6, "0")),
            minimum_payment=Decimal(safe_get(7, "0")),
            planned_payment=Decimal(safe_get(8)) if safe_get(8) else None,
        )
    
    async def list_debts(self, owner_id: str) -> list[TrackedDebt]:
        """List an owner's debts in sheet order."""
        try:
            sheet = self._client.get_debts_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
            
            debts = []
            for row in all_rows:
                if not row or not row[0]:  # Skip empty rows
                    continue
                try:
                    debt = self._row_to_debt(row)
                except Exception:
                    continue  # Skip malformed rows
                if debt.owner_id and debt.owner_id != owner_id:
                    continue
                debts.append(debt)
            return debts
        except Exception as e:
            raise StorageError(f"Failed to list debts: {e}")
    
    async def get_debt(self, debt_id: UUID) -> Optional[TrackedDebt]:
        try:
            found = _find_row(self._client.get_debts_sheet(), debt_id)
            return self._row_to_debt(found[1]) if found else None
        except Exception as e:
            raise StorageError(f"Failed to get debt: {e}")
    
    @_retry
    async def update_debt(
        self,
        debt_id: UUID,
        updates: dict[str, Any],
    ) -> TrackedDebt:
        """Overwrite fields on one debt row in a single range write."""
        try:
            sheet = self._client.get_debts_sheet()
            found = _find_row(sheet, debt_id)
            if found is None:
                raise NotFoundError(f"Debt not found: {debt_id}")
            
            idx, row = found
            debt = self._row_to_debt(row).model_copy(update=updates)
            sheet.update(range_name=f"A{idx}", values=[self._debt_to_row(debt)])
            return debt
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update debt: {e}")
    
    async def create_debt(self, owner_id: str, new_debt: NewDebt) -> TrackedDebt:
        """Append one debt row. Not retried: a repeated append duplicates the debt."""
        try:
            debt = TrackedDebt(owner_id=owner_id, **new_debt.model_dump())
            sheet = self._client.get_debts_sheet()
            sheet.append_row(self._debt_to_row(debt), value_input_option="RAW")
            return debt
        except Exception as e:
            raise StorageError(f"Failed to create debt: {e}")


class GoogleSheetsUploadHistory(UploadHistoryInterface):
    """Google Sheets implementation of credit report upload history."""
    
    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
    
    def _upload_to_row(self, upload: CreditReportUpload) -> list:
        return [
            str(upload.id),
            upload.owner_id,
            upload.uploaded_at.isoformat(),
            json.dumps(upload.file_names),
            str(upload.entries_found),
            str(upload.discrepancies_found),
            str(upload.updates_applied),
            json.dumps(upload.raw_results, default=str),
        ]
    
    def _row_to_upload(self, row: list) -> CreditReportUpload:
        safe_get = _safe_getter(row)
        return CreditReportUpload(
            id=UUID(safe_get(0)),
            owner_id=safe_get(1),
            uploaded_at=datetime.fromisoformat(safe_get(2)),
            file_names=json.loads(safe_get(3, "[]")),
            entries_found=int(safe_get(4, "0")),
            discrepancies_found=int(safe_get(5, "0")),
            updates_applied=int(safe_get(6, "0")),
            raw_results=json.loads(safe_get(7, "{}")),
        )
    
    async def append_upload(self, upload: CreditReportUpload) -> CreditReportUpload:
        """Append one history row. Not retried, like create_debt."""
        try:
            sheet = self._client.get_uploads_sheet()
            sheet.append_row(self._upload_to_row(upload), value_input_option="RAW")
            return upload
        except Exception as e:
            raise StorageError(f"Failed to save upload history: {e}")
    
    async def list_uploads(self, owner_id: str) -> list[CreditReportUpload]:
        try:
            sheet = self._client.get_uploads_sheet()
            all_rows = sheet.get_all_values()[1:]
            
            uploads = []
            for row in all_rows:
                if not row or not row[0]:
                    continue
                try:
                    upload = self._row_to_upload(row)
                except Exception:
                    continue
                if upload.owner_id == owner_id:
                    uploads.append(upload)
            
            uploads.sort(key=lambda u: u.uploaded_at, reverse=True)
            return uploads
        except Exception as e:
            raise StorageError(f"Failed to list uploads: {e}")
    
    async def increment_updates_applied(self, upload_id: UUID) -> int:
        """Read-then-write increment of the counter cell."""
        try:
            sheet = self._client.get_uploads_sheet()
            found = _find_row(sheet, upload_id)
            if found is None:
                raise NotFoundError(f"Upload not found: {upload_id}")
            
            idx, row = found
            new_value = int(_safe_getter(row)(6, "0")) + 1
            sheet.update_cell(idx, UPLOAD_COLUMNS.index("updates_applied") + 1, str(new_value))
            return new_value
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to increment updates applied: {e}")
    
    async def delete_upload(self, upload_id: UUID) -> bool:
        try:
            sheet = self._client.get_uploads_sheet()
            found = _find_row(sheet, upload_id)
            if found is None:
                return False
            sheet.delete_rows(found[0])
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete upload: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.
    
    Audit events are append-only.
    """
    
    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
    
    def _row_to_event(self, row: list) -> AuditEvent:
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )
    
    def _all_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events
    
    @_retry
    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")
    
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
    
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._all_events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
