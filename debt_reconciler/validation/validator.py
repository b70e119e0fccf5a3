"""
Upload Validation

DESIGN DECISION: Files are checked before any network call is made.
A rejected batch has no side effects: nothing is sent to the extraction
provider and nothing is written to the upload history.

Checks:
- At least one file
- No more than the configured number of files
- Only PNG, JPEG or PDF
- Each file under the configured size limit

IMPORTANT: Validation reports every issue it finds rather than stopping
at the first one.
"""

from typing import Optional

from debt_reconciler.config import AppSettings, get_settings
from debt_reconciler.models.debt import UploadFile, ValidationIssue, ValidationResult


class UploadValidationError(Exception):
    """The selected files were rejected before processing."""
    
    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__(result.message or "Upload rejected")


class UploadValidator:
    """Validates a batch of credit report files."""
    
    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app
    
    def validate(self, files: list[UploadFile]) -> ValidationResult:
        issues = []
        
        if not files:
            issues.append(ValidationIssue(
                field="files",
                issue_type="no_files",
                message="Please select at least one file",
            ))
        
        max_files = self._settings.max_upload_files
        if len(files) > max_files:
            issues.append(ValidationIssue(
                field="files",
                issue_type="too_many_files",
                message=f"Maximum {max_files} files allowed at once",
            ))
        
        allowed = self._settings.supported_mime_types_list
        for f in files:
            if f.mime_type.lower() not in allowed:
                issues.append(ValidationIssue(
                    field=f.filename,
                    issue_type="unsupported_type",
                    message="Please upload only PNG, JPEG, or PDF files",
                ))
        
        max_bytes = self._settings.max_upload_size_bytes
        for f in files:
            if f.size_bytes > max_bytes:
                issues.append(ValidationIssue(
                    field=f.filename,
                    issue_type="file_too_large",
                    message=f"Each file must be under {self._settings.max_upload_size_mb}MB",
                ))
        
        return ValidationResult(
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
        )
    
    def validate_or_raise(self, files: list[UploadFile]) -> ValidationResult:
        result = self.validate(files)
        if not result.is_valid:
            raise UploadValidationError(result)
        return result
