"""Upload validation package."""

from debt_reconciler.validation.validator import UploadValidationError, UploadValidator

__all__ = ["UploadValidationError", "UploadValidator"]
