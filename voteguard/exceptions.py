"""
Custom exceptions for the VoteGuard verification core.

All application-specific exceptions inherit from VoteGuardError. Each class
carries the HTTP status a service boundary should answer with.
"""

from __future__ import annotations

from typing import Optional, Any


class VoteGuardError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Human-readable error message
        details: Additional error details (for debugging)
        recoverable: Whether the error can potentially be recovered from
    """

    http_status: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an API response body."""
        return {
            "success": False,
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(VoteGuardError):
    """Invalid or missing configuration."""

    error_code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, config_key: Optional[str] = None):
        details = {"config_key": config_key} if config_key else None
        super().__init__(message, details=details, recoverable=False)


class ValidationError(VoteGuardError):
    """
    Missing or malformed input. The caller must fix the input before retrying.

    Examples:
        - Missing voter ID or image
        - Empty rejection reason
    """

    http_status = 400
    error_code = "VALIDATION_FAILED"

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        field_value: Optional[Any] = None,
        expected: Optional[str] = None
    ):
        details = {}
        if field_name:
            details["field_name"] = field_name
        if field_value is not None:
            details["field_value"] = str(field_value)[:100]
        if expected:
            details["expected"] = expected
        super().__init__(message, details=details, recoverable=False)


class NotFoundError(VoteGuardError):
    """A voter or verification case does not exist."""

    http_status = 404
    error_code = "NOT_FOUND"

    def __init__(self, message: str, resource: Optional[str] = None, identifier: Optional[str] = None):
        details = {}
        if resource:
            details["resource"] = resource
        if identifier:
            details["identifier"] = identifier
        super().__init__(message, details=details, recoverable=False)


class InvalidStateError(VoteGuardError):
    """
    The operation is not allowed in the record's current state.

    Examples:
        - Approving or rejecting a case that was already decided
        - Opening a second review case for a voter
    """

    http_status = 409
    error_code = "INVALID_STATE"

    def __init__(self, message: str, current_state: Optional[str] = None, identifier: Optional[str] = None):
        details = {}
        if current_state:
            details["current_state"] = current_state
        if identifier:
            details["identifier"] = identifier
        super().__init__(message, details=details, recoverable=False)


class ExtractionFailure(VoteGuardError):
    """
    OCR or image decoding failed for one document.

    Not fatal: inside the orchestrator it only means the layer failed.
    """

    http_status = 422
    error_code = "EXTRACTION_FAILED"

    def __init__(
        self,
        message: str,
        image_path: Optional[str] = None,
        stage: Optional[str] = None
    ):
        details = {}
        if image_path:
            details["image_path"] = image_path
        if stage:
            details["stage"] = stage
        super().__init__(message, details=details, recoverable=True)


class TesseractNotFoundError(ExtractionFailure):
    """Tesseract OCR is not installed or not accessible."""

    def __init__(self, tesseract_path: Optional[str] = None):
        message = (
            "Tesseract OCR not found. Please install Tesseract:\n"
            "  - Windows: https://github.com/UB-Mannheim/tesseract/wiki\n"
            "  - macOS: brew install tesseract\n"
            "  - Ubuntu: sudo apt install tesseract-ocr"
        )
        super().__init__(message, stage="ocr")
        if tesseract_path:
            self.details["tesseract_path_tried"] = tesseract_path


class InfrastructureError(VoteGuardError):
    """
    Storage unreachable or a required file missing. Surfaced to the caller.

    Examples:
        - Registered ID document deleted from uploads
        - Database file not writable
    """

    error_code = "INFRASTRUCTURE_ERROR"

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        operation: Optional[str] = None
    ):
        details = {}
        if file_path:
            details["file_path"] = file_path
        if operation:
            details["operation"] = operation
        super().__init__(message, details=details, recoverable=False)


class DataPersistenceError(InfrastructureError):
    """Failed to save or load the JSON database or an uploaded file."""

    error_code = "PERSISTENCE_ERROR"
