"""
Custom exceptions for PrintQueue.

Exception Hierarchy:
    PrintQueueError (base)
    ├── ValidationError             - Bad or missing input (client-caused)
    │   ├── NoFileProvided
    │   ├── UnsupportedMediaType
    │   ├── PayloadTooLarge
    │   ├── InvalidRecipient
    │   ├── SubmissionNotAllowed
    │   └── SubmissionInProgress
    ├── UnavailableDependency       - Converter or email transport unreachable/unconfigured
    │   ├── ConverterUnavailable
    │   └── NotificationNotConfigured
    ├── ExternalOperationFailure    - A collaborator call failed
    │   ├── ConversionFailed
    │   │   └── ConversionTimeout
    │   ├── ArtifactUnreadable
    │   ├── StorageError
    │   ├── RecordStoreError
    │   ├── NotificationFailed
    │   └── AllOrdersFailed
    ├── OperationTimeout            - Network deadline exceeded
    └── InternalError               - Unexpected

Usage:
    Routes translate any PrintQueueError into a JSON body using ``code``
    and ``http_status``. Page-count resolution absorbs these errors into a
    default page count; order orchestration records them per file.
"""

from typing import Optional, Dict, Any


class PrintQueueError(Exception):
    """
    Base exception for all PrintQueue errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def code(self) -> str:
        """Stable error code used in JSON responses."""
        return type(self).__name__

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly error body."""
        body = {
            "ok": False,
            "error": self.message,
            "code": self.code,
        }
        if self.details:
            body["details"] = self.details
        return body


# =============================================================================
# VALIDATION ERRORS - caller sent something we cannot accept
# =============================================================================

class ValidationError(PrintQueueError):
    """Bad or missing input."""

    http_status = 400


class NoFileProvided(ValidationError):
    """The request carried no document, or the document was empty."""

    def __init__(self, message: str = "No file uploaded"):
        super().__init__(message, {"resolution": "Attach a DOC or DOCX file in the 'file' field"})


class UnsupportedMediaType(ValidationError):
    """
    The document is not a word-processor file.

    Raised both for a wrong extension and for content whose signature
    does not match a DOC (OLE2) or DOCX (ZIP) container.
    """

    def __init__(self, filename: str, reason: str = "Only DOCX and DOC files are allowed."):
        super().__init__(
            f"Invalid file type: {reason}",
            {"filename": filename, "resolution": "Upload a .doc or .docx document"},
        )
        self.filename = filename


class PayloadTooLarge(ValidationError):
    """Document exceeds the configured size limit."""

    http_status = 413

    def __init__(self, size_bytes: int, max_bytes: int):
        max_mb = max_bytes / (1024 * 1024)
        super().__init__(
            f"File size exceeds {max_mb:.0f}MB limit",
            {"size_bytes": size_bytes, "max_bytes": max_bytes},
        )
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes


class InvalidRecipient(ValidationError):
    """Recipient address is not a plausible email address."""

    def __init__(self, recipient: str):
        super().__init__("Invalid email address", {"recipient": recipient})
        self.recipient = recipient


class SubmissionNotAllowed(ValidationError):
    """Submit was triggered while the queue is not in the Active state."""

    http_status = 409

    def __init__(self, state: str):
        super().__init__(
            f"Cannot submit while queue is {state}",
            {"state": state, "resolution": "Add at least one file before placing the order"},
        )
        self.state = state


class SubmissionInProgress(ValidationError):
    """Queue mutation or second submit attempted while a submission is in flight."""

    http_status = 409

    def __init__(self):
        super().__init__(
            "A submission is already being processed",
            {"resolution": "Wait for the current order to finish"},
        )


# =============================================================================
# UNAVAILABLE DEPENDENCIES - service-caused, retry later
# =============================================================================

class UnavailableDependency(PrintQueueError):
    """A required collaborator is unreachable or unconfigured."""

    http_status = 503


class ConverterUnavailable(UnavailableDependency):
    """
    The external document converter cannot be run.

    Typical causes:
    - LibreOffice (soffice) not installed or not on PATH
    - CONVERTER_BINARY points to the wrong location
    - All conversion workers busy for longer than the queue timeout
    """

    def __init__(self, message: str = "Document converter is not available", binary: Optional[str] = None):
        details = {"resolution": "Ensure LibreOffice is installed and CONVERTER_BINARY is correct"}
        if binary:
            details["binary"] = binary
        super().__init__(message, details)


class NotificationNotConfigured(UnavailableDependency):
    """Email transport credentials are missing."""

    def __init__(self):
        super().__init__(
            "Email service not properly configured. Check environment variables.",
            {"resolution": "Set GMAIL_USER and GMAIL_PASSWORD in .env"},
        )


# =============================================================================
# EXTERNAL OPERATION FAILURES
# =============================================================================

class ExternalOperationFailure(PrintQueueError):
    """A call into an external collaborator failed."""

    http_status = 502


class ConversionFailed(ExternalOperationFailure):
    """The converter ran but did not produce a usable artifact."""

    http_status = 500

    def __init__(self, detail: str):
        super().__init__(f"Conversion failed: {detail}", {"detail": detail})
        self.detail = detail


class ConversionTimeout(ConversionFailed):
    """The converter did not exit within the hard timeout and was killed."""

    http_status = 504

    def __init__(self, timeout_seconds: float):
        super().__init__(f"converter timed out after {timeout_seconds:.1f}s")
        self.timeout_seconds = timeout_seconds


class ArtifactUnreadable(ExternalOperationFailure):
    """The converted PDF could not be loaded or has no pages."""

    http_status = 500

    def __init__(self, detail: str):
        super().__init__(f"Converted document could not be read: {detail}", {"detail": detail})
        self.detail = detail


class StorageError(ExternalOperationFailure):
    """Object storage upload or delete failed."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Storage operation failed for {key}: {reason}", {"key": key})
        self.key = key
        self.reason = reason


class RecordStoreError(ExternalOperationFailure):
    """Order record could not be persisted."""

    def __init__(self, reason: str):
        super().__init__(f"Order record could not be saved: {reason}")
        self.reason = reason


class NotificationFailed(ExternalOperationFailure):
    """
    Confirmation email could not be delivered.

    Orders created before this error stay valid. ``batch`` carries the
    batch result when the failure happened after orders were placed, so
    the caller can report "orders exist, confirmation undelivered".
    """

    def __init__(self, reason: str, recipient: Optional[str] = None, batch=None):
        details = {"resolution": "Orders were saved; resend the confirmation manually"}
        if recipient:
            details["recipient"] = recipient
        super().__init__(f"Failed to send email: {reason}", details)
        self.reason = reason
        self.recipient = recipient
        self.batch = batch

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.batch is not None:
            body["batch"] = self.batch.to_dict()
        return body


class AllOrdersFailed(ExternalOperationFailure):
    """Every file in the batch failed; nothing was ordered."""

    def __init__(self, batch=None):
        failures = len(batch.failures) if batch is not None else 0
        super().__init__(
            "All file uploads failed.",
            {"failed_files": failures, "resolution": "Check storage connectivity and try again"},
        )
        self.batch = batch

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.batch is not None:
            body["batch"] = self.batch.to_dict()
        return body


# =============================================================================
# TIMEOUTS AND INTERNAL ERRORS
# =============================================================================

class OperationTimeout(PrintQueueError):
    """A network call exceeded its deadline."""

    http_status = 504

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            f"{operation} timed out after {timeout_seconds:.1f}s",
            {"operation": operation, "timeout_seconds": timeout_seconds},
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class InternalError(PrintQueueError):
    """Unexpected failure."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
