"""
Core module for PrintQueue.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- converter: LibreOffice-backed document conversion service
- mailer: SMTP email delivery
"""

from .exceptions import (
    PrintQueueError,
    ValidationError,
    UnavailableDependency,
    ExternalOperationFailure,
    OperationTimeout,
    InternalError,
    NoFileProvided,
    UnsupportedMediaType,
    PayloadTooLarge,
    ConverterUnavailable,
    ConversionFailed,
    ConversionTimeout,
    ArtifactUnreadable,
    AllOrdersFailed,
    NotificationFailed,
)
from .converter import ConversionService, ConversionResult, ConversionJob
from .mailer import SmtpMailer

__all__ = [
    "PrintQueueError",
    "ValidationError",
    "UnavailableDependency",
    "ExternalOperationFailure",
    "OperationTimeout",
    "InternalError",
    "NoFileProvided",
    "UnsupportedMediaType",
    "PayloadTooLarge",
    "ConverterUnavailable",
    "ConversionFailed",
    "ConversionTimeout",
    "ArtifactUnreadable",
    "AllOrdersFailed",
    "NotificationFailed",
    "ConversionService",
    "ConversionResult",
    "ConversionJob",
    "SmtpMailer",
]
