"""
Error taxonomy for job-tracker.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- Retryable vs non-retryable classification
- Structured context for debugging
- HTTP status mapping for the transport layer

Setup-phase errors (validation, upload, trigger) are raised to the caller.
Polling-time failures are represented by FetchDegradation and persistence
failures by PersistenceError; both are logged and carried as values rather
than raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for the job tracker."""

    # Validation errors (1xxx)
    VALIDATION_ERROR = "JOB_1000"
    EMPTY_FILE = "JOB_1001"
    MISSING_COLUMNS = "JOB_1002"

    # Setup errors (2xxx)
    SETUP_ERROR = "JOB_2000"
    FILE_UPLOAD_FAILED = "JOB_2001"
    PROCESSING_TRIGGER_FAILED = "JOB_2002"
    JOB_CREATION_FAILED = "JOB_2003"

    # Transport errors (3xxx)
    TRANSPORT_ERROR = "JOB_3000"
    HTTP_STATUS = "JOB_3001"
    TRANSPORT_TIMEOUT = "JOB_3002"
    TRANSPORT_UNAVAILABLE = "JOB_3003"

    # Polling errors (4xxx)
    FETCH_DEGRADED = "JOB_4000"
    OPERATION_CANCELLED = "JOB_4001"

    # Persistence errors (5xxx)
    PERSISTENCE_ERROR = "JOB_5000"
    STORAGE_READ_ERROR = "JOB_5001"
    STORAGE_WRITE_ERROR = "JOB_5002"

    # Configuration errors (6xxx)
    CONFIG_ERROR = "JOB_6000"
    INVALID_CONFIG = "JOB_6001"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "JOB_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    job_type: str | None = None
    job_id: str | None = None
    file_identifier: str | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_type": self.job_type,
            "job_id": self.job_id,
            "file_identifier": self.file_identifier,
            "operation": self.operation,
            **self.extra,
        }


class JobTrackerError(Exception):
    """
    Base exception for all job tracker errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable (localized) error message
        retryable: Whether the operation can be retried
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.job_type:
            parts.append(f"(job_type={self.context.job_type})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(JobTrackerError):
    """Required data is missing or malformed. Raised before any network call."""

    code = ErrorCode.VALIDATION_ERROR
    retryable = False


class EmptyFileError(ValidationError):
    """The parsed file contains no rows."""

    code = ErrorCode.EMPTY_FILE


class MissingColumnsError(ValidationError):
    """The parsed file lacks one or more required columns."""

    code = ErrorCode.MISSING_COLUMNS

    def __init__(
        self,
        message: str = "Required columns missing",
        *,
        missing_columns: list[str] | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.missing_columns = list(missing_columns or [])


# =============================================================================
# Setup Errors
# =============================================================================


class SetupError(JobTrackerError):
    """Base class for failures of the non-idempotent job setup calls."""

    code = ErrorCode.SETUP_ERROR
    retryable = False


class FileUploadError(SetupError):
    """Uploading the file failed. No job was registered."""

    code = ErrorCode.FILE_UPLOAD_FAILED


class ProcessingTriggerError(SetupError):
    """Triggering backend processing failed. No job was registered."""

    code = ErrorCode.PROCESSING_TRIGGER_FAILED


class JobCreationError(SetupError):
    """Any other failure while creating a job."""

    code = ErrorCode.JOB_CREATION_FAILED


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(JobTrackerError):
    """Base class for HTTP transport failures."""

    code = ErrorCode.TRANSPORT_ERROR
    retryable = False
    http_status: int | None = None

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.http_status = http_status


class HTTPStatusError(TransportError):
    """The backend answered with a non-success status."""

    code = ErrorCode.HTTP_STATUS


class TransportTimeoutError(TransportError):
    """The request timed out. Retryable."""

    code = ErrorCode.TRANSPORT_TIMEOUT
    retryable = True


class TransportUnavailableError(TransportError):
    """The backend is temporarily unavailable. Retryable."""

    code = ErrorCode.TRANSPORT_UNAVAILABLE
    retryable = True


# =============================================================================
# Polling Errors
# =============================================================================


class FetchDegradation(JobTrackerError):
    """
    A polling-time read failed.

    Never raised to callers of polling operations: the engine logs it and
    continues with an empty result.
    """

    code = ErrorCode.FETCH_DEGRADED
    retryable = True


class OperationCancelled(JobTrackerError):
    """Raised when an operation is cancelled via CancellationToken."""

    code = ErrorCode.OPERATION_CANCELLED

    def __init__(self, message: str = "Operation was cancelled", **kwargs):
        super().__init__(message, **kwargs)


# =============================================================================
# Persistence Errors
# =============================================================================


class PersistenceError(JobTrackerError):
    """Base class for durable session store failures."""

    code = ErrorCode.PERSISTENCE_ERROR
    retryable = False


class StorageReadError(PersistenceError):
    """Reading or parsing persisted state failed."""

    code = ErrorCode.STORAGE_READ_ERROR


class StorageWriteError(PersistenceError):
    """Writing persisted state failed (e.g. quota exceeded)."""

    code = ErrorCode.STORAGE_WRITE_ERROR


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(JobTrackerError):
    """Base class for configuration errors."""

    code = ErrorCode.CONFIG_ERROR
    retryable = False


class InvalidConfigError(ConfigError, ValueError):
    """Configuration is invalid."""

    code = ErrorCode.INVALID_CONFIG


# =============================================================================
# Error Mapping from HTTP Status Codes
# =============================================================================


def error_from_status(
    status: int,
    message: str,
    *,
    context: ErrorContext | None = None,
) -> TransportError:
    """
    Create an appropriate TransportError from an HTTP status code.

    Args:
        status: HTTP status code
        message: Error message or response body
        context: Additional error context

    Returns:
        Appropriate TransportError subclass
    """
    error_map: dict[int, type[TransportError]] = {
        408: TransportTimeoutError,
        502: TransportUnavailableError,
        503: TransportUnavailableError,
        504: TransportTimeoutError,
    }

    error_class = error_map.get(status, HTTPStatusError)
    return error_class(message, http_status=status, context=context)


__all__ = [
    # Base
    "ErrorCode",
    "ErrorContext",
    "JobTrackerError",
    # Validation errors
    "ValidationError",
    "EmptyFileError",
    "MissingColumnsError",
    # Setup errors
    "SetupError",
    "FileUploadError",
    "ProcessingTriggerError",
    "JobCreationError",
    # Transport errors
    "TransportError",
    "HTTPStatusError",
    "TransportTimeoutError",
    "TransportUnavailableError",
    # Polling errors
    "FetchDegradation",
    "OperationCancelled",
    # Persistence errors
    "PersistenceError",
    "StorageReadError",
    "StorageWriteError",
    # Config errors
    "ConfigError",
    "InvalidConfigError",
    # Utilities
    "error_from_status",
]
