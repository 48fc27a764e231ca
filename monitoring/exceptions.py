"""Exception handling for the cbratasks core."""

import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(Enum):
    """Standard error codes for the application."""

    # Configuration errors
    CONFIG_INVALID = "CONFIG_INVALID"
    CONFIG_MISSING = "CONFIG_MISSING"

    # Input and data errors
    PARSE_ERROR = "PARSE_ERROR"

    # Local persistence errors
    STORAGE_ERROR = "STORAGE_ERROR"

    # CalDAV errors
    NETWORK_ERROR = "NETWORK_ERROR"
    REMOTE_STATUS_ERROR = "REMOTE_STATUS_ERROR"
    REMOTE_SYNC_WARNING = "REMOTE_SYNC_WARNING"

    # Store operation errors
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    INVALID_OPERATION = "INVALID_OPERATION"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CbraTasksError(Exception):
    """Base exception for the cbratasks core."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            'error_code': self.error_code.value,
            'message': self.message,
            'details': self.details,
            'timestamp': self.timestamp.isoformat(),
            'cause': str(self.cause) if self.cause else None,
            'traceback': traceback.format_exc() if self.cause else None
        }


class ConfigurationError(CbraTasksError):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CONFIG_INVALID, details)


class ParseError(CbraTasksError):
    """Invalid due date or task input, malformed VTODO or persisted file."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message, ErrorCode.PARSE_ERROR, details, cause)


class StorageError(CbraTasksError):
    """Reading or writing a data file failed."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message, ErrorCode.STORAGE_ERROR, details, cause)


class NetworkError(CbraTasksError):
    """A CalDAV request could not be completed."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.NETWORK_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message, error_code, details, cause)


class RemoteStatusError(NetworkError):
    """The CalDAV server answered with an unexpected status code."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(
            message,
            ErrorCode.REMOTE_STATUS_ERROR,
            details={'status_code': status_code, 'body': body}
        )
        self.status_code = status_code
        self.body = body


class TaskNotFoundError(CbraTasksError):
    """No active task carries the requested id."""

    def __init__(self, task_id: str):
        super().__init__(
            f"Task not found: {task_id}",
            ErrorCode.TASK_NOT_FOUND,
            details={'task_id': task_id}
        )
        self.task_id = task_id


class TaskStateError(CbraTasksError):
    """The requested transition is not allowed for the task."""

    def __init__(self, message: str, task_id: Optional[str] = None):
        super().__init__(
            message,
            ErrorCode.INVALID_OPERATION,
            details={'task_id': task_id} if task_id else None
        )
        self.task_id = task_id


@dataclass
class RemoteSyncWarning:
    """A per-task remote failure that was logged instead of raised."""

    task_id: str
    operation: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return f"{self.operation} {self.task_id}: {self.message}"


class ErrorHandler:
    """Centralized error handling and logging."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._error_counts = {}
        self._last_errors = {}

    def handle_error(
        self,
        error: Exception,
        context: str = "unknown",
        extra_details: Optional[Dict[str, Any]] = None
    ) -> CbraTasksError:
        """Handle and log an error, converting to CbraTasksError if needed."""

        if isinstance(error, CbraTasksError):
            handled = error
        else:
            handled = CbraTasksError(
                message=str(error),
                error_code=ErrorCode.INTERNAL_ERROR,
                details=extra_details or {},
                cause=error
            )

        handled.details['context'] = context
        if extra_details:
            handled.details.update(extra_details)

        error_key = f"{context}:{handled.error_code.value}"
        self._error_counts[error_key] = self._error_counts.get(error_key, 0) + 1
        self._last_errors[error_key] = handled.to_dict()

        if handled.error_code == ErrorCode.INTERNAL_ERROR:
            self.logger.error(
                f"[{context}] {handled.message}",
                extra={
                    'error_code': handled.error_code.value,
                    'details': handled.details,
                    'error_count': self._error_counts[error_key]
                },
                exc_info=handled.cause
            )
        else:
            self.logger.warning(
                f"[{context}] {handled.message}",
                extra={
                    'error_code': handled.error_code.value,
                    'details': handled.details,
                    'error_count': self._error_counts[error_key]
                }
            )

        return handled

    def record_warning(self, error: Exception, task_id: str, operation: str) -> RemoteSyncWarning:
        """Log a remote failure for a single task and return it as a warning record."""
        self.handle_error(
            error,
            context=f"remote:{operation}",
            extra_details={'task_id': task_id}
        )
        message = error.message if isinstance(error, CbraTasksError) else str(error)
        return RemoteSyncWarning(task_id=task_id, operation=operation, message=message)

    def get_error_stats(self) -> Dict[str, Any]:
        """Get error statistics."""
        return {
            'error_counts': self._error_counts.copy(),
            'last_errors': self._last_errors.copy(),
            'total_errors': sum(self._error_counts.values())
        }

    def reset_stats(self):
        """Reset error statistics."""
        self._error_counts.clear()
        self._last_errors.clear()
