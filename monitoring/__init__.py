"""Error taxonomy and error handling for the cbratasks core."""

from .exceptions import (
    ErrorCode, CbraTasksError, ConfigurationError, ParseError, StorageError,
    NetworkError, RemoteStatusError, TaskNotFoundError, TaskStateError,
    RemoteSyncWarning, ErrorHandler
)

__all__ = [
    'ErrorCode', 'CbraTasksError', 'ConfigurationError', 'ParseError', 'StorageError',
    'NetworkError', 'RemoteStatusError', 'TaskNotFoundError', 'TaskStateError',
    'RemoteSyncWarning', 'ErrorHandler'
]
